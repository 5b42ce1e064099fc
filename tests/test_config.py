"""
Layered configuration loading and typed sections.
"""

import json

import pytest

from specweave.config import AssemblyConfig, ConfigLoader, RouterConfig, ServerConfig
from specweave.faults import ConfigInvalidFault


# ============================================================================
# Sources
# ============================================================================

class TestSources:

    def test_defaults(self):
        config = ConfigLoader.load(environ={})
        assert config.server_config() == ServerConfig()
        assert config.router_config() == RouterConfig()
        assert config.assembly_config() == AssemblyConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "specweave.yaml"
        path.write_text("assembly:\n  title: Widgets\n  version: 2\nserver:\n  port: 9000\n")

        config = ConfigLoader.load(paths=[str(path)], environ={})
        assert config.assembly_config().info == {"title": "Widgets", "version": "2"}
        assert config.server_config().port == 9000

    def test_json_file(self, tmp_path):
        path = tmp_path / "specweave.json"
        path.write_text(json.dumps({"router": {"validate_responses": True}}))

        config = ConfigLoader.load(paths=[str(path)], environ={})
        assert config.router_config().validate_responses is True

    def test_later_files_override(self, tmp_path):
        first = tmp_path / "a.yaml"
        first.write_text("server:\n  host: 0.0.0.0\n  port: 9000\n")
        second = tmp_path / "b.yaml"
        second.write_text("server:\n  port: 9001\n")

        server = ConfigLoader.load(paths=[str(first), str(second)], environ={}).server_config()
        assert server.host == "0.0.0.0"
        assert server.port == 9001

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(paths=[str(tmp_path / "missing.yaml")], environ={})

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("x = 1\n")
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(paths=[str(path)], environ={})

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigInvalidFault) as exc_info:
            ConfigLoader.load(paths=[str(path)], environ={})
        assert "could not be parsed" in exc_info.value.message

    def test_environment(self):
        environ = {
            "SPECWEAVE_SERVER__PORT": "8081",
            "SPECWEAVE_ROUTER__EXPOSE_INTERNAL_ERRORS": "yes",
            "OTHER_VALUE": "ignored",
        }
        config = ConfigLoader.load(environ=environ)
        assert config.server_config().port == 8081
        assert config.router_config().expose_internal_errors is True
        assert config.get("other_value") is None

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SPECWEAVE_SERVER__HOST=0.0.0.0\nUNRELATED=1\n")

        config = ConfigLoader.load(env_file=str(env_file), environ={})
        assert config.server_config().host == "0.0.0.0"
        assert config.get("unrelated") is None

    def test_environment_overrides_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("SPECWEAVE_SERVER__PORT=7000\n")

        config = ConfigLoader.load(env_file=str(env_file), environ={"SPECWEAVE_SERVER__PORT": "7001"})
        assert config.server_config().port == 7001

    def test_missing_env_file_ignored(self, tmp_path):
        config = ConfigLoader.load(env_file=str(tmp_path / ".env"), environ={})
        assert config.to_dict() == {}

    def test_overrides_win(self):
        config = ConfigLoader.load(
            environ={"SPECWEAVE_SERVER__PORT": "8081"},
            overrides={"server": {"port": 9999}},
        )
        assert config.server_config().port == 9999

    def test_custom_prefix(self):
        config = ConfigLoader.load(env_prefix="WIDGETS_", environ={"WIDGETS_SERVER__PORT": "1234"})
        assert config.get("server.port") == 1234

    def test_json_values(self):
        config = ConfigLoader.load(environ={"SPECWEAVE_ASSEMBLY__SERVERS": '[{"url": "/api"}]'})
        assert config.assembly_config().servers == [{"url": "/api"}]


# ============================================================================
# Sections
# ============================================================================

class TestSections:

    def test_unknown_key(self):
        config = ConfigLoader.load(environ={}, overrides={"server": {"workers": 4}})
        with pytest.raises(ConfigInvalidFault) as exc_info:
            config.server_config()
        assert "server.workers" in exc_info.value.message

    def test_wrong_type(self):
        config = ConfigLoader.load(environ={}, overrides={"server": {"port": "high"}})
        with pytest.raises(ConfigInvalidFault):
            config.server_config()

    def test_boolean_is_not_integer(self):
        config = ConfigLoader.load(environ={}, overrides={"router": {"max_body_size": True}})
        with pytest.raises(ConfigInvalidFault):
            config.router_config()

    def test_port_range(self):
        config = ConfigLoader.load(environ={}, overrides={"server": {"port": 70000}})
        with pytest.raises(ConfigInvalidFault):
            config.server_config()

    def test_security_merge(self):
        config = ConfigLoader.load(environ={}, overrides={"assembly": {"security_merge": "union"}})
        with pytest.raises(ConfigInvalidFault):
            config.assembly_config()

    def test_section_must_be_mapping(self):
        config = ConfigLoader.load(environ={}, overrides={"server": "localhost"})
        with pytest.raises(ConfigInvalidFault):
            config.server_config()

    def test_router_options(self):
        options = RouterConfig(validate_responses=True).router_options()
        assert options["validate_responses"] is True
        assert options["max_body_size"] == 10_485_760
