"""
Config system - Layered configuration with typed views.

Sources, later overriding earlier:
1. Defaults
2. Config files (YAML or JSON)
3. ``.env`` file (``SPECWEAVE_*`` keys only)
4. Environment variables (``SPECWEAVE_*`` prefix, ``__`` nests keys)
5. Manual overrides
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar
import json
import os

import yaml
from dotenv import dotenv_values

from .faults import ConfigInvalidFault

ENV_PREFIX = "SPECWEAVE_"

T = TypeVar("T")


# ============================================================================
# Typed views
# ============================================================================

@dataclass
class AssemblyConfig:
    """How controllers are assembled into a document."""
    title: str = "API"
    version: str = "1.0.0"
    servers: List[Dict[str, Any]] = field(default_factory=list)
    ignore_empty_controllers: bool = False
    strip_extensions: bool = True
    security_merge: str = "replace"

    def validate(self) -> None:
        if self.security_merge not in ("replace", "merge"):
            raise ConfigInvalidFault("assembly.security_merge", "must be 'replace' or 'merge'")

    @property
    def info(self) -> Dict[str, str]:
        return {"title": self.title, "version": self.version}


@dataclass
class RouterConfig:
    """Router factory options."""
    ensure_responses_handled: bool = True
    validate_responses: bool = False
    strict_response_validation: bool = False
    coerce_types: bool = True
    expose_internal_errors: bool = False
    max_body_size: int = 10_485_760

    def validate(self) -> None:
        if self.max_body_size <= 0:
            raise ConfigInvalidFault("router.max_body_size", "must be positive")

    def router_options(self) -> Dict[str, Any]:
        """Keyword arguments for ``create_router_from_spec``."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class ServerConfig:
    """Options passed to uvicorn."""
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"
    reload: bool = False

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigInvalidFault("server.port", "must be between 1 and 65535")
        if self.log_level.lower() not in ("critical", "error", "warning", "info", "debug", "trace"):
            raise ConfigInvalidFault("server.log_level", f"unknown level {self.log_level!r}")


# ============================================================================
# Loader
# ============================================================================

class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Example:
        ```python
        config = ConfigLoader.load(paths=["specweave.yaml"], env_file=".env")
        server = config.server_config()
        ```
    """

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[Sequence[str]] = None,
        env_prefix: str = ENV_PREFIX,
        env_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from every source.

        Args:
            paths: Config files (``.yaml``, ``.yml`` or ``.json``)
            env_prefix: Prefix of environment variables
            env_file: Path to a .env file
            overrides: Manual overrides (highest precedence)
            environ: Environment to read instead of ``os.environ``

        Raises:
            ConfigInvalidFault: If a file cannot be parsed
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or ():
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, dict(overrides))

        return loader

    def _load_file(self, path: Path):
        if not path.exists():
            raise ConfigInvalidFault(str(path), "config file does not exist")

        try:
            with open(path) as f:
                if path.suffix == ".json":
                    data = json.load(f)
                elif path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    raise ConfigInvalidFault(str(path), f"unsupported config file type {path.suffix!r}")
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigInvalidFault(str(path), f"could not be parsed: {e}") from e

        if data is None:
            return
        if not isinstance(data, dict):
            raise ConfigInvalidFault(str(path), "top level must be a mapping")
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        """Load ``SPECWEAVE_*`` keys from a .env file."""
        if not Path(path).exists():
            return

        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]):
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert SPECWEAVE_SERVER__PORT to {"server": {"port": ...}}."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    # ------------------------------------------------------------------
    # Typed views
    # ------------------------------------------------------------------

    def section(self, name: str, config_class: Type[T]) -> T:
        """
        Instantiate ``config_class`` from section ``name``.

        Unknown keys are rejected; values are checked against the field
        defaults' types.

        Raises:
            ConfigInvalidFault: On unknown keys or mistyped values
        """
        data = self.get(name, {}) or {}
        if not isinstance(data, dict):
            raise ConfigInvalidFault(name, "must be a mapping")

        known = {f.name: f for f in fields(config_class)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                raise ConfigInvalidFault(f"{name}.{key}", "unknown setting")
            kwargs[key] = self._check_value(f"{name}.{key}", known[key], value)

        instance = config_class(**kwargs)
        validate = getattr(instance, "validate", None)
        if validate is not None:
            validate()
        return instance

    def _check_value(self, key: str, f, value: Any) -> Any:
        default = f.default_factory() if callable(f.default_factory) else f.default
        expected = type(default)

        if expected is bool:
            if not isinstance(value, bool):
                raise ConfigInvalidFault(key, f"expected a boolean, got {value!r}")
        elif expected is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigInvalidFault(key, f"expected an integer, got {value!r}")
        elif expected is str:
            # Numeric-looking strings such as a version "2" parse as numbers.
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                raise ConfigInvalidFault(key, f"expected a string, got {value!r}")
        elif expected is list:
            if not isinstance(value, list):
                raise ConfigInvalidFault(key, f"expected a list, got {value!r}")
        return value

    def assembly_config(self) -> AssemblyConfig:
        return self.section("assembly", AssemblyConfig)

    def router_config(self) -> RouterConfig:
        return self.section("router", RouterConfig)

    def server_config(self) -> ServerConfig:
        return self.section("server", ServerConfig)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.config_data)
