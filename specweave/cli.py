"""specweave CLI.

Commands:
    spec   - Print or write the assembled OpenAPI document
    routes - List the routed operations
    serve  - Serve the controllers with uvicorn
"""

import importlib
import inspect
import json
import os
import sys
from typing import Any, Dict, List, Optional

import click
import yaml

from . import __version__
from .config import AssemblyConfig, ConfigLoader, ServerConfig
from .faults import Fault
from .openapi import SpecAssembler
from .openapi.assembler import name_controller
from .routing import Router, create_router


def error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(message, fg="red"), err=True)


def load_target(target: str) -> Any:
    """
    Import ``MODULE:ATTR``.

    Callables other than classes are called without arguments, so the
    attribute may be a factory returning the controllers.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"Expected MODULE:ATTR, got {target!r}", param_hint="TARGET")

    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    module = importlib.import_module(module_name)

    value: Any = module
    for part in attr.split("."):
        try:
            value = getattr(value, part)
        except AttributeError:
            raise click.BadParameter(f"{module_name} has no attribute {attr!r}", param_hint="TARGET") from None

    if callable(value) and not inspect.isclass(value) and not isinstance(value, Router):
        value = value()
    return value


def load_controllers(target: str) -> List[Any]:
    value = load_target(target)
    if isinstance(value, Router):
        raise click.BadParameter(f"{target} is a router; expected a list of controllers", param_hint="TARGET")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def load_config(config_file: Optional[str], env_file: Optional[str], overrides: Dict[str, Any]) -> ConfigLoader:
    """Layered config for a command; explicit flags arrive as ``overrides``."""
    return ConfigLoader.load(
        paths=[config_file] if config_file else None,
        env_file=env_file,
        overrides={section: values for section, values in overrides.items() if values},
    )


def assemble(target: str, assembly: AssemblyConfig):
    controllers = load_controllers(target)
    assembler = SpecAssembler(
        ignore_empty_controllers=assembly.ignore_empty_controllers,
        security_merge=assembly.security_merge,
    )
    return assembler.assemble(controllers, assembly.info, servers=assembly.servers or None)


def _given(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


config_option = click.option(
    "--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML or JSON config file"
)
env_file_option = click.option("--env-file", type=click.Path(dir_okay=False), default=None, help=".env file")


@click.group()
@click.version_option(version=__version__, prog_name="specweave")
def cli():
    """Assemble OpenAPI documents from controllers and serve them."""


@cli.command("spec")
@click.argument("target")
@click.option("--strip/--no-strip", default=None, help="Remove private x-specweave- extensions [assembly.strip_extensions]")
@click.option("--format", "output_format", type=click.Choice(["json", "yaml"]), default="json", help="Output format")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to a file instead of stdout")
@click.option("--title", type=str, default=None, help="info.title [assembly.title]")
@click.option("--version", "api_version", type=str, default=None, help="info.version [assembly.version]")
@config_option
@env_file_option
def spec_command(
    target: str,
    strip: Optional[bool],
    output_format: str,
    output: Optional[str],
    title: Optional[str],
    api_version: Optional[str],
    config_file: Optional[str],
    env_file: Optional[str],
):
    """
    Assemble the controllers at TARGET (MODULE:ATTR).

    Settings come from the assembly section of the config; flags override
    them.

    Examples:
      specweave spec myapp.api:controllers
      specweave spec myapp.api:controllers --format yaml -o openapi.yaml
    """
    overrides = {"assembly": _given(title=title, version=api_version, strip_extensions=strip)}
    try:
        assembly = load_config(config_file, env_file, overrides).assembly_config()
        result = assemble(target, assembly)
    except Fault as e:
        error(f"Failed to assemble {target}: {e}")
        sys.exit(1)

    document = result.public() if assembly.strip_extensions else result.document
    # Unstripped documents carry live objects.
    document = json.loads(json.dumps(document, default=repr))
    if output_format == "yaml":
        text = yaml.safe_dump(document, sort_keys=False)
    else:
        text = json.dumps(document, indent=2)

    if output:
        with open(output, "w") as f:
            f.write(text)
            if not text.endswith("\n"):
                f.write("\n")
        click.echo(click.style(f"Wrote {output}", fg="green"))
    else:
        click.echo(text)


@cli.command("routes")
@click.argument("target")
@config_option
@env_file_option
def routes_command(target: str, config_file: Optional[str], env_file: Optional[str]):
    """List METHOD path -> Controller.handler for TARGET."""
    try:
        assembly = load_config(config_file, env_file, {}).assembly_config()
        result = assemble(target, assembly)
    except Fault as e:
        error(f"Failed to assemble {target}: {e}")
        sys.exit(1)

    operations = sorted(result, key=lambda op: (op.path, op.method))
    if not operations:
        click.echo("No routes.")
        return

    width = max(len(op.method) for op in operations)
    for op in operations:
        click.echo(f"{op.method.upper().ljust(width)}  {op.path} -> {name_controller(op.controller)}.{op.handler_name}")


@cli.command("serve")
@click.argument("target")
@click.option("--host", type=str, default=None, help="Server host")
@click.option("--port", type=int, default=None, help="Server port")
@config_option
@env_file_option
def serve_command(
    target: str,
    host: Optional[str],
    port: Optional[int],
    config_file: Optional[str],
    env_file: Optional[str],
):
    """
    Serve TARGET with uvicorn.

    TARGET names a Router, or controller instances (or a factory returning
    them). Controller classes are only accepted by spec and routes.
    """
    from .server import serve

    try:
        config = load_config(config_file, env_file, {"server": _given(host=host, port=port)})
        server_config: ServerConfig = config.server_config()
        value = load_target(target)
        if isinstance(value, Router):
            app = value
        else:
            assembly = config.assembly_config()
            router_config = config.router_config()
            app = create_router(
                value if isinstance(value, (list, tuple)) else [value],
                assembly.info,
                servers=assembly.servers or None,
                ignore_empty_controllers=assembly.ignore_empty_controllers,
                security_merge=assembly.security_merge,
                **router_config.router_options(),
            )
    except Fault as e:
        error(f"Failed to start: {e}")
        sys.exit(1)

    try:
        serve(app, server_config)
    except KeyboardInterrupt:
        click.echo()


def main():
    cli()


if __name__ == "__main__":
    main()
