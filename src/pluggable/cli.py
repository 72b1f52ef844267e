"""Command-line interface for pluggable.

Commands:
    - list: List discoverable plugins and their dependencies
    - info: Show one plugin's dependencies and hooks
    - resolve: Resolve a plugin request and print the final order
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pluggable.config import RegistryConfig, load_plugin_set
from pluggable.pluggable import Pluggable
from pluggable.plugins import (
    DependencyResolver,
    Plugin,
    PluginError,
    PluginRegistry,
    get_plugin_registry,
)

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pluggable",
    help="Inspect and resolve pluggable plugins",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()

ModulesOption = Annotated[
    Optional[list[str]],
    typer.Option("--module", "-m", help="Package to search for plugin modules"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Inspect and resolve pluggable plugins."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _build_registry(modules: Optional[list[str]]) -> PluginRegistry:
    """Create a registry from the environment plus ``--module`` packages."""
    config = RegistryConfig.from_env()
    registry = PluginRegistry(
        search_modules=config.search_modules,
        scan_entrypoints=config.scan_entrypoints,
    )
    for module in modules or []:
        registry.discovery.add_search_module(module)
    return registry


def _register_discovered(registry: PluginRegistry) -> None:
    for name, plugin_cls in registry.discovery.discover_all().items():
        try:
            registry.register(name, plugin_cls)
        except (PluginError, ValueError) as e:
            logger.warning(f"Skipping plugin '{name}': {e}")


def _copy_registered(source: PluginRegistry, target: PluginRegistry) -> None:
    """Make plugins registered on import visible to the command registry."""
    for name, plugin_cls in source.list_all().items():
        if name not in target:
            target.register(name, plugin_cls)


def _dependency_data(plugin: type[Plugin]) -> dict[str, str]:
    return {name: order.value for name, order in plugin.dependencies.items()}


def _format_dependencies(plugin: type[Plugin]) -> str:
    parts = []
    for name, order in plugin.dependencies.items():
        parts.append(name if order.value == "none" else f"{name} ({order.value})")
    return ", ".join(parts) or "-"


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


@app.command("list")
def list_plugins(
    modules: ModulesOption = None,
    json_output: JsonOption = False,
) -> None:
    """List registered and discoverable plugins."""
    registry = _build_registry(modules)
    _register_discovered(registry)

    plugins = sorted(registry.list_all().items())

    if json_output:
        data = [
            {
                "name": name,
                "class": f"{plugin.__module__}.{plugin.__qualname__}",
                "dependencies": _dependency_data(plugin),
                "hooks": sorted(hook_type.value for hook_type in plugin.hooks),
            }
            for name, plugin in plugins
        ]
        typer.echo(json.dumps(data, indent=2))
        return

    if not plugins:
        typer.echo("No plugins found.")
        return

    table = Table(title="Plugins")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Class", style="green")
    table.add_column("Dependencies", style="yellow")
    table.add_column("Hooks")

    for name, plugin in plugins:
        table.add_row(
            name,
            f"{plugin.__module__}.{plugin.__qualname__}",
            _format_dependencies(plugin),
            ", ".join(sorted(hook_type.value for hook_type in plugin.hooks)) or "-",
        )

    console.print(table)


@app.command("info")
def plugin_info(
    name: Annotated[str, typer.Argument(help="Plugin name")],
    modules: ModulesOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show details about a plugin."""
    registry = _build_registry(modules)

    try:
        plugin = registry.load(name)
    except PluginError as e:
        _fail(str(e))
        return

    hooks = {
        hook_type.value: {
            "handler": hook.handler.__name__,
            "with_options": bool(hook.with_options),
        }
        for hook_type, hook in plugin.hooks.items()
    }

    if json_output:
        data = {
            "name": name,
            "class": f"{plugin.__module__}.{plugin.__qualname__}",
            "dependencies": _dependency_data(plugin),
            "hooks": hooks,
        }
        typer.echo(json.dumps(data, indent=2))
        return

    hook_lines = "\n".join(
        f"  {kind}: {info['handler']}" + (" (options)" if info["with_options"] else "")
        for kind, info in hooks.items()
    )
    content = f"""[bold cyan]Name:[/] {name}
[bold cyan]Class:[/] {plugin.__module__}.{plugin.__qualname__}

[bold yellow]Dependencies:[/] {_format_dependencies(plugin)}

[bold yellow]Hooks:[/]
{hook_lines or '  None'}"""

    console.print(Panel(content, title=f"Plugin: {name}"))


@app.command("resolve")
def resolve_plugins(
    names: Annotated[
        Optional[list[str]],
        typer.Argument(help="Plugin names to request"),
    ] = None,
    modules: ModulesOption = None,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Plugin set file (.toml, .yaml, .json)"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Resolve a plugin request and print the final order."""
    registry = _build_registry(modules)
    request: dict[str, Any] = {}
    strict_options = False

    try:
        if config_file is not None:
            plugin_set = load_plugin_set(config_file)
            for module in plugin_set.modules:
                registry.discovery.add_search_module(module)
            plugin_set.import_modules()
            _copy_registered(get_plugin_registry(), registry)
            request.update(plugin_set.plugins)
            strict_options = plugin_set.strict_options
        for name in names or []:
            request.setdefault(name, {})

        if not request:
            _fail("No plugins requested")

        host = type(
            "CommandLineHost",
            (Pluggable,),
            {"plugin_registry": registry, "strict_options": strict_options},
        )
        result = DependencyResolver(host, dict(host.defaults), registry).resolve(request)
    except PluginError as e:
        _fail(str(e))
        return

    order = [registry.lookup_name(plugin) for plugin in result.order]
    edges = [
        [registry.lookup_name(before), registry.lookup_name(after)]
        for before, after in result.graph.edges()
    ]

    if json_output:
        data = {
            "requested": result.requested,
            "order": order,
            "edges": edges,
            "defaults": dict(result.defaults),
            "strict_options": strict_options,
        }
        typer.echo(json.dumps(data, indent=2, default=str))
        return

    table = Table(title="Resolved plugins")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Requested")
    table.add_column("Default", style="green")

    for index, name in enumerate(order, start=1):
        table.add_row(
            str(index),
            name,
            "yes" if name in result.requested else "dependency",
            repr(result.defaults[name]) if name in result.defaults else "",
        )

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
