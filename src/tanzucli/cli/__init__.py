"""
Tanzu CLI - dispatch to installed plugins and record usage telemetry.

Commands:
    tanzu plugin list                 List installed plugins
    tanzu plugin tree NAME            Show a plugin's cached command tree
    tanzu plugin reset-tree-cache     Drop cached plugin command trees
    tanzu ceip-participation get|set  Customer Experience Improvement Program
    tanzu telemetry status|clear      Local telemetry store
    tanzu [TARGET] PLUGIN ...         Run an installed plugin
"""

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Sequence

import click
import yaml

from tanzucli.cli.commands import CLIState, CoreCommand, CoreGroup, PluginCommand
from tanzucli.clientconfig import ClientConfigError, ClientConfigStore, parse_bool
from tanzucli.cmdtree.builder import CommandTreeError
from tanzucli.cmdtree.cache import CommandTreeCache
from tanzucli.commands import AnnotatedGroup
from tanzucli.config import TanzuCLIConfig, get_config
from tanzucli.constants import ROOT_COMMAND_NAME
from tanzucli.plugins.catalog import PluginCatalog, PluginCatalogError
from tanzucli.plugins.info import PluginInfo, Target
from tanzucli.telemetry.client import PostRunMetrics, TelemetryClient, TelemetryError
from tanzucli.telemetry.lock import MetricsDBError
from tanzucli.telemetry.log import log_error
from tanzucli.telemetry.store import SQLiteMetricsDB

logger = logging.getLogger(__name__)

TARGET_GROUPS = {
    Target.KUBERNETES: ["k8s"],
    Target.MISSION_CONTROL: ["tmc"],
    Target.OPERATIONS: ["ops"],
}


def _state(ctx: click.Context) -> CLIState:
    state = ctx.find_object(CLIState)
    if state is None:
        raise click.ClickException("CLI state not initialized")
    return state


# =============================================================================
# plugin
# =============================================================================


@click.group(cls=CoreGroup)
def plugin():
    """Manage installed plugins."""
    pass


@plugin.command("list")
@click.pass_context
def plugin_list(ctx: click.Context):
    """List installed plugins."""
    plugins = _state(ctx).catalog.list_plugins()
    if not plugins:
        click.echo("No plugins installed.")
        return
    click.echo(f"{'NAME':<24} {'VERSION':<12} {'TARGET':<16} PATH")
    for p in sorted(plugins, key=lambda p: (p.name, p.target.value)):
        click.echo(f"{p.name:<24} {p.version:<12} {p.target.value:<16} {p.installation_path}")


@plugin.command("tree")
@click.argument("name")
@click.option("--target", "-t", type=click.Choice([t.value for t in Target]), help="Plugin target")
@click.pass_context
def plugin_tree(ctx: click.Context, name: str, target: Optional[str]):
    """Show the cached command tree of a plugin (built if missing)."""
    state = _state(ctx)
    plugin_info = _find_plugin(state, name, target)
    try:
        tree = CommandTreeCache(state.config).get_tree(ctx.find_root().command, plugin_info)
    except CommandTreeError as e:
        raise click.ClickException(str(e)) from e
    click.echo(yaml.safe_dump(tree.to_dict(), default_flow_style=False, sort_keys=False), nl=False)


@plugin.command("reset-tree-cache")
@click.argument("name", required=False)
@click.option("--target", "-t", type=click.Choice([t.value for t in Target]), help="Plugin target")
@click.pass_context
def plugin_reset_tree_cache(ctx: click.Context, name: Optional[str], target: Optional[str]):
    """Drop the cached command tree of one plugin, or of all plugins."""
    state = _state(ctx)
    try:
        cache = CommandTreeCache(state.config)
        if name:
            cache.delete_plugin_tree(_find_plugin(state, name, target))
        else:
            cache.delete_tree()
    except CommandTreeError as e:
        raise click.ClickException(str(e)) from e
    click.echo("Plugin command tree cache cleared.")


def _find_plugin(state: CLIState, name: str, target: Optional[str]) -> PluginInfo:
    matches = [
        p for p in state.catalog.list_plugins()
        if p.name == name and (target is None or p.target.value == target)
    ]
    if not matches:
        raise click.ClickException(f"plugin {name!r} is not installed")
    if len(matches) > 1:
        raise click.ClickException(f"plugin {name!r} is installed for several targets, use --target")
    return matches[0]


# =============================================================================
# ceip-participation
# =============================================================================


@click.group("ceip-participation", cls=CoreGroup)
def ceip_participation():
    """Customer Experience Improvement Program participation."""
    pass


@ceip_participation.command("get")
@click.pass_context
def ceip_get(ctx: click.Context):
    """Show CEIP participation status."""
    opted_in = ClientConfigStore(_state(ctx).config).ceip_opted_in()
    click.echo("Opt-in" if opted_in else "Opt-out")


@ceip_participation.command("set")
@click.argument("value")
@click.pass_context
def ceip_set(ctx: click.Context, value: str):
    """Set CEIP participation (true/false)."""
    ClientConfigStore(_state(ctx).config).set_ceip_opt_in(parse_bool(value))


# =============================================================================
# telemetry
# =============================================================================


@click.group(cls=CoreGroup)
def telemetry():
    """Local telemetry store."""
    pass


@telemetry.command("status")
@click.pass_context
def telemetry_status(ctx: click.Context):
    """Show CEIP participation, metrics source and stored row count."""
    config = _state(ctx).config
    store = ClientConfigStore(config)
    options = store.get_telemetry_options()
    db = SQLiteMetricsDB(config=config)
    try:
        db.create_schema()
        count = db.get_row_count()
    except MetricsDBError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"ceip-participation: {'true' if store.ceip_opted_in() else 'false'}")
    click.echo(f"source: {options.source if options else ''}")
    click.echo(f"rows: {count}")


@telemetry.command("clear")
@click.pass_context
def telemetry_clear(ctx: click.Context):
    """Delete all locally stored metrics."""
    db = SQLiteMetricsDB(config=_state(ctx).config)
    try:
        db.create_schema()
        db.clear_metric_data()
    except MetricsDBError as e:
        raise click.ClickException(str(e)) from e
    click.echo("Telemetry data cleared.")


# =============================================================================
# Root
# =============================================================================


def _group_at(root: AnnotatedGroup, path: Sequence[str]) -> AnnotatedGroup:
    """Group at ``path`` below ``root``, created on demand."""
    current = root
    for name in path:
        nxt = current.commands.get(name)
        if not isinstance(nxt, click.Group):
            nxt = AnnotatedGroup(name=name, help=f"{name} commands")
            current.add_command(nxt)
        current = nxt
    return current


def _mount(group: click.Group, cmd: PluginCommand) -> None:
    """Add a plugin command unless a core command already owns the name."""
    existing = group.commands.get(cmd.name)
    if isinstance(existing, (CoreGroup, CoreCommand)):
        logger.warning(
            f"Plugin {cmd.plugin.name!r} not mounted as {group.name} {cmd.name}: "
            f"the name belongs to a core command"
        )
        return
    group.add_command(cmd)


def add_plugin_commands(root: AnnotatedGroup, plugins: Sequence[PluginInfo]) -> None:
    """
    Mount each plugin under its target group.

    Kubernetes plugins are mounted at the root as well; remapped commands
    are mounted at their destination path.
    """
    for target, aliases in TARGET_GROUPS.items():
        if target.value not in root.commands:
            root.add_command(AnnotatedGroup(name=target.value, aliases=aliases,
                                            help=f"Commands that interact with {target.value} endpoints"))

    for p in plugins:
        if p.target is Target.GLOBAL:
            _mount(root, PluginCommand(p.name, p))
        else:
            _mount(_group_at(root, [p.target.value]), PluginCommand(p.name, p))
            if p.target is Target.KUBERNETES and p.name not in root.commands:
                root.add_command(PluginCommand(p.name, p))

        for mapping in p.command_map:
            dest = [part for part in mapping.destination_command_path.split(" ") if part]
            if not dest:
                continue
            group = _group_at(root, dest[:-1])
            _mount(group, PluginCommand(dest[-1], p, src_path=mapping.source_command_path))


def build_root_command(plugins: Sequence[PluginInfo]) -> AnnotatedGroup:
    root = AnnotatedGroup(name=ROOT_COMMAND_NAME, help="The Tanzu CLI.")
    root.params.append(click.Option(["--version"], is_flag=True, expose_value=False, is_eager=True,
                                    callback=_print_version, help="Show the version and exit."))
    root.add_command(plugin)
    root.add_command(ceip_participation)
    root.add_command(telemetry)
    add_plugin_commands(root, plugins)
    return root


def _print_version(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    from tanzucli import __version__
    click.echo(f"{ROOT_COMMAND_NAME} version {__version__}")
    ctx.exit(0)


def configure_logging(config: TanzuCLIConfig) -> None:
    root_logger = logging.getLogger("tanzucli")
    if root_logger.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(config.log_level.upper())


def _finish_telemetry(client: TelemetryClient, exit_code: int) -> None:
    """Post-run, save and send; never changes the command's outcome."""
    try:
        client.update_cmd_post_run_metrics(PostRunMetrics(exit_code=exit_code))
        client.save_metrics()
    except (TelemetryError, MetricsDBError) as e:
        log_error(e, "unable to save metrics")
        return
    try:
        client.send_metrics()
    except (TelemetryError, MetricsDBError, ClientConfigError) as e:
        log_error(e, "unable to send metrics")


def run(argv: Optional[List[str]] = None, config: Optional[TanzuCLIConfig] = None) -> int:
    """Run the CLI and return its exit code."""
    config = config or get_config()
    configure_logging(config)

    catalog = PluginCatalog(config.plugin_catalog_path)
    try:
        plugins = catalog.list_plugins()
    except PluginCatalogError as e:
        logger.warning(str(e))
        plugins = []

    client = TelemetryClient(config=config, installed_plugins=plugins)
    state = CLIState(config=config, catalog=catalog, telemetry=client)
    root = build_root_command(plugins)

    try:
        rv = root.main(args=argv, prog_name=ROOT_COMMAND_NAME, obj=state, standalone_mode=False)
        exit_code = rv if isinstance(rv, int) else 0
    except click.ClickException as e:
        e.show()
        exit_code = e.exit_code
    except click.Abort:
        click.echo("Aborted!", err=True)
        exit_code = 1

    _finish_telemetry(client, exit_code)
    return exit_code


def main() -> None:
    sys.exit(run())
