"""
Telemetry client.

Collects one OperationMetricsPayload per CLI invocation in two phases:

- pre-run: who ran what (CLI ID, command path, hashed name argument, flags,
  plugin identity and endpoint fingerprint)
- post-run: exit code and end time

then saves it to the local metrics DB. Sending the accumulated rows is left to
the ``telemetry`` plugin, which is invoked once enough rows are stored and the
user participates in CEIP.

The client is created once per process and handed to commands through the
click context object; it is not a global.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import click
from click.core import ParameterSource

from tanzucli import __version__
from tanzucli.clientconfig import ClientConfigError, ClientConfigStore, TelemetryOptions
from tanzucli.cmdtree.builder import CommandTreeError
from tanzucli.cmdtree.cache import CommandTreeCache
from tanzucli.cmdtree.resolver import locate_command_node, parse_plugin_command_path
from tanzucli.commands import is_plugin_command
from tanzucli.config import TanzuCLIConfig, get_config
from tanzucli.constants import (
    ANNOTATION_PLUGIN_INSTALLATION_PATH,
    CORE_COMMANDS_ALLOWED_WITH_FLAG_VALUES,
    METRICS_SEND_THRESHOLD_ROW_COUNT,
    TELEMETRY_PLUGIN_NAME,
    TELEMETRY_SEND_ARGS,
)
from tanzucli.plugins.info import PluginInfo, Target
from tanzucli.plugins.runner import PluginRunError, PluginRunner
from tanzucli.telemetry.endpoint import compute_endpoint_sha, hash_string
from tanzucli.telemetry.flags import flag_names_to_json, traverse_flag_names
from tanzucli.telemetry.lock import MetricsDBError
from tanzucli.telemetry.log import log_error, log_warning
from tanzucli.telemetry.store import MetricsDB, SQLiteMetricsDB

logger = logging.getLogger(__name__)


class TelemetryError(Exception):
    pass


@dataclass
class PostRunMetrics:
    exit_code: int = 0


@dataclass
class OperationMetricsPayload:
    """Metrics of one CLI invocation. ``start_time`` None means never populated."""
    cli_id: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    args: List[str] = field(default_factory=list)
    name_arg: str = ""
    command_name: str = ""
    exit_status: int = 0
    plugin_name: str = ""
    flags: str = ""
    cli_version: str = ""
    plugin_version: str = ""
    target: str = ""
    endpoint: str = ""
    is_internal: bool = False
    error: str = ""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def cobra_style_path(ctx: click.Context) -> List[str]:
    """Command path segments below the root command."""
    return ctx.command_path.split(" ")[1:]


def is_hash_required_for_cmd_flags(cmd_path: str) -> bool:
    """
    Whether flag values of a core command must be hashed.

    All values of a command are hashed or none are; ``cmd_path`` includes
    the root command.
    """
    cmds = cmd_path.split(" ")
    if len(cmds) < 2:
        return False
    return cmds[1] not in CORE_COMMANDS_ALLOWED_WITH_FLAG_VALUES


def _flag_name(param: click.Parameter) -> str:
    for opt in param.opts:
        if opt.startswith("--"):
            return opt[2:]
    return param.name or ""


def _flag_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(_flag_value(v) for v in value)
    return str(value)


def explicit_flags(ctx: click.Context) -> Dict[str, str]:
    """
    Flags set on the command line, name -> value.

    Values are hashed unless the command is allow-listed, the value is empty
    or the flag is boolean.
    """
    hash_required = is_hash_required_for_cmd_flags(ctx.command_path)
    flags: Dict[str, str] = {}
    for param in ctx.command.params:
        if not isinstance(param, click.Option) or param.name is None:
            continue
        if ctx.get_parameter_source(param.name) is not ParameterSource.COMMANDLINE:
            continue
        value = _flag_value(ctx.params.get(param.name))
        if not hash_required or value == "" or param.is_flag:
            flags[_flag_name(param)] = value
        else:
            flags[_flag_name(param)] = hash_string(value)
    return flags


class TelemetryClient:
    """
    Per-process metrics collector.

    Args:
        config: CLI configuration
        metrics_db: Store for the collected metrics
        client_config: CLI ID, CEIP opt-in, telemetry source, contexts
        cmd_tree_cache_getter: Returns the plugin command tree cache; only
            called for plugin commands
        installed_plugins: Plugins used to resolve plugin commands
        cli_version: Recorded CLI version
    """

    def __init__(
        self,
        config: Optional[TanzuCLIConfig] = None,
        metrics_db: Optional[MetricsDB] = None,
        client_config: Optional[ClientConfigStore] = None,
        cmd_tree_cache_getter: Optional[Callable[[], CommandTreeCache]] = None,
        installed_plugins: Optional[Sequence[PluginInfo]] = None,
        cli_version: str = __version__,
    ):
        self.config = config or get_config()
        self.metrics_db: MetricsDB = metrics_db or SQLiteMetricsDB(config=self.config)
        self.client_config = client_config or ClientConfigStore(self.config)
        self.cmd_tree_cache_getter = cmd_tree_cache_getter or (lambda: CommandTreeCache(self.config))
        self.installed_plugins: List[PluginInfo] = list(installed_plugins or [])
        self.cli_version = cli_version
        self.current_operation_metrics = OperationMetricsPayload()

    def update_cmd_pre_run_metrics(self, ctx: click.Context, args: Sequence[str]) -> None:
        """
        Record the metrics known before the command runs.

        Args:
            ctx: Context of the command about to run
            args: Positional arguments (core commands) or the raw arguments
                handed to the plugin (plugin commands)
        """
        try:
            self._ensure_metrics_source()
        except (ClientConfigError, OSError) as e:
            raise TelemetryError(f"failed to ensure metrics source in the configuration file: {e}") from e

        try:
            cli_id = self.client_config.get_cli_id()
        except (ClientConfigError, OSError) as e:
            raise TelemetryError(f"unable to get CLI Instance ID: {e}") from e

        if is_plugin_command(ctx.command):
            self._update_metrics_for_plugin(ctx, args, cli_id)
        else:
            self._update_metrics_for_core_command(ctx, args, cli_id)

    def update_cmd_post_run_metrics(self, metrics: Optional[PostRunMetrics]) -> None:
        if metrics is None:
            raise TelemetryError("post metrics data is required for update")
        self.current_operation_metrics.exit_status = metrics.exit_code
        self.current_operation_metrics.end_time = _now()

    def save_metrics(self) -> None:
        """
        Store the collected metrics.

        Commands rejected by the CLI parser never reach pre-run; their
        metrics are dropped.
        """
        if self.current_operation_metrics.start_time is None:
            return
        try:
            self.metrics_db.create_schema()
        except MetricsDBError as e:
            raise MetricsDBError(f"unable to create the telemetry schema: {e}") from e
        self.metrics_db.save_operation_metric(self.current_operation_metrics)

    def send_metrics(self, timeout_s: int = 0) -> None:
        """
        Ask the telemetry plugin to send the stored metrics.

        No-op unless the user participates in CEIP and enough rows are stored.
        """
        if not self._should_send_telemetry_data():
            return
        plugin = self._get_telemetry_plugin_installed()
        args = list(TELEMETRY_SEND_ARGS)
        if timeout_s:
            args += ["--timeout", str(timeout_s)]
        try:
            PluginRunner(plugin.name, plugin.installation_path, args).run_output()
        except PluginRunError as e:
            raise TelemetryError(e.stderr or str(e)) from e

    def _update_metrics_for_core_command(self, ctx: click.Context, args: Sequence[str], cli_id: str) -> None:
        metrics = self.current_operation_metrics
        metrics.cli_id = cli_id
        metrics.cli_version = self.cli_version
        metrics.is_internal = self._is_internal()
        metrics.start_time = _now()
        metrics.command_name = " ".join(cobra_style_path(ctx))

        # A core command takes at most one name argument
        if args:
            metrics.name_arg = hash_string(str(args[0]))

        flags = explicit_flags(ctx)
        if flags:
            metrics.flags = json.dumps(flags, separators=(",", ":"), sort_keys=True)

    def _update_metrics_for_plugin(self, ctx: click.Context, args: Sequence[str], cli_id: str) -> None:
        metrics = self.current_operation_metrics
        metrics.cli_id = cli_id
        metrics.cli_version = self.cli_version
        metrics.is_internal = self._is_internal()
        metrics.start_time = _now()

        flag_names = traverse_flag_names(args)
        if flag_names:
            metrics.flags = flag_names_to_json(flag_names)

        plugin = self.plugin_info_from_command(ctx.command)
        if plugin is None:
            return

        metrics.plugin_name = plugin.name
        metrics.plugin_version = plugin.version
        metrics.target = plugin.target.value
        metrics.endpoint = self._endpoint_sha(plugin)

        # The CLI parser stops at the plugin command, e.g. for
        #   tanzu cluster kubeconfig get c1 --export-file f
        # the command path is "tanzu cluster" and the rest arrives as args.
        cobra_parsed_path = " ".join(cobra_style_path(ctx))
        try:
            metrics.command_name = cobra_parsed_path + self.parse_plugin_command_path(ctx, plugin, args)
        except CommandTreeError as e:
            log_error(e, "unable to resolve the plugin command path")
            metrics.command_name = cobra_parsed_path

    def plugin_info_from_command(self, cmd: click.Command) -> Optional[PluginInfo]:
        install_path = getattr(cmd, "annotations", {}).get(ANNOTATION_PLUGIN_INSTALLATION_PATH)
        if not install_path:
            return None
        for plugin in self.installed_plugins:
            if plugin.installation_path == install_path:
                return plugin
        return None

    def parse_plugin_command_path(self, ctx: click.Context, plugin: PluginInfo, args: Sequence[str]) -> str:
        """Best-effort subcommand path below the plugin command, e.g. " kubeconfig get"."""
        root = ctx.find_root().command
        tree = self.cmd_tree_cache_getter().get_tree(root, plugin)
        segments = cobra_style_path(ctx)
        node = locate_command_node(tree, segments)
        if node is None:
            raise CommandTreeError(
                f"command {' '.join(segments)!r} not found in the command tree of plugin {plugin.name!r}"
            )
        return parse_plugin_command_path(node, args)

    def _ensure_metrics_source(self) -> None:
        db_file = str(self.config.metrics_db_path)
        options = self.client_config.get_telemetry_options()
        if options is not None and options.source == db_file:
            return
        self.client_config.set_telemetry_options(TelemetryOptions(source=db_file))

    def _endpoint_sha(self, plugin: PluginInfo) -> str:
        try:
            active = self.client_config.get_active_contexts()
        except ClientConfigError as e:
            log_warning("unable to read the active contexts for the endpoint hash", e)
            return ""
        return compute_endpoint_sha(active, plugin.target)

    def _is_internal(self) -> bool:
        return self.config.supercollider_environment.strip().lower() == "staging"

    def _get_telemetry_plugin_installed(self) -> PluginInfo:
        for plugin in self.installed_plugins:
            if plugin.name == TELEMETRY_PLUGIN_NAME and plugin.target is Target.GLOBAL:
                return plugin
        raise TelemetryError(
            "telemetry plugin with 'global' target not found, it is required to send "
            "telemetry data, please install the plugin"
        )

    def _should_send_telemetry_data(self) -> bool:
        try:
            if not self.client_config.ceip_opted_in():
                return False
        except ClientConfigError:
            return False
        try:
            count = self.metrics_db.get_row_count()
        except MetricsDBError:
            return False
        return count >= METRICS_SEND_THRESHOLD_ROW_COUNT
