"""
Command classes of the CLI tree.

Leaf commands record pre-run telemetry right before their callback runs.
Plugin commands take every argument verbatim and hand them to the plugin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import click

from tanzucli.clientconfig import ClientConfigError
from tanzucli.cmdtree.builder import CommandTreeError
from tanzucli.commands import AnnotatedCommand, AnnotatedGroup
from tanzucli.config import TanzuCLIConfig
from tanzucli.constants import (
    ANNOTATION_CMD_SRC_PATH,
    ANNOTATION_PLUGIN_INSTALLATION_PATH,
    ANNOTATION_TYPE,
    COMMAND_TYPE_CORE,
    COMMAND_TYPE_PLUGIN,
)
from tanzucli.plugins.catalog import PluginCatalog
from tanzucli.plugins.info import PluginInfo
from tanzucli.plugins.runner import PluginRunError, PluginRunner
from tanzucli.telemetry.client import TelemetryClient, TelemetryError
from tanzucli.telemetry.lock import MetricsDBError
from tanzucli.telemetry.log import log_error

logger = logging.getLogger(__name__)


@dataclass
class CLIState:
    """Per-process objects shared with every command via ``ctx.obj``."""
    config: TanzuCLIConfig
    catalog: PluginCatalog
    telemetry: TelemetryClient


class TelemetryHooksMixin:
    """Run telemetry pre-run collection before the command callback."""

    def telemetry_args(self, ctx: click.Context) -> List[str]:
        args: List[str] = []
        for param in ctx.command.params:
            if not isinstance(param, click.Argument):
                continue
            value = ctx.params.get(param.name)
            if isinstance(value, (list, tuple)):
                args.extend(str(v) for v in value)
            elif value is not None:
                args.append(str(value))
        return args

    def invoke(self, ctx: click.Context) -> Any:
        state = ctx.find_object(CLIState)
        if state is not None:
            try:
                state.telemetry.update_cmd_pre_run_metrics(ctx, self.telemetry_args(ctx))
            except (TelemetryError, ClientConfigError, CommandTreeError, MetricsDBError, OSError) as e:
                log_error(e, "unable to update pre-run metrics")
        return super().invoke(ctx)


class CoreCommand(TelemetryHooksMixin, AnnotatedCommand):
    def __init__(self, *args: Any, annotations: Optional[Dict[str, str]] = None, **kwargs: Any):
        annotations = {ANNOTATION_TYPE: COMMAND_TYPE_CORE, **(annotations or {})}
        super().__init__(*args, annotations=annotations, **kwargs)


class CoreGroup(AnnotatedGroup):
    command_class = CoreCommand


CoreGroup.group_class = CoreGroup


class PluginCommand(TelemetryHooksMixin, AnnotatedCommand):
    """
    Dispatches to an installed plugin.

    Args:
        name: Command name in the CLI tree (plugin name or remapped name)
        plugin: Installed plugin
        src_path: Command path inside the plugin for remapped commands
    """

    def __init__(self, name: str, plugin: PluginInfo, src_path: str = "", **kwargs: Any):
        annotations = {
            ANNOTATION_TYPE: COMMAND_TYPE_PLUGIN,
            ANNOTATION_PLUGIN_INSTALLATION_PATH: plugin.installation_path,
        }
        if src_path:
            annotations[ANNOTATION_CMD_SRC_PATH] = src_path
        super().__init__(
            name,
            callback=self._dispatch,
            context_settings={"help_option_names": []},
            help=plugin.description or f"{plugin.name} plugin",
            annotations=annotations,
            **kwargs,
        )
        self.plugin = plugin
        self.src_path = src_path

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        # Everything, including "--" and "-h", belongs to the plugin
        ctx.params["args"] = tuple(args)
        ctx.args = []
        return []

    def telemetry_args(self, ctx: click.Context) -> List[str]:
        return list(ctx.params.get("args") or ())

    def _dispatch(self, args) -> None:
        ctx = click.get_current_context()
        plugin_args = [part for part in self.src_path.split(" ") if part] + list(args)
        try:
            code = PluginRunner(self.plugin.name, self.plugin.installation_path, plugin_args).run()
        except PluginRunError as e:
            raise click.ClickException(str(e)) from e
        ctx.exit(code)
