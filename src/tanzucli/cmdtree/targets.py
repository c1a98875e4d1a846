"""
Target and remap handling for command tree construction.

Plugins are mounted under a target group (``tanzu kubernetes cluster ...``)
unless their target is global or the command is remapped elsewhere. Kubernetes
plugins are additionally reachable at the root (``tanzu cluster ...``).
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, List, Optional, Sequence, Set

from tanzucli.plugins.info import PluginInfo, Target, is_valid_target

logger = logging.getLogger(__name__)

TARGET_ALIASES: Dict[Target, FrozenSet[str]] = {
    Target.KUBERNETES: frozenset({"k8s", "kubernetes"}),
    Target.MISSION_CONTROL: frozenset({"tmc", "mission-control"}),
    Target.OPERATIONS: frozenset({"ops", "operations"}),
}

_ALIASES_LINE = re.compile(r"Aliases:\s*(.*)")


def target_aliases(target: Target) -> Set[str]:
    """Fixed alias set for a target group node; empty for unknown targets."""
    aliases = TARGET_ALIASES.get(target)
    if aliases is None:
        logger.warning(f"Unexpected target {target!r}, no aliases assigned")
        return set()
    return set(aliases)


def is_remapped_command(cmd_names: Sequence[str], plugin: PluginInfo) -> bool:
    """
    True if ``cmd_names`` (root segment first) starts with the destination
    path of one of the plugin's command remappings.
    """
    for mapping in plugin.command_map:
        dest = [part for part in mapping.destination_command_path.split(" ") if part.strip()]
        if not dest:
            continue
        if list(cmd_names[1:1 + len(dest)]) == dest:
            return True
    return False


def adjust_cmd_names_for_target(cmd_names: List[str], plugin: PluginInfo) -> List[str]:
    """
    Insert the plugin's target after the root segment.

    ``cmd_names`` comes from a generated doc file name and never contains the
    target. Left unchanged for the bare root command, for global plugins and
    for remapped commands.
    """
    if len(cmd_names) < 2:
        return cmd_names
    if plugin.target is Target.GLOBAL:
        return cmd_names
    if is_remapped_command(cmd_names, plugin):
        return cmd_names
    return [cmd_names[0], plugin.target.value, *cmd_names[1:]]


def alias_lookup_args(path: Sequence[str], cmd_src_path: Optional[str] = None) -> List[str]:
    """
    Arguments that make the plugin print help for the command at ``path``.

    ``path`` is the CLI command path below the root command. The target (if
    any) and the plugin or remapped command name are dropped since the plugin
    is invoked directly; a remapped command's source path is put back in front.
    """
    args = list(path)
    if args and is_valid_target(args[0]):
        args = args[1:]
    if args:
        args = args[1:]
    if cmd_src_path:
        args = [part for part in cmd_src_path.split(" ") if part] + args
    return args + ["-h"]


def extract_aliases(help_text: str) -> Set[str]:
    """Parse the ``Aliases:`` line of help output into a set of names."""
    match = _ALIASES_LINE.search(help_text or "")
    if not match:
        return set()
    return {alias.strip() for alias in match.group(1).split(",") if alias.strip()}
