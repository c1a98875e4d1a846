"""
Best-effort recovery of the subcommand path run inside a plugin.

The CLI's parser stops at the plugin command; everything after it arrives as
raw arguments. Those arguments are walked against the plugin's cached tree.
"""

from __future__ import annotations

from typing import Optional, Sequence

from tanzucli.cmdtree.node import CommandNode

DOUBLE_HYPHEN = "--"


def is_flag_arg(arg: str) -> bool:
    """``--name``, ``-n`` and either form with ``=value``."""
    return (len(arg) >= 3 and arg.startswith("--")) or (
        len(arg) >= 2 and arg[0] == "-" and arg[1] != "-"
    )


def locate_command_node(tree: CommandNode, segments: Sequence[str]) -> Optional[CommandNode]:
    """Node reached by following ``segments`` (names or aliases) from ``tree``."""
    current = tree
    for segment in segments:
        nxt = current.find_subcommand(segment)
        if nxt is None:
            return None
        current = nxt
    return current


def parse_plugin_command_path(node: CommandNode, args: Sequence[str]) -> str:
    """
    Walk ``args`` from ``node`` and return the matched subcommand path.

    Each matched token contributes ``" " + token``. Flags are skipped, ``--``
    stops the walk, and so does the first token that is not a subcommand (it
    is taken to be a positional argument).
    """
    cmd_path = ""
    current = node
    for arg in args:
        if not current.subcommands:
            break
        if arg == DOUBLE_HYPHEN:
            break
        if is_flag_arg(arg):
            continue
        sub = current.find_subcommand(arg)
        if sub is None:
            break
        cmd_path += " " + arg
        current = sub
    return cmd_path
