"""
Annotated click commands and live command tree lookup.

Click has no notion of command annotations or command aliases; both are
needed to tell core commands from plugin dispatch commands and to map a
command path back to the command that serves it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import click

from tanzucli.constants import ANNOTATION_TYPE, COMMAND_TYPE_PLUGIN


class CommandNotFoundError(Exception):
    pass


class AnnotatedMixin:
    """Adds ``annotations`` and ``aliases`` to a click command."""

    def __init__(self, *args: Any, annotations: Optional[Dict[str, str]] = None,
                 aliases: Optional[Sequence[str]] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.annotations: Dict[str, str] = dict(annotations or {})
        self.aliases: List[str] = list(aliases or [])


class AnnotatedCommand(AnnotatedMixin, click.Command):
    pass


class AnnotatedGroup(AnnotatedMixin, click.Group):
    """Group whose subcommands can be reached through their aliases."""

    command_class = AnnotatedCommand

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        cmd = super().get_command(ctx, cmd_name)
        if cmd is not None:
            return cmd
        for name in self.list_commands(ctx):
            candidate = super().get_command(ctx, name)
            if cmd_name in getattr(candidate, "aliases", ()):
                return candidate
        return None

    def resolve_command(self, ctx: click.Context, args: List[str]):
        # Report the canonical name so command paths never contain aliases
        cmd_name, cmd, remaining = super().resolve_command(ctx, args)
        if cmd is not None:
            cmd_name = cmd.name
        return cmd_name, cmd, remaining


AnnotatedGroup.group_class = AnnotatedGroup


def is_plugin_command(cmd: click.Command) -> bool:
    return getattr(cmd, "annotations", {}).get(ANNOTATION_TYPE) == COMMAND_TYPE_PLUGIN


def find_command(root: click.Group, args: Sequence[str]) -> Tuple[click.Command, List[str]]:
    """
    Walk ``args`` down from ``root`` by command name or alias.

    Returns the deepest command reached and the unconsumed arguments. An
    unknown first argument is an error when ``root`` has subcommands.
    """
    ctx = click.Context(root)
    current: click.Command = root
    remaining = list(args)
    while remaining and isinstance(current, click.Group):
        nxt = current.get_command(ctx, remaining[0])
        if nxt is None:
            if current is root and current.list_commands(ctx):
                raise CommandNotFoundError(f"unknown command {remaining[0]!r} for {root.name!r}")
            break
        current = nxt
        remaining = remaining[1:]
    return current, remaining


def command_annotations(root: click.Group, args: Sequence[str]) -> Mapping[str, str]:
    """Annotations of the command that ``args`` resolves to."""
    cmd, _ = find_command(root, args)
    return getattr(cmd, "annotations", {})
