"""Command tree node: a command's subcommands and the aliases it answers to."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set


@dataclass
class CommandNode:
    """
    One command in a plugin's command tree.

    ``subcommands`` is keyed by the literal subcommand name; ``aliases`` holds
    the alternative names that also reach this node.
    """
    subcommands: Dict[str, "CommandNode"] = field(default_factory=dict)
    aliases: Set[str] = field(default_factory=set)

    def child(self, name: str) -> "CommandNode":
        """Return the named subcommand, creating it if missing."""
        node = self.subcommands.get(name)
        if node is None:
            node = CommandNode()
            self.subcommands[name] = node
        return node

    def find_subcommand(self, token: str) -> Optional["CommandNode"]:
        """Subcommand reached by ``token``; literal names win over aliases."""
        node = self.subcommands.get(token)
        if node is not None:
            return node
        for name in sorted(self.subcommands):
            candidate = self.subcommands[name]
            if token in candidate.aliases:
                return candidate
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain data (aliases as a sorted list)."""
        return {
            "subcommands": {name: node.to_dict() for name, node in sorted(self.subcommands.items())},
            "aliases": sorted(self.aliases),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "CommandNode":
        """
        Deserialize from plain data.

        Aliases may be a list or a mapping of alias -> {} (older cache files).
        """
        data = data or {}
        raw_subcommands = data.get("subcommands") or {}
        raw_aliases = data.get("aliases") or []
        if not isinstance(raw_subcommands, dict):
            raise ValueError("command node 'subcommands' must be a mapping")
        if isinstance(raw_aliases, dict):
            raw_aliases = list(raw_aliases)
        elif not isinstance(raw_aliases, list):
            raise ValueError("command node 'aliases' must be a list or mapping")
        return cls(
            subcommands={str(name): cls.from_dict(sub) for name, sub in raw_subcommands.items()},
            aliases={str(alias) for alias in raw_aliases},
        )
