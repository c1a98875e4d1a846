"""
Plugin command trees.

For every installed plugin the CLI keeps a tree of its commands, subcommands
and aliases. The tree is discovered by running the plugin (``generate-docs``
and ``<cmd> -h``), cached on disk per installation path, and used to recover
the subcommand path a user ran inside a plugin.
"""

from tanzucli.cmdtree.builder import CommandTreeBuilder, CommandTreeError
from tanzucli.cmdtree.cache import CommandTreeCache
from tanzucli.cmdtree.node import CommandNode
from tanzucli.cmdtree.resolver import locate_command_node, parse_plugin_command_path

__all__ = [
    "CommandNode",
    "CommandTreeBuilder",
    "CommandTreeCache",
    "CommandTreeError",
    "locate_command_node",
    "parse_plugin_command_path",
]
