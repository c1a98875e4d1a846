"""
Persistent cache of plugin command trees.

One tree per installed plugin, keyed by installation path, stored in a single
YAML document:

    commandTree:
      /path/to/plugin/binary:
        subcommands:
          cluster:
            subcommands: {...}
            aliases: [cl, cluster]
        aliases: []

The file is read once when the cache is created and rewritten in full after
every change. Writers take an exclusive lock on a sidecar file; the content
itself is last-writer-wins since any tree can be rebuilt from its plugin.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import click
import yaml

from tanzucli.cmdtree.builder import CommandTreeBuilder, CommandTreeError
from tanzucli.cmdtree.node import CommandNode
from tanzucli.commands import command_annotations
from tanzucli.config import TanzuCLIConfig, get_config
from tanzucli.plugins.info import PluginInfo
from tanzucli.utils.locking import file_lock

logger = logging.getLogger(__name__)


def load_command_trees(path: Path) -> Dict[str, CommandNode]:
    """
    Read the cache file.

    A missing file is an empty cache; a present file that cannot be parsed
    is an error.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise CommandTreeError(f"failed to read the plugin command tree file {str(path)!r}: {e}") from e

    try:
        data = yaml.safe_load(raw) or {}
        if not isinstance(data, dict):
            raise ValueError("top level is not a mapping")
        trees = data.get("commandTree") or {}
        if not isinstance(trees, dict):
            raise ValueError("'commandTree' is not a mapping")
        return {str(key): CommandNode.from_dict(node) for key, node in trees.items()}
    except (yaml.YAMLError, ValueError) as e:
        raise CommandTreeError(f"failed to unmarshal the plugin command tree {str(path)!r}: {e}") from e


class CommandTreeCache:
    """
    File-backed cache of plugin command trees.

    Args:
        config: CLI configuration (cache location)
        builder: Builds a tree on cache miss; defaults to running the plugin
    """

    def __init__(
        self,
        config: Optional[TanzuCLIConfig] = None,
        builder: Optional[CommandTreeBuilder] = None,
    ):
        self.config = config or get_config()
        self.cache_path = self.config.command_tree_cache_path
        self.builder = builder or CommandTreeBuilder(self.config.plugin_docs_dir)
        self._trees = load_command_trees(self.cache_path)
        logger.debug(f"Loaded {len(self._trees)} plugin command trees from {self.cache_path}")

    @property
    def trees(self) -> Dict[str, CommandNode]:
        return dict(self._trees)

    def get_tree(self, root: click.Group, plugin: PluginInfo) -> CommandNode:
        """
        Return the plugin's tree, building and persisting it first if needed.

        Raises:
            CommandTreeError: The tree could not be built or saved
        """
        self.construct_and_add_tree(root, plugin)

        tree = self._trees.get(plugin.installation_path)
        if tree is None:
            raise CommandTreeError(
                f"failed to get the command tree for plugin '{plugin.display_name}' "
                f"with target {plugin.target.value} installed at {plugin.installation_path}"
            )
        return tree

    def construct_and_add_tree(self, root: click.Group, plugin: PluginInfo) -> None:
        """Build and cache the plugin's tree; no-op if already cached."""
        if plugin.installation_path in self._trees:
            return

        try:
            tree = self.builder.build(plugin, lambda path: command_annotations(root, path))
        except CommandTreeError as e:
            raise CommandTreeError(f"failed to generate command tree for plugin {plugin.name!r}: {e}") from e
        if tree is None:
            return
        self._trees[plugin.installation_path] = tree
        self._save()

    def delete_plugin_tree(self, plugin: PluginInfo) -> None:
        """Drop one plugin's tree; no-op if it was never cached."""
        if plugin.installation_path not in self._trees:
            return
        del self._trees[plugin.installation_path]
        self._save()

    def delete_tree(self) -> None:
        """Drop every cached tree and remove the cache file."""
        self._trees = {}
        with file_lock(self.cache_path):
            try:
                self.cache_path.unlink()
            except FileNotFoundError:
                pass

    def _save(self) -> None:
        data = {"commandTree": {key: node.to_dict() for key, node in sorted(self._trees.items())}}
        try:
            content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        except yaml.YAMLError as e:
            raise CommandTreeError(f"failed to marshal plugin command tree: {e}") from e

        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with file_lock(self.cache_path):
                fd = os.open(self.cache_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.chmod(self.cache_path, 0o600)
        except OSError as e:
            raise CommandTreeError(
                f"failed to write the command tree to {str(self.cache_path)!r} file: {e}"
            ) from e
        logger.debug(f"Saved {len(self._trees)} plugin command trees to {self.cache_path}")
