"""
Command tree construction for a single plugin.

Plugins generate one markdown file per command (``generate-docs``), named by
the underscore-joined command path, e.g. ``tanzu_cluster_get.md``. The file
names give the command hierarchy; the docs do not carry aliases, so each
command's ``-h`` output is scraped for its ``Aliases:`` line.

Alias lookups run concurrently. Their results are collected and assigned to
the tree only after every lookup has finished, so worker threads never touch
tree nodes.
"""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from tanzucli.cmdtree.node import CommandNode
from tanzucli.cmdtree.targets import (
    adjust_cmd_names_for_target,
    alias_lookup_args,
    extract_aliases,
    target_aliases,
)
from tanzucli.commands import CommandNotFoundError
from tanzucli.constants import ALIAS_LOOKUP_MAX_WORKERS, ANNOTATION_CMD_SRC_PATH, ROOT_COMMAND_NAME
from tanzucli.plugins.info import PluginInfo, Target
from tanzucli.plugins.runner import PluginRunError, PluginRunner

logger = logging.getLogger(__name__)

# (plugin, args) -> stdout
PluginInvoker = Callable[[PluginInfo, Sequence[str]], str]
# CLI command path below the root -> annotations of the live CLI command
CommandLookup = Callable[[Sequence[str]], Mapping[str, str]]


class CommandTreeError(Exception):
    """Command tree could not be built, loaded or saved."""


def run_plugin(plugin: PluginInfo, args: Sequence[str]) -> str:
    """Default invoker: run the plugin binary and return its stdout."""
    stdout, _ = PluginRunner(plugin.name, plugin.installation_path, args).run_output()
    return stdout


@dataclass
class _BuildNode:
    """Build-time node; ``alias_processed`` never reaches the persisted tree."""
    subcommands: Dict[str, "_BuildNode"] = field(default_factory=dict)
    aliases: Set[str] = field(default_factory=set)
    alias_processed: bool = False

    def child(self, name: str) -> "_BuildNode":
        node = self.subcommands.get(name)
        if node is None:
            node = _BuildNode()
            self.subcommands[name] = node
        return node

    def to_command_node(self) -> CommandNode:
        return CommandNode(
            subcommands={name: sub.to_command_node() for name, sub in self.subcommands.items()},
            aliases=set(self.aliases),
        )


class CommandTreeBuilder:
    """
    Build a plugin's command tree by running the plugin.

    Args:
        docs_dir: Scratch directory for generated docs (wiped on every build)
        invoker: Runs the plugin and returns stdout; raises on failure
        max_workers: Upper bound on concurrent alias lookups
    """

    def __init__(
        self,
        docs_dir: Path,
        invoker: PluginInvoker = run_plugin,
        max_workers: int = ALIAS_LOOKUP_MAX_WORKERS,
    ):
        self.docs_dir = Path(docs_dir)
        self.invoker = invoker
        self.max_workers = max_workers

    def build(self, plugin: PluginInfo, lookup: CommandLookup) -> Optional[CommandNode]:
        """
        Build the tree for ``plugin``.

        Args:
            plugin: Installed plugin
            lookup: Resolves a CLI command path to the live command's
                annotations (used for remapped command source paths)

        Returns:
            The tree below the root command, or None if the plugin produced
            no root command docs.

        Raises:
            CommandTreeError: Docs generation, command lookup or any alias
                lookup failed
        """
        doc_names = self._generate_docs(plugin)
        root = _BuildNode()
        passes = 2 if plugin.target is Target.KUBERNETES else 1

        jobs: List[Tuple[_BuildNode, Future]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for doc_name in doc_names:
                for i in range(passes):
                    cmd_names = doc_name.split("_")
                    # Kubernetes commands are also reachable at the root; the
                    # second pass inserts that flattened variant.
                    if i == 0:
                        cmd_names = adjust_cmd_names_for_target(cmd_names, plugin)
                    jobs.extend(self._insert_path(root, cmd_names, plugin, lookup, pool))
            results = self._collect(jobs)

        for node, aliases in results:
            node.aliases = aliases

        top = root.subcommands.get(ROOT_COMMAND_NAME)
        if top is None:
            logger.debug(f"No {ROOT_COMMAND_NAME!r} command docs generated by plugin {plugin.name!r}")
            return None
        return top.to_command_node()

    def _generate_docs(self, plugin: PluginInfo) -> List[str]:
        """Regenerate the plugin's docs and return the doc names without extension."""
        shutil.rmtree(self.docs_dir, ignore_errors=True)
        try:
            self.docs_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CommandTreeError(
                f"failed to create the docs directory {str(self.docs_dir)!r} for the plugin {plugin.name!r}: {e}"
            ) from e
        try:
            self.invoker(plugin, ["generate-docs", "--docs-dir", str(self.docs_dir)])
        except PluginRunError as e:
            raise CommandTreeError(f"failed to generate docs for the plugin {plugin.name!r}: {e}") from e

        try:
            entries = sorted(self.docs_dir.iterdir())
        except OSError as e:
            raise CommandTreeError(f"error while reading plugin docs directory {self.docs_dir}: {e}") from e
        return [entry.stem for entry in entries if entry.is_file() and entry.suffix == ".md"]

    def _insert_path(
        self,
        root: _BuildNode,
        cmd_names: Sequence[str],
        plugin: PluginInfo,
        lookup: CommandLookup,
        pool: ThreadPoolExecutor,
    ) -> List[Tuple[_BuildNode, Future]]:
        jobs = []
        path: List[str] = []
        current = root
        for index, name in enumerate(cmd_names):
            current = current.child(name)
            if index == 0 and name == ROOT_COMMAND_NAME:
                continue
            path.append(name)

            if current.alias_processed:
                continue
            if plugin.target is not Target.GLOBAL and name == plugin.target.value:
                current.aliases = target_aliases(plugin.target)
                current.alias_processed = True
                continue

            try:
                annotations = lookup(list(path))
            except CommandNotFoundError as e:
                raise CommandTreeError(f"failed to find CLI command {' '.join(path)!r}: {e}") from e
            args = alias_lookup_args(path, annotations.get(ANNOTATION_CMD_SRC_PATH))
            jobs.append((current, pool.submit(self._lookup_aliases, plugin, args)))
            current.alias_processed = True
        return jobs

    def _lookup_aliases(self, plugin: PluginInfo, args: Sequence[str]) -> Set[str]:
        return extract_aliases(self.invoker(plugin, args))

    @staticmethod
    def _collect(jobs: List[Tuple[_BuildNode, Future]]) -> List[Tuple[_BuildNode, Set[str]]]:
        """Wait for every lookup; raise the first failure in submission order."""
        results = []
        first_error: Optional[BaseException] = None
        for node, future in jobs:
            error = future.exception()
            if error is not None:
                if first_error is None:
                    first_error = error
                continue
            results.append((node, future.result()))
        if first_error is not None:
            raise CommandTreeError(f"failed to generate command alias: {first_error}") from first_error
        return results
