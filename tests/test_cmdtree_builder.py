"""
Tests for CommandTreeBuilder against fake plugin executables.
"""

from pathlib import Path

import pytest

from tanzucli.cli import build_root_command
from tanzucli.cmdtree.builder import CommandTreeBuilder, CommandTreeError
from tanzucli.commands import command_annotations
from tanzucli.plugins.info import PluginInfo, Target

from conftest import (
    REMAPPED_CMD_NAME,
    SAMPLE_PLUGIN_ALIASES,
    SAMPLE_PLUGIN_NAMES,
    sample_plugin_subtree,
    write_fake_plugin,
)

REMAPPED_SUBTREE = {"subcommands": {}, "aliases": ["cl", REMAPPED_CMD_NAME]}


def build(plugin: PluginInfo, docs_dir: Path, **kwargs):
    root = build_root_command([plugin])
    builder = CommandTreeBuilder(docs_dir, **kwargs)
    return builder.build(plugin, lambda path: command_annotations(root, path))


def expected_subtree(target: Target) -> dict:
    return sample_plugin_subtree(SAMPLE_PLUGIN_NAMES[target], SAMPLE_PLUGIN_ALIASES[target])


class TestBuild:
    """Tests for CommandTreeBuilder.build()."""

    def test_global_plugin(self, sample_plugin, tmp_path):
        plugin, _ = sample_plugin(Target.GLOBAL)

        tree = build(plugin, tmp_path / "docs")

        assert tree.to_dict() == {
            "subcommands": {
                REMAPPED_CMD_NAME: REMAPPED_SUBTREE,
                plugin.name: expected_subtree(Target.GLOBAL),
            },
            "aliases": [],
        }

    def test_kubernetes_plugin_placed_twice(self, sample_plugin, tmp_path):
        """Kubernetes commands sit under the target and at the root; remaps once."""
        plugin, _ = sample_plugin(Target.KUBERNETES)

        tree = build(plugin, tmp_path / "docs")

        assert tree.to_dict() == {
            "subcommands": {
                REMAPPED_CMD_NAME: REMAPPED_SUBTREE,
                plugin.name: expected_subtree(Target.KUBERNETES),
                "kubernetes": {
                    "subcommands": {plugin.name: expected_subtree(Target.KUBERNETES)},
                    "aliases": ["k8s", "kubernetes"],
                },
            },
            "aliases": [],
        }

    def test_operations_plugin(self, sample_plugin, tmp_path):
        plugin, _ = sample_plugin(Target.OPERATIONS)

        tree = build(plugin, tmp_path / "docs")

        assert tree.to_dict() == {
            "subcommands": {
                REMAPPED_CMD_NAME: REMAPPED_SUBTREE,
                "operations": {
                    "subcommands": {plugin.name: expected_subtree(Target.OPERATIONS)},
                    "aliases": ["operations", "ops"],
                },
            },
            "aliases": [],
        }

    def test_each_command_looked_up_once(self, sample_plugin, tmp_path):
        plugin, fake = sample_plugin(Target.KUBERNETES)

        build(plugin, tmp_path / "docs")

        calls = fake.calls()
        assert calls[0].startswith("generate-docs --docs-dir ")
        help_calls = calls[1:]
        # The plugin-level and subcommand help runs once per placement,
        # the remapped command's once in total
        assert help_calls.count(f"{REMAPPED_CMD_NAME} -h") == 1
        assert help_calls.count("foo1 -h") == 2
        assert help_calls.count("-h") == 2
        assert len(help_calls) == 9

    def test_docs_dir_is_regenerated(self, sample_plugin, tmp_path):
        plugin, _ = sample_plugin(Target.GLOBAL)
        docs_dir = tmp_path / "docs"
        docs_dir.mkdir()
        (docs_dir / "tanzu_stale.md").write_text("")

        tree = build(plugin, docs_dir)

        assert "stale" not in tree.subcommands
        assert not (docs_dir / "tanzu_stale.md").exists()

    def test_no_root_docs(self, tmp_path, posix_only):
        fake = write_fake_plugin(tmp_path / "plugins", "empty", docs=[])
        plugin = PluginInfo(name="empty", installation_path=str(fake.path))

        assert build(plugin, tmp_path / "docs") is None

    def test_serial_and_parallel_agree(self, sample_plugin, tmp_path):
        plugin, _ = sample_plugin(Target.KUBERNETES)

        serial = build(plugin, tmp_path / "serial", max_workers=1)
        parallel = build(plugin, tmp_path / "parallel", max_workers=8)

        assert serial == parallel


class TestBuildFailures:
    """Tests for build errors."""

    def test_generate_docs_failure(self, tmp_path, posix_only):
        fake = write_fake_plugin(tmp_path / "plugins", "broken", docs=[])
        fake.path.write_text("#!/bin/sh\necho nope >&2\nexit 3\n")
        plugin = PluginInfo(name="broken", installation_path=str(fake.path))

        with pytest.raises(CommandTreeError, match="failed to generate docs"):
            build(plugin, tmp_path / "docs")

    def test_alias_lookup_failure(self, tmp_path, posix_only):
        fake = write_fake_plugin(
            tmp_path / "plugins", "flaky",
            docs=["tanzu_flaky.md", "tanzu_flaky_foo1.md"],
            help_aliases={"-h": "flaky"},
            failing=["foo1 -h"],
        )
        plugin = PluginInfo(name="flaky", installation_path=str(fake.path))

        with pytest.raises(CommandTreeError, match="failed to generate command alias"):
            build(plugin, tmp_path / "docs")

    def test_docs_dir_blocked_by_file(self, sample_plugin, tmp_path):
        plugin, fake = sample_plugin(Target.GLOBAL)
        docs_dir = tmp_path / "docs"
        docs_dir.write_text("not a directory")

        with pytest.raises(CommandTreeError, match="failed to create the docs directory"):
            build(plugin, docs_dir)
        assert fake.calls() == []

    def test_missing_plugin_binary(self, tmp_path):
        plugin = PluginInfo(name="gone", installation_path=str(tmp_path / "gone"))

        with pytest.raises(CommandTreeError, match="plugin does not exist"):
            build(plugin, tmp_path / "docs")

    def test_custom_invoker(self, tmp_path):
        """Any callable returning help text can stand in for the plugin."""
        docs_dir = tmp_path / "docs"
        plugin = PluginInfo(name="inproc", installation_path="/nowhere/inproc")

        def invoker(p, args):
            if args[0] == "generate-docs":
                (Path(args[2]) / "tanzu_inproc.md").write_text("")
                return ""
            return "Aliases:\n  inproc, ip\n"

        tree = build(plugin, docs_dir, invoker=invoker)

        assert tree.subcommands["inproc"].aliases == {"inproc", "ip"}
