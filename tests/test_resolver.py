"""
Tests for recovering the plugin subcommand path from raw arguments.
"""

import pytest

from tanzucli.cmdtree.node import CommandNode
from tanzucli.cmdtree.resolver import is_flag_arg, locate_command_node, parse_plugin_command_path


@pytest.fixture
def cluster_node():
    """
    cluster
      kubeconfig (kc)
        get
      create (cr)
    """
    node = CommandNode(aliases={"cluster", "cl"})
    kubeconfig = node.child("kubeconfig")
    kubeconfig.aliases = {"kubeconfig", "kc"}
    kubeconfig.child("get")
    node.child("create").aliases = {"create", "cr"}
    return node


class TestIsFlagArg:
    """Tests for is_flag_arg()."""

    @pytest.mark.parametrize("arg", ["--export-file", "--export-file=f", "-e", "-ef", "-e=f"])
    def test_flags(self, arg):
        assert is_flag_arg(arg)

    @pytest.mark.parametrize("arg", ["--", "-", "get", "", "c1"])
    def test_not_flags(self, arg):
        assert not is_flag_arg(arg)


class TestParsePluginCommandPath:
    """Tests for parse_plugin_command_path()."""

    def test_subcommands_then_positional(self, cluster_node):
        args = ["kubeconfig", "get", "c1", "--export-file", "f"]

        assert parse_plugin_command_path(cluster_node, args) == " kubeconfig get"

    def test_alias_keeps_typed_token(self, cluster_node):
        assert parse_plugin_command_path(cluster_node, ["kc", "get"]) == " kc get"

    def test_flags_are_skipped(self, cluster_node):
        args = ["--verbose", "kubeconfig", "-v", "get"]

        assert parse_plugin_command_path(cluster_node, args) == " kubeconfig get"

    def test_double_hyphen_stops(self, cluster_node):
        assert parse_plugin_command_path(cluster_node, ["--", "kubeconfig"]) == ""

    def test_unknown_token_stops(self, cluster_node):
        """The first token that is not a subcommand is a positional argument."""
        assert parse_plugin_command_path(cluster_node, ["c1", "kubeconfig", "get"]) == ""

    def test_stops_at_leaf(self, cluster_node):
        args = ["kubeconfig", "get", "get"]

        assert parse_plugin_command_path(cluster_node, args) == " kubeconfig get"

    def test_no_args(self, cluster_node):
        assert parse_plugin_command_path(cluster_node, []) == ""

    def test_deterministic(self, cluster_node):
        args = ["cr", "--name", "x"]
        results = {parse_plugin_command_path(cluster_node, args) for _ in range(5)}

        assert results == {" cr"}


class TestLocateCommandNode:
    """Tests for locate_command_node()."""

    def test_by_name_and_alias(self, cluster_node):
        root = CommandNode(subcommands={"cluster": cluster_node})

        assert locate_command_node(root, ["cluster"]) is cluster_node
        assert locate_command_node(root, ["cl", "kc"]) is cluster_node.subcommands["kubeconfig"]

    def test_missing(self, cluster_node):
        root = CommandNode(subcommands={"cluster": cluster_node})

        assert locate_command_node(root, ["cluster", "delete"]) is None

    def test_no_segments(self, cluster_node):
        assert locate_command_node(cluster_node, []) is cluster_node
