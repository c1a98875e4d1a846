"""
Tests for running plugin binaries and reading the plugin catalog.
"""

import pytest

from tanzucli.plugins.catalog import PluginCatalog, PluginCatalogError
from tanzucli.plugins.info import Target
from tanzucli.plugins.runner import PluginRunError, PluginRunner

from conftest import write_fake_plugin


@pytest.fixture
def fake(tmp_path, posix_only):
    return write_fake_plugin(
        tmp_path / "plugins", "demo",
        docs=[],
        help_aliases={"-h": "demo, d"},
        failing=["explode"],
    )


class TestPluginRunner:
    """Tests for PluginRunner."""

    def test_run_output(self, fake):
        stdout, stderr = PluginRunner("demo", str(fake.path), ["-h"]).run_output()

        assert "Aliases:" in stdout
        assert stderr == ""
        assert fake.calls() == ["-h"]

    def test_run_output_failure(self, fake):
        with pytest.raises(PluginRunError) as exc_info:
            PluginRunner("demo", str(fake.path), ["explode"]).run_output()

        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr.strip() == "boom"
        assert "exit code: 1" in str(exc_info.value)

    def test_run_returns_exit_code(self, fake):
        assert PluginRunner("demo", str(fake.path), ["-h"]).run() == 0
        assert PluginRunner("demo", str(fake.path), ["explode"]).run() == 1

    def test_missing_binary(self, tmp_path):
        with pytest.raises(PluginRunError, match="plugin does not exist"):
            PluginRunner("ghost", str(tmp_path / "ghost"), []).run()

    def test_directory_is_not_a_plugin(self, tmp_path):
        with pytest.raises(PluginRunError, match="is a directory"):
            PluginRunner("dir", str(tmp_path), []).run_output()


class TestPluginCatalog:
    """Tests for PluginCatalog."""

    def test_missing_catalog(self, tmp_path):
        assert PluginCatalog(tmp_path / "plugins.yaml").list_plugins() == []

    def test_list_plugins(self, tmp_path):
        path = tmp_path / "plugins.yaml"
        path.write_text(
            "plugins:\n"
            "  - name: cluster\n"
            "    version: v1.0.0\n"
            "    target: kubernetes\n"
            "    installationPath: /plugins/cluster\n"
            "    commandMap:\n"
            "      - sourceCommandPath: cluster\n"
            "        destinationCommandPath: cl\n"
            "  - name: telemetry\n"
            "    installationPath: /plugins/telemetry\n"
        )

        plugins = PluginCatalog(path).list_plugins()

        assert [p.name for p in plugins] == ["cluster", "telemetry"]
        assert plugins[0].target is Target.KUBERNETES
        assert plugins[0].command_map[0].destination_command_path == "cl"
        assert plugins[1].target is Target.GLOBAL

    @pytest.mark.parametrize("content", [
        "plugins: [",
        "plugins: {name: x}",
        "plugins:\n  - name: missing-path\n",
        "plugins:\n  - name: x\n    installationPath: /p\n    target: nowhere\n",
    ])
    def test_invalid_catalog(self, tmp_path, content):
        path = tmp_path / "plugins.yaml"
        path.write_text(content)

        with pytest.raises(PluginCatalogError):
            PluginCatalog(path).list_plugins()
