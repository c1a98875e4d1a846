"""
Pytest configuration and fixtures for the Tanzu CLI tests.
"""

from __future__ import annotations

import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Generator, Iterable, List, Optional

import pytest

from tanzucli.config import TanzuCLIConfig, get_config, reset_config
from tanzucli.plugins.info import CommandMapEntry, PluginInfo, Target


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Point every CLI directory into the test's tmp_path."""
    monkeypatch.setenv("TANZU_CLI_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("TANZU_CLI_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("TANZU_CLI_TELEMETRY_DIR", str(tmp_path / "telemetry"))
    for var in (
        "TEST_CUSTOM_PLUGIN_COMMAND_TREE_CACHE_DIR",
        "TANZU_CLI_SHOW_TELEMETRY_CONSOLE_LOGS",
        "TANZU_CLI_SUPERCOLLIDER_ENVIRONMENT",
        "TANZU_CLI_METRICS_DB_LOCK_TIMEOUT_S",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_config()

    yield

    reset_config()


@pytest.fixture
def config() -> TanzuCLIConfig:
    return get_config()


# ============================================================================
# Fake Plugin Fixtures
# ============================================================================


FAKE_PLUGIN_TEMPLATE = """#!/bin/sh
printf '%s\\n' "$*" >> "{calls_log}"
if [ "$1" = "generate-docs" ]; then
{doc_lines}
  exit 0
fi
case "$*" in
{help_cases}
  *) echo "Invalid command." ;;
esac
exit 0
"""


@dataclass
class FakePlugin:
    """Executable shell script standing in for a plugin binary."""
    path: Path
    calls_log: Path

    def calls(self) -> List[str]:
        if not self.calls_log.exists():
            return []
        return self.calls_log.read_text().splitlines()


def write_fake_plugin(
    directory: Path,
    name: str,
    docs: Iterable[str],
    help_aliases: Optional[Dict[str, Optional[str]]] = None,
    failing: Iterable[str] = (),
) -> FakePlugin:
    """
    Write a fake plugin.

    Args:
        directory: Where to put the script
        name: Script file name
        docs: Doc file names created by ``generate-docs``
        help_aliases: ``"<args>" -> "a, b"`` aliases printed for that help
            invocation (None prints help without an Aliases line)
        failing: Invocations (``"<args>"``) that exit 1
    """
    directory.mkdir(parents=True, exist_ok=True)
    calls_log = directory / f"{name}.calls"
    doc_lines = "\n".join(f'  touch "$3/{doc}"' for doc in docs) or "  :"
    cases = []
    for args in failing:
        cases.append(f'  "{args}") echo "boom" >&2; exit 1 ;;')
    for args, aliases in (help_aliases or {}).items():
        if aliases is None:
            cases.append(f'  "{args}") echo "fake help without aliases" ;;')
        else:
            cases.append(f"  \"{args}\") printf '%s\\n' 'fake help' 'Aliases:' '  {aliases}' ;;")
    script = FAKE_PLUGIN_TEMPLATE.format(
        calls_log=calls_log,
        doc_lines=doc_lines,
        help_cases="\n".join(cases),
    )
    path = directory / name
    path.write_text(script)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return FakePlugin(path=path, calls_log=calls_log)


@pytest.fixture
def posix_only() -> None:
    if sys.platform == "win32":
        pytest.skip("fake plugins are shell scripts")


SAMPLE_PLUGIN_NAMES = {
    Target.GLOBAL: "cluster-plugin-global",
    Target.KUBERNETES: "cluster-plugin-k8s",
    # Shares a prefix with the remapped command on purpose
    Target.OPERATIONS: "cluster-plugin-ops",
}

SAMPLE_PLUGIN_ALIASES = {
    Target.GLOBAL: "pg",
    Target.KUBERNETES: "pk",
    Target.OPERATIONS: "po",
}

REMAPPED_CMD_NAME = "cluster"


def sample_docs(name: str) -> List[str]:
    return [
        f"tanzu_{name}.md",
        f"tanzu_{name}_foo1.md",
        f"tanzu_{name}_foo1_foo2.md",
        f"tanzu_{name}_bar1.md",
        f"tanzu_{REMAPPED_CMD_NAME}.md",
        "README.txt",
    ]


def sample_help_aliases(name: str, alias: str) -> Dict[str, Optional[str]]:
    return {
        "-h": f"{name}, {alias}",
        "foo1 -h": "foo1, f1",
        "bar1 -h": None,
        "foo1 foo2 -h": "foo2, f2",
        f"{REMAPPED_CMD_NAME} -h": f"{REMAPPED_CMD_NAME}, cl",
    }


def sample_plugin_subtree(name: str, alias: str) -> dict:
    """Expected to_dict() of a sample plugin's own node."""
    return {
        "subcommands": {
            "bar1": {"subcommands": {}, "aliases": []},
            "foo1": {
                "subcommands": {
                    "foo2": {"subcommands": {}, "aliases": ["f2", "foo2"]},
                },
                "aliases": ["f1", "foo1"],
            },
        },
        "aliases": sorted([name, alias]),
    }


@pytest.fixture
def sample_plugin(tmp_path: Path, posix_only):
    """Factory: (target) -> (PluginInfo, FakePlugin) with a remapped command."""
    def _make(target: Target):
        name = SAMPLE_PLUGIN_NAMES[target]
        fake = write_fake_plugin(
            tmp_path / "plugins",
            name,
            docs=sample_docs(name),
            help_aliases=sample_help_aliases(name, SAMPLE_PLUGIN_ALIASES[target]),
        )
        info = PluginInfo(
            name=name,
            version="1.0.0",
            target=target,
            installation_path=str(fake.path),
            command_map=[
                CommandMapEntry(
                    source_command_path=REMAPPED_CMD_NAME,
                    destination_command_path=REMAPPED_CMD_NAME,
                ),
            ],
        )
        return info, fake

    return _make
