"""Plugin runner: spawn an installed plugin binary and capture its output."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class PluginRunError(Exception):
    """Plugin could not be spawned or exited non-zero."""

    def __init__(self, plugin: str, args: Sequence[str], returncode: Optional[int] = None,
                 stderr: str = "", reason: str = ""):
        self.plugin = plugin
        self.args = list(args)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(self._format_message(reason))

    def _format_message(self, reason: str) -> str:
        parts = [f"plugin {self.plugin!r} failed running {' '.join(self.args)!r}"]
        if reason:
            parts.append(reason)
        if self.returncode is not None:
            parts.append(f"exit code: {self.returncode}")
        if self.stderr:
            parts.append(f"error: {self.stderr.strip()}")
        return ", ".join(parts)


class PluginRunner:
    """
    Run a plugin binary.

    Args:
        name: Plugin name (used in error messages)
        plugin_path: Absolute path of the plugin binary
        args: Arguments passed to the plugin
    """

    def __init__(self, name: str, plugin_path: str, args: Sequence[str]):
        self.name = name
        self.plugin_path = plugin_path
        self.args: List[str] = list(args)

    def _resolved_path(self) -> Path:
        path = self.plugin_path
        if sys.platform == "win32" and not path.endswith(".exe"):
            path += ".exe"
        resolved = Path(path)
        if not resolved.exists():
            raise PluginRunError(
                self.name, self.args,
                reason=(f"plugin does not exist, try using `tanzu plugin install {self.name}` "
                        "to install or `tanzu plugin list` to find plugins"),
            )
        if resolved.is_dir():
            raise PluginRunError(self.name, self.args, reason=f"{resolved} is a directory")
        return resolved

    def run(self) -> int:
        """Run the plugin attached to the current terminal; return its exit code."""
        path = self._resolved_path()
        logger.debug(f"running command path {path} args: {self.args}")
        try:
            result = subprocess.run([str(path), *self.args])
        except OSError as e:
            raise PluginRunError(self.name, self.args, reason=str(e)) from e
        return result.returncode

    def run_output(self) -> Tuple[str, str]:
        """
        Run the plugin capturing its output.

        Returns:
            Tuple of (stdout, stderr)

        Raises:
            PluginRunError: On spawn failure or non-zero exit code
        """
        path = self._resolved_path()
        logger.debug(f"running command path {path} args: {self.args}")
        try:
            result = subprocess.run(
                [str(path), *self.args],
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                env=os.environ.copy(),
            )
        except OSError as e:
            raise PluginRunError(self.name, self.args, reason=str(e)) from e

        if result.returncode != 0:
            raise PluginRunError(
                self.name, self.args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout, result.stderr
