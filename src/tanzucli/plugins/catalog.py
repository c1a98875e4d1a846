"""
Read-only view of the installed plugin catalog.

Installation itself belongs to the plugin lifecycle commands; the CLI front-end
only needs the list of installed plugins. The catalog is a YAML document:

    plugins:
      - name: cluster
        version: v1.0.0
        target: kubernetes
        installationPath: /home/me/.local/share/tanzu-cli/cluster/v1.0.0_abc_kubernetes
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import yaml
from pydantic import ValidationError

from tanzucli.plugins.info import PluginInfo

logger = logging.getLogger(__name__)


class PluginCatalogError(Exception):
    pass


class PluginCatalog:
    """Installed plugins loaded from a YAML catalog file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def list_plugins(self) -> List[PluginInfo]:
        if not self.path.exists():
            logger.debug(f"No plugin catalog at {self.path}")
            return []
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise PluginCatalogError(f"failed to read plugin catalog {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise PluginCatalogError(f"invalid plugin catalog {self.path}: top level is not a mapping")
        raw_plugins = data.get("plugins") or []
        if not isinstance(raw_plugins, list):
            raise PluginCatalogError(f"invalid plugin catalog {self.path}: 'plugins' is not a list")
        try:
            return [PluginInfo.model_validate(entry) for entry in raw_plugins]
        except ValidationError as e:
            raise PluginCatalogError(f"invalid plugin entry in {self.path}: {e}") from e

