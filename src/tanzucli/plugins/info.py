"""
Plugin identity as recorded by the installation subsystem.

The CLI consumes these records; it never creates them. ``installation_path``
is the identity used by caches: two installs of the same plugin name at
different paths are different plugins.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Target(str, Enum):
    """Plugin target, i.e. the command group a plugin is mounted under."""
    KUBERNETES = "kubernetes"
    MISSION_CONTROL = "mission-control"
    OPERATIONS = "operations"
    GLOBAL = "global"

    @classmethod
    def parse(cls, value: str) -> Optional["Target"]:
        """Map a target name or one of its short aliases to a Target."""
        value = (value or "").strip().lower()
        for target in cls:
            if value == target.value:
                return target
        return _TARGET_SHORT_NAMES.get(value)


_TARGET_SHORT_NAMES = {
    "k8s": Target.KUBERNETES,
    "tmc": Target.MISSION_CONTROL,
    "ops": Target.OPERATIONS,
}


def is_valid_target(value: str, allow_global: bool = False) -> bool:
    """True if ``value`` names a target (or a target alias)."""
    target = Target.parse(value)
    if target is None:
        return False
    return allow_global or target is not Target.GLOBAL


class CommandMapEntry(BaseModel):
    """A plugin command re-mounted at a different CLI command path."""

    model_config = ConfigDict(populate_by_name=True)

    source_command_path: str = Field(default="", alias="sourceCommandPath")
    destination_command_path: str = Field(alias="destinationCommandPath")
    description: str = ""


class PluginInfo(BaseModel):
    """An installed plugin."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    name: str
    version: str = ""
    target: Target = Target.GLOBAL
    description: str = ""
    installation_path: str = Field(alias="installationPath")
    command_map: List[CommandMapEntry] = Field(default_factory=list, alias="commandMap")

    @property
    def display_name(self) -> str:
        return f"{self.name}:{self.version}"
