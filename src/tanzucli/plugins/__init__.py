"""Installed plugin identity, invocation and catalog."""

from tanzucli.plugins.info import CommandMapEntry, PluginInfo, Target
from tanzucli.plugins.runner import PluginRunError, PluginRunner

__all__ = [
    "CommandMapEntry",
    "PluginInfo",
    "PluginRunError",
    "PluginRunner",
    "Target",
]
