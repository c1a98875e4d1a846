"""
Tanzu CLI plugin front-end and usage telemetry.

The CLI discovers plugin executables, dispatches to them, and records an
anonymized usage row per invocation. Commands run inside a plugin are opaque
to the CLI's own parser, so a per-plugin command tree is reverse-engineered
from the plugin (generated docs plus help text), cached on disk, and used to
reconstruct the subcommand path the user actually ran.

Example usage:
    from tanzucli import CommandTreeCache, TelemetryClient

    cache = CommandTreeCache()
    node = cache.get_tree(root_group, plugin)
"""

__version__ = "1.5.3"
__all__ = [
    "CommandNode",
    "CommandTreeCache",
    "TelemetryClient",
    "PluginInfo",
    "__version__",
]


# Lazy imports keep `tanzu --help` cheap
def __getattr__(name: str):
    if name == "CommandNode":
        from tanzucli.cmdtree.node import CommandNode
        return CommandNode
    if name == "CommandTreeCache":
        from tanzucli.cmdtree.cache import CommandTreeCache
        return CommandTreeCache
    if name == "TelemetryClient":
        from tanzucli.telemetry.client import TelemetryClient
        return TelemetryClient
    if name == "PluginInfo":
        from tanzucli.plugins.info import PluginInfo
        return PluginInfo
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
