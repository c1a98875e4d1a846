"""
Constants shared across the CLI.

Centralizes environment variable names, file names, limits and timeouts so
that tests and tuning touch a single place.
"""

from __future__ import annotations

# =============================================================================
# Command tree
# =============================================================================

# Literal name of the CLI's root command (first segment of generated doc names)
ROOT_COMMAND_NAME = "tanzu"

# Test-only override of the command tree cache directory
TEST_CUSTOM_PLUGIN_COMMAND_TREE_CACHE_DIR = "TEST_CUSTOM_PLUGIN_COMMAND_TREE_CACHE_DIR"

PLUGINS_COMMAND_TREE_DIR = "plugins_command_tree"
COMMAND_TREE_FILE_NAME = "command_tree.yaml"
PLUGIN_DOCS_DIR_NAME = ".docs"

# Upper bound on concurrent `<cmd> -h` invocations during a tree build
ALIAS_LOOKUP_MAX_WORKERS = 8

# =============================================================================
# Command annotations
# =============================================================================

ANNOTATION_TYPE = "type"
COMMAND_TYPE_PLUGIN = "plugin"
COMMAND_TYPE_CORE = "core"
ANNOTATION_PLUGIN_INSTALLATION_PATH = "pluginInstallationPath"
# Source command path inside the plugin for remapped commands
ANNOTATION_CMD_SRC_PATH = "cmdSrcPath"

# =============================================================================
# Telemetry
# =============================================================================

SQLITE_DB_FILE_NAME = "cli_metrics.db"
METRICS_DB_LOCK_FILE_NAME = ".cli_metrics_db.lock"

# Max rows accumulated locally before collection pauses
METRICS_MAX_ROW_COUNT = 10000

# Rows required locally before the telemetry plugin is asked to send
METRICS_SEND_THRESHOLD_ROW_COUNT = 10

# Default bounded wait on the metrics DB lock
METRICS_DB_LOCK_TIMEOUT_S = 3.0

# Poll interval while waiting on a contended OS file lock
FILE_LOCK_POLL_INTERVAL_S = 0.05

TELEMETRY_PLUGIN_NAME = "telemetry"
TELEMETRY_SEND_ARGS = ("cli-usage-analytics", "collect", "-q")

# Core command groups whose flag values are recorded without hashing
CORE_COMMANDS_ALLOWED_WITH_FLAG_VALUES = frozenset({"plugin"})
