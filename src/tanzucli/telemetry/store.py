"""
Local SQLite store of CLI operation metrics.

One row per CLI invocation in ``tanzu_cli_operations``. The table is capped
at METRICS_MAX_ROW_COUNT rows; once full, inserts fail until the telemetry
plugin drains it. The composite primary key (cli_id, command,
command_start_ts) makes a repeated insert of the same invocation fail.
"""

from __future__ import annotations

import logging
import platform
import sqlite3
import sys
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol

from tanzucli.config import TanzuCLIConfig, get_config
from tanzucli.constants import METRICS_MAX_ROW_COUNT
from tanzucli.telemetry.lock import MetricsDBError, MetricsDBLock

if TYPE_CHECKING:
    from tanzucli.telemetry.client import OperationMetricsPayload

logger = logging.getLogger(__name__)

CREATE_TABLES_SCHEMA = """
CREATE TABLE IF NOT EXISTS "tanzu_cli_operations"
(
    "cli_version"       TEXT NOT NULL,
    "os_name"           TEXT NOT NULL,
    "os_arch"           TEXT NOT NULL,
    "plugin_name"       TEXT,
    "plugin_version"    TEXT,
    "command"           TEXT NOT NULL,
    "cli_id"            TEXT NOT NULL,
    "command_start_ts"  TEXT NOT NULL,
    "command_end_ts"    TEXT NOT NULL,
    "target"            TEXT,
    "name_arg"          TEXT,
    "endpoint"          TEXT,
    "flags"             TEXT,
    "exit_status"       INTEGER,
    "is_internal"       TEXT,
    "error"             TEXT,
    PRIMARY KEY("cli_id","command","command_start_ts")
);
""".strip()

ROW_COUNT_QUERY = "SELECT count(*) FROM tanzu_cli_operations"
INSERT_ROW_QUERY = "INSERT INTO tanzu_cli_operations VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)"
CLEAR_ROWS_QUERY = "DELETE FROM tanzu_cli_operations"


class MetricsThresholdReachedError(MetricsDBError):
    def __init__(self) -> None:
        super().__init__("metrics DB size threshold reached")


class MetricsDB(Protocol):
    def create_schema(self) -> None:
        ...

    def save_operation_metric(self, entry: "OperationMetricsPayload") -> None:
        ...

    def get_row_count(self) -> int:
        ...

    def clear_metric_data(self) -> None:
        ...


def os_name() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform == "win32":
        return "windows"
    return sys.platform


def os_arch() -> str:
    machine = platform.machine().lower()
    return {"x86_64": "amd64", "aarch64": "arm64"}.get(machine, machine)


def unix_millis(ts: Optional[datetime]) -> str:
    if ts is None:
        return "0"
    return str(int(ts.timestamp() * 1000))


@dataclass
class CLIOperationsRow:
    """Column projection of an OperationMetricsPayload."""
    cli_version: str
    os_name: str
    os_arch: str
    plugin_name: str
    plugin_version: str
    command: str
    cli_id: str
    command_start_ts: str
    command_end_ts: str
    target: str
    name_arg: str
    endpoint: str
    flags: str
    exit_status: int
    is_internal: bool
    error: str

    @classmethod
    def from_payload(cls, entry: "OperationMetricsPayload") -> "CLIOperationsRow":
        return cls(
            cli_version=entry.cli_version,
            os_name=os_name(),
            os_arch=os_arch(),
            plugin_name=entry.plugin_name,
            plugin_version=entry.plugin_version,
            command=entry.command_name,
            cli_id=entry.cli_id,
            command_start_ts=unix_millis(entry.start_time),
            command_end_ts=unix_millis(entry.end_time),
            target=entry.target,
            name_arg=entry.name_arg,
            endpoint=entry.endpoint,
            flags=entry.flags,
            exit_status=entry.exit_status,
            is_internal=entry.is_internal,
            error=entry.error,
        )

    def values(self) -> tuple:
        return (
            self.cli_version, self.os_name, self.os_arch, self.plugin_name,
            self.plugin_version, self.command, self.cli_id, self.command_start_ts,
            self.command_end_ts, self.target, self.name_arg, self.endpoint,
            self.flags, self.exit_status, self.is_internal, self.error,
        )


class SQLiteMetricsDB:
    """
    MetricsDB backed by a SQLite file.

    Args:
        db_path: SQLite file; defaults to the configured telemetry directory
        lock: Lock shared by every operation on this file
        lock_timeout: Bounded wait on ``lock``
        max_rows: Row cap
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        lock: Optional[MetricsDBLock] = None,
        lock_timeout: Optional[float] = None,
        max_rows: int = METRICS_MAX_ROW_COUNT,
        config: Optional[TanzuCLIConfig] = None,
    ):
        config = config or get_config()
        self.db_path = Path(db_path) if db_path else config.metrics_db_path
        self.lock = lock or MetricsDBLock(config.metrics_db_lock_path)
        self.lock_timeout = lock_timeout if lock_timeout is not None else config.metrics_db_lock_timeout_s
        self.max_rows = max_rows

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise MetricsDBError(f"failed to open the DB at '{self.db_path}': {e}") from e

    def create_schema(self) -> None:
        """Create the metrics table if missing (and the DB directory)."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MetricsDBError(f"failed to create the DB directory '{self.db_path.parent}': {e}") from e
        with closing(self._connect()) as conn:
            try:
                conn.executescript(CREATE_TABLES_SCHEMA)
            except sqlite3.Error as e:
                raise MetricsDBError(f"error while creating tables to the database: {e}") from e

    def save_operation_metric(self, entry: "OperationMetricsPayload") -> None:
        """
        Insert one row for ``entry``.

        Raises:
            MetricsDBLockError: Lock not acquired in time
            MetricsThresholdReachedError: Table is at its row cap
            MetricsDBError: Insert failed (including duplicate keys)
        """
        with self.lock.acquire(self.lock_timeout):
            with closing(self._connect()) as conn:
                if self._row_count(conn) >= self.max_rows:
                    raise MetricsThresholdReachedError()

                row = CLIOperationsRow.from_payload(entry)
                try:
                    with conn:
                        conn.execute(INSERT_ROW_QUERY, row.values())
                except sqlite3.Error as e:
                    raise MetricsDBError(f"unable to insert clioperations row {row}: {e}") from e
        logger.debug(f"Saved metrics for command {entry.command_name!r}")

    def get_row_count(self) -> int:
        with self.lock.acquire(self.lock_timeout):
            with closing(self._connect()) as conn:
                return self._row_count(conn)

    def clear_metric_data(self) -> None:
        with self.lock.acquire(self.lock_timeout):
            with closing(self._connect()) as conn:
                try:
                    with conn:
                        conn.execute(CLEAR_ROWS_QUERY)
                except sqlite3.Error as e:
                    raise MetricsDBError(f"failed to clear the metrics data: {e}") from e

    @staticmethod
    def _row_count(conn: sqlite3.Connection) -> int:
        try:
            row = conn.execute(ROW_COUNT_QUERY).fetchone()
        except sqlite3.Error as e:
            raise MetricsDBError(f"failed to execute the DB query : {ROW_COUNT_QUERY}: {e}") from e
        return int(row[0]) if row else 0
