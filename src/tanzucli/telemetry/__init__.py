"""CLI usage telemetry: collection, local storage and hand-off for sending."""

from tanzucli.telemetry.client import (
    OperationMetricsPayload,
    PostRunMetrics,
    TelemetryClient,
    TelemetryError,
)
from tanzucli.telemetry.lock import MetricsDBError, MetricsDBLock, MetricsDBLockError
from tanzucli.telemetry.store import MetricsThresholdReachedError, SQLiteMetricsDB

__all__ = [
    "MetricsDBError",
    "MetricsDBLock",
    "MetricsDBLockError",
    "MetricsThresholdReachedError",
    "OperationMetricsPayload",
    "PostRunMetrics",
    "SQLiteMetricsDB",
    "TelemetryClient",
    "TelemetryError",
]
