"""Telemetry console logging, shown only when telemetry logs are enabled."""

from __future__ import annotations

import logging
from typing import Optional

from tanzucli.config import get_config

logger = logging.getLogger("tanzucli.telemetry")


def telemetry_logs_enabled() -> bool:
    return get_config().show_telemetry_console_logs


def log_error(err: BaseException, msg: str = "") -> None:
    if telemetry_logs_enabled():
        logger.error(f"{msg}: {err}" if msg else str(err))


def log_warning(msg: str, err: Optional[BaseException] = None) -> None:
    if telemetry_logs_enabled():
        logger.warning(f"{msg}: {err}" if err else msg)
