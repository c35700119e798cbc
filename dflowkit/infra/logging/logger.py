from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from typing import Any

from dflowkit.app.ports.logger_port import LoggerPort

DEBUG_ENV_KEY = "DFLOWKIT_DEBUG"


def _now_iso_utc() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _format_context(context: dict[str, Any] | None = None) -> str:
    if context is None or len(context) == 0:
        return ""
    return f" {json.dumps(context, ensure_ascii=False, default=str)}"


def mask_secret(value: str | None) -> str:
    if not value:
        return "unset"
    if len(value) <= 8:
        return "********"
    return f"{value[:4]}...{value[-4:]}"


class ConsoleLogger(LoggerPort):
    def __init__(self, component: str = "dflowkit", debug_enabled: bool = False):
        self.component = component
        self.debug_enabled = debug_enabled

    def _emit(self, level: str, message: str, context: dict[str, Any] | None) -> None:
        print(f"{_now_iso_utc()} [{level}] [{self.component}] {message}{_format_context(context)}", flush=True)

    def debug(self, message: str, context: dict[str, Any] | None = None) -> None:
        if self.debug_enabled:
            self._emit("DEBUG", message, context)

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._emit("INFO", message, context)

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._emit("WARN", message, context)

    def error(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._emit("ERROR", message, context)


def create_logger(component: str = "dflowkit") -> LoggerPort:
    debug_enabled = os.environ.get(DEBUG_ENV_KEY, "").strip().lower() in ("1", "true", "yes")
    return ConsoleLogger(component=component, debug_enabled=debug_enabled)
