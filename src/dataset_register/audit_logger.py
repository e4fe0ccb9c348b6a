"""
Structured audit log of what the register did to each URL.

Every ingestion, crawl and scheduling decision becomes one entry carrying a
timestamp, a level, the emitting component, a message and a data dict.
Entries are written as a JSON object, a text line or both, and entries
below the configured level are dropped. Values stored under keys that look
like credentials are masked before an entry is kept or written.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TextIO

from dataset_register.enums import LogLevel
from dataset_register.exceptions import RegistryError

LEVEL_ORDER = {
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
}

# Substrings of keys whose values never reach the log
SENSITIVE_KEYS = frozenset({
    "token", "secret", "password", "api_key", "auth", "authorization",
    "credential", "private_key", "cookie",
})

MASK_VALUE = "***MASKED***"


def is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(pattern in lowered for pattern in SENSITIVE_KEYS)


def mask(value: Any) -> Any:
    """Copy ``value``, replacing anything stored under a sensitive key."""
    if isinstance(value, dict):
        return {
            key: MASK_VALUE if is_sensitive_key(key) else mask(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [mask(item) for item in value]
    return value


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


@dataclass
class LogEntry:
    """One audit log entry."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }

    def to_json(self) -> str:
        return _dump(self.to_dict())

    def to_text(self) -> str:
        line = f"[{self.timestamp}] {self.level.value.upper()} [{self.component}] {self.message}"
        if self.data:
            line = f"{line} {_dump(self.data)}"
        return line


RENDERERS: dict[str, tuple[Callable[[LogEntry], str], ...]] = {
    "json": (LogEntry.to_json,),
    "text": (LogEntry.to_text,),
    "both": (LogEntry.to_json, LogEntry.to_text),
}


class AuditLogger:
    """
    Records audit entries and writes them to a stream.

    Entries are kept in memory as well, so callers and tests can inspect
    what was logged through ``entries``.
    """

    SENSITIVE_KEYS = SENSITIVE_KEYS
    MASK_VALUE = MASK_VALUE

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Where entries are written, sys.stderr by default
            level: Entries below this level are dropped
        """
        if output_format not in RENDERERS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._renderers = RENDERERS[output_format]
        self._stream = output_stream or sys.stderr
        self._level = level
        self._entries: list[LogEntry] = []

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return LEVEL_ORDER[level] >= LEVEL_ORDER[self._level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an entry and write it out.

        Returns:
            The recorded entry, or None when ``level`` is below the threshold
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=mask(data or {}),
        )
        self._entries.append(entry)

        for render in self._renderers:
            self._stream.write(render(entry) + "\n")
        self._stream.flush()
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record an ERROR entry with whatever context is known.

        Register errors contribute their code; the request URL and response
        status are included when given.
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = str(error)
            if isinstance(error, RegistryError):
                data["error_code"] = error.code
        if request_url is not None:
            data["request_url"] = request_url
        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        return mask(data)

    def get_json_output(self, entry: LogEntry) -> str:
        return entry.to_json()

    def get_text_output(self, entry: LogEntry) -> str:
        return entry.to_text()

    def clear_entries(self) -> None:
        self._entries.clear()
