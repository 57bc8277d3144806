from __future__ import annotations

from enum import Enum
from typing import Literal

LogLevelName = Literal[
    "trace",
    "debug",
    "info",
    "warn",
    "warning",
    "error",
    "critical",
]


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def is_at_least(self, threshold: LogLevel) -> bool:
        return self.severity >= threshold.severity

    @classmethod
    def parse(cls, name: str) -> LogLevel | None:
        """Look up a level by case-insensitive name. Unknown names give None."""
        normalized = name.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"

        try:
            return cls(normalized)

        except ValueError:
            return None


_SEVERITY = {level: severity for severity, level in enumerate(LogLevel)}
