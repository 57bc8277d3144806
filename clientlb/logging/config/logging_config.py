import threading
from typing import Literal

import msgspec
import msgspec.structs

from clientlb.logging.models import LogLevel, LogLevelName

from .stream_type import StreamType

LogOutput = Literal["stdout", "stderr", "file"]


class LoggingSettings(msgspec.Struct, frozen=True):
    level: LogLevel = LogLevel.INFO
    output: StreamType = StreamType.STDOUT
    directory: str | None = None
    disabled: frozenset[str] = msgspec.field(default_factory=frozenset)


class _SettingsHolder:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.current = LoggingSettings()


# Ping and refresh threads log too, so settings are process-wide rather
# than per-context.
_settings = _SettingsHolder()


class LoggingConfig:
    """
    View over the process-wide logging settings shared by every stream.

    Any instance reads and changes the same settings. ``reset()``
    restores the defaults.
    """

    def update(
        self,
        log_directory: str | None = None,
        log_level: LogLevelName | None = None,
        log_output: LogOutput | None = None,
    ):
        changes = {}

        if log_directory:
            changes["directory"] = log_directory

        if log_level and (level := LogLevel.parse(log_level)):
            changes["level"] = level

        if log_output:
            changes["output"] = StreamType(log_output)

        self._replace(**changes)

    def disable(self, logger_name: str):
        with _settings.lock:
            _settings.current = msgspec.structs.replace(
                _settings.current,
                disabled=_settings.current.disabled | {logger_name},
            )

    def enable(self, logger_name: str):
        with _settings.lock:
            _settings.current = msgspec.structs.replace(
                _settings.current,
                disabled=_settings.current.disabled - {logger_name},
            )

    def reset(self):
        with _settings.lock:
            _settings.current = LoggingSettings()

    def enabled(self, logger_name: str, log_level: LogLevel) -> bool:
        settings = _settings.current
        return logger_name not in settings.disabled and log_level.is_at_least(
            settings.level
        )

    @property
    def settings(self) -> LoggingSettings:
        return _settings.current

    @property
    def level(self) -> LogLevel:
        return _settings.current.level

    @property
    def output(self) -> StreamType:
        return _settings.current.output

    @property
    def directory(self) -> str | None:
        return _settings.current.directory

    def _replace(self, **changes):
        if not changes:
            return

        with _settings.lock:
            _settings.current = msgspec.structs.replace(_settings.current, **changes)
