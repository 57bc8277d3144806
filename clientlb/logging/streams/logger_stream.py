"""
Entry streams.

A ``LoggerStream`` renders entries as text lines on the console, or
appends them as JSON ``Log`` records to a file. Entries go to a file when
the stream was created with a file or directory, when ``path`` is passed
to ``log()``, or when the process output is set to ``file``.

Usage:
    stream = LoggerStream(name="clientlb")
    stream.log(BalancerInfo(message="ready", balancer="orders"))
    stream.log(
        BalancerError(message="ping failed", balancer="orders"),
        path="logs/orders.json",
    )
"""

from __future__ import annotations

import os
import pathlib
import sys
import threading
from typing import Any, BinaryIO, Callable, NamedTuple, TypeVar

import msgspec

from clientlb.logging.config import LoggingConfig, StreamType
from clientlb.logging.models import Entry, Log, LogLevel

T = TypeVar("T", bound=Entry)

EntryModel = tuple[type[Entry], dict[str, Any]]

DEFAULT_TEMPLATE = (
    "{timestamp} {level} [{logger}] {thread_name} "
    "{filename}:{line_number} {function_name}() - {message}"
)
ERROR_TEMPLATE = (
    "{timestamp} ERROR [{logger}] dropped {level} entry from "
    "{filename}:{line_number} - {error}"
)
DEFAULT_LOGFILE = "logs.json"


class LogTarget(NamedTuple):
    directory: str | None = None
    filename: str | None = None

    @classmethod
    def from_path(cls, path: str | None) -> LogTarget:
        """A path with a suffix names a file. Anything else names a directory."""
        if not path:
            return cls()

        logfile_path = pathlib.Path(path).absolute()
        if logfile_path.suffix:
            return cls(str(logfile_path.parent), logfile_path.name)

        return cls(str(logfile_path), None)

    @property
    def is_set(self) -> bool:
        return bool(self.directory or self.filename)


class LoggerStream:
    """
    Writes entries for one named logger. Safe to share between threads.
    """

    def __init__(
        self,
        name: str = "default",
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
        models: dict[str, EntryModel] | None = None,
    ) -> None:
        self._name = name
        self._template = template or DEFAULT_TEMPLATE
        self._target = LogTarget(directory, filename)

        self._models: dict[str, EntryModel] = {
            "default": (Entry, {"level": LogLevel.INFO}),
        }
        if models:
            self._models.update(models)

        self._config = LoggingConfig()
        self._console_lock = threading.Lock()
        self._files_lock = threading.Lock()
        self._files: dict[str, BinaryIO] = {}
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    def log(
        self,
        entry: T,
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        self._emit(
            entry,
            self._find_caller(),
            template=template,
            path=path,
            filter=filter,
        )

    def log_message(self, message: str, model_name: str | None = None):
        """Log a plain message using a registered entry model."""
        model, defaults = self._models.get(
            model_name or "default",
            self._models["default"],
        )

        self._emit(model(message=message, **defaults), self._find_caller())

    def close(self):
        with self._files_lock:
            for logfile in self._files.values():
                if not logfile.closed:
                    logfile.close()

            self._files.clear()
            self._closed = True

    def _emit(
        self,
        entry: T,
        caller: tuple[str, int, str],
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        if not self._config.enabled(self._name, entry.level):
            return

        if filter is not None and not filter(entry):
            return

        filename, line_number, function_name = caller
        record = Log(
            entry=entry,
            logger=self._name,
            filename=filename,
            function_name=function_name,
            line_number=line_number,
        )

        target = LogTarget.from_path(path)
        if not target.is_set:
            target = self._target

        if target.is_set or self._config.output == StreamType.FILE:
            self._write_file(record, target)

        else:
            self._write_console(record, template or self._template)

    def _write_console(self, record: Log[T], template: str):
        try:
            line = record.entry.render(template, **record.context())

        except (KeyError, IndexError, ValueError) as err:
            self._report_error(record, err)
            return

        console = sys.stderr if self._config.output == StreamType.STDERR else sys.stdout

        with self._console_lock:
            console.write(line + "\n")
            console.flush()

    def _write_file(self, record: Log[T], target: LogTarget):
        try:
            logfile_path = self._to_logfile_path(target)
            encoded = msgspec.json.encode(record)

            with self._files_lock:
                logfile = self._files.get(logfile_path)
                if logfile is None or logfile.closed:
                    os.makedirs(os.path.dirname(logfile_path), exist_ok=True)
                    logfile = open(logfile_path, "ab")
                    self._files[logfile_path] = logfile
                    self._closed = False

                logfile.write(encoded + b"\n")
                logfile.flush()

        except (OSError, ValueError, msgspec.EncodeError) as err:
            self._report_error(record, err)

    def _to_logfile_path(self, target: LogTarget) -> str:
        logfile = pathlib.Path(target.filename or DEFAULT_LOGFILE)
        if logfile.suffix != ".json":
            raise ValueError(f"log file must be JSON, got {logfile.name}")

        directory = (
            target.directory
            or self._config.directory
            or os.path.join(os.getcwd(), "logs")
        )

        return os.path.join(directory, logfile.name)

    def _report_error(self, record: Log[T], err: Exception):
        if sys.stderr.closed:
            return

        sys.stderr.write(
            ERROR_TEMPLATE.format(
                level=record.entry.level.value,
                error=err,
                **record.context(),
            )
            + "\n"
        )

    def _find_caller(self) -> tuple[str, int, str]:
        # Two frames up: past this method and the public log method.
        frame = sys._getframe(2)
        code = frame.f_code

        return code.co_filename, frame.f_lineno, code.co_name
