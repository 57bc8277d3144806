import datetime
import threading
from typing import Any, Generic, TypeVar

import msgspec

from .entry import Entry

T = TypeVar("T", bound=Entry)


def _utc_timestamp() -> str:
    return datetime.datetime.now(datetime.UTC).isoformat()


def _thread_name() -> str:
    return threading.current_thread().name


class Log(msgspec.Struct, Generic[T], kw_only=True):
    """An entry together with the stream, call site and thread that logged it."""

    entry: T
    logger: str
    filename: str
    function_name: str
    line_number: int
    thread_id: int = msgspec.field(default_factory=threading.get_native_id)
    thread_name: str = msgspec.field(default_factory=_thread_name)
    timestamp: str = msgspec.field(default_factory=_utc_timestamp)

    def context(self) -> dict[str, Any]:
        return {
            "logger": self.logger,
            "filename": self.filename,
            "function_name": self.function_name,
            "line_number": self.line_number,
            "thread_id": self.thread_id,
            "thread_name": self.thread_name,
            "timestamp": self.timestamp,
        }
