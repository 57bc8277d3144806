"""
Periodic refresh of a dynamic balancer's server list.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from clientlb.logging import BalancerInfo, BalancerWarning, LoggerStream
from clientlb.logging import logger as default_logger


UpdateAction = Callable[[], None]


class ServerListUpdater(ABC):
    @abstractmethod
    def start(self, update_action: UpdateAction) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @abstractmethod
    def get_last_update(self) -> float | None:
        """Wall clock time of the last successful update, if any."""
        ...

    @abstractmethod
    def get_duration_since_last_update_ms(self) -> float:
        ...

    @abstractmethod
    def get_num_missed_cycles(self) -> int:
        ...


class PollingServerListUpdater(ServerListUpdater):
    """
    Runs the update action on a daemon thread, first after
    ``initial_delay`` seconds and then every ``refresh_interval`` seconds.

    Failures of the action are logged and the next cycle runs as planned.
    """

    def __init__(
        self,
        initial_delay: float = 1.0,
        refresh_interval: float = 30.0,
        name: str = "default",
        log_stream: LoggerStream | None = None,
    ) -> None:
        if refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")

        self.initial_delay = initial_delay
        self.refresh_interval = refresh_interval
        self.name = name
        self._log_stream = log_stream or default_logger["clientlb"]

        self._active = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_updated: float | None = None

    @property
    def is_active(self) -> bool:
        return self._active.locked()

    def start(self, update_action: UpdateAction) -> None:
        if not self._active.acquire(blocking=False):
            self._log_stream.log(
                BalancerInfo(
                    message="Server list updater already active",
                    balancer=self.name,
                )
            )
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(update_action,),
            name=f"clientlb-serverlist-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        if not self._active.locked():
            return

        self._stop_event.set()
        thread = self._thread
        self._thread = None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.refresh_interval)

        self._active.release()

    def get_last_update(self) -> float | None:
        return self._last_updated

    def get_duration_since_last_update_ms(self) -> float:
        if self._last_updated is None:
            return 0.0

        return (time.time() - self._last_updated) * 1000

    def get_num_missed_cycles(self) -> int:
        if self._last_updated is None:
            return 0

        return int(
            (time.time() - self._last_updated) // self.refresh_interval
        )

    def _run(self, update_action: UpdateAction):
        delay = self.initial_delay
        while not self._stop_event.wait(delay):
            delay = self.refresh_interval

            try:
                update_action()
                self._last_updated = time.time()

            except Exception as err:
                self._log_stream.log(
                    BalancerWarning(
                        message=f"Failed one update cycle: {err}",
                        balancer=self.name,
                    )
                )
