"""
Connection priming.

New servers can be warmed up before they receive traffic: each server is
handed to a ``PrimeConnection`` on a worker pool, retrying up to
``max_retries`` times. When the attempt finishes, successful or not, the
listener is told, and the balancer marks the server ready to serve.
"""

import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Protocol, Sequence

from clientlb.logging import BalancerDebug, BalancerWarning, LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server


class PrimeConnection(ABC):
    @abstractmethod
    def connect(self, server: Server, uri_path: str) -> bool:
        """Open a connection to ``server``. Return True on success."""
        ...


class PrimeConnectionListener(Protocol):
    def prime_completed(self, server: Server, error: Exception | None) -> None:
        ...


@dataclass(slots=True, frozen=True)
class PrimeConnectionsResult:
    total: int
    """Servers submitted for priming."""

    succeeded: int
    """Servers primed successfully within the deadline."""

    elapsed_seconds: float
    """Wall time spent waiting."""

    @property
    def failed(self) -> int:
        return self.total - self.succeeded


class PrimeConnections:
    def __init__(
        self,
        name: str,
        connector: PrimeConnection,
        config: ClientConfig | None = None,
        log_stream: LoggerStream | None = None,
    ) -> None:
        if config is None:
            config = ClientConfig(client_name=name)

        self.name = name
        self._connector = connector
        self._log_stream = log_stream or default_logger["clientlb"]

        self.uri_path: str = config.get(ClientConfigKey.PRIME_CONNECTIONS_URI)
        self.max_retries: int = config.get(ClientConfigKey.MAX_RETRIES_PER_SERVER_PRIME_CONNECTION)
        self.max_total_time_to_prime: float = config.get(
            ClientConfigKey.MAX_TOTAL_TIME_TO_PRIME_CONNECTIONS
        )

        self._executor = ThreadPoolExecutor(
            max_workers=config.get(ClientConfigKey.PRIME_CONNECTIONS_THREADS),
            thread_name_prefix=f"clientlb-prime-{name}",
        )
        self._shutdown = threading.Event()

    def prime_connections_async(
        self,
        servers: Sequence[Server],
        listener: PrimeConnectionListener | None = None,
    ) -> list[Future[bool]]:
        if self._shutdown.is_set():
            return []

        return [
            self._executor.submit(self._try_connect, server, listener)
            for server in servers
        ]

    def prime_connections(self, servers: Sequence[Server]) -> PrimeConnectionsResult:
        """
        Prime ``servers`` and wait up to ``max_total_time_to_prime``
        seconds for them to finish.
        """
        start = time.monotonic()
        futures = self.prime_connections_async(servers)

        done, _ = wait(futures, timeout=self.max_total_time_to_prime)
        succeeded = sum(
            1 for future in done
            if future.exception() is None and future.result()
        )

        result = PrimeConnectionsResult(
            total=len(servers),
            succeeded=succeeded,
            elapsed_seconds=time.monotonic() - start,
        )

        self._log_stream.log(
            BalancerDebug(
                message=(
                    f"Primed {result.succeeded}/{result.total} connections "
                    f"in {result.elapsed_seconds:.3f}s"
                ),
                balancer=self.name,
            )
        )

        return result

    def shutdown(self):
        self._shutdown.set()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _try_connect(
        self,
        server: Server,
        listener: PrimeConnectionListener | None,
    ) -> bool:
        last_error: Exception | None = None
        success = False

        try:
            for attempt in range(self.max_retries + 1):
                if self._shutdown.is_set():
                    break

                try:
                    success = self._connector.connect(server, self.uri_path)
                    last_error = None

                except Exception as err:
                    last_error = err
                    success = False

                if success or attempt == self.max_retries:
                    break

                time.sleep(min(0.1 * (attempt + 1), 1.0))

            if not success:
                self._log_stream.log(
                    BalancerWarning(
                        message=(
                            f"Priming connection to {server.id} failed"
                            + (f": {last_error}" if last_error else "")
                        ),
                        balancer=self.name,
                    )
                )

            return success

        finally:
            if listener is not None:
                listener.prime_completed(server, last_error)
