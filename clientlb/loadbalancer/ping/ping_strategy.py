"""
Strategies that apply a ``Ping`` across a server list.

Both strategies return one result per input server, in input order. A
ping that raises counts as dead for the cycle. The parallel strategy also
bounds the whole cycle by a deadline; servers whose ping has not finished
by then count as dead.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Sequence

from clientlb.logging import BalancerWarning, LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.models import Server

from .ping import Ping


class PingStrategy(ABC):
    def __init__(
        self,
        name: str = "default",
        log_stream: LoggerStream | None = None,
    ) -> None:
        self.name = name
        self._log_stream = log_stream or default_logger["clientlb"]

    @abstractmethod
    def ping_servers(
        self,
        ping: Ping | None,
        servers: Sequence[Server],
    ) -> list[bool]:
        ...

    def shutdown(self):
        """Release resources held by the strategy."""

    def _ping_one(self, ping: Ping, server: Server) -> bool:
        try:
            return bool(ping.is_alive(server))

        except Exception as err:
            self._log_stream.log(
                BalancerWarning(
                    message=f"Exception while pinging server {server.id}: {err}",
                    balancer=self.name,
                )
            )

            return False


class SerialPingStrategy(PingStrategy):
    """
    Pings servers one after another on the calling thread.

    A slow ping delays the rest of the cycle. Use ``ParallelPingStrategy``
    when pings can block.
    """

    def ping_servers(
        self,
        ping: Ping | None,
        servers: Sequence[Server],
    ) -> list[bool]:
        if ping is None:
            return [False] * len(servers)

        return [self._ping_one(ping, server) for server in servers]


class ParallelPingStrategy(PingStrategy):
    """
    Pings servers concurrently on a thread pool, waiting at most
    ``max_total_ping_time`` seconds for the whole cycle.
    """

    def __init__(
        self,
        max_total_ping_time: float = 2.0,
        max_workers: int = 16,
        name: str = "default",
        log_stream: LoggerStream | None = None,
    ) -> None:
        super().__init__(name=name, log_stream=log_stream)

        if max_total_ping_time <= 0:
            raise ValueError("max_total_ping_time must be positive")

        self.max_total_ping_time = max_total_ping_time
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="clientlb-ping",
        )

    def ping_servers(
        self,
        ping: Ping | None,
        servers: Sequence[Server],
    ) -> list[bool]:
        if ping is None or not servers:
            return [False] * len(servers)

        futures: list[Future[bool]] = [
            self._executor.submit(self._ping_one, ping, server)
            for server in servers
        ]

        _, not_done = wait(futures, timeout=self.max_total_ping_time)

        results: list[bool] = []
        for server, future in zip(servers, futures):
            if future in not_done:
                future.cancel()
                self._log_stream.log(
                    BalancerWarning(
                        message=(
                            f"Ping of server {server.id} did not finish within "
                            f"{self.max_total_ping_time}s, marking it dead for this cycle"
                        ),
                        balancer=self.name,
                    )
                )

                results.append(False)
                continue

            results.append(future.result())

        return results

    def shutdown(self):
        self._executor.shutdown(wait=False, cancel_futures=True)
