"""
Health check SPI.

A ``Ping`` decides whether one server is alive. Protocol-specific checks
(HTTP health endpoints, TCP connects) are provided by callers; the
implementations here cover the degenerate cases.
"""

from abc import ABC, abstractmethod

from clientlb.loadbalancer.models import Server


class Ping(ABC):
    """Decides whether a server is alive."""

    @abstractmethod
    def is_alive(self, server: Server) -> bool:
        """
        Check one server.

        Implementations may raise; the ping cycle treats an error as a
        dead server for that cycle.
        """
        ...


class NoOpPing(Ping):
    """Reports every server alive. Lets the balancer skip ping cycles."""

    def is_alive(self, server: Server) -> bool:
        return True


class DummyPing(NoOpPing):
    """Placeholder ping used when no health check is configured."""


class PingConstant(Ping):
    """Reports a fixed result for every server."""

    def __init__(self, constant: bool = True) -> None:
        self.constant = constant

    def is_alive(self, server: Server) -> bool:
        return self.constant


def can_skip_ping(ping: Ping | None) -> bool:
    """
    True when pinging cannot change anything, so every server can be
    marked alive directly.
    """
    return ping is None or isinstance(ping, NoOpPing)
