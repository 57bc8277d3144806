"""
Exceptions raised by the load balancer subsystem.

Selection and health-check failures are never raised to callers; they are
logged and surface as ``None`` or a dead server. Only construction failures
and explicit execution aborts propagate.
"""

from enum import Enum


class ClientLoadBalancerError(Exception):
    """Base class for load balancer errors."""


class LoadBalancerInitError(ClientLoadBalancerError):
    """Raised when a load balancer or one of its strategies cannot be built."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to initialize load balancer '{name}': {reason}")


class UnknownStrategyError(ClientLoadBalancerError):
    """Raised when a strategy key has no registered factory."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"No {kind} registered under '{key}'")


class AbortExecutionError(ClientLoadBalancerError):
    """Raised by an execution listener to stop the execution from proceeding."""


class ClientErrorType(Enum):
    GENERAL = "general"
    CONFIGURATION = "configuration"
    NUMBEROF_RETRIES_EXEEDED = "numberof_retries_exceeded"
    NUMBEROF_RETRIES_NEXTSERVER_EXCEEDED = "numberof_retries_nextserver_exceeded"
    SOCKET_TIMEOUT_EXCEPTION = "socket_timeout_exception"
    READ_TIMEOUT_EXCEPTION = "read_timeout_exception"
    UNKNOWN_HOST_EXCEPTION = "unknown_host_exception"
    CONNECT_EXCEPTION = "connect_exception"
    CLIENT_THROTTLED = "client_throttled"
    SERVER_THROTTLED = "server_throttled"
    NO_ROUTE_TO_HOST_EXCEPTION = "no_route_to_host_exception"
    CACHE_MISSING = "cache_missing"


class ClientError(ClientLoadBalancerError):
    """An error reported by a client, tagged with a ``ClientErrorType``."""

    def __init__(
        self,
        error_type: ClientErrorType = ClientErrorType.GENERAL,
        message: str | None = None,
    ) -> None:
        self.error_type = error_type
        self.message = message or error_type.value
        super().__init__(self.message)
