"""
Retry policies.

A ``RetryHandler`` answers two questions about an error raised while
talking to a server: may the call be retried (on the same server or on
another one), and should the error count against the server's circuit
breaker. Errors are matched against their whole ``__cause__`` /
``__context__`` chain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from clientlb.loadbalancer.exceptions import ClientError, ClientErrorType
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey


MAX_CAUSE_DEPTH = 10


def is_present_as_cause(
    error: BaseException | None,
    error_types: Sequence[type[BaseException]],
) -> bool:
    seen: set[int] = set()
    depth = 0

    while error is not None and depth < MAX_CAUSE_DEPTH and id(error) not in seen:
        if isinstance(error, tuple(error_types)):
            return True

        seen.add(id(error))
        error = error.__cause__ or error.__context__
        depth += 1

    return False


class RetryHandler(ABC):
    @abstractmethod
    def is_retriable_exception(self, error: BaseException, same_server: bool) -> bool:
        ...

    @abstractmethod
    def is_circuit_tripping_exception(self, error: BaseException) -> bool:
        ...

    @property
    @abstractmethod
    def max_retries_on_same_server(self) -> int:
        ...

    @property
    @abstractmethod
    def max_retries_on_next_server(self) -> int:
        ...


class DefaultLoadBalancerRetryHandler(RetryHandler):
    """
    Retries connection failures and timeouts.

    With retries enabled, any error may be retried on another server, but
    only connection errors and timeouts on the same server.
    """

    retriable: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError)
    circuit_related: tuple[type[BaseException], ...] = (OSError, TimeoutError)

    def __init__(
        self,
        retry_same_server: int = 0,
        retry_next_server: int = 0,
        retry_enabled: bool = False,
    ) -> None:
        self._retry_same_server = retry_same_server
        self._retry_next_server = retry_next_server
        self.retry_enabled = retry_enabled

    @classmethod
    def from_config(cls, config: ClientConfig) -> DefaultLoadBalancerRetryHandler:
        return cls(
            retry_same_server=config.get(ClientConfigKey.MAX_AUTO_RETRIES),
            retry_next_server=config.get(ClientConfigKey.MAX_AUTO_RETRIES_NEXT_SERVER),
            retry_enabled=config.get(ClientConfigKey.OK_TO_RETRY_ON_ALL_OPERATIONS),
        )

    @property
    def max_retries_on_same_server(self) -> int:
        return self._retry_same_server

    @property
    def max_retries_on_next_server(self) -> int:
        return self._retry_next_server

    def is_retriable_exception(self, error: BaseException, same_server: bool) -> bool:
        if not self.retry_enabled:
            return False

        if same_server:
            return is_present_as_cause(error, self.retriable)

        return True

    def is_circuit_tripping_exception(self, error: BaseException) -> bool:
        return is_present_as_cause(error, self.circuit_related)


class RequestSpecificRetryHandler(RetryHandler):
    """
    Per-request retry decisions layered over a fallback handler.

    Retry counts come from ``request_config`` when it sets them, otherwise
    from the fallback. A server-throttled ``ClientError`` is retried on
    another server only.
    """

    connection_related: tuple[type[BaseException], ...] = (ConnectionError,)

    def __init__(
        self,
        ok_to_retry_on_connect_errors: bool,
        ok_to_retry_on_all_errors: bool,
        base_retry_handler: RetryHandler | None = None,
        request_config: ClientConfig | None = None,
    ) -> None:
        self.ok_to_retry_on_connect_errors = ok_to_retry_on_connect_errors
        self.ok_to_retry_on_all_errors = ok_to_retry_on_all_errors
        self._fallback = base_retry_handler or DefaultLoadBalancerRetryHandler()

        self._retry_same_server = self._fallback.max_retries_on_same_server
        self._retry_next_server = self._fallback.max_retries_on_next_server

        if request_config is not None:
            if request_config.contains(ClientConfigKey.MAX_AUTO_RETRIES):
                self._retry_same_server = request_config.get(ClientConfigKey.MAX_AUTO_RETRIES)

            if request_config.contains(ClientConfigKey.MAX_AUTO_RETRIES_NEXT_SERVER):
                self._retry_next_server = request_config.get(
                    ClientConfigKey.MAX_AUTO_RETRIES_NEXT_SERVER
                )

    @property
    def max_retries_on_same_server(self) -> int:
        return self._retry_same_server

    @property
    def max_retries_on_next_server(self) -> int:
        return self._retry_next_server

    def is_connection_exception(self, error: BaseException) -> bool:
        return is_present_as_cause(error, self.connection_related)

    def is_retriable_exception(self, error: BaseException, same_server: bool) -> bool:
        if self.ok_to_retry_on_all_errors:
            return True

        if isinstance(error, ClientError):
            if error.error_type == ClientErrorType.SERVER_THROTTLED:
                return not same_server

            return False

        return self.ok_to_retry_on_connect_errors and self.is_connection_exception(error)

    def is_circuit_tripping_exception(self, error: BaseException) -> bool:
        return self._fallback.is_circuit_tripping_exception(error)
