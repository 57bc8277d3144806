"""
Synchronous execution of an operation against load balanced servers.

``submit`` picks a server from the balancer, runs the operation against
it and records the outcome in that server's stats. Failures are retried
on the same server up to ``max_retries_on_same_server`` times and then on
up to ``max_retries_on_next_server`` other servers, as the retry handler
allows. Listeners are told about every step.

Usage:
    command = LoadBalancerCommand(
        balancer,
        retry_handler=DefaultLoadBalancerRetryHandler(1, 2, True),
    )
    response = command.submit(lambda server: http_get(server, "/orders"))
"""

from __future__ import annotations

import time
from typing import Any, Callable, Generic, Sequence, TypeVar

from clientlb.logging import BalancerDebug, LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.balancers.load_balancer import LoadBalancer
from clientlb.loadbalancer.exceptions import (
    AbortExecutionError,
    ClientError,
    ClientErrorType,
)
from clientlb.loadbalancer.models import ClientConfig, Server
from clientlb.loadbalancer.stats import ServerStats

from .execution_context import ExecutionContext
from .execution_info import ExecutionInfoTracker
from .listener_invoker import ExecutionContextListenerInvoker, ExecutionListener
from .retry_handler import DefaultLoadBalancerRetryHandler, RetryHandler


T = TypeVar("T")

ServerOperation = Callable[[Server], T]


class LoadBalancerCommand(Generic[T]):
    def __init__(
        self,
        load_balancer: LoadBalancer,
        retry_handler: RetryHandler | None = None,
        client_config: ClientConfig | None = None,
        listeners: Sequence[ExecutionListener[Any, T]] | None = None,
        execution_context: ExecutionContext[Any] | None = None,
        load_balancer_key: Any = None,
        server: Server | None = None,
        log_stream: LoggerStream | None = None,
    ) -> None:
        if retry_handler is None:
            retry_handler = (
                DefaultLoadBalancerRetryHandler.from_config(client_config)
                if client_config is not None
                else DefaultLoadBalancerRetryHandler()
            )

        self._load_balancer = load_balancer
        self._retry_handler = retry_handler
        self._load_balancer_key = load_balancer_key
        self._server = server
        self._log_stream = log_stream or default_logger["clientlb"]

        if listeners and execution_context is None:
            execution_context = ExecutionContext(
                None,
                client_config=client_config,
                retry_handler=retry_handler,
            )

        self._execution_context = execution_context
        self._listener_invoker: ExecutionContextListenerInvoker[Any, T] | None = (
            ExecutionContextListenerInvoker(
                listeners,
                client_config=client_config,
                context=execution_context,
                log_stream=self._log_stream,
            )
            if listeners
            else None
        )

    @property
    def retry_handler(self) -> RetryHandler:
        return self._retry_handler

    @property
    def execution_context(self) -> ExecutionContext[Any] | None:
        return self._execution_context

    def submit(self, operation: ServerOperation[T]) -> T:
        """
        Run ``operation`` against a chosen server, retrying as allowed.

        Raises:
            AbortExecutionError: If a listener aborted the execution.
            ClientError: If no server is available, or retries ran out.
            Exception: The operation's own error when it is not retriable.
        """
        tracker = ExecutionInfoTracker()

        if self._listener_invoker is not None:
            self._listener_invoker.on_execution_start()

        max_retries_same = self._retry_handler.max_retries_on_same_server
        max_retries_next = self._retry_handler.max_retries_on_next_server

        last_error: BaseException | None = None

        try:
            for _ in range(max_retries_next + 1):
                server = self._select_server()
                tracker.set_server(server)

                found, result, last_error = self._run_on_server(
                    operation,
                    server,
                    tracker,
                    max_retries_same,
                )

                if found:
                    return result

                if not self._retry_handler.is_retriable_exception(last_error, False):
                    break

            final_error = self._to_final_error(last_error, tracker, max_retries_same, max_retries_next)

        except AbortExecutionError:
            raise

        except ClientError as err:
            final_error = err

        if self._listener_invoker is not None:
            self._listener_invoker.on_execution_failed(
                final_error,
                tracker.to_final_execution_info(),
            )

        if final_error is last_error:
            raise final_error

        raise final_error from last_error

    def _run_on_server(
        self,
        operation: ServerOperation[T],
        server: Server,
        tracker: ExecutionInfoTracker,
        max_retries_same: int,
    ) -> tuple[bool, T | None, BaseException | None]:
        stats = self._load_balancer.load_balancer_stats.get_single_server_stat(server)
        last_error: BaseException | None = None

        for _ in range(max_retries_same + 1):
            tracker.increment_attempt_count()
            stats.increment_active_requests_count()

            if self._listener_invoker is not None:
                try:
                    self._listener_invoker.on_start_with_server(tracker.to_execution_info())

                except AbortExecutionError:
                    stats.decrement_active_requests_count()
                    raise

            start = time.monotonic()
            try:
                result = operation(server)

            except AbortExecutionError:
                self._record_stats(stats, start, None)
                raise

            except Exception as err:
                self._record_stats(stats, start, err)
                self._log_stream.log(
                    BalancerDebug(
                        message=f"Got error {err!r} when executed on server {server.id}",
                        balancer=self._load_balancer.name,
                    )
                )

                if self._listener_invoker is not None:
                    self._listener_invoker.on_exception_with_server(
                        err,
                        tracker.to_execution_info(),
                    )

                last_error = err
                if not self._retry_handler.is_retriable_exception(err, True):
                    break

                continue

            self._record_stats(stats, start, None)

            if self._listener_invoker is not None:
                self._listener_invoker.on_execution_success(
                    result,
                    tracker.to_execution_info(),
                )

            return True, result, None

        return False, None, last_error

    def _select_server(self) -> Server:
        if self._server is not None:
            return self._server

        server = self._load_balancer.choose_server(self._load_balancer_key)
        if server is None:
            raise ClientError(
                ClientErrorType.GENERAL,
                f"Load balancer does not have available server for client: {self._load_balancer.name}",
            )

        return server

    def _record_stats(
        self,
        stats: ServerStats,
        start: float,
        error: BaseException | None,
    ):
        stats.decrement_active_requests_count()
        stats.increment_num_requests()
        stats.note_response_time((time.monotonic() - start) * 1000)

        if error is not None and self._retry_handler.is_circuit_tripping_exception(error):
            stats.increment_successive_connection_failure_count()
            stats.add_to_failure_count()

        else:
            stats.clear_successive_connection_failure_count()

    def _to_final_error(
        self,
        last_error: BaseException | None,
        tracker: ExecutionInfoTracker,
        max_retries_same: int,
        max_retries_next: int,
    ) -> BaseException:
        if last_error is None:
            return ClientError(ClientErrorType.GENERAL, "Execution failed without an error")

        if max_retries_next > 0 and tracker.server_attempt_count > max_retries_next:
            return ClientError(
                ClientErrorType.NUMBEROF_RETRIES_NEXTSERVER_EXCEEDED,
                f"Number of retries on next server exceeded max {max_retries_next} "
                f"retries, while making a call for: {tracker.server}",
            )

        if max_retries_same > 0 and tracker.attempt_count > max_retries_same:
            return ClientError(
                ClientErrorType.NUMBEROF_RETRIES_EXEEDED,
                f"Number of retries exceeded max {max_retries_same} retries, "
                f"while making a call for: {tracker.server}",
            )

        return last_error
