"""
Execution listeners and their invoker.

Each listener receives its own child of the execution context. Errors
raised by listeners are logged and swallowed, except ``AbortExecutionError``
raised from ``on_execution_start`` or ``on_start_with_server``, which
stops the execution.

A listener can be switched off per client by setting
``listener.<ClassName>.disabled`` to true in the client config.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Generic, Sequence, TypeVar

from clientlb.logging import BalancerError, LoggerStream
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.exceptions import AbortExecutionError
from clientlb.loadbalancer.models import ClientConfig

from .execution_context import ExecutionContext
from .execution_info import ExecutionInfo


I = TypeVar("I")
O = TypeVar("O")


class ExecutionListener(Generic[I, O]):
    """
    Hooks around a load balanced execution. Override the ones you need.
    """

    def on_execution_start(self, context: ExecutionContext[I]) -> None:
        pass

    def on_start_with_server(self, context: ExecutionContext[I], info: ExecutionInfo) -> None:
        pass

    def on_exception_with_server(
        self,
        context: ExecutionContext[I],
        error: BaseException,
        info: ExecutionInfo,
    ) -> None:
        pass

    def on_execution_success(
        self,
        context: ExecutionContext[I],
        response: O,
        info: ExecutionInfo,
    ) -> None:
        pass

    def on_execution_failed(
        self,
        context: ExecutionContext[I],
        final_error: BaseException,
        info: ExecutionInfo,
    ) -> None:
        pass


class ExecutionContextListenerInvoker(Generic[I, O]):
    def __init__(
        self,
        listeners: Sequence[ExecutionListener[I, O]],
        client_config: ClientConfig | None = None,
        context: ExecutionContext[I] | None = None,
        log_stream: LoggerStream | None = None,
    ) -> None:
        self._listeners = tuple(listeners)
        self._client_config = client_config
        self._context = context
        self._log_stream = log_stream or default_logger["clientlb"]

        self._disabled_cache: dict[str, bool] = {}
        self._disabled_cache_lock = threading.Lock()

    @property
    def listeners(self) -> tuple[ExecutionListener[I, O], ...]:
        return self._listeners

    def on_execution_start(self, context: ExecutionContext[I] | None = None):
        self._invoke(
            "on_execution_start",
            context,
            lambda listener, child: listener.on_execution_start(child),
            abortable=True,
        )

    def on_start_with_server(
        self,
        info: ExecutionInfo,
        context: ExecutionContext[I] | None = None,
    ):
        self._invoke(
            "on_start_with_server",
            context,
            lambda listener, child: listener.on_start_with_server(child, info),
            abortable=True,
        )

    def on_exception_with_server(
        self,
        error: BaseException,
        info: ExecutionInfo,
        context: ExecutionContext[I] | None = None,
    ):
        self._invoke(
            "on_exception_with_server",
            context,
            lambda listener, child: listener.on_exception_with_server(child, error, info),
        )

    def on_execution_success(
        self,
        response: O,
        info: ExecutionInfo,
        context: ExecutionContext[I] | None = None,
    ):
        self._invoke(
            "on_execution_success",
            context,
            lambda listener, child: listener.on_execution_success(child, response, info),
        )

    def on_execution_failed(
        self,
        final_error: BaseException,
        info: ExecutionInfo,
        context: ExecutionContext[I] | None = None,
    ):
        self._invoke(
            "on_execution_failed",
            context,
            lambda listener, child: listener.on_execution_failed(child, final_error, info),
        )

    def is_listener_disabled(self, listener: ExecutionListener[I, O]) -> bool:
        if self._client_config is None:
            return False

        class_name = type(listener).__name__
        with self._disabled_cache_lock:
            cached = self._disabled_cache.get(class_name)
            if cached is not None:
                return cached

            value = self._client_config.get(f"listener.{class_name}.disabled")
            disabled = (
                value.strip().lower() == "true" if isinstance(value, str) else bool(value)
            )

            self._disabled_cache[class_name] = disabled
            return disabled

    def _invoke(
        self,
        hook_name: str,
        context: ExecutionContext[I] | None,
        call: Callable[[ExecutionListener[I, O], ExecutionContext[I] | None], Any],
        abortable: bool = False,
    ):
        context = context or self._context

        for listener in self._listeners:
            if self.is_listener_disabled(listener):
                continue

            child = context.get_child_context(listener) if context is not None else None

            try:
                call(listener, child)

            except AbortExecutionError:
                if abortable:
                    raise

                self._log_error(hook_name, listener, "abort ignored outside start hooks")

            except Exception as err:
                self._log_error(hook_name, listener, str(err))

    def _log_error(self, hook_name: str, listener: ExecutionListener[I, O], reason: str):
        self._log_stream.log(
            BalancerError(
                message=f"Error invoking listener {type(listener).__name__}.{hook_name}: {reason}",
                balancer=(
                    self._client_config.client_name
                    if self._client_config is not None
                    else "default"
                ),
            )
        )
