"""
Per-request execution context.

A context carries the request, the request-level and client-level configs,
the retry handler and a free-form property map. Each execution listener
gets its own child context, created lazily and exactly once per listener
key. Children share the parent's request and configs but keep their own
properties, and cannot have children of their own.

Usage:
    context = ExecutionContext(request, request_config, client_config)
    child = context.get_child_context(listener)
    child.global_context is context  # True
"""

from __future__ import annotations

import threading
from typing import Any, Generic, Hashable, TypeVar

from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey

from .retry_handler import RetryHandler


T = TypeVar("T")


class ExecutionContext(Generic[T]):
    def __init__(
        self,
        request: T,
        request_config: ClientConfig | None = None,
        client_config: ClientConfig | None = None,
        retry_handler: RetryHandler | None = None,
        parent: ExecutionContext[T] | None = None,
    ) -> None:
        self._request = request
        self._request_config = request_config
        self._client_config = client_config
        self._retry_handler = retry_handler
        self._parent = parent

        self._properties: dict[str, Any] = {}
        self._properties_lock = threading.Lock()

        self._children: dict[Hashable, ExecutionContext[T]] | None = (
            {} if parent is None else None
        )
        self._children_lock = threading.Lock()

    @property
    def request(self) -> T:
        return self._request

    @property
    def request_config(self) -> ClientConfig | None:
        return self._request_config

    @property
    def client_config(self) -> ClientConfig | None:
        return self._client_config

    @property
    def retry_handler(self) -> RetryHandler | None:
        return self._retry_handler

    @retry_handler.setter
    def retry_handler(self, retry_handler: RetryHandler | None):
        self._retry_handler = retry_handler

    @property
    def parent(self) -> ExecutionContext[T] | None:
        return self._parent

    @property
    def global_context(self) -> ExecutionContext[T]:
        """The root context: the parent for a child, otherwise ``self``."""
        return self._parent if self._parent is not None else self

    def get_child_context(self, key: Hashable) -> ExecutionContext[T] | None:
        """
        Return the child context for ``key``, creating it on first use.

        Concurrent first calls for the same key all receive the same child.
        Children return ``None``.
        """
        if self._children is None:
            return None

        child = self._children.get(key)
        if child is not None:
            return child

        with self._children_lock:
            return self._children.setdefault(
                key,
                ExecutionContext(
                    self._request,
                    request_config=self._request_config,
                    client_config=self._client_config,
                    retry_handler=self._retry_handler,
                    parent=self,
                ),
            )

    def get_client_property(self, key: ClientConfigKey | str, default: Any = None) -> Any:
        """
        Look ``key`` up in the request config first, then the client config.
        """
        if self._request_config is not None and self._request_config.contains(key):
            return self._request_config.get(key)

        if self._client_config is not None:
            return self._client_config.get(key, default)

        if isinstance(key, ClientConfigKey) and default is None:
            return key.default

        return default

    def get(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    def put(self, name: str, value: Any):
        with self._properties_lock:
            self._properties[name] = value

    def remove(self, name: str) -> Any:
        with self._properties_lock:
            return self._properties.pop(name, None)

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(request={self._request!r}, "
            f"child={self._parent is not None}, "
            f"properties={self._properties!r})"
        )
