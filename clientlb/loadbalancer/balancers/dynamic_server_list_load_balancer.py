"""
Load balancer whose server list is refreshed from a ``ServerList``.

Each refresh fetches the candidate servers, passes them through the
optional ``ServerListFilter``, marks them alive and hands them to
``set_servers_list``. A ping cycle then settles their real state.
Refreshes run on a ``ServerListUpdater`` (polling every 30 seconds by
default) and can be triggered directly with ``update_list_of_servers()``.
Overlapping refreshes are dropped.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Sequence

from clientlb.logging import BalancerDebug
from clientlb.loadbalancer.filters import ServerListFilter
from clientlb.loadbalancer.models import Server

from .base_load_balancer import BaseLoadBalancer
from .server_list import ServerList
from .server_list_updater import PollingServerListUpdater, ServerListUpdater


class DynamicServerListLoadBalancer(BaseLoadBalancer):
    def __init__(
        self,
        name: str = "default",
        server_list: ServerList | None = None,
        server_list_filter: ServerListFilter | None = None,
        server_list_updater: ServerListUpdater | None = None,
        refresh_interval: float = 30.0,
        **kwargs,
    ) -> None:
        super().__init__(name=name, **kwargs)

        self._server_list_impl = server_list
        self._filter = server_list_filter
        self._server_list_update_in_progress = threading.Lock()

        if self._filter is not None and self._filter.load_balancer_stats is None:
            self._filter.load_balancer_stats = self.load_balancer_stats

        self._server_list_updater = server_list_updater or PollingServerListUpdater(
            refresh_interval=refresh_interval,
            name=name,
            log_stream=self._log_stream,
        )

        try:
            self._rest_of_init()

        except Exception:
            self.shutdown()
            raise

    @property
    def server_list_impl(self) -> ServerList | None:
        return self._server_list_impl

    @property
    def filter(self) -> ServerListFilter | None:
        return self._filter

    @property
    def server_list_updater(self) -> ServerListUpdater:
        return self._server_list_updater

    def set_server_list_impl(self, server_list: ServerList | None):
        self._server_list_impl = server_list

    def set_filter(self, server_list_filter: ServerListFilter | None):
        if server_list_filter is not None and server_list_filter.load_balancer_stats is None:
            server_list_filter.load_balancer_stats = self.load_balancer_stats

        self._filter = server_list_filter

    def set_servers_list(self, servers: Sequence[Server | str | None]) -> bool:
        list_changed = super().set_servers_list(servers)

        servers_in_zones: dict[str, list[Server]] = defaultdict(list)
        for server in self.get_all_servers():
            self.load_balancer_stats.get_single_server_stat(server)
            servers_in_zones[server.zone.lower()].append(server)

        self.set_server_list_for_zones(servers_in_zones)

        return list_changed

    def set_server_list_for_zones(self, zone_servers: dict[str, list[Server]]):
        self.load_balancer_stats.update_zone_server_mapping(zone_servers)

    def update_list_of_servers(self):
        servers: list[Server] = []

        if self._server_list_impl is not None:
            servers = self._server_list_impl.get_updated_list_of_servers()
            self._log_stream.log(
                BalancerDebug(
                    message=f"List of servers obtained from discovery: {[server.id for server in servers]}",
                    balancer=self.name,
                )
            )

            if self._filter is not None:
                servers = self._filter.get_filtered_list_of_servers(servers)
                self._log_stream.log(
                    BalancerDebug(
                        message=f"Filtered list of servers: {[server.id for server in servers]}",
                        balancer=self.name,
                    )
                )

        self.update_all_server_list(servers)

    def update_all_server_list(self, servers: Sequence[Server]):
        if not self._server_list_update_in_progress.acquire(blocking=False):
            return

        try:
            for server in servers:
                server.is_alive = True

            if not self.set_servers_list(servers):
                self.force_quick_ping()

        finally:
            self._server_list_update_in_progress.release()

    def stop_server_list_refreshing(self):
        self._server_list_updater.stop()

    def get_last_update(self) -> float | None:
        return self._server_list_updater.get_last_update()

    def shutdown(self):
        self.stop_server_list_refreshing()
        super().shutdown()

    def _rest_of_init(self):
        self._server_list_updater.start(self.update_list_of_servers)
        self.update_list_of_servers()
