"""
Base load balancer with a health-checked server pool.

Holds two immutable server tuples, ``all`` and ``up``, each swapped
wholesale under its own lock. Callers ask for a server through
``choose_server``, which delegates to the configured ``Rule``. A daemon
thread periodically pings every known server through the configured
``PingStrategy``, refreshes the up list and notifies status listeners.

Ping cycle:
    1. Drop the cycle if another one is already running.
    2. Snapshot the all-server list under its lock.
    3. Ping every server through the strategy.
    4. Update each server's alive flag, collecting changed and up servers.
    5. Swap in the new up list under its lock.
    6. Notify status listeners with the changed servers.
    7. Clear the in-progress flag, even when a step above failed.

Usage:
    balancer = BaseLoadBalancer(
        name="orders",
        rule=RoundRobinRule(),
        ping=MyHttpPing(),
        ping_interval=10,
    )
    balancer.add_servers(["10.0.0.1:8080", "10.0.0.2:8080"])
    server = balancer.choose_server()
    ...
    balancer.shutdown()
"""

from __future__ import annotations

import threading
from typing import Any, Sequence

from clientlb.logging import (
    BalancerDebug,
    BalancerError,
    BalancerInfo,
    BalancerWarning,
    LoggerStream,
    ServerStatusInfo,
)
from clientlb.logging import logger as default_logger
from clientlb.loadbalancer.metrics import MetricsSink, NullMetricsSink
from clientlb.loadbalancer.metrics.metrics_sink import choose_server_counter
from clientlb.loadbalancer.models import UNKNOWN_ZONE, Server, ServerGroup
from clientlb.loadbalancer.ping import (
    Ping,
    PingStrategy,
    SerialPingStrategy,
    can_skip_ping,
)
from clientlb.loadbalancer.priming import PrimeConnections
from clientlb.loadbalancer.rules import RoundRobinRule, Rule
from clientlb.loadbalancer.stats import LoadBalancerStats

from .listeners import ServerListChangeListener, ServerStatusChangeListener
from .load_balancer import LoadBalancer


DEFAULT_PING_INTERVAL_SECONDS = 30
DEFAULT_MAX_TOTAL_PING_TIME_SECONDS = 2


class BaseLoadBalancer(LoadBalancer):
    def __init__(
        self,
        name: str = "default",
        rule: Rule | None = None,
        ping: Ping | None = None,
        ping_strategy: PingStrategy | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
        ping_interval: float = DEFAULT_PING_INTERVAL_SECONDS,
        max_total_ping_time: float = DEFAULT_MAX_TOTAL_PING_TIME_SECONDS,
        prime_connections: PrimeConnections | None = None,
        enable_prime_connections: bool = False,
        metrics_sink: MetricsSink | None = None,
        log_stream: LoggerStream | None = None,
    ) -> None:
        self._name = name
        self._log_stream = log_stream or default_logger["clientlb"]
        self._metrics_sink = metrics_sink or NullMetricsSink()
        self._choose_server_counter = choose_server_counter(name)

        self._all_server_list: tuple[Server, ...] = ()
        self._all_server_lock = threading.RLock()
        self._up_server_list: tuple[Server, ...] = ()
        self._up_server_lock = threading.RLock()

        self._ping_in_progress = threading.Lock()
        self._ping_task_lock = threading.Lock()
        self._ping_thread: threading.Thread | None = None
        self._ping_stop: threading.Event | None = None

        self._listeners_lock = threading.Lock()
        self._change_listeners: tuple[ServerListChangeListener, ...] = ()
        self._status_listeners: tuple[ServerStatusChangeListener, ...] = ()

        self._ping_interval = ping_interval if ping_interval > 0 else DEFAULT_PING_INTERVAL_SECONDS
        self._max_total_ping_time = (
            max_total_ping_time if max_total_ping_time > 0 else DEFAULT_MAX_TOTAL_PING_TIME_SECONDS
        )

        self._ping = ping
        self._ping_strategy = ping_strategy or SerialPingStrategy(
            name=name,
            log_stream=self._log_stream,
        )
        self._load_balancer_stats = load_balancer_stats or LoadBalancerStats(name)

        self._prime_connections = prime_connections
        self._enable_prime_connections = enable_prime_connections
        self._shutdown = False

        self._rule: Rule | None = None
        self.set_rule(rule)

        self._metrics_sink.register(self._name, self)
        self._setup_ping_task()

        self._log_stream.log(
            BalancerInfo(
                message=(
                    f"Load balancer initialized with rule {type(self._rule).__name__}, "
                    f"ping {type(self._ping).__name__}, "
                    f"ping interval {self._ping_interval}s"
                ),
                balancer=self._name,
            )
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def name(self) -> str:
        return self._name

    @property
    def rule(self) -> Rule | None:
        return self._rule

    @property
    def ping(self) -> Ping | None:
        return self._ping

    @property
    def ping_strategy(self) -> PingStrategy:
        return self._ping_strategy

    @property
    def load_balancer_stats(self) -> LoadBalancerStats:
        return self._load_balancer_stats

    @property
    def metrics_sink(self) -> MetricsSink:
        return self._metrics_sink

    @property
    def ping_interval(self) -> float:
        return self._ping_interval

    @property
    def max_total_ping_time(self) -> float:
        return self._max_total_ping_time

    @property
    def prime_connections(self) -> PrimeConnections | None:
        return self._prime_connections

    @property
    def enable_prime_connections(self) -> bool:
        return self._enable_prime_connections

    @property
    def is_ping_in_progress(self) -> bool:
        return self._ping_in_progress.locked()

    @property
    def is_ping_task_running(self) -> bool:
        return self._ping_thread is not None and self._ping_thread.is_alive()

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_rule(self, rule: Rule | None):
        if rule is None:
            rule = RoundRobinRule(log_stream=self._log_stream)

        previous = self._rule
        self._rule = rule
        rule.set_load_balancer(self)

        if previous is not None and previous is not rule and previous.load_balancer is self:
            previous.shutdown()

    def set_ping(self, ping: Ping | None):
        """
        Replace the health check and restart the ping task. ``None`` stops
        pinging altogether.
        """
        self._ping = ping
        self._setup_ping_task()

    def set_ping_strategy(self, ping_strategy: PingStrategy):
        previous = self._ping_strategy
        self._ping_strategy = ping_strategy

        if previous is not ping_strategy:
            previous.shutdown()

    def set_ping_interval(self, ping_interval: float):
        if ping_interval < 1:
            return

        self._ping_interval = ping_interval
        self._setup_ping_task()

    def set_max_total_ping_time(self, max_total_ping_time: float):
        if max_total_ping_time < 1:
            return

        self._max_total_ping_time = max_total_ping_time
        if hasattr(self._ping_strategy, "max_total_ping_time"):
            self._ping_strategy.max_total_ping_time = max_total_ping_time

    def set_prime_connections(self, prime_connections: PrimeConnections | None):
        self._prime_connections = prime_connections

    def set_enable_prime_connections(self, enabled: bool):
        self._enable_prime_connections = enabled

    # =========================================================================
    # Server list management
    # =========================================================================

    def set_servers_list(self, servers: Sequence[Server | str | None]) -> bool:
        """
        Replace the full server list.

        Strings are parsed as server ids and ``None`` entries are skipped.
        Servers whose id is already known keep their existing instance, so
        alive and ready state carries over.
        With a ping that cannot fail every server is marked alive and the up
        list becomes the full list. Otherwise a changed list triggers an
        immediate out-of-cycle ping.

        Returns:
            True if the new list differs from the old one.

        Raises:
            TypeError: If an entry is neither a ``Server`` nor a string.
        """
        new_servers = self._to_servers(servers)
        skip_ping = can_skip_ping(self._ping)
        new_additions: list[Server] = []

        with self._all_server_lock:
            old_list = self._all_server_list
            known = {server.id: server for server in old_list}
            new_list = tuple(
                self._reuse_known_server(known, server) for server in new_servers
            )

            if self._priming_enabled:
                existing = set(old_list)
                new_additions = [server for server in new_list if server not in existing]
                for server in new_additions:
                    server.ready_to_serve = False

            self._all_server_list = new_list

            if skip_ping:
                for server in new_list:
                    server.is_alive = True

                with self._up_server_lock:
                    self._up_server_list = new_list

        self._load_balancer_stats.update_server_list(new_list)

        list_changed = old_list != new_list
        if list_changed:
            self._log_stream.log(
                BalancerDebug(
                    message=f"Server list changed from {len(old_list)} to {len(new_list)} servers",
                    balancer=self._name,
                )
            )

            self._notify_server_list_change_listeners(old_list, new_list)

        if new_additions:
            self._prime_connections.prime_connections_async(new_additions, self)

        if list_changed and not skip_ping:
            self.force_quick_ping()

        return list_changed

    def set_servers(self, server_ids: str):
        """Replace the server list from a comma-separated string of ids."""
        self.set_servers_list([
            server_id.strip()
            for server_id in server_ids.split(",")
            if server_id.strip()
        ])

    def add_server(self, server: Server | str):
        self.add_servers([server])

    def add_servers(self, servers: Sequence[Server | str]):
        if not servers:
            return

        with self._all_server_lock:
            current = list(self._all_server_list)

        self.set_servers_list(current + list(servers))

    def mark_server_down(self, server: Server | str | None):
        """
        Mark a server dead until the next ping cycle says otherwise.

        Marking an already dead server does nothing and notifies no one.
        """
        if server is None:
            return

        if isinstance(server, str):
            server_id = Server.normalize_id(server)
            matching = [
                candidate
                for candidate in self.get_all_servers()
                if candidate.id == server_id
            ]

            for candidate in matching:
                self.mark_server_down(candidate)

            return

        if not server.is_alive:
            return

        server.is_alive = False

        self._log_stream.log(
            ServerStatusInfo(
                message=f"Server {server.id} marked down",
                balancer=self._name,
                server=server.id,
                alive=False,
            )
        )

        self._notify_server_status_change_listeners([server])

    def prime_completed(self, server: Server, error: Exception | None):
        server.ready_to_serve = True

    # =========================================================================
    # Selection
    # =========================================================================

    def choose_server(self, key: Any = None) -> Server | None:
        self._metrics_sink.increment(self._choose_server_counter)

        rule = self._rule
        if rule is None:
            return None

        try:
            return rule.choose(key)

        except Exception as err:
            self._log_stream.log(
                BalancerWarning(
                    message=f"Error choosing server for key {key!r}: {err}",
                    balancer=self._name,
                )
            )

            return None

    def choose(self, key: Any = None) -> str | None:
        server = self.choose_server(key)
        if server is None:
            return None

        return server.id

    # =========================================================================
    # Server list queries
    # =========================================================================

    def get_all_servers(self) -> tuple[Server, ...]:
        with self._all_server_lock:
            return self._all_server_list

    def get_reachable_servers(self) -> tuple[Server, ...]:
        with self._up_server_lock:
            return self._up_server_list

    def get_server_list(self, available_only: bool = False) -> tuple[Server, ...]:
        if available_only:
            return self.get_reachable_servers()

        return self.get_all_servers()

    def get_server_list_by_group(self, group: ServerGroup) -> tuple[Server, ...]:
        match group:
            case ServerGroup.ALL:
                return self.get_all_servers()

            case ServerGroup.STATUS_UP:
                return self.get_reachable_servers()

            case ServerGroup.STATUS_NOT_UP:
                up_servers = set(self.get_reachable_servers())
                return tuple(
                    server
                    for server in self.get_all_servers()
                    if server not in up_servers
                )

            case _:
                return ()

    def get_server_count(self, only_available: bool = False) -> int:
        return len(self.get_server_list(available_only=only_available))

    def get_server_by_index(self, index: int, available_only: bool = False) -> Server | None:
        servers = self.get_server_list(available_only=available_only)
        if index < 0 or index >= len(servers):
            return None

        return servers[index]

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_server_list_change_listener(self, listener: ServerListChangeListener):
        with self._listeners_lock:
            self._change_listeners = self._change_listeners + (listener,)

    def remove_server_list_change_listener(self, listener: ServerListChangeListener):
        with self._listeners_lock:
            self._change_listeners = tuple(
                existing for existing in self._change_listeners if existing is not listener
            )

    def add_server_status_change_listener(self, listener: ServerStatusChangeListener):
        with self._listeners_lock:
            self._status_listeners = self._status_listeners + (listener,)

    def remove_server_status_change_listener(self, listener: ServerStatusChangeListener):
        with self._listeners_lock:
            self._status_listeners = tuple(
                existing for existing in self._status_listeners if existing is not listener
            )

    def get_server_list_change_listeners(self) -> tuple[ServerListChangeListener, ...]:
        return self._change_listeners

    def get_server_status_change_listeners(self) -> tuple[ServerStatusChangeListener, ...]:
        return self._status_listeners

    # =========================================================================
    # Ping task
    # =========================================================================

    def force_quick_ping(self):
        """Run one ping cycle now on the calling thread."""
        if can_skip_ping(self._ping):
            return

        self._run_ping_cycle()

    def cancel_ping_task(self):
        with self._ping_task_lock:
            stop = self._ping_stop
            thread = self._ping_thread
            self._ping_stop = None
            self._ping_thread = None

        if stop is not None:
            stop.set()

        # An in-flight serial ping cannot be interrupted; only wait briefly.
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._max_total_ping_time)

    def shutdown(self):
        if self._shutdown:
            return

        self._shutdown = True
        self.cancel_ping_task()

        if self._prime_connections is not None:
            self._prime_connections.shutdown()

        if self._rule is not None:
            self._rule.shutdown()

        self._ping_strategy.shutdown()
        self._metrics_sink.unregister(self._name)

        self._log_stream.log(
            BalancerInfo(
                message="Load balancer shut down",
                balancer=self._name,
            )
        )

    def _setup_ping_task(self):
        self.cancel_ping_task()

        if self._shutdown or can_skip_ping(self._ping):
            return

        stop = threading.Event()
        thread = threading.Thread(
            target=self._run_ping_loop,
            args=(stop,),
            name=f"clientlb-ping-{self._name}",
            daemon=True,
        )

        with self._ping_task_lock:
            self._ping_stop = stop
            self._ping_thread = thread

        thread.start()

    def _run_ping_loop(self, stop: threading.Event):
        while not stop.wait(self._ping_interval):
            try:
                self._run_ping_cycle()

            except Exception as err:
                self._log_stream.log(
                    BalancerError(
                        message=f"Ping task failed: {err}",
                        balancer=self._name,
                    )
                )

    def _run_ping_cycle(self):
        if not self._ping_in_progress.acquire(blocking=False):
            self._log_stream.log(
                BalancerDebug(
                    message="Ping cycle already in progress, skipping",
                    balancer=self._name,
                )
            )
            return

        try:
            with self._all_server_lock:
                all_servers = self._all_server_list

            results = self._ping_strategy.ping_servers(self._ping, all_servers)

            new_up_list: list[Server] = []
            changed_servers: list[Server] = []

            for server, is_alive in zip(all_servers, results):
                old_is_alive = server.is_alive
                server.is_alive = is_alive

                if old_is_alive != is_alive:
                    changed_servers.append(server)
                    self._log_stream.log(
                        ServerStatusInfo(
                            message=f"Server {server.id} status changed to {'ALIVE' if is_alive else 'DEAD'}",
                            balancer=self._name,
                            server=server.id,
                            alive=is_alive,
                        )
                    )

                if is_alive:
                    new_up_list.append(server)

            with self._up_server_lock:
                self._up_server_list = tuple(new_up_list)

            self._notify_server_status_change_listeners(changed_servers)

        finally:
            self._ping_in_progress.release()

    # =========================================================================
    # Internal helpers
    # =========================================================================

    @property
    def _priming_enabled(self) -> bool:
        return self._enable_prime_connections and self._prime_connections is not None

    def _to_servers(self, servers: Sequence[Server | str | None]) -> list[Server]:
        new_servers: list[Server] = []
        for server in servers:
            if server is None:
                continue

            if isinstance(server, str):
                server = Server.from_id(server)

            elif not isinstance(server, Server):
                raise TypeError(
                    f"Servers must be Server instances or id strings, got {type(server).__name__}"
                )

            new_servers.append(server)

        return new_servers

    def _reuse_known_server(self, known: dict[str, Server], server: Server) -> Server:
        # Keep the tracked instance so alive and ready state survive a re-set.
        existing = known.get(server.id)
        if existing is None or existing is server:
            return server

        if server.zone != UNKNOWN_ZONE:
            existing.zone = server.zone

        return existing

    def _notify_server_list_change_listeners(
        self,
        old_list: tuple[Server, ...],
        new_list: tuple[Server, ...],
    ):
        for listener in self._change_listeners:
            try:
                listener.server_list_changed(old_list, new_list)

            except Exception as err:
                self._log_stream.log(
                    BalancerError(
                        message=f"Error invoking server list change listener {listener!r}: {err}",
                        balancer=self._name,
                    )
                )

    def _notify_server_status_change_listeners(self, changed_servers: Sequence[Server]):
        if not changed_servers:
            return

        snapshot = tuple(changed_servers)
        for listener in self._status_listeners:
            try:
                listener.server_status_changed(snapshot)

            except Exception as err:
                self._log_stream.log(
                    BalancerError(
                        message=f"Error invoking server status change listener {listener!r}: {err}",
                        balancer=self._name,
                    )
                )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self._name!r}, "
            f"all_servers={len(self._all_server_list)}, "
            f"up_servers={len(self._up_server_list)}, "
            f"rule={type(self._rule).__name__})"
        )
