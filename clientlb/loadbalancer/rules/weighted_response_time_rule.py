"""
Response-time weighted selection.

Each server gets weight ``total - avg_response_time(server)``, where
``total`` is the sum of every server's average response time, so faster
servers are picked more often. Weights are accumulated into a running
total and a uniform draw over that range selects the server.

Weights are recomputed by a background thread every
``server_weight_task_timer_interval`` seconds and on demand through
``maintain_weights()``. Until weights exist the rule behaves as round
robin.
"""

import bisect
import random
import threading
from typing import Any

from clientlb.logging import BalancerDebug, BalancerError
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server

from .round_robin_rule import MAX_ROUND_ROBIN_TRIES, RoundRobinRule


class WeightedResponseTimeRule(RoundRobinRule):
    def __init__(
        self,
        server_weight_task_timer_interval: float = 30.0,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.server_weight_task_timer_interval = server_weight_task_timer_interval

        self._accumulated_weights: tuple[float, ...] = ()
        self._weights_lock = threading.Lock()
        self._server_weight_assignment_in_progress = threading.Lock()

        self._stop_event = threading.Event()
        self._weight_thread: threading.Thread | None = None

    @property
    def accumulated_weights(self) -> tuple[float, ...]:
        return self._accumulated_weights

    def init_with_config(self, config: ClientConfig):
        interval = config.get(ClientConfigKey.SERVER_WEIGHT_TASK_TIMER_INTERVAL)
        if interval > 0:
            self.server_weight_task_timer_interval = interval

    def set_load_balancer(self, load_balancer):
        super().set_load_balancer(load_balancer)
        if load_balancer is not None:
            self.maintain_weights()
            self._start_weight_thread()

    def shutdown(self):
        self._stop_event.set()
        if self._weight_thread is not None:
            self._weight_thread.join(timeout=1.0)
            self._weight_thread = None

    def choose(self, key: Any = None) -> Server | None:
        load_balancer = self.load_balancer
        if load_balancer is None:
            return None

        for _ in range(MAX_ROUND_ROBIN_TRIES):
            all_servers = load_balancer.get_all_servers()
            if not all_servers:
                return None

            weights = self._accumulated_weights
            max_total_weight = weights[-1] if weights else 0.0

            if len(weights) != len(all_servers) or max_total_weight < 0.001:
                return super().choose(key)

            random_weight = random.random() * max_total_weight
            server_index = min(
                bisect.bisect_left(weights, random_weight),
                len(all_servers) - 1,
            )

            server = all_servers[server_index]
            if server.is_alive and server.ready_to_serve:
                return server

        return super().choose(key)

    def maintain_weights(self):
        """
        Recompute accumulated weights from current response time stats.
        Overlapping calls are dropped.
        """
        load_balancer = self.load_balancer
        if load_balancer is None:
            return

        if not self._server_weight_assignment_in_progress.acquire(blocking=False):
            return

        try:
            stats = load_balancer.load_balancer_stats
            if stats is None:
                return

            servers = load_balancer.get_all_servers()
            averages = [
                stats.get_single_server_stat(server).get_response_time_avg()
                for server in servers
            ]

            total_response_time = sum(averages)

            accumulated: list[float] = []
            weight_so_far = 0.0
            for average in averages:
                weight_so_far += total_response_time - average
                accumulated.append(weight_so_far)

            with self._weights_lock:
                self._accumulated_weights = tuple(accumulated)

            self._log_stream.log(
                BalancerDebug(
                    message=f"Recomputed weights for {len(servers)} servers",
                    balancer=self._balancer_name,
                )
            )

        except Exception as err:
            self._log_stream.log(
                BalancerError(
                    message=f"Error calculating server weights: {err}",
                    balancer=self._balancer_name,
                )
            )

        finally:
            self._server_weight_assignment_in_progress.release()

    def _start_weight_thread(self):
        if self._weight_thread is not None and self._weight_thread.is_alive():
            return

        self._stop_event.clear()
        self._weight_thread = threading.Thread(
            target=self._run_weight_loop,
            name=f"clientlb-weights-{self._balancer_name}",
            daemon=True,
        )
        self._weight_thread.start()

    def _run_weight_loop(self):
        while not self._stop_event.wait(self.server_weight_task_timer_interval):
            self.maintain_weights()
