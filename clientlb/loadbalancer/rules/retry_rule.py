import time
from typing import Any

from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server

from .round_robin_rule import RoundRobinRule
from .rule import Rule


class RetryRule(Rule):
    """
    Re-asks a sub-rule until it yields a live server or
    ``max_retry_millis`` elapses.
    """

    def __init__(
        self,
        sub_rule: Rule | None = None,
        max_retry_millis: int = 500,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._sub_rule = sub_rule or RoundRobinRule(**kwargs)
        self.max_retry_millis = max_retry_millis if max_retry_millis > 0 else 500

    @property
    def sub_rule(self) -> Rule:
        return self._sub_rule

    def set_load_balancer(self, load_balancer):
        super().set_load_balancer(load_balancer)
        self._sub_rule.set_load_balancer(load_balancer)

    def init_with_config(self, config: ClientConfig):
        max_retry_millis = config.get(ClientConfigKey.MAX_RETRY_MILLIS)
        if max_retry_millis > 0:
            self.max_retry_millis = max_retry_millis

        self._sub_rule.init_with_config(config)

    def choose(self, key: Any = None) -> Server | None:
        deadline = time.monotonic() + (self.max_retry_millis / 1000)

        answer = self._sub_rule.choose(key)
        while (answer is None or not answer.is_alive) and time.monotonic() < deadline:
            time.sleep(0.001)
            answer = self._sub_rule.choose(key)

        if answer is None or not answer.is_alive:
            return None

        return answer
