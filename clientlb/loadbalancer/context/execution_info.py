from __future__ import annotations

from dataclasses import dataclass

from clientlb.loadbalancer.models import Server


@dataclass(slots=True, frozen=True)
class ExecutionInfo:
    """Where an execution currently stands, as reported to listeners."""

    server: Server | None
    """Server the current attempt runs against."""

    number_of_past_attempts_on_server: int = 0
    """Attempts already made on ``server`` before this one."""

    number_of_past_servers_attempted: int = 0
    """Servers already tried before ``server``."""


class ExecutionInfoTracker:
    """Mutable attempt counters for one command execution."""

    __slots__ = ("server", "server_attempt_count", "attempt_count")

    def __init__(self) -> None:
        self.server: Server | None = None
        self.server_attempt_count = 0
        self.attempt_count = 0

    def set_server(self, server: Server):
        self.server = server
        self.server_attempt_count += 1
        self.attempt_count = 0

    def increment_attempt_count(self):
        self.attempt_count += 1

    def to_execution_info(self) -> ExecutionInfo:
        return ExecutionInfo(
            server=self.server,
            number_of_past_attempts_on_server=max(0, self.attempt_count - 1),
            number_of_past_servers_attempted=max(0, self.server_attempt_count - 1),
        )

    def to_final_execution_info(self) -> ExecutionInfo:
        return ExecutionInfo(
            server=self.server,
            number_of_past_attempts_on_server=self.attempt_count,
            number_of_past_servers_attempted=max(0, self.server_attempt_count - 1),
        )
