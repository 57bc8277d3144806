from typing import Protocol, Sequence

from clientlb.loadbalancer.models import Server


class ServerListChangeListener(Protocol):
    """Notified after the full server list is replaced with a different one."""

    def server_list_changed(
        self,
        old_list: Sequence[Server],
        new_list: Sequence[Server],
    ) -> None:
        ...


class ServerStatusChangeListener(Protocol):
    """Notified with the servers whose alive flag changed."""

    def server_status_changed(self, servers: Sequence[Server]) -> None:
        ...
