from abc import ABC, abstractmethod
from typing import Sequence

from clientlb.loadbalancer.models import (
    ClientConfig,
    ClientConfigKey,
    Server,
    UNKNOWN_ZONE,
)


class ServerList(ABC):
    """Source of candidate servers for a dynamic balancer."""

    @abstractmethod
    def get_initial_list_of_servers(self) -> list[Server]:
        ...

    @abstractmethod
    def get_updated_list_of_servers(self) -> list[Server]:
        ...


class StaticServerList(ServerList):
    def __init__(self, servers: Sequence[Server | str]) -> None:
        self._servers = [
            Server.from_id(server) if isinstance(server, str) else server
            for server in servers
        ]

    def get_initial_list_of_servers(self) -> list[Server]:
        return list(self._servers)

    def get_updated_list_of_servers(self) -> list[Server]:
        return list(self._servers)


class ConfiguredServerList(ServerList):
    """
    Reads ``listOfServers`` from client config on every call, so updates
    to the config are picked up by the next refresh.
    """

    def __init__(self, config: ClientConfig, zone: str | None = None) -> None:
        self._config = config
        self._zone = zone or config.get(ClientConfigKey.DEPLOYMENT_ZONE) or UNKNOWN_ZONE

    def get_initial_list_of_servers(self) -> list[Server]:
        return self._derive_from_config()

    def get_updated_list_of_servers(self) -> list[Server]:
        return self._derive_from_config()

    def _derive_from_config(self) -> list[Server]:
        list_of_servers = self._config.get(ClientConfigKey.LIST_OF_SERVERS)
        if not list_of_servers:
            return []

        if isinstance(list_of_servers, str):
            list_of_servers = list_of_servers.split(",")

        return [
            Server.from_id(server_id.strip(), zone=self._zone)
            for server_id in list_of_servers
            if server_id and server_id.strip()
        ]
