"""
Server model for the load balancer.

A server is identified by its ``host:port`` id. Identity never changes after
construction; only the ``is_alive`` and ``ready_to_serve`` flags are
mutated, by the ping cycle and connection priming respectively.
"""

from __future__ import annotations


UNKNOWN_ZONE = "UNKNOWN"


class Server:
    """
    A candidate backend for the load balancer.

    Usage:
        server = Server("10.0.0.1", 8080, zone="us-east-1a")
        same = Server.from_id("http://10.0.0.1:8080/health")
        assert server == same
    """

    __slots__ = (
        "_host",
        "_port",
        "_scheme",
        "_id",
        "zone",
        "is_alive",
        "ready_to_serve",
    )

    def __init__(
        self,
        host: str,
        port: int = 80,
        scheme: str | None = None,
        zone: str = UNKNOWN_ZONE,
    ) -> None:
        self._host = host
        self._port = port
        self._scheme = scheme
        self._id = f"{host}:{port}"
        self.zone = zone
        self.is_alive = False
        self.ready_to_serve = True

    @classmethod
    def from_id(cls, server_id: str, zone: str = UNKNOWN_ZONE) -> Server:
        """
        Build a server from an id such as ``host``, ``host:port`` or
        ``https://host:port/path``.

        Raises:
            ValueError: If the port is not numeric.
        """
        host, port, scheme = cls.get_host_port(server_id)
        return cls(host, port, scheme=scheme, zone=zone)

    @staticmethod
    def get_host_port(server_id: str) -> tuple[str, int, str | None]:
        scheme: str | None = None
        port = 80

        lowered = server_id.lower()
        if lowered.startswith("http://"):
            server_id = server_id[len("http://"):]
            scheme = "http"

        elif lowered.startswith("https://"):
            server_id = server_id[len("https://"):]
            scheme = "https"
            port = 443

        path_start = server_id.find("/")
        if path_start >= 0:
            server_id = server_id[:path_start]

        host, separator, port_text = server_id.partition(":")
        if separator:
            try:
                port = int(port_text)

            except ValueError:
                raise ValueError(f"Invalid port in server id '{server_id}'")

        return host, port, scheme

    @classmethod
    def normalize_id(cls, server_id: str | None) -> str | None:
        if server_id is None:
            return None

        host, port, _ = cls.get_host_port(server_id)
        return f"{host}:{port}"

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def scheme(self) -> str | None:
        return self._scheme

    @property
    def id(self) -> str:
        return self._id

    @property
    def host_port(self) -> str:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Server):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return self._id

    def __repr__(self) -> str:
        return (
            f"Server(id={self._id!r}, zone={self.zone!r}, "
            f"alive={self.is_alive}, ready={self.ready_to_serve})"
        )
