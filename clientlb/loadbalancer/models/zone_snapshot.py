from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class ZoneSnapshot:
    """
    Point-in-time load figures for one zone.
    """

    instance_count: int = 0
    """Servers currently up in the zone."""

    circuit_tripped_count: int = 0
    """Servers whose circuit breaker is open."""

    active_requests_count: int = 0
    """Active requests across every server in the zone."""

    load_per_server: float = 0.0
    """Active requests per non-tripped server, or -1 when every server is tripped."""
