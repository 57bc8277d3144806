from .prime_connections import (
    PrimeConnection as PrimeConnection,
    PrimeConnectionListener as PrimeConnectionListener,
    PrimeConnections as PrimeConnections,
    PrimeConnectionsResult as PrimeConnectionsResult,
)
