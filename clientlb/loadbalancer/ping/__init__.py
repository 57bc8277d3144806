from .ping import (
    DummyPing as DummyPing,
    NoOpPing as NoOpPing,
    Ping as Ping,
    PingConstant as PingConstant,
    can_skip_ping as can_skip_ping,
)
from .ping_strategy import (
    ParallelPingStrategy as ParallelPingStrategy,
    PingStrategy as PingStrategy,
    SerialPingStrategy as SerialPingStrategy,
)
