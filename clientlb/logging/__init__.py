from .balancer_logging_models import (
    BalancerDebug as BalancerDebug,
    BalancerError as BalancerError,
    BalancerInfo as BalancerInfo,
    BalancerTrace as BalancerTrace,
    BalancerWarning as BalancerWarning,
    ServerStatusInfo as ServerStatusInfo,
)
from .config import LoggingConfig as LoggingConfig, StreamType as StreamType
from .models import Entry as Entry, Log as Log, LogLevel as LogLevel
from .streams import Logger as Logger, LoggerStream as LoggerStream

logger = Logger()
