from .models import Entry, LogLevel


class BalancerTrace(Entry, kw_only=True):
    balancer: str
    level: LogLevel = LogLevel.TRACE


class BalancerDebug(Entry, kw_only=True):
    balancer: str
    level: LogLevel = LogLevel.DEBUG


class BalancerInfo(Entry, kw_only=True):
    balancer: str
    level: LogLevel = LogLevel.INFO


class BalancerWarning(Entry, kw_only=True):
    balancer: str
    level: LogLevel = LogLevel.WARN


class BalancerError(Entry, kw_only=True):
    balancer: str
    level: LogLevel = LogLevel.ERROR


class ServerStatusInfo(Entry, kw_only=True):
    balancer: str
    server: str
    alive: bool
    level: LogLevel = LogLevel.INFO
