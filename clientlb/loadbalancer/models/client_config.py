"""
Typed client configuration for load balancers.

Each ``ClientConfigKey`` carries its property name and its default value.
``ClientConfig`` stores explicitly set values by property name, so keys can
be addressed either by enum member or by the raw property string (as
listener toggles such as ``listener.MyListener.disabled`` are).
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict

from clientlb.env import Env


class ClientConfigKey(Enum):
    """
    Known client configuration keys as ``(property_name, default)`` pairs.
    """
    CLIENT_NAME = ("ClientName", "default")
    LIST_OF_SERVERS = ("listOfServers", None)
    SERVER_LIST_REFRESH_INTERVAL = ("ServerListRefreshInterval", 30)
    NFLOADBALANCER_PING_INTERVAL = ("NFLoadBalancerPingInterval", 30)
    NFLOADBALANCER_MAX_TOTAL_PING_TIME = ("NFLoadBalancerMaxTotalPingTime", 2)
    NFLOADBALANCER_RULE_CLASS_NAME = ("NFLoadBalancerRuleClassName", "round_robin")
    NFLOADBALANCER_PING_CLASS_NAME = ("NFLoadBalancerPingClassName", "dummy")
    NFLOADBALANCER_PING_STRATEGY = ("NFLoadBalancerPingStrategy", "serial")
    NFLOADBALANCER_STATS_CLASS_NAME = ("NFLoadBalancerStatsClassName", "default")
    ENABLE_PRIME_CONNECTIONS = ("EnablePrimeConnections", False)
    PRIME_CONNECTIONS_URI = ("PrimeConnectionsURI", "/")
    MAX_TOTAL_TIME_TO_PRIME_CONNECTIONS = ("MaxTotalTimeToPrimeConnections", 30.0)
    MAX_RETRIES_PER_SERVER_PRIME_CONNECTION = ("MaxRetriesPerServerPrimeConnection", 9)
    PRIME_CONNECTIONS_THREADS = ("PrimeConnectionsThreads", 4)
    DEPLOYMENT_ZONE = ("deploymentZone", None)
    ENABLE_ZONE_AFFINITY = ("EnableZoneAffinity", False)
    ENABLE_ZONE_EXCLUSIVITY = ("EnableZoneExclusivity", False)
    ZONE_AFFINITY_MAX_LOAD_PER_SERVER = ("zoneAffinity.maxLoadPerServer", 0.6)
    ZONE_AFFINITY_MAX_BLACKOUT_SERVERS_PERCENTAGE = ("zoneAffinity.maxBlackOutServesrPercentage", 0.8)
    ZONE_AFFINITY_MIN_AVAILABLE_SERVERS = ("zoneAffinity.minAvailableServers", 2)
    ZONE_AWARE_ENABLED = ("ZoneAwareNIWSDiscoveryLoadBalancer.enabled", True)
    ZONE_TRIGGERING_LOAD_PER_SERVER = ("ZoneAwareNIWSDiscoveryLoadBalancer.triggeringLoadPerServerThreshold", 0.2)
    ZONE_TRIGGERING_BLACKOUT_PERCENTAGE = ("ZoneAwareNIWSDiscoveryLoadBalancer.avoidZoneWithBlackoutPercetage", 0.99999)
    MAX_AUTO_RETRIES = ("MaxAutoRetries", 0)
    MAX_AUTO_RETRIES_NEXT_SERVER = ("MaxAutoRetriesNextServer", 1)
    OK_TO_RETRY_ON_ALL_OPERATIONS = ("OkToRetryOnAllOperations", False)
    CONNECTION_FAILURE_COUNT_THRESHOLD = ("ConnectionFailureCountThreshold", 3)
    CIRCUIT_TRIP_TIMEOUT_FACTOR_SECONDS = ("CircuitTripTimeoutFactorSeconds", 10)
    CIRCUIT_TRIP_MAX_TIMEOUT_SECONDS = ("CircuitTripMaxTimeoutSeconds", 30)
    ACTIVE_CONNECTIONS_LIMIT = ("ActiveConnectionsLimit", 2**31 - 1)
    ACTIVE_REQUESTS_COUNT_TIMEOUT = ("ActiveRequestsCountTimeout", 600)
    SERVER_STATS_EXPIRE_MINUTES = ("ServerStatsExpireMinutes", 30)
    RESPONSE_TIME_WINDOW_SIZE = ("ResponseTimeWindowSize", 1000)
    SERVER_WEIGHT_TASK_TIMER_INTERVAL = ("ServerWeightTaskTimerInterval", 30)
    MAX_RETRY_MILLIS = ("MaxRetryMillis", 500)

    def __init__(self, property_name: str, default: Any) -> None:
        self._property_name = property_name
        self._default = default

    @property
    def property_name(self) -> str:
        return self._property_name

    @property
    def default(self) -> Any:
        return self._default

    @classmethod
    def from_property_name(cls, property_name: str) -> ClientConfigKey | None:
        return _KEYS_BY_PROPERTY.get(property_name)


_KEYS_BY_PROPERTY: Dict[str, ClientConfigKey] = {
    key.property_name: key for key in ClientConfigKey
}


def _coerce(value: Any, default: Any) -> Any:
    if not isinstance(value, str) or default is None or isinstance(default, str):
        return value

    if isinstance(default, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")

    if isinstance(default, int):
        return int(value)

    if isinstance(default, float):
        return float(value)

    return value


class ClientConfig:
    """
    Per-client property store.

    Usage:
        config = ClientConfig("orders")
        config.set(ClientConfigKey.NFLOADBALANCER_RULE_CLASS_NAME, "best_available")
        config.get(ClientConfigKey.NFLOADBALANCER_PING_INTERVAL)  # 30
    """

    def __init__(
        self,
        client_name: str = "default",
        properties: Dict[ClientConfigKey | str, Any] | None = None,
    ) -> None:
        self._client_name = client_name
        self._properties: Dict[str, Any] = {}
        self._lock = threading.Lock()

        for key, value in (properties or {}).items():
            self.set(key, value)

    @classmethod
    def from_env(
        cls,
        env: Env,
        client_name: str | None = None,
    ) -> ClientConfig:
        return cls(
            client_name=client_name or env.CLIENTLB_CLIENT_NAME,
            properties=env.get_client_config_values(),
        )

    @property
    def client_name(self) -> str:
        return self._client_name

    def set(self, key: ClientConfigKey | str, value: Any) -> ClientConfig:
        with self._lock:
            self._properties[self._to_property_name(key)] = value

        return self

    def remove(self, key: ClientConfigKey | str):
        with self._lock:
            self._properties.pop(self._to_property_name(key), None)

    def contains(self, key: ClientConfigKey | str) -> bool:
        return self._to_property_name(key) in self._properties

    def get(self, key: ClientConfigKey | str, default: Any = None) -> Any:
        """
        Return the explicitly set value for ``key``.

        Falls back to ``default`` and then to the key's own default. String
        values are coerced to the type of the key's default, so values read
        from the environment or a properties file behave like typed ones.
        """
        property_name = self._to_property_name(key)
        config_key = (
            key if isinstance(key, ClientConfigKey)
            else ClientConfigKey.from_property_name(key)
        )

        key_default = config_key.default if config_key else None

        value = self._properties.get(property_name)
        if value is None:
            return default if default is not None else key_default

        return _coerce(value, key_default)

    def get_properties(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._properties)

    def copy(self) -> ClientConfig:
        return ClientConfig(
            client_name=self._client_name,
            properties=self.get_properties(),
        )

    def _to_property_name(self, key: ClientConfigKey | str) -> str:
        if isinstance(key, ClientConfigKey):
            return key.property_name

        return key

    def __repr__(self) -> str:
        return f"ClientConfig(client_name={self._client_name!r}, properties={self._properties!r})"
