from __future__ import annotations
import os
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr
from typing import Any, Callable, Dict, Literal, Union

PrimaryType = Union[str, int, float, bytes, bool]


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Env(BaseModel):
    CLIENTLB_CLIENT_NAME: StrictStr = "default"
    CLIENTLB_PING_INTERVAL_SECONDS: StrictInt = 30
    CLIENTLB_MAX_TOTAL_PING_TIME_SECONDS: StrictInt = 2
    CLIENTLB_RULE: StrictStr = "round_robin"
    CLIENTLB_PING: StrictStr = "dummy"
    CLIENTLB_PING_STRATEGY: Literal["serial", "parallel"] = "serial"
    CLIENTLB_STATS: StrictStr = "default"
    CLIENTLB_ENABLE_PRIME_CONNECTIONS: StrictBool = False
    CLIENTLB_SERVER_LIST_REFRESH_INTERVAL: StrictInt = 30
    CLIENTLB_LIST_OF_SERVERS: StrictStr | None = None
    CLIENTLB_DEPLOYMENT_ZONE: StrictStr | None = None
    CLIENTLB_ENABLE_ZONE_AFFINITY: StrictBool = False
    CLIENTLB_ENABLE_ZONE_EXCLUSIVITY: StrictBool = False
    CLIENTLB_MAX_AUTO_RETRIES: StrictInt = 0
    CLIENTLB_MAX_AUTO_RETRIES_NEXT_SERVER: StrictInt = 1
    CLIENTLB_OK_TO_RETRY_ON_ALL_OPERATIONS: StrictBool = False

    # Circuit breaker settings
    CLIENTLB_CONNECTION_FAILURE_COUNT_THRESHOLD: StrictInt = 3
    CLIENTLB_CIRCUIT_TRIP_TIMEOUT_FACTOR_SECONDS: StrictInt = 10
    CLIENTLB_CIRCUIT_TRIP_MAX_TIMEOUT_SECONDS: StrictInt = 30

    # Logging settings
    CLIENTLB_LOG_LEVEL: StrictStr = "info"
    CLIENTLB_LOG_OUTPUT: Literal["stdout", "stderr", "file"] = "stdout"
    CLIENTLB_LOGS_DIRECTORY: StrictStr = os.getcwd()

    # Zone selection settings
    CLIENTLB_ZONE_TRIGGERING_LOAD_PER_SERVER: StrictFloat = 0.2
    CLIENTLB_ZONE_TRIGGERING_BLACKOUT_PERCENTAGE: StrictFloat = 0.99999

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "CLIENTLB_CLIENT_NAME": str,
            "CLIENTLB_PING_INTERVAL_SECONDS": int,
            "CLIENTLB_MAX_TOTAL_PING_TIME_SECONDS": int,
            "CLIENTLB_RULE": str,
            "CLIENTLB_PING": str,
            "CLIENTLB_PING_STRATEGY": str,
            "CLIENTLB_STATS": str,
            "CLIENTLB_ENABLE_PRIME_CONNECTIONS": _to_bool,
            "CLIENTLB_SERVER_LIST_REFRESH_INTERVAL": int,
            "CLIENTLB_LIST_OF_SERVERS": str,
            "CLIENTLB_DEPLOYMENT_ZONE": str,
            "CLIENTLB_ENABLE_ZONE_AFFINITY": _to_bool,
            "CLIENTLB_ENABLE_ZONE_EXCLUSIVITY": _to_bool,
            "CLIENTLB_MAX_AUTO_RETRIES": int,
            "CLIENTLB_MAX_AUTO_RETRIES_NEXT_SERVER": int,
            "CLIENTLB_OK_TO_RETRY_ON_ALL_OPERATIONS": _to_bool,
            # Circuit breaker settings
            "CLIENTLB_CONNECTION_FAILURE_COUNT_THRESHOLD": int,
            "CLIENTLB_CIRCUIT_TRIP_TIMEOUT_FACTOR_SECONDS": int,
            "CLIENTLB_CIRCUIT_TRIP_MAX_TIMEOUT_SECONDS": int,
            # Logging settings
            "CLIENTLB_LOG_LEVEL": str,
            "CLIENTLB_LOG_OUTPUT": str,
            "CLIENTLB_LOGS_DIRECTORY": str,
            # Zone selection settings
            "CLIENTLB_ZONE_TRIGGERING_LOAD_PER_SERVER": float,
            "CLIENTLB_ZONE_TRIGGERING_BLACKOUT_PERCENTAGE": float,
        }

    def get_client_config_values(self) -> Dict[str, Any]:
        """
        Get load balancer client properties from environment settings.

        Keys are the property names understood by ``ClientConfig``.
        Unset optional values are omitted so the key defaults apply.
        """
        values: Dict[str, Any] = {
            "ServerListRefreshInterval": self.CLIENTLB_SERVER_LIST_REFRESH_INTERVAL,
            "NFLoadBalancerPingInterval": self.CLIENTLB_PING_INTERVAL_SECONDS,
            "NFLoadBalancerMaxTotalPingTime": self.CLIENTLB_MAX_TOTAL_PING_TIME_SECONDS,
            "NFLoadBalancerRuleClassName": self.CLIENTLB_RULE,
            "NFLoadBalancerPingClassName": self.CLIENTLB_PING,
            "NFLoadBalancerPingStrategy": self.CLIENTLB_PING_STRATEGY,
            "NFLoadBalancerStatsClassName": self.CLIENTLB_STATS,
            "EnablePrimeConnections": self.CLIENTLB_ENABLE_PRIME_CONNECTIONS,
            "EnableZoneAffinity": self.CLIENTLB_ENABLE_ZONE_AFFINITY,
            "EnableZoneExclusivity": self.CLIENTLB_ENABLE_ZONE_EXCLUSIVITY,
            "MaxAutoRetries": self.CLIENTLB_MAX_AUTO_RETRIES,
            "MaxAutoRetriesNextServer": self.CLIENTLB_MAX_AUTO_RETRIES_NEXT_SERVER,
            "OkToRetryOnAllOperations": self.CLIENTLB_OK_TO_RETRY_ON_ALL_OPERATIONS,
            "ConnectionFailureCountThreshold": self.CLIENTLB_CONNECTION_FAILURE_COUNT_THRESHOLD,
            "CircuitTripTimeoutFactorSeconds": self.CLIENTLB_CIRCUIT_TRIP_TIMEOUT_FACTOR_SECONDS,
            "CircuitTripMaxTimeoutSeconds": self.CLIENTLB_CIRCUIT_TRIP_MAX_TIMEOUT_SECONDS,
            "ZoneAwareNIWSDiscoveryLoadBalancer.triggeringLoadPerServerThreshold": (
                self.CLIENTLB_ZONE_TRIGGERING_LOAD_PER_SERVER
            ),
            "ZoneAwareNIWSDiscoveryLoadBalancer.avoidZoneWithBlackoutPercetage": (
                self.CLIENTLB_ZONE_TRIGGERING_BLACKOUT_PERCENTAGE
            ),
        }

        if self.CLIENTLB_LIST_OF_SERVERS:
            values["listOfServers"] = self.CLIENTLB_LIST_OF_SERVERS

        if self.CLIENTLB_DEPLOYMENT_ZONE:
            values["deploymentZone"] = self.CLIENTLB_DEPLOYMENT_ZONE

        return values

    def get_logging_config(self) -> Dict[str, str]:
        return {
            "log_level": self.CLIENTLB_LOG_LEVEL,
            "log_output": self.CLIENTLB_LOG_OUTPUT,
            "log_directory": self.CLIENTLB_LOGS_DIRECTORY,
        }
