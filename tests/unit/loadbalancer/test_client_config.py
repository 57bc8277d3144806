"""
Tests for ClientConfig lookup, defaults and coercion.
"""

from clientlb.env import Env
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey


class TestClientConfigKey:
    """Test key metadata."""

    def test_property_name_and_default(self):
        """Each key should expose its property name and default."""
        key = ClientConfigKey.NFLOADBALANCER_PING_INTERVAL

        assert key.property_name == "NFLoadBalancerPingInterval"
        assert key.default == 30

    def test_from_property_name(self):
        """Property names should map back to their keys."""
        assert (
            ClientConfigKey.from_property_name("MaxAutoRetries")
            is ClientConfigKey.MAX_AUTO_RETRIES
        )
        assert ClientConfigKey.from_property_name("NoSuchProperty") is None


class TestClientConfigLookup:
    """Test get/set/remove behavior."""

    def test_unset_key_returns_key_default(self):
        """An unset key should fall back to its own default."""
        config = ClientConfig("orders")

        assert config.get(ClientConfigKey.NFLOADBALANCER_RULE_CLASS_NAME) == "round_robin"
        assert config.get(ClientConfigKey.ZONE_AWARE_ENABLED) is True

    def test_explicit_default_wins_over_key_default(self):
        """A default passed to get() should win over the key default."""
        config = ClientConfig("orders")

        assert config.get(ClientConfigKey.MAX_AUTO_RETRIES, 5) == 5

    def test_set_by_key_and_read_by_property_name(self):
        """Keys and raw property names should address the same value."""
        config = ClientConfig("orders").set(ClientConfigKey.MAX_AUTO_RETRIES, 2)

        assert config.get("MaxAutoRetries") == 2
        assert config.contains("MaxAutoRetries")

    def test_string_values_are_coerced(self):
        """String values should be coerced to the type of the key default."""
        config = ClientConfig(
            "orders",
            properties={
                ClientConfigKey.NFLOADBALANCER_PING_INTERVAL: "15",
                ClientConfigKey.ENABLE_ZONE_AFFINITY: "true",
                ClientConfigKey.ZONE_TRIGGERING_LOAD_PER_SERVER: "0.5",
            },
        )

        assert config.get(ClientConfigKey.NFLOADBALANCER_PING_INTERVAL) == 15
        assert config.get(ClientConfigKey.ENABLE_ZONE_AFFINITY) is True
        assert config.get(ClientConfigKey.ZONE_TRIGGERING_LOAD_PER_SERVER) == 0.5

    def test_remove(self):
        """Removing a key should restore its default."""
        config = ClientConfig().set(ClientConfigKey.MAX_AUTO_RETRIES, 3)
        config.remove(ClientConfigKey.MAX_AUTO_RETRIES)

        assert not config.contains(ClientConfigKey.MAX_AUTO_RETRIES)
        assert config.get(ClientConfigKey.MAX_AUTO_RETRIES) == 0

    def test_copy_is_independent(self):
        """A copy should not see later changes to the original."""
        config = ClientConfig("orders").set(ClientConfigKey.MAX_AUTO_RETRIES, 1)
        copied = config.copy()
        config.set(ClientConfigKey.MAX_AUTO_RETRIES, 4)

        assert copied.client_name == "orders"
        assert copied.get(ClientConfigKey.MAX_AUTO_RETRIES) == 1

    def test_unknown_property_returns_given_default(self):
        """Unknown property names should return the given default."""
        config = ClientConfig()

        assert config.get("listener.Audit.disabled") is None
        assert config.get("listener.Audit.disabled", False) is False


class TestClientConfigFromEnv:
    """Test building client config from environment settings."""

    def test_from_env(self):
        """Env values should populate the matching client properties."""
        env = Env(
            CLIENTLB_CLIENT_NAME="payments",
            CLIENTLB_RULE="best_available",
            CLIENTLB_PING_INTERVAL_SECONDS=5,
            CLIENTLB_LIST_OF_SERVERS="10.0.0.1:80,10.0.0.2:80",
        )

        config = ClientConfig.from_env(env)

        assert config.client_name == "payments"
        assert config.get(ClientConfigKey.NFLOADBALANCER_RULE_CLASS_NAME) == "best_available"
        assert config.get(ClientConfigKey.NFLOADBALANCER_PING_INTERVAL) == 5
        assert config.get(ClientConfigKey.LIST_OF_SERVERS) == "10.0.0.1:80,10.0.0.2:80"
        assert not config.contains(ClientConfigKey.DEPLOYMENT_ZONE)

    def test_from_env_client_name_override(self):
        """An explicit client name should win over the env value."""
        config = ClientConfig.from_env(Env(), client_name="inventory")

        assert config.client_name == "inventory"
