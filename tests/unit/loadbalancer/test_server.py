"""
Tests for server id parsing and identity.
"""

import pytest

from clientlb.loadbalancer.models import Server, ServerGroup, UNKNOWN_ZONE


class TestServerParsing:
    """Test building servers from id strings."""

    def test_host_and_port(self):
        """A host:port id should split into host and numeric port."""
        server = Server.from_id("10.0.0.1:8080")

        assert server.host == "10.0.0.1"
        assert server.port == 8080
        assert server.id == "10.0.0.1:8080"
        assert server.scheme is None

    def test_host_only_defaults_to_port_80(self):
        """An id without a port should use port 80."""
        server = Server.from_id("orders.internal")

        assert server.port == 80
        assert server.id == "orders.internal:80"

    def test_http_scheme_is_stripped(self):
        """An http:// prefix and path should be removed from the id."""
        server = Server.from_id("http://10.0.0.1:9000/health")

        assert server.scheme == "http"
        assert server.host == "10.0.0.1"
        assert server.port == 9000

    def test_https_defaults_to_port_443(self):
        """An https:// id without a port should use port 443."""
        server = Server.from_id("https://secure.internal/path")

        assert server.scheme == "https"
        assert server.port == 443
        assert server.id == "secure.internal:443"

    def test_invalid_port_raises(self):
        """A non-numeric port should raise ValueError."""
        with pytest.raises(ValueError):
            Server.from_id("10.0.0.1:http")

    def test_normalize_id(self):
        """normalize_id should produce the canonical host:port form."""
        assert Server.normalize_id("http://10.0.0.1/") == "10.0.0.1:80"
        assert Server.normalize_id(None) is None


class TestServerIdentity:
    """Test equality, hashing and default flags."""

    def test_equality_by_id(self):
        """Servers with the same id should be equal regardless of flags."""
        first = Server("10.0.0.1", 8080, zone="a")
        second = Server.from_id("http://10.0.0.1:8080", zone="b")
        second.is_alive = True

        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1

    def test_defaults(self):
        """New servers start dead, ready to serve, in the unknown zone."""
        server = Server("10.0.0.1")

        assert server.is_alive is False
        assert server.ready_to_serve is True
        assert server.zone == UNKNOWN_ZONE
        assert server.host_port == "10.0.0.1:80"

    def test_not_equal_to_other_types(self):
        """Comparing with a string should not match."""
        assert Server("10.0.0.1", 80) != "10.0.0.1:80"

    def test_server_groups(self):
        """The three server groups should be distinct."""
        assert len({ServerGroup.ALL, ServerGroup.STATUS_UP, ServerGroup.STATUS_NOT_UP}) == 3
