"""
Tests for retry handlers and cause chain matching.
"""

from clientlb.loadbalancer.context import (
    DefaultLoadBalancerRetryHandler,
    RequestSpecificRetryHandler,
    is_present_as_cause,
)
from clientlb.loadbalancer.exceptions import ClientError, ClientErrorType
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey


def chained(outer: Exception, inner: Exception) -> Exception:
    try:
        try:
            raise inner

        except Exception as err:
            raise outer from err

    except Exception as err:
        return err


class TestIsPresentAsCause:
    """Test matching errors through their cause chain."""

    def test_direct_match(self):
        """The error itself should be matched."""
        assert is_present_as_cause(ConnectionRefusedError(), [ConnectionError]) is True

    def test_cause_match(self):
        """A matching cause should be found."""
        error = chained(RuntimeError("request failed"), ConnectionResetError())

        assert is_present_as_cause(error, [ConnectionError]) is True

    def test_no_match(self):
        """Unrelated chains should not match."""
        error = chained(RuntimeError("request failed"), ValueError("bad payload"))

        assert is_present_as_cause(error, [ConnectionError]) is False
        assert is_present_as_cause(None, [ConnectionError]) is False

    def test_cycles_terminate(self):
        """A cyclic chain should not loop forever."""
        first = RuntimeError("first")
        second = RuntimeError("second")
        first.__cause__ = second
        second.__cause__ = first

        assert is_present_as_cause(first, [ConnectionError]) is False


class TestDefaultLoadBalancerRetryHandler:
    """Test the default retry policy."""

    def test_disabled_never_retries(self):
        """With retries disabled nothing is retriable."""
        handler = DefaultLoadBalancerRetryHandler(1, 1, retry_enabled=False)

        assert handler.is_retriable_exception(ConnectionError(), True) is False
        assert handler.is_retriable_exception(ConnectionError(), False) is False

    def test_same_server_only_for_connection_errors(self):
        """Only connection errors and timeouts retry on the same server."""
        handler = DefaultLoadBalancerRetryHandler(1, 1, retry_enabled=True)

        assert handler.is_retriable_exception(ConnectionError(), True) is True
        assert handler.is_retriable_exception(TimeoutError(), True) is True
        assert handler.is_retriable_exception(ValueError(), True) is False
        assert handler.is_retriable_exception(ValueError(), False) is True

    def test_circuit_tripping(self):
        """Socket level errors should count against the circuit breaker."""
        handler = DefaultLoadBalancerRetryHandler()

        assert handler.is_circuit_tripping_exception(ConnectionRefusedError()) is True
        assert handler.is_circuit_tripping_exception(TimeoutError()) is True
        assert handler.is_circuit_tripping_exception(ValueError()) is False

    def test_from_config(self):
        """Retry counts should be read from client config."""
        config = (
            ClientConfig("orders")
            .set(ClientConfigKey.MAX_AUTO_RETRIES, "2")
            .set(ClientConfigKey.MAX_AUTO_RETRIES_NEXT_SERVER, 3)
            .set(ClientConfigKey.OK_TO_RETRY_ON_ALL_OPERATIONS, "true")
        )

        handler = DefaultLoadBalancerRetryHandler.from_config(config)

        assert handler.max_retries_on_same_server == 2
        assert handler.max_retries_on_next_server == 3
        assert handler.retry_enabled is True


class TestRequestSpecificRetryHandler:
    """Test per-request retry decisions."""

    def test_connection_errors(self):
        """Connection errors retry only when allowed."""
        allowed = RequestSpecificRetryHandler(True, False)
        refused = RequestSpecificRetryHandler(False, False)

        assert allowed.is_retriable_exception(ConnectionError(), True) is True
        assert allowed.is_retriable_exception(ValueError(), True) is False
        assert refused.is_retriable_exception(ConnectionError(), True) is False

    def test_all_errors(self):
        """With every error allowed anything retries."""
        handler = RequestSpecificRetryHandler(False, True)

        assert handler.is_retriable_exception(ValueError(), True) is True

    def test_server_throttled(self):
        """A throttled server should be retried elsewhere only."""
        handler = RequestSpecificRetryHandler(True, False)
        throttled = ClientError(ClientErrorType.SERVER_THROTTLED)

        assert handler.is_retriable_exception(throttled, True) is False
        assert handler.is_retriable_exception(throttled, False) is True
        assert handler.is_retriable_exception(ClientError(ClientErrorType.GENERAL), False) is False

    def test_request_config_overrides_counts(self):
        """Counts set on the request should override the fallback."""
        fallback = DefaultLoadBalancerRetryHandler(1, 2, True)
        request_config = ClientConfig("orders").set(ClientConfigKey.MAX_AUTO_RETRIES, 4)

        handler = RequestSpecificRetryHandler(
            True,
            False,
            base_retry_handler=fallback,
            request_config=request_config,
        )

        assert handler.max_retries_on_same_server == 4
        assert handler.max_retries_on_next_server == 2

    def test_circuit_tripping_delegates(self):
        """Circuit tripping should follow the fallback handler."""
        handler = RequestSpecificRetryHandler(True, False)

        assert handler.is_circuit_tripping_exception(ConnectionResetError()) is True
        assert handler.is_circuit_tripping_exception(KeyError()) is False
