"""
Tests for DynamicServerListLoadBalancer refreshes, filtering and zone
mapping.
"""

import threading
import time
from typing import Callable, Generator

import pytest

from clientlb.loadbalancer.balancers import (
    ConfiguredServerList,
    DynamicServerListLoadBalancer,
    PollingServerListUpdater,
    ServerList,
    StaticServerList,
)
from clientlb.loadbalancer.filters import ZoneAffinityServerListFilter
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server


class MutableServerList(ServerList):
    def __init__(self, servers: list[Server]) -> None:
        self.servers = list(servers)
        self.calls = 0
        self._lock = threading.Lock()

    def get_initial_list_of_servers(self) -> list[Server]:
        return list(self.servers)

    def get_updated_list_of_servers(self) -> list[Server]:
        with self._lock:
            self.calls += 1

        return list(self.servers)


def idle_updater() -> PollingServerListUpdater:
    return PollingServerListUpdater(initial_delay=3600, refresh_interval=3600)


@pytest.fixture
def make_dynamic() -> Generator[Callable[..., DynamicServerListLoadBalancer], None, None]:
    created: list[DynamicServerListLoadBalancer] = []

    def create(**kwargs) -> DynamicServerListLoadBalancer:
        kwargs.setdefault("ping_interval", 3600)
        kwargs.setdefault("server_list_updater", idle_updater())
        balancer = DynamicServerListLoadBalancer(**kwargs)
        created.append(balancer)
        return balancer

    yield create

    for balancer in created:
        balancer.shutdown()


class TestInitialization:
    """Test the first refresh performed on construction."""

    def test_initial_list_loaded(self, make_dynamic, servers: list[Server]):
        """The server list should be populated during construction."""
        balancer = make_dynamic(name="orders", server_list=StaticServerList(servers))

        assert balancer.get_all_servers() == tuple(servers)
        assert balancer.get_reachable_servers() == tuple(servers)
        assert balancer.server_list_updater.is_active is True

    def test_no_server_list(self, make_dynamic):
        """Without a server list source the balancer stays empty."""
        balancer = make_dynamic(name="orders")

        assert balancer.get_all_servers() == ()
        assert balancer.choose_server() is None

    def test_filter_receives_balancer_stats(self, make_dynamic, zoned_servers: list[Server]):
        """A filter without stats should share the balancer's stats."""
        config = (
            ClientConfig("orders")
            .set(ClientConfigKey.DEPLOYMENT_ZONE, "us-east-1a")
            .set(ClientConfigKey.ENABLE_ZONE_AFFINITY, True)
        )
        server_filter = ZoneAffinityServerListFilter(config)

        balancer = make_dynamic(
            name="orders",
            server_list=StaticServerList(zoned_servers),
            server_list_filter=server_filter,
        )

        assert server_filter.load_balancer_stats is balancer.load_balancer_stats
        assert balancer.get_all_servers() == tuple(zoned_servers[:2])


class TestRefresh:
    """Test refreshing the server list."""

    def test_update_picks_up_changes(self, make_dynamic, servers: list[Server]):
        """A refresh should replace the list with the source's list."""
        source = MutableServerList(servers[:1])
        balancer = make_dynamic(name="orders", server_list=source)

        source.servers = servers
        balancer.update_list_of_servers()

        assert balancer.get_all_servers() == tuple(servers)

    def test_unchanged_list_is_pinged(
        self,
        make_dynamic,
        servers: list[Server],
        recording_ping,
    ):
        """An unchanged refresh should still settle server state by pinging."""
        recording_ping.answers[servers[0].id] = False
        balancer = make_dynamic(
            name="orders",
            server_list=StaticServerList(servers),
            ping=recording_ping,
        )

        assert balancer.get_reachable_servers() == tuple(servers[1:])

        calls_before = len(recording_ping.calls)
        balancer.update_list_of_servers()

        assert len(recording_ping.calls) == calls_before + len(servers)
        assert servers[0].is_alive is False
        assert balancer.get_reachable_servers() == tuple(servers[1:])

    def test_overlapping_update_is_dropped(self, make_dynamic, servers: list[Server]):
        """An update started while another runs should do nothing."""
        balancer = make_dynamic(name="orders")

        assert balancer._server_list_update_in_progress.acquire(blocking=False)
        try:
            balancer.update_all_server_list(servers)

        finally:
            balancer._server_list_update_in_progress.release()

        assert balancer.get_all_servers() == ()

    def test_configured_server_list(self, make_dynamic):
        """Servers should be read from listOfServers on every refresh."""
        config = (
            ClientConfig("orders")
            .set(ClientConfigKey.LIST_OF_SERVERS, "10.0.0.1:80, 10.0.0.2:80")
            .set(ClientConfigKey.DEPLOYMENT_ZONE, "us-west-2a")
        )
        balancer = make_dynamic(name="orders", server_list=ConfiguredServerList(config))

        assert [server.id for server in balancer.get_all_servers()] == [
            "10.0.0.1:80",
            "10.0.0.2:80",
        ]
        assert all(server.zone == "us-west-2a" for server in balancer.get_all_servers())

        config.set(ClientConfigKey.LIST_OF_SERVERS, ["10.0.0.3:80"])
        balancer.update_list_of_servers()

        assert [server.id for server in balancer.get_all_servers()] == ["10.0.0.3:80"]


class TestZoneMapping:
    """Test the zone to server mapping kept in stats."""

    def test_servers_grouped_by_zone(self, make_dynamic, zoned_servers: list[Server]):
        """Every server should be mapped under its lowercased zone."""
        zoned_servers[2].zone = "US-EAST-1B"
        balancer = make_dynamic(name="orders", server_list=StaticServerList(zoned_servers))
        stats = balancer.load_balancer_stats

        assert stats.get_available_zones() == {"us-east-1a", "us-east-1b"}
        assert stats.get_zone_servers("us-east-1a") == tuple(zoned_servers[:2])
        assert stats.get_zone_servers("us-east-1b") == tuple(zoned_servers[2:])
        assert stats.get_instance_count("US-EAST-1A") == 2


class TestServerListUpdater:
    """Test the polling updater."""

    def test_polling_refreshes(self, make_dynamic, servers: list[Server]):
        """The updater should refresh the list in the background."""
        source = MutableServerList(servers[:1])
        balancer = make_dynamic(
            name="orders",
            server_list=source,
            server_list_updater=PollingServerListUpdater(
                initial_delay=0.01,
                refresh_interval=0.05,
            ),
        )

        source.servers = servers

        deadline = time.monotonic() + 5
        while balancer.get_server_count() != len(servers) and time.monotonic() < deadline:
            time.sleep(0.01)

        assert balancer.get_all_servers() == tuple(servers)
        assert balancer.get_last_update() is not None

    def test_stop_on_shutdown(self, make_dynamic):
        """Shutting down should stop the updater."""
        balancer = make_dynamic(name="orders")
        updater = balancer.server_list_updater

        balancer.shutdown()

        assert updater.is_active is False

    def test_start_twice_is_ignored(self):
        """Starting an active updater again should not start a second loop."""
        updater = idle_updater()
        updater.start(lambda: None)
        thread = updater._thread

        updater.start(lambda: None)

        assert updater._thread is thread
        updater.stop()
        assert updater.is_active is False

    def test_failing_action_keeps_polling(self):
        """A failing update should be logged and the next one still run."""
        calls: list[int] = []
        done = threading.Event()

        def update():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

            raise RuntimeError("discovery unavailable")

        updater = PollingServerListUpdater(initial_delay=0.01, refresh_interval=0.01)
        updater.start(update)

        try:
            assert done.wait(5) is True

        finally:
            updater.stop()

        assert updater.get_last_update() is None
        assert updater.get_num_missed_cycles() == 0

    def test_refresh_interval_must_be_positive(self):
        """A non-positive refresh interval should be rejected."""
        with pytest.raises(ValueError):
            PollingServerListUpdater(refresh_interval=0)
