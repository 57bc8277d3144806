"""
Tests for BaseLoadBalancer server list management, the ping cycle,
listeners and selection.
"""

import threading
import time

import pytest

from clientlb.loadbalancer.balancers import BaseLoadBalancer
from clientlb.loadbalancer.metrics import choose_server_counter
from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server, ServerGroup
from clientlb.loadbalancer.ping import DummyPing, PingConstant
from clientlb.loadbalancer.priming import PrimeConnection, PrimeConnections
from clientlb.loadbalancer.rules import RandomRule, RoundRobinRule, Rule


class RecordingListener:
    def __init__(self) -> None:
        self.list_changes: list[tuple[tuple[Server, ...], tuple[Server, ...]]] = []
        self.status_changes: list[tuple[Server, ...]] = []

    def server_list_changed(self, old_list, new_list):
        self.list_changes.append((tuple(old_list), tuple(new_list)))

    def server_status_changed(self, servers):
        self.status_changes.append(tuple(servers))


class BrokenListener:
    def server_list_changed(self, old_list, new_list):
        raise RuntimeError("listener failure")

    def server_status_changed(self, servers):
        raise RuntimeError("listener failure")


class ExplodingRule(Rule):
    def choose(self, key=None):
        raise RuntimeError("rule failure")


class GatedPrimeConnection(PrimeConnection):
    def __init__(self) -> None:
        self.connected: list[str] = []
        self.release = threading.Event()

    def connect(self, server: Server, uri_path: str) -> bool:
        self.release.wait(5)
        self.connected.append(server.id)
        return True


# =============================================================================
# Server list management
# =============================================================================


class TestServerList:
    """Test replacing and extending the server list."""

    def test_dummy_ping_marks_all_alive(self, make_balancer, servers: list[Server]):
        """With a no-op ping every server is alive and up."""
        balancer = make_balancer(name="orders", ping=DummyPing())
        balancer.set_servers_list(servers)

        assert all(server.is_alive for server in servers)
        assert balancer.get_reachable_servers() == tuple(servers)
        assert balancer.get_all_servers() == tuple(servers)
        assert balancer.is_ping_task_running is False

    def test_strings_are_parsed_and_none_skipped(self, make_balancer, server_ids: list[str]):
        """String ids should become servers and None entries be skipped."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list([server_ids[0], None, server_ids[1]])

        assert [server.id for server in balancer.get_all_servers()] == server_ids[:2]

    def test_invalid_entry_raises(self, make_balancer):
        """Entries of the wrong type should raise TypeError."""
        balancer = make_balancer(name="orders")

        with pytest.raises(TypeError):
            balancer.set_servers_list([42])

    def test_set_servers_from_csv(self, make_balancer):
        """A comma separated id list should replace the server list."""
        balancer = make_balancer(name="orders")
        balancer.set_servers("10.0.0.1:80, 10.0.0.2:80,,")

        assert balancer.get_server_count() == 2

    def test_add_servers_appends(self, make_balancer, servers: list[Server]):
        """add_server and add_servers should extend the list."""
        balancer = make_balancer(name="orders")
        balancer.add_servers(servers[:2])
        balancer.add_server(servers[2])
        balancer.add_servers([])

        assert balancer.get_all_servers() == tuple(servers)

    def test_returns_whether_changed(self, make_balancer, servers: list[Server]):
        """set_servers_list should report whether the list changed."""
        balancer = make_balancer(name="orders")

        assert balancer.set_servers_list(servers) is True
        assert balancer.set_servers_list(list(servers)) is False

    def test_resetting_same_ids_keeps_servers_selectable(self, make_balancer):
        """Setting the same ids again should keep the tracked, alive servers."""
        balancer = make_balancer(name="orders", ping=PingConstant(True))
        server_ids = ["10.0.0.1:80", "10.0.0.2:80"]

        assert balancer.set_servers_list(server_ids) is True
        tracked = balancer.get_all_servers()

        assert balancer.set_servers_list(server_ids) is False
        assert balancer.set_servers_list([Server.from_id(server_id) for server_id in server_ids]) is False

        assert all(
            current is previous
            for current, previous in zip(balancer.get_all_servers(), tracked)
        )
        assert all(server.is_alive for server in balancer.get_all_servers())
        assert balancer.choose_server() is not None

    def test_resetting_same_id_updates_zone(self, make_balancer):
        """A known server given again with a zone should take that zone."""
        balancer = make_balancer(name="orders", ping=PingConstant(True))
        balancer.set_servers_list(["10.0.0.1:80"])

        balancer.set_servers_list([Server("10.0.0.1", 80, zone="us-east-1a")])

        assert balancer.get_all_servers()[0].zone == "us-east-1a"
        assert balancer.get_all_servers()[0].is_alive is True

    def test_list_swap_is_atomic(self, make_balancer, servers: list[Server]):
        """Readers should only ever see a complete old or new list."""
        balancer = make_balancer(name="orders")
        first = tuple(servers)
        second = tuple(Server(f"10.1.0.{index}", 80) for index in range(5))
        balancer.set_servers_list(first)

        seen: set[tuple[Server, ...]] = set()
        stop = threading.Event()

        def read():
            while not stop.is_set():
                seen.add(balancer.get_all_servers())

        reader = threading.Thread(target=read)
        reader.start()

        for _ in range(200):
            balancer.set_servers_list(second)
            balancer.set_servers_list(first)

        stop.set()
        reader.join()

        assert seen <= {first, second}

    def test_stats_track_new_servers(self, make_balancer, servers: list[Server]):
        """New servers should get stats entries."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)

        assert all(balancer.load_balancer_stats.has_server_stats(server) for server in servers)


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Test server list queries."""

    def test_groups(self, make_balancer, servers: list[Server], recording_ping):
        """Server groups should partition the list by status."""
        recording_ping.answers[servers[1].id] = False
        balancer = make_balancer(name="orders", ping=recording_ping)
        balancer.set_servers_list(servers)

        assert balancer.get_server_list_by_group(ServerGroup.ALL) == tuple(servers)
        assert balancer.get_server_list_by_group(ServerGroup.STATUS_UP) == (servers[0], servers[2])
        assert balancer.get_server_list_by_group(ServerGroup.STATUS_NOT_UP) == (servers[1],)
        assert balancer.get_server_count(only_available=True) == 2
        assert balancer.get_server_list(available_only=True) == (servers[0], servers[2])

    def test_get_server_by_index(self, make_balancer, servers: list[Server]):
        """Indexes outside the list should return None."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)

        assert balancer.get_server_by_index(1) == servers[1]
        assert balancer.get_server_by_index(3) is None
        assert balancer.get_server_by_index(-1) is None


# =============================================================================
# Health
# =============================================================================


class TestMarkServerDown:
    """Test marking servers dead."""

    def test_mark_down_notifies_once(self, make_balancer, servers: list[Server]):
        """Marking a server down twice should notify only once."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)
        listener = RecordingListener()
        balancer.add_server_status_change_listener(listener)

        balancer.mark_server_down(servers[0])
        balancer.mark_server_down(servers[0])

        assert servers[0].is_alive is False
        assert listener.status_changes == [(servers[0],)]

    def test_mark_down_by_id(self, make_balancer, servers: list[Server]):
        """Servers can be marked down by id string."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)

        balancer.mark_server_down("http://10.0.0.2:8080")
        balancer.mark_server_down(None)

        assert servers[1].is_alive is False
        assert servers[0].is_alive is True

    @pytest.mark.parametrize("rule_type", [RoundRobinRule, RandomRule])
    def test_dead_servers_never_chosen(self, make_balancer, servers: list[Server], rule_type):
        """Only the remaining live server, then nothing, should be selected."""
        balancer = make_balancer(name="orders", rule=rule_type())
        balancer.set_servers_list(servers)
        balancer.mark_server_down(servers[1])
        balancer.mark_server_down(servers[2])

        assert {balancer.choose_server() for _ in range(30)} == {servers[0]}

        balancer.mark_server_down(servers[0])

        assert balancer.choose_server() is None


class TestPingCycle:
    """Test the ping cycle and up list maintenance."""

    def test_list_change_pings_immediately(self, make_balancer, servers: list[Server], recording_ping):
        """A changed list with a real ping should ping right away."""
        recording_ping.answers[servers[0].id] = False
        balancer = make_balancer(name="orders", ping=recording_ping)

        balancer.set_servers_list(servers)

        assert sorted(recording_ping.calls) == sorted(server.id for server in servers)
        assert balancer.get_reachable_servers() == (servers[1], servers[2])
        assert servers[0].is_alive is False

    def test_up_list_is_subset_of_all(self, make_balancer, servers: list[Server], recording_ping):
        """Every up server should be in the full list and alive."""
        recording_ping.answers[servers[2].id] = False
        balancer = make_balancer(name="orders", ping=recording_ping)
        balancer.set_servers_list(servers)

        balancer.set_servers_list(servers[1:])

        up = balancer.get_reachable_servers()
        assert set(up) <= set(balancer.get_all_servers())
        assert all(server.is_alive for server in up)
        assert up == (servers[1],)

    def test_status_listener_receives_changes(self, make_balancer, servers: list[Server], recording_ping):
        """Status listeners should receive servers whose state flipped."""
        balancer = make_balancer(name="orders", ping=recording_ping)
        listener = RecordingListener()
        balancer.add_server_status_change_listener(listener)

        balancer.set_servers_list(servers)
        recording_ping.answers[servers[1].id] = False
        balancer.force_quick_ping()

        assert listener.status_changes[0] == tuple(servers)
        assert listener.status_changes[1] == (servers[1],)

    def test_overlapping_cycle_is_dropped(self, make_balancer, servers: list[Server], recording_ping):
        """A cycle started while another runs should do nothing."""
        balancer = make_balancer(name="orders", ping=recording_ping)
        balancer.set_servers_list(servers)
        recording_ping.calls.clear()

        assert balancer._ping_in_progress.acquire(blocking=False)
        try:
            assert balancer.is_ping_in_progress is True
            balancer.force_quick_ping()

        finally:
            balancer._ping_in_progress.release()

        assert recording_ping.calls == []
        assert balancer.is_ping_in_progress is False

    def test_failing_ping_marks_dead(self, make_balancer, servers: list[Server]):
        """A ping that always fails leaves nothing up."""
        balancer = make_balancer(name="orders", ping=PingConstant(False))
        balancer.set_servers_list(servers)

        assert balancer.get_reachable_servers() == ()
        assert balancer.choose_server() is None

    def test_timer_runs_cycles(self, make_balancer, servers: list[Server], recording_ping):
        """The background task should ping on its interval."""
        balancer = make_balancer(name="orders", ping=recording_ping, ping_interval=3600)
        balancer.set_servers_list(servers)
        recording_ping.calls.clear()

        pinged = threading.Event()
        original = recording_ping.is_alive

        def is_alive(server):
            pinged.set()
            return original(server)

        recording_ping.is_alive = is_alive
        balancer._ping_interval = 0.05
        balancer._setup_ping_task()

        assert balancer.is_ping_task_running is True
        assert pinged.wait(5) is True

        balancer.cancel_ping_task()
        assert balancer.is_ping_task_running is False

    def test_set_ping_none_stops_task(self, make_balancer, recording_ping):
        """Clearing the ping should stop the background task."""
        balancer = make_balancer(name="orders", ping=recording_ping)
        assert balancer.is_ping_task_running is True

        balancer.set_ping(None)

        assert balancer.is_ping_task_running is False

    def test_interval_setters_ignore_small_values(self, make_balancer, recording_ping):
        """Intervals below one second should be ignored by the setters."""
        balancer = make_balancer(name="orders", ping=recording_ping)

        balancer.set_ping_interval(0)
        balancer.set_max_total_ping_time(0.5)

        assert balancer.ping_interval == 3600
        assert balancer.max_total_ping_time == 2

        balancer.set_ping_interval(120)
        balancer.set_max_total_ping_time(5)

        assert balancer.ping_interval == 120
        assert balancer.max_total_ping_time == 5


# =============================================================================
# Listeners
# =============================================================================


class TestListeners:
    """Test listener registration and isolation."""

    def test_list_change_listener(self, make_balancer, servers: list[Server]):
        """List listeners should get the old and new lists on change only."""
        balancer = make_balancer(name="orders")
        listener = RecordingListener()
        balancer.add_server_list_change_listener(listener)

        balancer.set_servers_list(servers)
        balancer.set_servers_list(servers)

        assert listener.list_changes == [((), tuple(servers))]

    def test_listener_errors_are_isolated(self, make_balancer, servers: list[Server]):
        """A failing listener should not stop the others."""
        balancer = make_balancer(name="orders")
        listener = RecordingListener()
        balancer.add_server_list_change_listener(BrokenListener())
        balancer.add_server_list_change_listener(listener)
        balancer.add_server_status_change_listener(BrokenListener())
        balancer.add_server_status_change_listener(listener)

        balancer.set_servers_list(servers)
        balancer.mark_server_down(servers[0])

        assert len(listener.list_changes) == 1
        assert listener.status_changes == [(servers[0],)]

    def test_remove_listener(self, make_balancer, servers: list[Server]):
        """Removed listeners should no longer be notified."""
        balancer = make_balancer(name="orders")
        listener = RecordingListener()
        balancer.add_server_list_change_listener(listener)
        balancer.remove_server_list_change_listener(listener)
        balancer.add_server_status_change_listener(listener)
        balancer.remove_server_status_change_listener(listener)

        balancer.set_servers_list(servers)

        assert listener.list_changes == []
        assert balancer.get_server_list_change_listeners() == ()
        assert balancer.get_server_status_change_listeners() == ()


# =============================================================================
# Selection, rules and metrics
# =============================================================================


class TestSelection:
    """Test choose_server and rule management."""

    def test_default_rule_is_round_robin(self, make_balancer):
        """A balancer built without a rule should use round robin."""
        balancer = make_balancer(name="orders")

        assert isinstance(balancer.rule, RoundRobinRule)
        assert balancer.rule.load_balancer is balancer

    def test_set_rule_none_resets_to_round_robin(self, make_balancer):
        """Setting the rule to None should restore round robin."""
        balancer = make_balancer(name="orders", rule=RandomRule())
        balancer.set_rule(None)

        assert isinstance(balancer.rule, RoundRobinRule)

    def test_rule_errors_return_none(self, make_balancer, servers: list[Server]):
        """A failing rule should yield None instead of raising."""
        balancer = make_balancer(name="orders", rule=ExplodingRule())
        balancer.set_servers_list(servers)

        assert balancer.choose_server() is None
        assert balancer.choose() is None

    def test_choose_returns_id(self, make_balancer, servers: list[Server]):
        """choose() should return the chosen server's id."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)

        assert balancer.choose() == servers[0].id

    def test_metrics(self, make_balancer, metrics_sink, servers: list[Server]):
        """Selections should be counted and the balancer registered until shutdown."""
        balancer = make_balancer(name="orders", metrics_sink=metrics_sink)
        balancer.set_servers_list(servers)

        balancer.choose_server()
        balancer.choose_server()

        assert metrics_sink.is_registered("orders")
        assert metrics_sink.get_source("orders") is balancer
        assert metrics_sink.get_counter(choose_server_counter("orders")) == 2

        balancer.shutdown()
        balancer.shutdown()

        assert metrics_sink.is_registered("orders") is False


# =============================================================================
# Priming
# =============================================================================


class TestPriming:
    """Test connection priming of new servers."""

    def test_new_servers_primed(self, make_balancer, servers: list[Server]):
        """New servers should not be ready to serve until primed."""
        connector = GatedPrimeConnection()
        config = ClientConfig("orders").set(
            ClientConfigKey.MAX_RETRIES_PER_SERVER_PRIME_CONNECTION,
            0,
        )
        priming = PrimeConnections("orders", connector, config=config)

        balancer = make_balancer(
            name="orders",
            prime_connections=priming,
            enable_prime_connections=True,
        )

        balancer.set_servers_list(servers[:1])
        assert servers[0].ready_to_serve is False

        connector.release.set()

        deadline = time.monotonic() + 5
        while not servers[0].ready_to_serve and time.monotonic() < deadline:
            time.sleep(0.01)

        assert servers[0].ready_to_serve is True
        assert connector.connected == [servers[0].id]

    def test_priming_disabled(self, make_balancer, servers: list[Server]):
        """Without priming enabled new servers are ready immediately."""
        balancer = make_balancer(name="orders")
        balancer.set_servers_list(servers)

        assert all(server.ready_to_serve for server in servers)
        assert balancer.enable_prime_connections is False


def test_repr(make_balancer, servers: list[Server]):
    balancer: BaseLoadBalancer = make_balancer(name="orders")
    balancer.set_servers_list(servers)

    assert "orders" in repr(balancer)
