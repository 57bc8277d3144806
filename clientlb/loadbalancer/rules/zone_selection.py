"""
Zone selection helpers shared by zone-avoiding rules and the zone aware
balancer.

``get_available_zones`` removes zones that have no instances, whose
tripped-instance ratio reaches ``triggering_blackout_percentage`` or whose
load is negative. If the worst load per server reaches ``triggering_load``
or any zone was removed, one of the worst loaded zones is removed too,
unless it is the only zone left.
"""

import random
from typing import Mapping

from clientlb.loadbalancer.models import ZoneSnapshot
from clientlb.loadbalancer.stats import LoadBalancerStats


LOAD_EPSILON = 0.000001


def create_snapshot(load_balancer_stats: LoadBalancerStats) -> dict[str, ZoneSnapshot]:
    return {
        zone: load_balancer_stats.get_zone_snapshot(zone)
        for zone in load_balancer_stats.get_available_zones()
    }


def random_choose_zone(
    snapshot: Mapping[str, ZoneSnapshot],
    choose_from: set[str] | None,
) -> str | None:
    """
    Pick one zone from ``choose_from``, weighted by instance count.
    """
    if not choose_from:
        return None

    zones = sorted(choose_from)
    if len(zones) == 1:
        return zones[0]

    weights = [
        snapshot[zone].instance_count if zone in snapshot else 0
        for zone in zones
    ]

    total = sum(weights)
    if total <= 0:
        return random.choice(zones)

    index = random.randint(1, total)
    running = 0
    for zone, weight in zip(zones, weights):
        running += weight
        if index <= running:
            return zone

    return zones[-1]


def get_available_zones(
    snapshot: Mapping[str, ZoneSnapshot],
    triggering_load: float,
    triggering_blackout_percentage: float,
) -> set[str] | None:
    if not snapshot:
        return None

    available_zones = set(snapshot)
    if len(available_zones) == 1:
        return available_zones

    worst_zones: set[str] = set()
    max_load_per_server = 0.0
    limited_zone_availability = False

    for zone, zone_snapshot in snapshot.items():
        instance_count = zone_snapshot.instance_count
        if instance_count == 0:
            available_zones.discard(zone)
            limited_zone_availability = True
            continue

        load_per_server = zone_snapshot.load_per_server
        blackout_ratio = zone_snapshot.circuit_tripped_count / instance_count

        if blackout_ratio >= triggering_blackout_percentage or load_per_server < 0:
            available_zones.discard(zone)
            limited_zone_availability = True

        elif abs(load_per_server - max_load_per_server) < LOAD_EPSILON:
            worst_zones.add(zone)

        elif load_per_server > max_load_per_server:
            max_load_per_server = load_per_server
            worst_zones = {zone}

    if max_load_per_server < triggering_load and not limited_zone_availability:
        return available_zones

    # The last remaining zone is never avoided.
    zone_to_avoid = random_choose_zone(snapshot, worst_zones)
    if zone_to_avoid is not None and len(available_zones) > 1:
        available_zones.discard(zone_to_avoid)

    return available_zones

