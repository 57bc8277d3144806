from typing import Sequence

from clientlb.loadbalancer.models import ClientConfig, ClientConfigKey, Server
from clientlb.loadbalancer.stats import LoadBalancerStats

from .zone_affinity_filter import ZoneAffinityServerListFilter


class ZonePreferenceServerListFilter(ZoneAffinityServerListFilter):
    """
    Prefers servers in the client's own zone.

    When the affinity filter left the list untouched and a preferred zone
    is known, narrows to servers in that zone (compared case-insensitively).
    If no server is in the preferred zone, the affinity filter's output is
    returned unchanged, so the result is never empty for a non-empty input.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        preferred_zone: str | None = None,
        load_balancer_stats: LoadBalancerStats | None = None,
        **kwargs,
    ) -> None:
        super().__init__(
            config=config,
            load_balancer_stats=load_balancer_stats,
            **kwargs,
        )

        if preferred_zone is None and config is not None:
            preferred_zone = config.get(ClientConfigKey.DEPLOYMENT_ZONE)

        self.preferred_zone = preferred_zone

    def get_filtered_list_of_servers(self, servers: Sequence[Server]) -> list[Server]:
        filtered = super().get_filtered_list_of_servers(servers)

        if self.preferred_zone and len(filtered) == len(servers):
            preferred = self.preferred_zone.lower()
            local_servers = [
                server
                for server in filtered
                if server.zone and server.zone.lower() == preferred
            ]

            if local_servers:
                return local_servers

        return filtered
