from .data_distribution import (
    DataDistribution as DataDistribution,
    DataSample as DataSample,
    Percent as Percent,
)
from .distribution import Distribution as Distribution
from .load_balancer_stats import LoadBalancerStats as LoadBalancerStats
from .measured_rate import MeasuredRate as MeasuredRate
from .server_stats import ServerStats as ServerStats, ServerStatsConfig as ServerStatsConfig
from .zone_stats import ZoneStats as ZoneStats
