from .metrics_sink import (
    CHOOSE_SERVER_COUNTER as CHOOSE_SERVER_COUNTER,
    InMemoryMetricsSink as InMemoryMetricsSink,
    MetricsSink as MetricsSink,
    MetricsSnapshot as MetricsSnapshot,
    NullMetricsSink as NullMetricsSink,
    choose_server_counter as choose_server_counter,
)
