"""Prometheus metrics instrumentation for the signaling relay.

Metrics are exposed via HTTP on a separate port (8001 by default) when
METRICS_ENABLED is set.

Metrics exported:
- relay_signals_total: Counter of signaling payloads by route
- relay_registered_connections: Gauge of connections with a registered identity
- relay_admin_connections: Gauge of connections registered as admin
- relay_active_retry_broadcasts: Gauge of running caller retry broadcasts
- relay_bound_callers: Gauge of callers claimed by an admin

Usage:
    from relay.services.metrics import start_metrics_server, signals_routed

    start_metrics_server(port=8001)
    signals_routed.labels(route='direct').inc()
"""

from prometheus_client import Counter, Gauge, start_http_server
import logging

logger = logging.getLogger(__name__)

# route: broadcast, suppressed, direct, buffered, flushed, conflict, dropped
signals_routed = Counter(
    'relay_signals_total',
    'Signaling payloads handled by the router',
    labelnames=['route']
)

registered_connections_gauge = Gauge(
    'relay_registered_connections',
    'Number of connections with a registered identity'
)

admin_connections_gauge = Gauge(
    'relay_admin_connections',
    'Number of connections registered with the admin role'
)

active_retries_gauge = Gauge(
    'relay_active_retry_broadcasts',
    'Number of callers with a running retry broadcast'
)

bound_callers_gauge = Gauge(
    'relay_bound_callers',
    'Number of callers currently claimed by an admin'
)


def start_metrics_server(port: int = 8001):
    """Start Prometheus metrics HTTP server."""
    try:
        start_http_server(port)
        logger.info(f"✅ Metrics server started on port {port}")
    except Exception as e:
        logger.error(f"❌ Failed to start metrics server: {e}")
