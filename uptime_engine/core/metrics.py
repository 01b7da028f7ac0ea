"""Prometheus metrics collection for the monitor execution engine."""

from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST
)

from uptime_engine.utils.logger import get_logger

logger = get_logger(__name__)


class MetricsCollector:
    """Prometheus metrics collector for Uptime Engine."""
    
    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.
        
        Args:
            registry: Optional custom registry
        """
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()
        logger.debug("Prometheus metrics collector initialized")
    
    def _setup_metrics(self) -> None:
        """Setup all Prometheus metrics."""
        
        # Probe metrics
        self.checks_total = Counter(
            'uptime_engine_checks_total',
            'Total number of probes performed',
            ['status'],
            registry=self.registry
        )
        
        self.check_duration = Histogram(
            'uptime_engine_check_duration_seconds',
            'Probe latency in seconds',
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self.registry
        )
        
        self.monitor_up = Gauge(
            'uptime_engine_monitor_up',
            'Result of the latest probe (1=up, 0=down)',
            ['monitor_id'],
            registry=self.registry
        )
        
        # Incident metrics
        self.incidents_total = Counter(
            'uptime_engine_incidents_total',
            'Incident state transitions',
            ['event'],
            registry=self.registry
        )
        
        # Alert metrics
        self.alerts_total = Counter(
            'uptime_engine_alerts_total',
            'Alert delivery attempts',
            ['channel_type', 'status'],
            registry=self.registry
        )
        
        # Scheduler metrics
        self.scheduled_monitors = Gauge(
            'uptime_engine_scheduled_monitors',
            'Number of monitors currently scheduled',
            registry=self.registry
        )
        
        self.interval_groups = Gauge(
            'uptime_engine_interval_groups',
            'Number of interval timer groups',
            registry=self.registry
        )
    
    def record_check(self, monitor_id: int, is_up: bool, response_time_ms: Optional[int]) -> None:
        """Record the outcome of one probe."""
        self.checks_total.labels(status="up" if is_up else "down").inc()
        if response_time_ms is not None:
            self.check_duration.observe(response_time_ms / 1000.0)
        self.monitor_up.labels(monitor_id=str(monitor_id)).set(1 if is_up else 0)
    
    def record_incident(self, event: str) -> None:
        """Record an incident transition (opened/resolved)."""
        self.incidents_total.labels(event=event).inc()
    
    def record_alert(self, channel_type: str, status: str) -> None:
        """Record one alert delivery attempt."""
        self.alerts_total.labels(channel_type=channel_type, status=status).inc()
    
    def update_schedule(self, monitor_count: int, group_count: int) -> None:
        """Update scheduler gauges."""
        self.scheduled_monitors.set(monitor_count)
        self.interval_groups.set(group_count)
    
    def forget_monitor(self, monitor_id: int) -> None:
        """Drop the per-monitor series of a monitor that is no longer scheduled."""
        try:
            self.monitor_up.remove(str(monitor_id))
        except KeyError:
            pass
    
    def generate_metrics(self) -> bytes:
        """Render metrics in Prometheus text format."""
        return generate_latest(self.registry)
    
    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST


# Global metrics collector instance
metrics_collector = MetricsCollector()
