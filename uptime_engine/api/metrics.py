"""Prometheus exposition endpoint."""

from fastapi.responses import Response

from uptime_engine.core.metrics import metrics_collector


async def metrics_endpoint() -> Response:
    """Expose engine metrics in Prometheus text format."""
    return Response(
        content=metrics_collector.generate_metrics(),
        media_type=metrics_collector.content_type
    )
