"""Prometheus metrics export."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Request metrics
request_count = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
)

# Tool metrics
tool_calls_total = Counter(
    "tool_calls_total",
    "Total agent tool calls",
    ["tool_name", "status"],  # status: success, rejected or error
)

tool_call_duration = Histogram(
    "tool_call_duration_seconds",
    "Agent tool call duration in seconds, validation included",
    ["tool_name"],
)


def record_tool_call(tool_name: str, status: str, duration_seconds: float) -> None:
    """Count one finished tool call and observe its duration."""
    tool_calls_total.labels(tool_name=tool_name, status=status).inc()
    tool_call_duration.labels(tool_name=tool_name).observe(duration_seconds)


def get_metrics_response() -> Response:
    """Get Prometheus metrics as HTTP response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
