from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

CACHE_EVENTS = Counter(
    "mememe_cache_events_total",
    "Cache operations recorded by MemeMe.",
    labelnames=("cache", "event"),
)
CACHE_REFRESH_LATENCY = Histogram(
    "mememe_cache_refresh_seconds",
    "Latency of cache refresh operations.",
    labelnames=("cache",),
)
TEMPLATE_SOURCE_REQUESTS = Counter(
    "mememe_template_source_requests_total",
    "Outbound template source requests.",
    labelnames=("source", "result"),
)
TEMPLATE_SOURCE_LATENCY = Histogram(
    "mememe_template_source_request_seconds",
    "Latency of outbound template source requests.",
    labelnames=("source",),
)
RATE_LIMIT_DECISIONS = Counter(
    "mememe_rate_limit_decisions_total",
    "Rate limiter decisions per backing store.",
    labelnames=("backend", "result"),
)
TEMPLATE_CATALOG_SIZE = Gauge(
    "mememe_template_catalog_size",
    "Number of templates in the most recently built catalog.",
)


def record_cache_event(cache: str, event: str) -> None:
    """Increment a cache event counter."""
    CACHE_EVENTS.labels(cache=cache, event=event).inc()


def observe_cache_refresh(cache: str, duration_seconds: float) -> None:
    """Record cache refresh latency."""
    CACHE_REFRESH_LATENCY.labels(cache=cache).observe(duration_seconds)


def observe_template_source_request(
    source: str, result: str, duration_seconds: float
) -> None:
    """Record template source request result and latency."""
    TEMPLATE_SOURCE_REQUESTS.labels(source=source, result=result).inc()
    TEMPLATE_SOURCE_LATENCY.labels(source=source).observe(duration_seconds)


def record_rate_limit_decision(backend: str, allowed: bool) -> None:
    """Record whether a request passed the rate limiter."""
    result = "allowed" if allowed else "rejected"
    RATE_LIMIT_DECISIONS.labels(backend=backend, result=result).inc()


def set_template_catalog_size(size: int) -> None:
    TEMPLATE_CATALOG_SIZE.set(size)
