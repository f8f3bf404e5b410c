from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
)

from pagesift.config import settings

# ---------------------------------------------------------------------------
# Cascade / strategy metrics
# ---------------------------------------------------------------------------
strategy_attempts_total = Counter(
    "strategy_attempts_total",
    "Extraction strategy attempts by strategy name and outcome",
    ["strategy", "outcome"],
)
strategy_attempt_duration_seconds = Histogram(
    "strategy_attempt_duration_seconds",
    "Duration of a single extraction strategy attempt",
    ["strategy"],
    buckets=[0.25, 0.5, 1, 2, 5, 10, 30, 60],
)
cascade_exhausted_total = Counter(
    "cascade_exhausted_total",
    "Number of extractions where every strategy failed",
)

# ---------------------------------------------------------------------------
# Pipeline metrics
# ---------------------------------------------------------------------------
extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "End-to-end time for one product extraction",
    buckets=[0.5, 1, 2, 5, 10, 30, 60, 120],
)
llm_requests_total = Counter(
    "llm_requests_total",
    "Structured extraction calls to the language model",
    ["status"],
)

# ---------------------------------------------------------------------------
# Relevance engine
# ---------------------------------------------------------------------------
json_sections_truncated_total = Counter(
    "json_sections_truncated_total",
    "Number of times the JSON section set had to be cut to the token budget",
)

# ---------------------------------------------------------------------------
# Browser
# ---------------------------------------------------------------------------
active_browser_contexts = Gauge(
    "active_browser_contexts",
    "Number of currently active browser contexts",
)
browser_release_failures_total = Counter(
    "browser_release_failures_total",
    "Browser contexts or processes that failed to close cleanly",
)


def record_attempt(strategy: str, outcome: str, seconds: float) -> None:
    """Count one strategy attempt, honouring METRICS_ENABLED."""
    if not settings.METRICS_ENABLED:
        return
    strategy_attempts_total.labels(strategy=strategy, outcome=outcome).inc()
    strategy_attempt_duration_seconds.labels(strategy=strategy).observe(seconds)


def record_cascade_exhausted() -> None:
    if settings.METRICS_ENABLED:
        cascade_exhausted_total.inc()
