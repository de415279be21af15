"""Prometheus Metrics - guided session observability.

Exports:
- Session counts and outcomes
- Cue traffic by kind (sent / dropped)
- Barrier wait latency and timeouts
- Transport errors
- Narration cache effectiveness
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# -----------------------------------------------------------------------------
# Latency Histograms
# -----------------------------------------------------------------------------

# Barrier wait: cue sent → continuation received
BARRIER_WAIT_HISTOGRAM = Histogram(
    "yogaflow_barrier_wait_seconds",
    "Time between a barrier cue and its continuation signal",
    buckets=[0.25, 0.5, 1.0, 1.5, 2.0, 3.0, 5.0, 7.5, 10.0],
)

CONNECT_LATENCY = Histogram(
    "yogaflow_transport_connect_seconds",
    "Voice transport connection establishment latency",
    buckets=[0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 15.0],
)

# -----------------------------------------------------------------------------
# Counters
# -----------------------------------------------------------------------------

SESSION_STARTED = Counter(
    "yogaflow_sessions_started_total",
    "Total guided sessions started",
)

SESSION_ENDED = Counter(
    "yogaflow_sessions_ended_total",
    "Total guided sessions ended",
    ["reason"],  # completed, early_exit, closed
)

CUES_SENT = Counter(
    "yogaflow_cues_sent_total",
    "Cues delivered to the narration agent",
    ["kind"],
)

CUES_DROPPED = Counter(
    "yogaflow_cues_dropped_total",
    "Cues dropped because the control channel was not open",
    ["kind"],
)

BARRIER_TIMEOUTS = Counter(
    "yogaflow_barrier_timeouts_total",
    "Barriers released by the bounded wait instead of a continuation",
)

TRANSPORT_ERRORS = Counter(
    "yogaflow_transport_errors_total",
    "Fatal voice transport faults",
    ["stage"],
)

NARRATION_CACHE = Counter(
    "yogaflow_narration_cache_total",
    "Narration cache lookups",
    ["result"],  # hit, miss, corrupt
)

# -----------------------------------------------------------------------------
# Gauges
# -----------------------------------------------------------------------------

ACTIVE_SESSIONS = Gauge(
    "yogaflow_active_sessions",
    "Currently mounted guided sessions",
)

# -----------------------------------------------------------------------------
# Info
# -----------------------------------------------------------------------------

BUILD_INFO = Info(
    "yogaflow_build",
    "Build information",
)


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def record_session_start() -> None:
    """Record session start."""
    SESSION_STARTED.inc()
    ACTIVE_SESSIONS.inc()


def record_session_end(reason: str = "completed") -> None:
    """Record session end."""
    SESSION_ENDED.labels(reason=reason).inc()
    ACTIVE_SESSIONS.dec()


def record_cue_sent(kind: str) -> None:
    """Record delivered cue."""
    CUES_SENT.labels(kind=kind).inc()


def record_cue_dropped(kind: str) -> None:
    """Record dropped cue."""
    CUES_DROPPED.labels(kind=kind).inc()


def record_barrier_wait(wait_ms: float) -> None:
    """Record barrier wait in milliseconds."""
    BARRIER_WAIT_HISTOGRAM.observe(wait_ms / 1000.0)


def record_barrier_timeout() -> None:
    """Record barrier released by timeout."""
    BARRIER_TIMEOUTS.inc()


def record_transport_error(stage: str) -> None:
    """Record fatal transport fault."""
    TRANSPORT_ERRORS.labels(stage=stage).inc()


def record_connect_latency(latency_ms: float) -> None:
    """Record connection establishment latency in milliseconds."""
    CONNECT_LATENCY.observe(latency_ms / 1000.0)


def record_narration_cache(result: str) -> None:
    """Record narration cache lookup result."""
    NARRATION_CACHE.labels(result=result).inc()


def set_build_info(version: str, commit: str, build_time: str) -> None:
    """Set build information."""
    BUILD_INFO.info({
        "version": version,
        "commit": commit,
        "build_time": build_time,
    })
