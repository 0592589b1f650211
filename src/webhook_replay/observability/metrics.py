"""Prometheus metrics for the replay harness.

This module provides Prometheus metrics describing replay runs. Metrics include:

- Call counters by outcome (ok, error, timed_out)
- Call duration histogram
- Declared effect counter
- In-flight calls gauge
- Run counters by verdict
- Abandoned (timed out but still running) call counter

Examples:
    Recording a finished call::

        from webhook_replay.observability.metrics import record_call

        record_call(outcome="timed_out")

    Recording a run::

        from webhook_replay.observability.metrics import record_run

        record_run(verdict="unsafe")
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: outcome (ok, error, timed_out)
calls_total = Counter(
    "webhook_replay_calls_total",
    "Total number of handler calls made by the replay harness",
    ["outcome"],
)

call_duration_ms = Histogram(
    "webhook_replay_call_duration_ms",
    "Handler call duration in milliseconds (until outcome was decided)",
    buckets=[
        1,
        5,
        10,
        25,
        50,
        100,
        250,
        500,
        1000,
        5000,
    ],
)

effects_total = Counter(
    "webhook_replay_effects_total",
    "Total number of side effects declared by handlers",
)

in_flight_calls = Gauge(
    "webhook_replay_in_flight_calls",
    "Number of handler calls currently racing against their timeout",
)

# Labels: verdict (safe, unsafe)
runs_total = Counter(
    "webhook_replay_runs_total",
    "Total number of replay runs by verdict",
    ["verdict"],
)

abandoned_calls_total = Counter(
    "webhook_replay_abandoned_calls_total",
    "Calls accounted as timed out while their handler kept running",
)


def record_call(outcome: str) -> None:
    """Record a finished call.

    Args:
        outcome: ok, error or timed_out

    Examples:
        >>> record_call("ok")
        >>> record_call("error")
    """
    calls_total.labels(outcome=outcome).inc()


def record_call_duration(duration_ms: int) -> None:
    """Record how long a call took until its outcome was decided.

    Args:
        duration_ms: Duration in milliseconds

    Examples:
        >>> record_call_duration(12)
    """
    call_duration_ms.observe(duration_ms)


def record_effect() -> None:
    """Record one declared side effect."""
    effects_total.inc()


def increment_in_flight() -> None:
    """Increment the in-flight gauge when a handler is invoked."""
    in_flight_calls.inc()


def decrement_in_flight() -> None:
    """Decrement the in-flight gauge when a call outcome is decided."""
    in_flight_calls.dec()


def record_run(verdict: str) -> None:
    """Record a completed run.

    Args:
        verdict: safe or unsafe

    Examples:
        >>> record_run("safe")
    """
    runs_total.labels(verdict=verdict).inc()


def record_abandoned() -> None:
    """Record a call abandoned after its timeout elapsed."""
    abandoned_calls_total.inc()
