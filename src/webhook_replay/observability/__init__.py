"""Observability utilities for the replay harness.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for call outcomes, durations and verdicts
- Structured logging with contextual information

These tools help explain why a run was classified the way it was.
"""

from webhook_replay.observability.logging import configure_logging, get_logger, run_log_context
from webhook_replay.observability.metrics import (
    record_abandoned,
    record_call,
    record_call_duration,
    record_run,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "run_log_context",
    "record_call",
    "record_call_duration",
    "record_run",
    "record_abandoned",
]
