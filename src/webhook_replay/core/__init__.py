"""Core replay engine.

This package contains the execution engine of the replay harness:
- Sequencer: seeded delivery order (identity or Fisher-Yates shuffle)
- Pool: bounded workers with jitter and per-call timeouts
- Context: per-call handle to the shared observer and store
- Aggregator: counts, duplicates, verdict and reproduction descriptor
- Runner: wires a complete run together
"""

from webhook_replay.core.aggregator import aggregate, build_reproduction, report_status
from webhook_replay.core.runner import ReplayRunner, replay
from webhook_replay.core.sequencer import build_call_order

__all__ = [
    "aggregate",
    "build_call_order",
    "build_reproduction",
    "replay",
    "report_status",
    "ReplayRunner",
]
