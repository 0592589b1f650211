"""
Idempotency replay harness for webhook-style handlers.

This package replays a fixed event payload against a handler many times,
sequentially and concurrently, to reveal side effects that happen more than once.
"""

from webhook_replay.config import ReplayConfig
from webhook_replay.core.context import CallContext
from webhook_replay.core.runner import ReplayRunner, replay
from webhook_replay.models import RunResult, Verdict

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CallContext",
    "ReplayConfig",
    "ReplayRunner",
    "RunResult",
    "Verdict",
    "replay",
]
