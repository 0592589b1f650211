"""In-memory effect observer with lock-based concurrency control.

This module provides the default EffectObserver: a dictionary of counters and
a list of trace lines, guarded by a single threading.Lock. A threading lock is
used instead of asyncio.Lock because synchronous handlers run on their own
threads and call into the observer from there.

Examples:
    Basic usage::

        from webhook_replay.observer.base import CallMeta
        from webhook_replay.observer.memory import MemoryEffectObserver

        observer = MemoryEffectObserver()
        meta = CallMeta(call=1, delivery=4, worker=1)

        observer.record_effect("stripe.charge:evt_1", meta)
        observer.record_log("charged customer", meta)

        observer.counts()   # {"stripe.charge:evt_1": 1}
        observer.trace()    # ["effect(stripe.charge:evt_1) @call#1 delivery#4 worker#1",
                            #  "charged customer @call#1 delivery#4 worker#1"]
"""

import threading

from webhook_replay.exceptions import EffectKeyError
from webhook_replay.models import DuplicateEffect
from webhook_replay.observability.metrics import record_effect as record_effect_metric
from webhook_replay.observer.base import CallMeta, EffectObserver


class MemoryEffectObserver(EffectObserver):
    """Run-scoped store of effect counts and trace lines.

    Attributes:
        _counts: Effect key to occurrence count, in first-observation order.
        _trace: Ordered trace lines.
        _lock: Lock serializing all mutation and snapshots.
    """

    def __init__(self) -> None:
        """Initialize an empty observer."""
        self._counts: dict[str, int] = {}
        self._trace: list[str] = []
        self._lock = threading.Lock()

    def record_effect(self, key: str, meta: CallMeta) -> str:
        """Record one occurrence of an effect.

        Args:
            key: The effect key. Surrounding whitespace is ignored.
            meta: Metadata of the declaring call.

        Returns:
            The trimmed key.

        Raises:
            EffectKeyError: If the key is not a string or is empty after trimming.
        """
        if not isinstance(key, str):
            raise EffectKeyError(
                f"Effect key must be a string, got {type(key).__name__}",
                key=key,
            )

        trimmed = key.strip()
        if not trimmed:
            raise EffectKeyError("Effect key cannot be empty", key=key)

        with self._lock:
            self._counts[trimmed] = self._counts.get(trimmed, 0) + 1
            self._trace.append(f"effect({trimmed}) @{meta.render()}")

        record_effect_metric()
        return trimmed

    def record_log(self, message: str, meta: CallMeta) -> None:
        """Append a message to the trace.

        Args:
            message: Message to log. Non-strings are converted with str().
            meta: Metadata of the logging call.
        """
        with self._lock:
            self._trace.append(f"{message} @{meta.render()}")

    def counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def trace(self) -> list[str]:
        with self._lock:
            return list(self._trace)

    def duplicates(self) -> list[DuplicateEffect]:
        """Return effects observed more than once.

        Dict insertion order gives first-observation order, so the result is
        deterministic for a fixed claim order.
        """
        with self._lock:
            return [
                DuplicateEffect(key=key, count=count)
                for key, count in self._counts.items()
                if count > 1
            ]
