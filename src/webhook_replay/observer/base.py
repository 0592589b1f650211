"""Effect observer protocol for the replay harness.

This module defines the interface of the run-scoped observer that every call
context writes to. The observer is the single accumulation point for declared
side effects, which is what makes cross-call duplicate detection possible.

Examples:
    Implementing a custom observer::

        from webhook_replay.observer.base import EffectObserver

        class PrintingObserver:
            def record_effect(self, key: str, meta: CallMeta) -> str:
                print("effect", key, meta.render())
                ...

Thread Safety and Ordering Requirements:
    All EffectObserver implementations MUST guarantee:

    1. **Serialized mutation**: record_effect() and record_log() may be called
       concurrently from asyncio tasks and from handler threads. Counter
       updates and trace appends must not interleave.

    2. **Monotonic counters**: counts only ever increase during a run.

    3. **Stable ordering**: counts() and duplicates() list keys in the order
       they were first observed.

    4. **Late writes**: writes from calls that were already accounted as timed
       out must still be accepted.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from webhook_replay.models import DuplicateEffect


@dataclass(frozen=True)
class CallMeta:
    """Metadata attached to every trace line written by a call.

    Attributes:
        call: Call number in claim order.
        delivery: Delivery index.
        worker: Worker id.
    """

    call: int
    delivery: int
    worker: int

    def render(self) -> str:
        """Render the metadata as it appears in trace lines.

        Example:
            >>> CallMeta(call=3, delivery=5, worker=2).render()
            'call#3 delivery#5 worker#2'
        """
        return f"call#{self.call} delivery#{self.delivery} worker#{self.worker}"


@runtime_checkable
class EffectObserver(Protocol):
    """Protocol defining the run-scoped effect observer.

    Methods are synchronous so that handlers running on worker threads can
    call them directly.
    """

    def record_effect(self, key: str, meta: CallMeta) -> str:
        """Record one occurrence of an effect.

        Args:
            key: The effect key as given by the handler. It is trimmed.
            meta: Metadata of the call declaring the effect.

        Returns:
            The trimmed key that was counted.

        Raises:
            EffectKeyError: If the key is not a string or is empty after trimming.
        """
        ...

    def record_log(self, message: str, meta: CallMeta) -> None:
        """Append a log line to the trace. Never fails.

        Args:
            message: Free-form message.
            meta: Metadata of the call logging the message.
        """
        ...

    def counts(self) -> dict[str, int]:
        """Return a snapshot of effect counts in first-observation order."""
        ...

    def trace(self) -> list[str]:
        """Return a snapshot of the ordered trace log."""
        ...

    def duplicates(self) -> list[DuplicateEffect]:
        """Return effects whose count exceeds one, in first-observation order."""
        ...
