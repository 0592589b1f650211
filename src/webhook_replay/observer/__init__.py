"""Effect observers for the replay harness.

The observer is shared by every call of a run and accumulates declared side
effects and trace lines.
"""

from webhook_replay.observer.base import CallMeta, EffectObserver
from webhook_replay.observer.memory import MemoryEffectObserver

__all__ = ["CallMeta", "EffectObserver", "MemoryEffectObserver"]
