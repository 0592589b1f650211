"""Per-call context handed to the handler.

Each call gets a fresh CallContext. It tags everything the handler declares
with the call's metadata and forwards it to the run's shared observer. The
shared store is exposed by reference so handlers can model a durable
idempotency store across calls.

Examples:
    A handler guarding its side effect with the shared store::

        async def handler(payload, ctx):
            key = f"stripe.charge:{payload['id']}"
            if key in ctx.store:
                ctx.log("already charged")
                return
            ctx.store[key] = True
            ctx.effect(key)
"""

from typing import Any

from webhook_replay.observer.base import CallMeta, EffectObserver


class CallContext:
    """Context object passed to the handler as its second argument.

    Attributes:
        store: The run's shared key-value store. Not locked by the harness.
    """

    def __init__(
        self,
        meta: CallMeta,
        observer: EffectObserver,
        store: dict[str, Any],
    ) -> None:
        """Initialize a call context.

        Args:
            meta: Metadata of this call
            observer: Run-scoped effect observer
            store: Run-scoped shared store
        """
        self._meta = meta
        self._observer = observer
        self.store = store

    @property
    def call(self) -> int:
        return self._meta.call

    @property
    def delivery(self) -> int:
        return self._meta.delivery

    @property
    def worker(self) -> int:
        return self._meta.worker

    @property
    def meta(self) -> CallMeta:
        return self._meta

    def effect(self, key: str) -> str:
        """Declare one occurrence of an external side effect.

        Args:
            key: Identifier of the side effect, e.g. ``"email.receipt:evt_1"``

        Returns:
            The trimmed key that was recorded

        Raises:
            EffectKeyError: If the key is empty after trimming
        """
        return self._observer.record_effect(key, self._meta)

    def log(self, message: Any) -> None:
        """Append a message to the run trace."""
        self._observer.record_log(str(message), self._meta)

    def __repr__(self) -> str:
        return f"CallContext({self._meta.render()})"
