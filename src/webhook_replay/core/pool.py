"""Bounded worker pool that replays deliveries against the handler.

The pool runs a fixed number of asyncio worker tasks over one shared cursor
into the call order. Each worker loop:

1. Claims the next delivery and assigns it the next call number
2. Draws its jitter from the seeded RNG (same step as the claim)
3. Sleeps for the jitter
4. Starts the handler as a detached execution and races it against the timeout
5. Records the call outcome

Claiming and the jitter draw happen without yielding to the event loop, so
claims are linearized and call number ``k`` always receives delivery
``order[k - 1]`` and the ``k``-th jitter draw, whatever the completion order.

Detached execution:
    Coroutine functions run as tasks on the event loop. Any other callable
    runs on a daemon thread that reports back through an asyncio future. When
    the timeout wins the race the call is accounted as timed out and the
    worker moves on; the execution is not cancelled. It stays tracked as a
    straggler and any effects it declares later are still recorded.

Examples:
    Running a pool directly::

        pool = WorkerPool(
            handler=handler,
            payload={"id": "evt_1"},
            order=build_call_order(config.runs, config.shuffle, rng),
            rng=rng,
            config=config,
            observer=MemoryEffectObserver(),
            store={},
        )
        outcomes = await pool.run()
"""

import asyncio
import functools
import inspect
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from webhook_replay.config import ReplayConfig
from webhook_replay.core.context import CallContext
from webhook_replay.exceptions import HandlerRuntimeError, HandlerTimeoutError, ReplayError
from webhook_replay.models import CallOutcome, CallState, CallStatus
from webhook_replay.observability.logging import get_logger
from webhook_replay.observability.metrics import (
    decrement_in_flight,
    increment_in_flight,
    record_abandoned,
    record_call,
    record_call_duration,
)
from webhook_replay.observer.base import CallMeta, EffectObserver
from webhook_replay.rng import SeededRandom

logger = get_logger(__name__)

Handler = Callable[[Any, CallContext], Any]


@dataclass(frozen=True)
class ClaimedCall:
    """A delivery claimed by a worker.

    Attributes:
        call: Call number in claim order, starting at 1.
        delivery: Delivery index taken from the call order.
        jitter_ms: Jitter drawn for this call.
    """

    call: int
    delivery: int
    jitter_ms: int


def is_async_handler(handler: Handler) -> bool:
    """Return True if calling the handler produces a coroutine."""
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


class WorkerPool:
    """Fixed-size pool of workers draining one call order.

    Attributes:
        worker_count: Number of workers, ``min(concurrency, len(order))``.
        claims: Claimed calls in claim order.
        states: Current state of every claimed call, by call number.
        errors: Per-call errors (runtime or timeout), by call number.
    """

    def __init__(
        self,
        handler: Handler,
        payload: Any,
        order: list[int],
        rng: SeededRandom,
        config: ReplayConfig,
        observer: EffectObserver,
        store: dict[str, Any],
    ) -> None:
        """Initialize the pool.

        Args:
            handler: Callable invoked as ``handler(payload, ctx)``
            payload: Payload passed unchanged to every call
            order: Delivery indexes in the order they are claimed
            rng: Seeded generator for jitter draws
            config: Run options
            observer: Run-scoped effect observer
            store: Run-scoped shared store
        """
        self._handler = handler
        self._payload = payload
        self._order = order
        self._rng = rng
        self._config = config
        self._observer = observer
        self._store = store
        self._is_async = is_async_handler(handler)

        self._cursor = 0
        self._next_call = 1
        self._outcomes: list[CallOutcome] = []
        self._stragglers: set[asyncio.Future[Any]] = set()
        self._drivers: set[asyncio.Task[None]] = set()

        self.worker_count = min(config.concurrency, len(order))
        self.claims: list[ClaimedCall] = []
        self.states: dict[int, CallState] = {}
        self.errors: dict[int, ReplayError] = {}

    @property
    def pending_stragglers(self) -> int:
        """Number of timed-out executions that are still running."""
        return len(self._stragglers)

    async def run(self) -> list[CallOutcome]:
        """Run every delivery and return the outcomes ordered by call number."""
        workers = [
            asyncio.create_task(self._worker(worker_id), name=f"webhook-replay-worker-{worker_id}")
            for worker_id in range(1, self.worker_count + 1)
        ]
        await asyncio.gather(*workers)
        return sorted(self._outcomes, key=lambda outcome: outcome.call)

    async def wait_for_stragglers(self, timeout_ms: int) -> int:
        """Give timed-out executions a chance to finish.

        Args:
            timeout_ms: Maximum time to wait in milliseconds

        Returns:
            Number of executions still running afterwards
        """
        if self._stragglers and timeout_ms > 0:
            await asyncio.wait(set(self._stragglers), timeout=timeout_ms / 1000)
        return len(self._stragglers)

    def _claim(self) -> ClaimedCall | None:
        # Must not await: the event loop is what linearizes claims.
        if self._cursor >= len(self._order):
            return None

        delivery = self._order[self._cursor]
        self._cursor += 1

        call = self._next_call
        self._next_call += 1

        jitter_ms = self._rng.randint_below(self._config.jitter_ms + 1)

        claim = ClaimedCall(call=call, delivery=delivery, jitter_ms=jitter_ms)
        self.claims.append(claim)
        self.states[call] = CallState.PENDING
        return claim

    async def _worker(self, worker_id: int) -> None:
        while True:
            claim = self._claim()
            if claim is None:
                return
            outcome = await self._execute(claim, worker_id)
            self._outcomes.append(outcome)

    async def _execute(self, claim: ClaimedCall, worker_id: int) -> CallOutcome:
        meta = CallMeta(call=claim.call, delivery=claim.delivery, worker=worker_id)
        ctx = CallContext(meta=meta, observer=self._observer, store=self._store)

        if claim.jitter_ms > 0:
            self.states[claim.call] = CallState.JITTER_WAIT
            await asyncio.sleep(claim.jitter_ms / 1000)

        self.states[claim.call] = CallState.RUNNING
        started_at = datetime.now(UTC)
        start = time.monotonic()

        execution = self._start_execution(ctx)
        increment_in_flight()
        try:
            done, _ = await asyncio.wait({execution}, timeout=self._config.timeout_ms / 1000)
        finally:
            decrement_in_flight()

        finished_at = datetime.now(UTC)
        duration_ms = int((time.monotonic() - start) * 1000)

        status, error, error_type = self._classify(claim, execution, done)
        self.states[claim.call] = CallState[status.name]

        record_call(status.value)
        record_call_duration(duration_ms)

        return CallOutcome(
            call=claim.call,
            delivery=claim.delivery,
            worker=worker_id,
            status=status,
            error=error,
            error_type=error_type,
            jitter_ms=claim.jitter_ms,
            started_at=started_at,
            finished_at=finished_at,
            duration_ms=duration_ms,
        )

    def _classify(
        self,
        claim: ClaimedCall,
        execution: "asyncio.Future[Any]",
        done: set["asyncio.Future[Any]"],
    ) -> tuple[CallStatus, str | None, str | None]:
        if execution not in done:
            timeout_error = HandlerTimeoutError(
                f"Handler did not finish within {self._config.timeout_ms}ms",
                call=claim.call,
                delivery=claim.delivery,
                timeout_ms=self._config.timeout_ms,
            )
            self.errors[claim.call] = timeout_error
            self._abandon(claim, execution)
            logger.warning(
                "replay.call_timed_out",
                call=claim.call,
                delivery=claim.delivery,
                timeout_ms=self._config.timeout_ms,
            )
            return CallStatus.TIMED_OUT, timeout_error.message, type(timeout_error).__name__

        if execution.cancelled():
            cause: BaseException = asyncio.CancelledError()
        else:
            exc = execution.exception()
            if exc is None:
                logger.debug("replay.call_completed", call=claim.call, delivery=claim.delivery)
                return CallStatus.OK, None, None
            cause = exc

        message = str(cause) or type(cause).__name__
        self.errors[claim.call] = HandlerRuntimeError(
            message,
            call=claim.call,
            delivery=claim.delivery,
            cause=cause,
        )
        logger.info(
            "replay.call_failed",
            call=claim.call,
            delivery=claim.delivery,
            error=message,
            error_type=type(cause).__name__,
        )
        return CallStatus.ERROR, message, type(cause).__name__

    def _abandon(self, claim: ClaimedCall, execution: "asyncio.Future[Any]") -> None:
        record_abandoned()
        self._stragglers.add(execution)
        execution.add_done_callback(functools.partial(self._straggler_finished, claim))

    def _straggler_finished(self, claim: ClaimedCall, execution: "asyncio.Future[Any]") -> None:
        self._stragglers.discard(execution)
        error = None
        if not execution.cancelled() and execution.exception() is not None:
            error = str(execution.exception())
        logger.debug(
            "replay.straggler_finished",
            call=claim.call,
            delivery=claim.delivery,
            cancelled=execution.cancelled(),
            error=error,
        )

    def _start_execution(self, ctx: CallContext) -> "asyncio.Future[Any]":
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        if self._is_async:
            try:
                awaitable = self._handler(self._payload, ctx)
            except BaseException as e:
                _resolve(future, None, e)
                return future
            self._spawn_driver(awaitable, future)
            return future

        thread = threading.Thread(
            target=self._run_in_thread,
            args=(loop, future, ctx),
            name=f"webhook-replay-call-{ctx.call}",
            daemon=True,
        )
        thread.start()
        return future

    def _spawn_driver(self, awaitable: Any, future: "asyncio.Future[Any]") -> None:
        task = asyncio.ensure_future(_drive(awaitable, future))
        self._drivers.add(task)
        task.add_done_callback(self._drivers.discard)

    def _run_in_thread(
        self,
        loop: asyncio.AbstractEventLoop,
        future: "asyncio.Future[Any]",
        ctx: CallContext,
    ) -> None:
        try:
            result = self._handler(self._payload, ctx)
        except BaseException as e:
            # SystemExit and friends end only this call, never the thread silently.
            self._post(loop, ctx, _resolve, future, None, e)
            return

        if inspect.isawaitable(result):
            # Awaitables returned by plain callables run on the pool's loop.
            self._post(loop, ctx, self._spawn_driver, result, future)
        else:
            self._post(loop, ctx, _resolve, future, result, None)

    def _post(self, loop: asyncio.AbstractEventLoop, ctx: CallContext, callback: Any, *args: Any) -> None:
        try:
            loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed: the run ended while this call was still running.
            logger.debug("replay.straggler_outlived_run", call=ctx.call, delivery=ctx.delivery)


async def _drive(awaitable: Any, future: "asyncio.Future[Any]") -> None:
    # Any handler exception, including SystemExit, lands on the call's future
    # instead of escaping into the event loop.
    try:
        result = await awaitable
    except asyncio.CancelledError:
        future.cancel()
        raise
    except BaseException as e:
        _resolve(future, None, e)
    else:
        _resolve(future, result, None)


def _resolve(
    future: "asyncio.Future[Any]",
    result: Any,
    error: BaseException | None,
) -> None:
    if future.done():
        return
    if isinstance(error, StopIteration):
        # Futures reject StopIteration.
        wrapped = RuntimeError(f"handler raised StopIteration: {error}")
        wrapped.__cause__ = error
        error = wrapped
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)
