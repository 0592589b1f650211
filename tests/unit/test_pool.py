"""Unit tests for WorkerPool.

This test suite covers:
    - Worker count bounded by concurrency and runs
    - Claim order, call numbering and jitter draws
    - Async, sync and awaitable-returning handlers
    - Error classification at the worker boundary
    - Timeouts that do not wait for the handler
    - Late effects from abandoned executions
"""

import asyncio
import time
from typing import Any

import pytest

from webhook_replay.config import ReplayConfig
from webhook_replay.core.pool import WorkerPool, is_async_handler
from webhook_replay.core.sequencer import build_call_order
from webhook_replay.exceptions import HandlerRuntimeError, HandlerTimeoutError
from webhook_replay.models import CallState, CallStatus
from webhook_replay.observer.memory import MemoryEffectObserver
from webhook_replay.rng import SeededRandom


def make_pool(handler: Any, config: ReplayConfig, payload: Any = None) -> WorkerPool:
    rng = SeededRandom(config.seed)
    order = build_call_order(config.runs, config.shuffle, rng)
    return WorkerPool(
        handler=handler,
        payload=payload if payload is not None else {"id": "evt_1"},
        order=order,
        rng=rng,
        config=config,
        observer=MemoryEffectObserver(),
        store={},
    )


async def noop(payload: Any, ctx: Any) -> None:
    return None


# ============================================================================
# Handler detection
# ============================================================================


class AsyncCallable:
    async def __call__(self, payload: Any, ctx: Any) -> None:
        ctx.effect("object")


def test_is_async_handler() -> None:
    assert is_async_handler(noop)
    assert is_async_handler(AsyncCallable())
    assert not is_async_handler(lambda payload, ctx: None)


# ============================================================================
# Scheduling
# ============================================================================


@pytest.mark.asyncio
async def test_worker_count_clamped_to_runs() -> None:
    config = ReplayConfig(runs=2, concurrency=2, seed=1, jitter_ms=0)
    pool = make_pool(noop, config)
    pool_from_larger = WorkerPool(
        handler=noop,
        payload=None,
        order=[1, 2],
        rng=SeededRandom(1),
        config=ReplayConfig(runs=5, concurrency=5, seed=1, jitter_ms=0),
        observer=MemoryEffectObserver(),
        store={},
    )

    assert pool.worker_count == 2
    assert pool_from_larger.worker_count == 2


@pytest.mark.asyncio
async def test_every_delivery_claimed_once() -> None:
    config = ReplayConfig(runs=20, concurrency=4, seed=42, jitter_ms=3)
    pool = make_pool(noop, config)

    outcomes = await pool.run()

    assert [outcome.call for outcome in outcomes] == list(range(1, 21))
    assert sorted(outcome.delivery for outcome in outcomes) == list(range(1, 21))
    assert [claim.call for claim in pool.claims] == list(range(1, 21))


@pytest.mark.asyncio
async def test_claims_follow_call_order_and_jitter_draws() -> None:
    """Call k gets order[k-1] and the k-th jitter draw after the shuffle."""
    config = ReplayConfig(runs=9, concurrency=3, seed=1234, jitter_ms=4)
    pool = make_pool(noop, config)
    await pool.run()

    rng = SeededRandom(1234)
    order = build_call_order(9, True, rng)
    jitters = [rng.randint_below(5) for _ in range(9)]

    assert [claim.delivery for claim in pool.claims] == order
    assert [claim.jitter_ms for claim in pool.claims] == jitters


@pytest.mark.asyncio
async def test_concurrency_bound_respected() -> None:
    config = ReplayConfig(runs=12, concurrency=3, seed=5, jitter_ms=2)
    active = {"now": 0, "max": 0}

    async def handler(payload: Any, ctx: Any) -> None:
        active["now"] += 1
        active["max"] = max(active["max"], active["now"])
        await asyncio.sleep(0.01)
        active["now"] -= 1

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert active["max"] <= 3
    assert {outcome.worker for outcome in outcomes} <= {1, 2, 3}


@pytest.mark.asyncio
async def test_all_states_terminal_after_run() -> None:
    config = ReplayConfig(runs=6, concurrency=2, seed=9, jitter_ms=2)
    pool = make_pool(noop, config)
    await pool.run()

    assert len(pool.states) == 6
    assert all(state is CallState.OK for state in pool.states.values())


@pytest.mark.asyncio
async def test_outcome_records_jitter_and_timestamps() -> None:
    config = ReplayConfig(runs=3, concurrency=1, seed=3, jitter_ms=5)
    pool = make_pool(noop, config)
    outcomes = await pool.run()

    for outcome, claim in zip(outcomes, pool.claims):
        assert outcome.jitter_ms == claim.jitter_ms
        assert outcome.started_at <= outcome.finished_at


# ============================================================================
# Handler shapes
# ============================================================================


@pytest.mark.asyncio
async def test_sync_handler_runs_on_thread() -> None:
    config = ReplayConfig(runs=4, concurrency=2, seed=1, jitter_ms=0)

    def handler(payload: dict, ctx: Any) -> None:
        ctx.effect(f"sync:{payload['id']}")

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert all(outcome.status is CallStatus.OK for outcome in outcomes)
    assert pool._observer.counts() == {"sync:evt_1": 4}


@pytest.mark.asyncio
async def test_callable_object_with_async_call() -> None:
    config = ReplayConfig(runs=2, concurrency=1, seed=1, jitter_ms=0)
    pool = make_pool(AsyncCallable(), config)
    await pool.run()
    assert pool._observer.counts() == {"object": 2}


@pytest.mark.asyncio
async def test_plain_callable_returning_coroutine() -> None:
    config = ReplayConfig(runs=3, concurrency=3, seed=1, jitter_ms=0)

    async def inner(payload: Any, ctx: Any) -> str:
        await asyncio.sleep(0)
        ctx.effect("wrapped")
        return "done"

    pool = make_pool(lambda payload, ctx: inner(payload, ctx), config)
    outcomes = await pool.run()

    assert all(outcome.status is CallStatus.OK for outcome in outcomes)
    assert pool._observer.counts() == {"wrapped": 3}


# ============================================================================
# Failures
# ============================================================================


@pytest.mark.asyncio
async def test_raising_handler_classified_as_error() -> None:
    config = ReplayConfig(runs=3, concurrency=2, seed=1, jitter_ms=0)

    async def handler(payload: Any, ctx: Any) -> None:
        raise RuntimeError("card declined")

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert all(outcome.status is CallStatus.ERROR for outcome in outcomes)
    assert all(outcome.error == "card declined" for outcome in outcomes)
    assert all(outcome.error_type == "RuntimeError" for outcome in outcomes)
    assert all(isinstance(error, HandlerRuntimeError) for error in pool.errors.values())
    assert set(pool.errors) == {1, 2, 3}


@pytest.mark.asyncio
async def test_sync_handler_error_classified() -> None:
    config = ReplayConfig(runs=2, concurrency=2, seed=1, jitter_ms=0)

    def handler(payload: Any, ctx: Any) -> None:
        raise ValueError("bad payload")

    pool = make_pool(handler, config)
    outcomes = await pool.run()
    assert [outcome.error for outcome in outcomes] == ["bad payload", "bad payload"]


class HandlerAbort(BaseException):
    """Not an Exception subclass."""


@pytest.mark.asyncio
async def test_sync_handler_system_exit_is_an_error() -> None:
    config = ReplayConfig(runs=1, concurrency=1, seed=1, jitter_ms=0, timeout_ms=2000)

    def handler(payload: Any, ctx: Any) -> None:
        raise SystemExit(3)

    pool = make_pool(handler, config)
    start = time.monotonic()
    outcomes = await pool.run()

    assert time.monotonic() - start < 1.0
    assert outcomes[0].status is CallStatus.ERROR
    assert outcomes[0].error_type == "SystemExit"
    assert outcomes[0].error == "3"
    assert pool.pending_stragglers == 0


@pytest.mark.asyncio
async def test_async_handler_system_exit_does_not_abort_run() -> None:
    config = ReplayConfig(runs=4, concurrency=2, seed=1, jitter_ms=0, shuffle=False)

    async def handler(payload: Any, ctx: Any) -> None:
        await asyncio.sleep(0)
        if ctx.delivery == 2:
            raise SystemExit(1)
        ctx.effect(f"ok:{ctx.delivery}")

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert [outcome.status for outcome in outcomes] == [
        CallStatus.OK,
        CallStatus.ERROR,
        CallStatus.OK,
        CallStatus.OK,
    ]
    assert outcomes[1].error_type == "SystemExit"
    assert pool._observer.counts() == {"ok:1": 1, "ok:3": 1, "ok:4": 1}


@pytest.mark.asyncio
@pytest.mark.parametrize("is_async", [True, False])
async def test_base_exception_handler_is_an_error(is_async: bool) -> None:
    config = ReplayConfig(runs=2, concurrency=2, seed=1, jitter_ms=0, timeout_ms=2000)

    async def async_handler(payload: Any, ctx: Any) -> None:
        raise HandlerAbort("stop")

    def sync_handler(payload: Any, ctx: Any) -> None:
        raise HandlerAbort("stop")

    pool = make_pool(async_handler if is_async else sync_handler, config)
    outcomes = await pool.run()

    assert all(outcome.status is CallStatus.ERROR for outcome in outcomes)
    assert all(outcome.error_type == "HandlerAbort" for outcome in outcomes)


@pytest.mark.asyncio
async def test_sync_handler_stop_iteration_is_an_error() -> None:
    config = ReplayConfig(runs=1, concurrency=1, seed=1, jitter_ms=0, timeout_ms=2000)

    def handler(payload: Any, ctx: Any) -> None:
        raise StopIteration

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert outcomes[0].status is CallStatus.ERROR
    assert outcomes[0].error_type == "RuntimeError"


@pytest.mark.asyncio
async def test_async_handler_with_wrong_signature_fails_per_call() -> None:
    config = ReplayConfig(runs=2, concurrency=1, seed=1, jitter_ms=0)

    async def handler(payload: Any) -> None:
        return None

    pool = make_pool(handler, config)
    outcomes = await pool.run()
    assert all(outcome.error_type == "TypeError" for outcome in outcomes)


@pytest.mark.asyncio
async def test_empty_effect_key_fails_the_call() -> None:
    config = ReplayConfig(runs=2, concurrency=2, seed=1, jitter_ms=0)

    async def handler(payload: Any, ctx: Any) -> None:
        ctx.effect("   ")

    pool = make_pool(handler, config)
    outcomes = await pool.run()
    assert all(outcome.error_type == "EffectKeyError" for outcome in outcomes)
    assert pool._observer.counts() == {}


@pytest.mark.asyncio
async def test_one_failing_call_does_not_affect_others() -> None:
    config = ReplayConfig(runs=5, concurrency=2, seed=1, jitter_ms=0, shuffle=False)

    async def handler(payload: Any, ctx: Any) -> None:
        if ctx.delivery == 3:
            raise RuntimeError("only delivery 3")

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    failed = [outcome for outcome in outcomes if outcome.failed]
    assert [outcome.delivery for outcome in failed] == [3]


# ============================================================================
# Timeouts
# ============================================================================


@pytest.mark.asyncio
async def test_timeout_does_not_wait_for_handler() -> None:
    config = ReplayConfig(runs=4, concurrency=2, seed=1, jitter_ms=0, timeout_ms=30)

    async def handler(payload: Any, ctx: Any) -> None:
        await asyncio.sleep(0.5)

    pool = make_pool(handler, config)
    start = time.monotonic()
    outcomes = await pool.run()
    elapsed = time.monotonic() - start

    assert all(outcome.status is CallStatus.TIMED_OUT for outcome in outcomes)
    assert all(isinstance(error, HandlerTimeoutError) for error in pool.errors.values())
    assert elapsed < 0.4
    assert pool.pending_stragglers == 4

    await pool.wait_for_stragglers(2000)
    assert pool.pending_stragglers == 0


@pytest.mark.asyncio
async def test_late_effects_from_timed_out_calls_are_recorded() -> None:
    config = ReplayConfig(runs=3, concurrency=3, seed=1, jitter_ms=0, timeout_ms=20)

    async def handler(payload: Any, ctx: Any) -> None:
        await asyncio.sleep(0.1)
        ctx.effect("late")

    pool = make_pool(handler, config)
    await pool.run()
    assert pool._observer.counts() == {}

    remaining = await pool.wait_for_stragglers(2000)

    assert remaining == 0
    assert pool._observer.counts() == {"late": 3}


@pytest.mark.asyncio
async def test_blocking_sync_handler_times_out() -> None:
    config = ReplayConfig(runs=2, concurrency=2, seed=1, jitter_ms=0, timeout_ms=20)

    def handler(payload: Any, ctx: Any) -> None:
        time.sleep(0.15)
        ctx.effect("late-sync")

    pool = make_pool(handler, config)
    outcomes = await pool.run()

    assert all(outcome.status is CallStatus.TIMED_OUT for outcome in outcomes)
    await pool.wait_for_stragglers(2000)
    assert pool._observer.counts() == {"late-sync": 2}
