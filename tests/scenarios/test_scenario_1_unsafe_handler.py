"""Scenario 1: Handler with an unconditional side effect

A handler that performs its effect on every delivery must be flagged:
- Every call succeeds
- The effect key is reported once with count == runs
- The verdict is UNSAFE
- The status override reports success without changing the verdict
"""

import asyncio
from typing import Any

import pytest

from webhook_replay import ReplayConfig, Verdict, replay
from webhook_replay.core.aggregator import report_status
from webhook_replay.models import RunStatus


async def charge_every_time(payload: dict[str, Any], ctx: Any) -> None:
    await asyncio.sleep(0.001)
    ctx.effect("x")


@pytest.mark.asyncio
async def test_reference_options_flag_duplicate(reference_config: ReplayConfig) -> None:
    """runs=7, concurrency=3, shuffle, seed=42: x is counted 7 times."""
    result = await replay(charge_every_time, {"id": "evt_1"}, reference_config)

    assert result.ok == 7
    assert result.failed == 0
    assert [(dup.key, dup.count) for dup in result.duplicates] == [("x", 7)]
    assert result.verdict is Verdict.UNSAFE


@pytest.mark.asyncio
async def test_status_override(reference_config: ReplayConfig) -> None:
    result = await replay(charge_every_time, {"id": "evt_1"}, reference_config)

    assert report_status(result) is RunStatus.FAILURE
    assert report_status(result, allow_unsafe=True) is RunStatus.SUCCESS
    assert result.verdict is Verdict.UNSAFE


@pytest.mark.asyncio
@pytest.mark.parametrize("runs,concurrency", [(2, 1), (10, 4), (25, 25)])
async def test_duplicate_count_equals_runs(runs: int, concurrency: int) -> None:
    config = ReplayConfig(runs=runs, concurrency=concurrency, seed=11, jitter_ms=2)
    result = await replay(charge_every_time, {"id": "evt_1"}, config)

    assert result.duplicates[0].key == "x"
    assert result.duplicates[0].count == runs


@pytest.mark.asyncio
async def test_sync_unsafe_handler(sample_payload: dict[str, Any]) -> None:
    def send_receipt(payload: dict[str, Any], ctx: Any) -> None:
        ctx.effect(f"email.receipt:{payload['id']}")

    config = ReplayConfig(runs=5, concurrency=5, seed=3, jitter_ms=0)
    result = await replay(send_receipt, sample_payload, config)

    assert result.ok == 5
    assert [(dup.key, dup.count) for dup in result.duplicates] == [("email.receipt:evt_test_123", 5)]
    assert result.verdict is Verdict.UNSAFE


@pytest.mark.asyncio
async def test_multiple_duplicates_in_first_observation_order() -> None:
    async def handler(payload: Any, ctx: Any) -> None:
        ctx.effect("charge")
        ctx.effect("receipt")
        ctx.effect(f"audit:{ctx.call}")

    config = ReplayConfig(runs=4, concurrency=2, seed=8, jitter_ms=0)
    result = await replay(handler, None, config)

    assert [(dup.key, dup.count) for dup in result.duplicates] == [("charge", 4), ("receipt", 4)]
    assert len(result.effects) == 6
