"""Demo webhook handlers for the replay harness.

This module shows what the harness reports for an unsafe handler, a handler
guarded by the shared store, and a blocking handler that times out.
Run with: python demo_handlers.py
Or point the CLI at a single handler:
    webhook-replay demo_handlers.py:charge_every_time --seed 42
"""

import asyncio
import time

from webhook_replay import ReplayConfig, replay


async def charge_every_time(payload, ctx):
    """Charge the customer on every delivery (not idempotent)."""
    await asyncio.sleep(0.01)
    ctx.effect(f"stripe.charge:{payload['id']}")


async def charge_once_per_event(payload, ctx):
    """Charge once per event id, using the shared store as the idempotency record.

    The check and the write happen without an await in between, so concurrent
    deliveries on the event loop cannot both pass the check.
    """
    key = f"stripe.charge:{payload['id']}"
    if ctx.store.get(key):
        ctx.log(f"skip {key}")
        return
    ctx.store[key] = True
    await asyncio.sleep(0.01)
    ctx.effect(key)


def slow_receipt(payload, ctx):
    """Blocking handler that sends a receipt after the timeout elapsed."""
    time.sleep(0.2)
    ctx.effect(f"email.receipt:{payload['id']}")


async def main() -> None:
    payload = {"id": "evt_demo_123"}
    config = ReplayConfig(runs=7, concurrency=3, seed=42, jitter_ms=10, trace=True)

    for handler in (charge_every_time, charge_once_per_event):
        result = await replay(handler, payload, config)
        print(f"{handler.__name__}: {result.verdict.value}")
        for dup in result.duplicates:
            print(f"  {dup.key} x{dup.count}")

    timeout_config = ReplayConfig(runs=3, concurrency=3, seed=42, timeout_ms=50, settle_ms=500)
    result = await replay(slow_receipt, payload, timeout_config)
    print(f"slow_receipt: {result.verdict.value} ({result.timed_out} timed out)")
    for dup in result.duplicates:
        print(f"  {dup.key} x{dup.count}")


if __name__ == "__main__":
    print("=" * 60)
    print("webhook-replay demo")
    print("=" * 60)
    asyncio.run(main())
