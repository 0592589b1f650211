"""Run orchestration for the replay harness.

This module wires the components of a run together:

1. Validates the handler and the run options
2. Seeds the RNG and builds the call order
3. Creates the run-scoped observer and shared store
4. Runs the worker pool
5. Optionally waits for timed-out calls to settle
6. Aggregates the outcomes into a RunResult

Every run gets its own RNG, observer and store; nothing is shared between runs.

Examples:
    Replaying a handler::

        from webhook_replay import ReplayConfig, replay

        async def handler(payload, ctx):
            ctx.effect(f"email.receipt:{payload['id']}")

        result = await replay(handler, {"id": "evt_1"}, ReplayConfig(seed=42))
        result.verdict          # Verdict.UNSAFE
        result.duplicates[0]    # DuplicateEffect(key='email.receipt:evt_1', count=7)

    Keeping the observer and store for inspection::

        runner = ReplayRunner(handler, payload, config)
        result = await runner.run()
        runner.store            # whatever the handler left in the shared store
"""

from collections.abc import Mapping
from typing import Any

from webhook_replay.config import ReplayConfig
from webhook_replay.core.aggregator import aggregate
from webhook_replay.core.pool import Handler, WorkerPool
from webhook_replay.core.sequencer import build_call_order
from webhook_replay.exceptions import ConfigurationError
from webhook_replay.fingerprint import payload_reference
from webhook_replay.models import RunResult
from webhook_replay.observability.logging import get_logger, run_log_context
from webhook_replay.observability.metrics import record_run
from webhook_replay.observer.base import EffectObserver
from webhook_replay.observer.memory import MemoryEffectObserver
from webhook_replay.rng import SeededRandom

logger = get_logger(__name__)


class ReplayRunner:
    """One replay run of a handler against a payload.

    Attributes:
        handler: The handler under test
        payload: Payload passed to every call
        config: Validated run options
        payload_ref: Reference to the payload for reproduction
        observer: Run-scoped effect observer
        store: Run-scoped shared store
        call_order: Delivery indexes in claim order
        pool: The worker pool, available once the run started
    """

    def __init__(
        self,
        handler: Handler,
        payload: Any,
        config: ReplayConfig | Mapping[str, Any] | None = None,
        payload_ref: str | None = None,
        observer: EffectObserver | None = None,
    ) -> None:
        """Initialize a run.

        Args:
            handler: Callable invoked as ``handler(payload, ctx)``
            payload: Payload passed unchanged to every call
            config: Run options, or a mapping to validate into them
            payload_ref: Payload file path; defaults to the payload fingerprint
            observer: Observer to record into; defaults to a new in-memory one

        Raises:
            ConfigurationError: If the handler is not callable or the options
                are invalid
        """
        if not callable(handler):
            raise ConfigurationError(
                f"Handler must be callable, got {type(handler).__name__}"
            )

        self.handler = handler
        self.payload = payload
        self.config = _resolve_config(config)
        self.payload_ref = payload_ref or payload_reference(payload)
        self.observer: EffectObserver = observer if observer is not None else MemoryEffectObserver()
        self.store: dict[str, Any] = {}

        self._rng = SeededRandom(self.config.seed)
        self.call_order = build_call_order(self.config.runs, self.config.shuffle, self._rng)
        self.pool: WorkerPool | None = None

    @property
    def pending_stragglers(self) -> int:
        """Timed-out executions that are still running."""
        return self.pool.pending_stragglers if self.pool is not None else 0

    async def run(self) -> RunResult:
        """Execute the run and return its result.

        Returns:
            RunResult with counts, duplicates and verdict

        Raises:
            RuntimeError: If the runner was already used
        """
        if self.pool is not None:
            raise RuntimeError("ReplayRunner instances can only run once")

        with run_log_context(seed=self.config.seed, payload_ref=self.payload_ref):
            return await self._run()

    async def _run(self) -> RunResult:
        config = self.config
        self.pool = WorkerPool(
            handler=self.handler,
            payload=self.payload,
            order=self.call_order,
            rng=self._rng,
            config=config,
            observer=self.observer,
            store=self.store,
        )

        logger.info(
            "replay.started",
            runs=config.runs,
            concurrency=self.pool.worker_count,
            shuffle=config.shuffle,
            jitter_ms=config.jitter_ms,
            timeout_ms=config.timeout_ms,
        )

        outcomes = await self.pool.run()

        if self.pool.pending_stragglers:
            logger.info("replay.stragglers_pending", count=self.pool.pending_stragglers)
            if config.settle_ms > 0:
                remaining = await self.pool.wait_for_stragglers(config.settle_ms)
                logger.info(
                    "replay.settle_elapsed",
                    settle_ms=config.settle_ms,
                    still_running=remaining,
                )

        result = aggregate(outcomes, self.observer, config, self.payload_ref)
        record_run(result.verdict.value)

        logger.info(
            "replay.completed",
            ok=result.ok,
            failed=result.failed,
            duplicates=[dup.key for dup in result.duplicates],
            verdict=result.verdict.value,
        )
        return result


async def replay(
    handler: Handler,
    payload: Any,
    config: ReplayConfig | Mapping[str, Any] | None = None,
    payload_ref: str | None = None,
) -> RunResult:
    """Replay ``payload`` against ``handler`` and return the run result.

    Args:
        handler: Callable invoked as ``handler(payload, ctx)``
        payload: Payload passed unchanged to every call
        config: Run options, or a mapping to validate into them
        payload_ref: Payload file path; defaults to the payload fingerprint

    Returns:
        RunResult with counts, duplicates and verdict

    Raises:
        ConfigurationError: If the handler or options are invalid
    """
    runner = ReplayRunner(handler, payload, config, payload_ref=payload_ref)
    return await runner.run()


def _resolve_config(config: ReplayConfig | Mapping[str, Any] | None) -> ReplayConfig:
    if config is None:
        return ReplayConfig()
    if isinstance(config, ReplayConfig):
        return config
    if isinstance(config, Mapping):
        return ReplayConfig.from_dict(dict(config))
    raise ConfigurationError(
        f"config must be a ReplayConfig or a mapping, got {type(config).__name__}"
    )
