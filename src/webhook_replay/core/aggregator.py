"""Outcome aggregation and verdict rendering.

This module turns the per-call outcomes and the final observer state into a
RunResult. It runs once, after every worker has finished, and reads the
observer without modifying it.

The verdict rules are:
1. Any failed call (error or timeout) makes the run UNSAFE
2. Any effect key counted more than once makes the run UNSAFE
3. Otherwise the run is SAFE

Examples:
    Aggregating a finished run::

        outcomes = await pool.run()
        result = aggregate(outcomes, observer, config, payload_ref="payload.json")
        status = report_status(result, allow_unsafe=config.allow_unsafe)
"""

from webhook_replay.config import ReplayConfig
from webhook_replay.models import (
    CallOutcome,
    CallStatus,
    ReproductionDescriptor,
    RunResult,
    RunStatus,
    Verdict,
)
from webhook_replay.observer.base import EffectObserver


def aggregate(
    outcomes: list[CallOutcome],
    observer: EffectObserver,
    config: ReplayConfig,
    payload_ref: str | None = None,
) -> RunResult:
    """Build the run result from outcomes and observer state.

    Args:
        outcomes: Terminal outcomes of every call
        observer: The run's effect observer
        config: Run options
        payload_ref: Payload file path or fingerprint reference

    Returns:
        RunResult with counts, duplicates, verdict and reproduction descriptor
    """
    ok = sum(1 for outcome in outcomes if outcome.status is CallStatus.OK)
    failed = len(outcomes) - ok

    duplicates = observer.duplicates()
    verdict = Verdict.UNSAFE if failed > 0 or duplicates else Verdict.SAFE

    return RunResult(
        ok=ok,
        failed=failed,
        duplicates=duplicates,
        verdict=verdict,
        outcomes=sorted(outcomes, key=lambda outcome: outcome.call),
        effects=observer.counts(),
        trace=observer.trace() if config.trace else [],
        reproduction=build_reproduction(config, payload_ref),
    )


def build_reproduction(config: ReplayConfig, payload_ref: str | None = None) -> ReproductionDescriptor:
    """Capture the options that determine claim order and jitter magnitudes.

    Args:
        config: Run options
        payload_ref: Payload file path or fingerprint reference

    Returns:
        ReproductionDescriptor for the run
    """
    return ReproductionDescriptor(
        seed=config.seed,
        runs=config.runs,
        concurrency=config.concurrency,
        shuffle=config.shuffle,
        jitter_ms=config.jitter_ms,
        timeout_ms=config.timeout_ms,
        payload_ref=payload_ref,
    )


def report_status(result: RunResult, allow_unsafe: bool = False) -> RunStatus:
    """Map a verdict to the externally reported status.

    ``allow_unsafe`` forces SUCCESS; ``result.verdict`` is left unchanged.

    Examples:
        >>> report_status(unsafe_result)
        <RunStatus.FAILURE: 'failure'>
        >>> report_status(unsafe_result, allow_unsafe=True)
        <RunStatus.SUCCESS: 'success'>
    """
    if result.verdict is Verdict.SAFE or allow_unsafe:
        return RunStatus.SUCCESS
    return RunStatus.FAILURE
