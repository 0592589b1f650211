"""Core type definitions and models for the replay harness.

This module provides the data structures produced by a replay run: per-call
outcomes, detected duplicate effects, the final run result and the descriptor
needed to reproduce the run's scheduling.

Examples:
    Inspecting a run result::

        result = await replay(handler, {"id": "evt_1"}, ReplayConfig(seed=42))
        if result.verdict is Verdict.UNSAFE:
            for dup in result.duplicates:
                print(f"{dup.key} happened {dup.count} times")

    Reproducing a run::

        print(result.reproduction.to_cli_args())
        # --seed 42 --runs 7 --concurrency 3 --shuffle --jitter-ms 25 --timeout-ms 5000
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class CallState(str, Enum):
    """Lifecycle of a single call.

    PENDING -> JITTER_WAIT -> RUNNING -> OK | ERROR | TIMED_OUT

    Attributes:
        PENDING: Claimed by a worker but not yet started.
        JITTER_WAIT: Sleeping for the injected jitter delay.
        RUNNING: Handler invoked, racing against the timeout.
        OK: Handler returned normally.
        ERROR: Handler raised.
        TIMED_OUT: Timeout elapsed before the handler finished.
    """

    PENDING = "PENDING"
    JITTER_WAIT = "JITTER_WAIT"
    RUNNING = "RUNNING"
    OK = "OK"
    ERROR = "ERROR"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in (CallState.OK, CallState.ERROR, CallState.TIMED_OUT)


class CallStatus(str, Enum):
    """Terminal classification of a call."""

    OK = "ok"
    ERROR = "error"
    TIMED_OUT = "timed_out"


class Verdict(str, Enum):
    """Safe/unsafe classification of a whole run."""

    SAFE = "safe"
    UNSAFE = "unsafe"


class RunStatus(str, Enum):
    """Externally reported status of a run."""

    SUCCESS = "success"
    FAILURE = "failure"


class CallOutcome(BaseModel):
    """Terminal record of one call.

    Attributes:
        call: Call number, assigned in claim order starting at 1.
        delivery: Delivery index in ``[1..runs]``.
        worker: Id of the worker that ran the call, starting at 1.
        status: Terminal classification.
        error: Error message for failed calls, None otherwise.
        error_type: Exception class name for failed calls.
        jitter_ms: Jitter delay applied before the call.
        started_at: When the handler was invoked.
        finished_at: When the outcome was decided (timeout for timed-out calls).
        duration_ms: ``finished_at - started_at`` in milliseconds.
    """

    call: int = Field(..., ge=1, description="Call number in claim order")
    delivery: int = Field(..., ge=1, description="Delivery index")
    worker: int = Field(..., ge=1, description="Worker id")
    status: CallStatus = Field(..., description="Terminal classification")
    error: str | None = Field(default=None, description="Error message for failed calls")
    error_type: str | None = Field(default=None, description="Exception class name")
    jitter_ms: int = Field(default=0, ge=0, description="Jitter applied before the call")
    started_at: datetime = Field(..., description="When the handler was invoked")
    finished_at: datetime = Field(..., description="When the outcome was decided")
    duration_ms: int = Field(default=0, ge=0, description="Elapsed time in milliseconds")

    @property
    def failed(self) -> bool:
        return self.status is not CallStatus.OK


class DuplicateEffect(BaseModel):
    """An effect key observed more than once within a run.

    Attributes:
        key: The effect key.
        count: Number of times the effect was recorded (always > 1).
    """

    key: str = Field(..., min_length=1, description="Effect key")
    count: int = Field(..., ge=2, description="Occurrence count")


class ReproductionDescriptor(BaseModel):
    """Minimal option set that replays the same scheduling sequence.

    Attributes:
        seed: RNG seed.
        runs: Number of deliveries.
        concurrency: Effective worker count.
        shuffle: Whether delivery order was shuffled.
        jitter_ms: Jitter bound.
        timeout_ms: Per-call timeout.
        payload_ref: Payload file path, or ``sha256:<digest>`` of the payload.
    """

    seed: int
    runs: int
    concurrency: int
    shuffle: bool
    jitter_ms: int
    timeout_ms: int
    payload_ref: str | None = None

    def to_cli_args(self) -> str:
        """Render the descriptor as command line options.

        Example:
            >>> ReproductionDescriptor(
            ...     seed=42, runs=7, concurrency=3, shuffle=True, jitter_ms=25, timeout_ms=5000
            ... ).to_cli_args()
            '--seed 42 --runs 7 --concurrency 3 --shuffle --jitter-ms 25 --timeout-ms 5000'
        """
        parts = [
            f"--seed {self.seed}",
            f"--runs {self.runs}",
            f"--concurrency {self.concurrency}",
            "--shuffle" if self.shuffle else "--no-shuffle",
            f"--jitter-ms {self.jitter_ms}",
            f"--timeout-ms {self.timeout_ms}",
        ]
        if self.payload_ref and not self.payload_ref.startswith("sha256:"):
            parts.append(f"--payload {self.payload_ref}")
        return " ".join(parts)


class RunResult(BaseModel):
    """Aggregated result of a replay run.

    Attributes:
        ok: Number of calls that returned normally.
        failed: Number of calls that raised or timed out.
        duplicates: Effect keys seen more than once, in first-observation order.
        verdict: UNSAFE if any call failed or any effect was duplicated.
        outcomes: Per-call outcomes ordered by call number.
        effects: Every effect key with its occurrence count.
        trace: Ordered effect/log trace, only populated when tracing was requested.
        reproduction: Options needed to reproduce the scheduling.
    """

    ok: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    duplicates: list[DuplicateEffect] = Field(default_factory=list)
    verdict: Verdict
    outcomes: list[CallOutcome] = Field(default_factory=list)
    effects: dict[str, int] = Field(default_factory=dict)
    trace: list[str] = Field(default_factory=list)
    reproduction: ReproductionDescriptor

    @field_validator("duplicates")
    @classmethod
    def validate_unique_duplicates(cls, v: list[DuplicateEffect]) -> list[DuplicateEffect]:
        """Validate that each duplicate key appears once.

        Raises:
            ValueError: If the same key is listed twice.
        """
        keys = [dup.key for dup in v]
        if len(keys) != len(set(keys)):
            raise ValueError("duplicate keys must be unique")
        return v

    @property
    def total(self) -> int:
        return self.ok + self.failed

    @property
    def timed_out(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is CallStatus.TIMED_OUT)
