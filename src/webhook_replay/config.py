"""Configuration module for the replay harness.

This module provides the ReplayConfig class describing one replay run: how many
deliveries to make, how many run at once, how they are ordered and timed, and
how the verdict is reported.

Example:
    Basic usage with defaults:

        >>> config = ReplayConfig(seed=42)
        >>> config.runs, config.concurrency
        (7, 3)

    Custom configuration:

        >>> config = ReplayConfig(
        ...     runs=20,
        ...     concurrency=5,
        ...     shuffle=False,
        ...     seed=1234,
        ...     jitter_ms=0,
        ...     timeout_ms=1000,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['WEBHOOK_REPLAY_RUNS'] = '20'
        >>> os.environ['WEBHOOK_REPLAY_SHUFFLE'] = 'false'
        >>> config = ReplayConfig.from_env()

    Loading from dictionary:

        >>> config = ReplayConfig.from_dict({'runs': 10, 'seed': 42})
"""

import os
import secrets
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from webhook_replay.exceptions import ConfigurationError

DEFAULT_RUNS = 7
DEFAULT_CONCURRENCY = 3

MAX_SEED = 0xFFFFFFFF

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def generate_seed() -> int:
    """Return a fresh random 32-bit seed."""
    return secrets.randbits(32)


class ReplayConfig(BaseModel):
    """Options for a single replay run.

    All fields are validated at construction time, so an invalid configuration
    never reaches the scheduler.

    Attributes:
        runs: Number of deliveries to make. Must be >= 1. Default is 7.
        concurrency: Number of concurrent workers. Must be >= 1 and is clamped
            to ``runs``. Default is 3.
        shuffle: Whether to permute delivery order using the seeded RNG.
            Default is True.
        seed: 32-bit seed driving shuffling and jitter. Defaults to a fresh
            random value so that it can always be reported for reproduction.
        jitter_ms: Upper bound (inclusive) of the random delay injected before
            each call, in milliseconds. 0 disables jitter. Default is 25.
        timeout_ms: Per-call timeout in milliseconds. Must be >= 1.
            Default is 5000.
        trace: Whether to return the effect/log trace with the result.
        settle_ms: Grace period after all workers finish during which timed-out
            calls may still record effects before the verdict is computed.
            Default is 0.
        allow_unsafe: Report success even when the verdict is unsafe. The
            verdict itself is unchanged.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    runs: int = Field(
        default=DEFAULT_RUNS,
        description="Number of deliveries to make (>= 1)",
    )
    concurrency: int = Field(
        default=DEFAULT_CONCURRENCY,
        description="Number of concurrent workers (>= 1, clamped to runs)",
    )
    shuffle: bool = Field(
        default=True,
        description="Shuffle delivery order with the seeded RNG",
    )
    seed: int = Field(
        default_factory=generate_seed,
        description="32-bit seed for shuffling and jitter",
    )
    jitter_ms: int = Field(
        default=25,
        description="Maximum random delay before each call in milliseconds (>= 0)",
    )
    timeout_ms: int = Field(
        default=5000,
        description="Per-call timeout in milliseconds (>= 1)",
    )
    trace: bool = Field(
        default=False,
        description="Include the effect/log trace in the result",
    )
    settle_ms: int = Field(
        default=0,
        description="Wait for timed-out calls after workers finish, in milliseconds (>= 0)",
    )
    allow_unsafe: bool = Field(
        default=False,
        description="Report success even when the verdict is unsafe",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def clamp_concurrency(self) -> "ReplayConfig":
        """Clamp concurrency to the number of runs.

        Runs after field coercion, so string or float inputs from a mapping
        are clamped the same way as integers.

        Example:
            >>> ReplayConfig(runs=2, concurrency=10, seed=1).concurrency
            2
            >>> ReplayConfig.from_dict({"runs": "2", "concurrency": 5, "seed": 1}).concurrency
            2
        """
        if self.concurrency > self.runs:
            # Frozen model: bypass the assignment guard during validation.
            object.__setattr__(self, "concurrency", self.runs)
        return self

    @field_validator("runs")
    @classmethod
    def validate_runs(cls, v: int) -> int:
        """Validate that at least one delivery is requested.

        Raises:
            ValueError: If runs is less than 1.
        """
        if v < 1:
            raise ValueError(f"runs must be >= 1, got {v}")
        return v

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Validate that at least one worker is requested.

        Raises:
            ValueError: If concurrency is less than 1.
        """
        if v < 1:
            raise ValueError(f"concurrency must be >= 1, got {v}")
        return v

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v: int) -> int:
        """Validate that the seed fits in 32 unsigned bits.

        Raises:
            ValueError: If the seed is negative or larger than 2**32 - 1.
        """
        if not (0 <= v <= MAX_SEED):
            raise ValueError(f"seed must be between 0 and {MAX_SEED}, got {v}")
        return v

    @field_validator("jitter_ms", "settle_ms")
    @classmethod
    def validate_non_negative(cls, v: int, info: Any) -> int:
        """Validate delay fields are non-negative.

        Raises:
            ValueError: If the value is negative.
        """
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got {v}")
        return v

    @field_validator("timeout_ms")
    @classmethod
    def validate_timeout_ms(cls, v: int) -> int:
        """Validate the per-call timeout is positive.

        Raises:
            ValueError: If timeout_ms is less than 1.
        """
        if v < 1:
            raise ValueError(f"timeout_ms must be >= 1, got {v}")
        return v

    @classmethod
    def from_env(
        cls,
        prefix: str = "WEBHOOK_REPLAY_",
        overrides: dict[str, Any] | None = None,
    ) -> "ReplayConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix. Values in
        ``overrides`` take precedence over the environment.

        Args:
            prefix: Prefix for environment variable names.
            overrides: Explicit values that win over the environment.

        Returns:
            ReplayConfig instance populated from environment variables.

        Raises:
            ConfigurationError: If a variable cannot be parsed or the
                resulting options are invalid.

        Example:
            >>> import os
            >>> os.environ['WEBHOOK_REPLAY_RUNS'] = '12'
            >>> os.environ['WEBHOOK_REPLAY_TRACE'] = 'yes'
            >>> config = ReplayConfig.from_env()
            >>> config.runs, config.trace
            (12, True)
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "runs": int,
            "concurrency": int,
            "shuffle": bool,
            "seed": int,
            "jitter_ms": int,
            "timeout_ms": int,
            "trace": bool,
            "settle_ms": int,
            "allow_unsafe": bool,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)
            if env_value is None:
                continue

            try:
                if field_type is int:
                    config_dict[field_name] = int(env_value)
                else:
                    config_dict[field_name] = _parse_bool(env_value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {e}", cause=e) from e

        if overrides:
            config_dict.update({k: v for k, v in overrides.items() if v is not None})

        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ReplayConfig":
        """Create configuration from a dictionary.

        Args:
            config_dict: Dictionary with configuration values.

        Returns:
            ReplayConfig instance populated from the dictionary.

        Raises:
            ConfigurationError: If the dictionary contains invalid values.

        Example:
            >>> config = ReplayConfig.from_dict({'runs': 3, 'concurrency': 2, 'seed': 7})
            >>> config.concurrency
            2
        """
        try:
            return cls(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid replay options: {e}", cause=e) from e


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")
