"""
Pytest configuration and shared fixtures for webhook_replay tests.
"""

from typing import Any

import pytest

from webhook_replay.config import ReplayConfig


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Provide a sample webhook payload for tests."""
    return {"id": "evt_test_123", "type": "charge.succeeded"}


@pytest.fixture
def reference_config() -> ReplayConfig:
    """The reference configuration: 7 runs, 3 workers, shuffled, seed 42."""
    return ReplayConfig(runs=7, concurrency=3, shuffle=True, seed=42, jitter_ms=5, timeout_ms=2000)


@pytest.fixture
def fast_config() -> ReplayConfig:
    """A configuration without jitter for quick deterministic runs."""
    return ReplayConfig(runs=5, concurrency=2, shuffle=True, seed=7, jitter_ms=0, timeout_ms=2000)
