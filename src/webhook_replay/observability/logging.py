"""Structured logging for replay runs.

Every event is a structlog key/value record. ``run_log_context`` binds the
run's seed and payload reference into contextvars, and worker tasks inherit
them, so any single line can be traced back to the run that produced it and
replayed with the same seed.

Logs go to stderr; stdout is reserved for the report (text or ``--json``).

Examples:
    Configure once, then log from any module::

        configure_logging(level="INFO", json_output=True)
        logger = get_logger(__name__)

        with run_log_context(seed=42, payload_ref="payload.json"):
            logger.info("replay.call_failed", call=3, delivery=5, error="boom")

    Output (JSON)::

        {"seed": 42, "payload_ref": "payload.json", "call": 3, "delivery": 5,
         "error": "boom", "event": "replay.call_failed", "level": "info",
         "timestamp": "2024-01-01T00:00:00.000000Z"}
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog
from structlog.contextvars import bound_contextvars


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Configure the structlog pipeline.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_output: Emit one JSON object per line instead of console text
        stream: Destination; defaults to whatever ``sys.stderr`` is at log time

    Raises:
        ValueError: If the level name is unknown
    """
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown log level: {level}")

    renderer: Any = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        context_class=dict,
        logger_factory=_StreamLoggerFactory(stream),
        # The CLI may swap stderr between runs.
        cache_logger_on_first_use=False,
    )


class _StreamLoggerFactory:
    def __init__(self, stream: IO[str] | None) -> None:
        self._stream = stream

    def __call__(self, *args: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=self._stream if self._stream is not None else sys.stderr)


@contextmanager
def run_log_context(seed: int, payload_ref: str | None = None) -> Iterator[None]:
    """Bind run identity to every event logged inside the block."""
    with bound_contextvars(seed=seed, payload_ref=payload_ref):
        yield


def get_logger(name: str) -> Any:
    """Return a structlog logger for ``name``."""
    return structlog.get_logger(name)
