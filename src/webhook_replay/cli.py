"""Command line entry point.

Usage:
    webhook-replay handler.py                    # 7 deliveries, 3 at a time
    webhook-replay handler.py --runs 50 --concurrency 10
    webhook-replay pkg.hooks:on_payment --payload event.json --seed 42 --trace
    webhook-replay handler.py --json             # machine readable result

Exit codes:
    0  safe (or unsafe with --allow-unsafe)
    1  handler, payload or options could not be loaded
    2  unsafe
"""

import asyncio
import json
import sys
from typing import Any

import click

from webhook_replay import __version__
from webhook_replay.config import ReplayConfig
from webhook_replay.core.aggregator import report_status
from webhook_replay.core.runner import replay
from webhook_replay.exceptions import ConfigurationError, HandlerLoadError
from webhook_replay.hints import suggest_hints
from webhook_replay.loader import handler_source_path, load_handler, load_payload
from webhook_replay.models import CallStatus, RunResult, RunStatus, Verdict
from webhook_replay.observability.logging import configure_logging

EXIT_SUCCESS = 0
EXIT_LOAD_ERROR = 1
EXIT_UNSAFE = 2


@click.command("webhook-replay")
@click.argument("handler")
@click.option("--payload", "payload_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="JSON payload file (default: payload.json next to the handler)")
@click.option("--runs", type=int, default=None, help="Number of deliveries (default: 7)")
@click.option("--concurrency", type=int, default=None, help="Concurrent workers (default: 3)")
@click.option("--shuffle/--no-shuffle", default=None, help="Shuffle delivery order (default: on)")
@click.option("--seed", type=int, default=None, help="32-bit seed for order and jitter (default: random)")
@click.option("--jitter-ms", type=int, default=None, help="Max random delay before each call (default: 25)")
@click.option("--timeout-ms", type=int, default=None, help="Per-call timeout (default: 5000)")
@click.option("--settle-ms", type=int, default=None, help="Wait for timed-out calls before judging (default: 0)")
@click.option("--trace", is_flag=True, help="Print every effect and log line")
@click.option("--allow-unsafe", is_flag=True, help="Exit 0 even when the verdict is unsafe")
@click.option("--json", "output_json", is_flag=True, help="Output JSON instead of human-readable")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.version_option(version=__version__, prog_name="webhook-replay")
def main(
    handler: str,
    payload_path: str | None,
    runs: int | None,
    concurrency: int | None,
    shuffle: bool | None,
    seed: int | None,
    jitter_ms: int | None,
    timeout_ms: int | None,
    settle_ms: int | None,
    trace: bool,
    allow_unsafe: bool,
    output_json: bool,
    log_level: str,
) -> None:
    """Replay a webhook payload against HANDLER and flag duplicate side effects.

    HANDLER is a Python file (exporting handler, default or main), a file with
    an explicit attribute (handler.py:on_event) or an importable module path
    (pkg.hooks:on_event). The handler is called as handler(payload, ctx) and
    declares side effects with ctx.effect(key).
    """
    configure_logging(level=log_level, json_output=output_json)

    try:
        config = ReplayConfig.from_env(
            overrides={
                "runs": runs,
                "concurrency": concurrency,
                "shuffle": shuffle,
                "seed": seed,
                "jitter_ms": jitter_ms,
                "timeout_ms": timeout_ms,
                "settle_ms": settle_ms,
                "trace": trace or None,
                "allow_unsafe": allow_unsafe or None,
            }
        )
        handler_fn = load_handler(handler)
        source_path = handler_source_path(handler)
        payload, payload_ref = load_payload(payload_path, handler_path=source_path)
    except (ConfigurationError, HandlerLoadError) as e:
        click.echo(f"error: {e.message}", err=True)
        sys.exit(EXIT_LOAD_ERROR)

    result = asyncio.run(replay(handler_fn, payload, config, payload_ref=payload_ref))
    status = report_status(result, allow_unsafe=config.allow_unsafe)

    hints: list[str] = []
    if source_path is not None and source_path.is_file():
        hints = suggest_hints(source_path.read_text(encoding="utf-8", errors="replace"))

    if output_json:
        click.echo(json.dumps(_json_report(result, status, hints), indent=2))
    else:
        _print_report(handler, config, result, status, hints)

    sys.exit(EXIT_SUCCESS if status is RunStatus.SUCCESS else EXIT_UNSAFE)


def _json_report(result: RunResult, status: RunStatus, hints: list[str]) -> dict[str, Any]:
    report = result.model_dump(mode="json")
    report["status"] = status.value
    report["hints"] = hints
    return report


def _print_report(
    handler: str,
    config: ReplayConfig,
    result: RunResult,
    status: RunStatus,
    hints: list[str],
) -> None:
    click.echo("webhook-replay")
    click.echo(f"Handler: {handler}")
    click.echo(
        f"Runs: {config.runs} (concurrency={config.concurrency}, seed={config.seed}, "
        f"shuffle={'on' if config.shuffle else 'off'})"
    )
    click.echo("")

    if result.verdict is Verdict.SAFE:
        click.echo("Verdict: SAFE")
    else:
        click.echo("Verdict: UNSAFE")
    click.echo(f"Handler executions: {result.ok}/{result.total} ok, {result.failed} failed")

    if result.duplicates:
        click.echo("")
        click.echo("Duplicate side effects:")
        for dup in result.duplicates:
            click.echo(f"- {dup.key} x{dup.count}")

    failures = [outcome for outcome in result.outcomes if outcome.status is not CallStatus.OK]
    if failures:
        click.echo("")
        click.echo("Failed calls:")
        for outcome in failures:
            click.echo(
                f"- call #{outcome.call} (delivery #{outcome.delivery}): "
                f"{outcome.status.value}: {outcome.error}"
            )

    if hints:
        click.echo("")
        click.echo("Hints:")
        for hint in hints:
            click.echo(f"- {hint}")

    if result.trace:
        click.echo("")
        click.echo("Trace:")
        for line in result.trace:
            click.echo(f"- {line}")

    click.echo("")
    click.echo(f"Reproduce: webhook-replay {handler} {result.reproduction.to_cli_args()}")

    if result.verdict is Verdict.UNSAFE and status is RunStatus.SUCCESS:
        click.echo("Unsafe verdict ignored (--allow-unsafe)")


if __name__ == "__main__":
    main()
