# === NAVMAP v1 ===
# {
#   "module": "FallbackChain.cli",
#   "purpose": "Typer CLI for inspecting and exercising fallback chains.",
#   "sections": [
#     {
#       "id": "app",
#       "name": "app",
#       "anchor": "variable-app",
#       "kind": "data"
#     },
#     {
#       "id": "parse-candidate-spec",
#       "name": "parse_candidate_spec",
#       "anchor": "function-parse-candidate-spec",
#       "kind": "function"
#     },
#     {
#       "id": "plan-command",
#       "name": "plan",
#       "anchor": "function-plan",
#       "kind": "function"
#     },
#     {
#       "id": "dryrun-command",
#       "name": "dryrun",
#       "anchor": "function-dryrun",
#       "kind": "function"
#     },
#     {
#       "id": "stats-command",
#       "name": "stats",
#       "anchor": "function-stats",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""CLI commands for fallback chain operational control.

Commands:
  fallback-chain plan
    → Show effective settings (after merging YAML/env/CLI)

  fallback-chain dryrun --candidate primary=fail:boom --candidate backup=ok:hello
    → Run the real orchestrator over simulated candidates

  fallback-chain stats attempts.jsonl
    → Summarize a JSONL attempt log per candidate
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

import typer

from .errors import ConfigurationError, FallbackExhaustedError, describe_error
from .loader import load_settings
from .logging_utils import generate_run_id, setup_logging
from .orchestrator import fallback
from .settings import ChainSettings, build_options
from .telemetry import (
    JsonlAttemptSink,
    LoggingObserver,
    compose_observers,
    load_attempt_records,
    summarize_records,
)
from .types import AttemptContext, AttemptInfo, NamedCandidate

app = typer.Typer(
    no_args_is_help=True,
    help="Inspect and exercise sequential fallback chains.",
)


class CandidateStopError(RuntimeError):
    """Raised by ``stop:`` dry-run candidates; never retried."""


# ============================================================================
# Simulated candidates
# ============================================================================


def _returns(value: str):
    def _run(context: AttemptContext) -> str:
        return value

    return _run


def _raises(error: Exception):
    def _run(context: AttemptContext) -> str:
        raise error

    return _run


def _sleeps(delay_ms: float, value: str):
    async def _run(context: AttemptContext) -> str:
        token = context.cancellation_token
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({waiter}, timeout=delay_ms / 1000.0)
        finally:
            waiter.cancel()
        token.raise_if_cancelled()
        return value

    return _run


def parse_candidate_spec(spec: str) -> NamedCandidate:
    """Parse ``name=behaviour`` into a simulated candidate.

    Behaviours: ``ok:VALUE``, ``fail:MESSAGE``, ``slow:MS:VALUE``, ``empty``,
    ``stop:MESSAGE``.

    Raises:
        typer.BadParameter: If the spec is malformed
    """
    name, sep, behaviour = spec.partition("=")
    if not sep or not name.strip() or not behaviour:
        raise typer.BadParameter(f"expected name=behaviour, got {spec!r}")
    name = name.strip()
    kind, _, rest = behaviour.partition(":")

    if kind == "ok":
        return NamedCandidate(_returns(rest), name=name)
    if kind == "empty":
        return NamedCandidate(_returns(""), name=name)
    if kind == "fail":
        return NamedCandidate(_raises(RuntimeError(rest or "candidate failed")), name=name)
    if kind == "stop":
        return NamedCandidate(_raises(CandidateStopError(rest or "candidate stopped")), name=name)
    if kind == "slow":
        delay, _, value = rest.partition(":")
        try:
            delay_ms = float(delay)
        except ValueError:
            raise typer.BadParameter(f"invalid delay in {spec!r}") from None
        if delay_ms < 0:
            raise typer.BadParameter(f"delay must be non-negative in {spec!r}")
        return NamedCandidate(_sleeps(delay_ms, value), name=name)

    raise typer.BadParameter(f"unknown behaviour {kind!r} in {spec!r}")


def _not_stopped(error: BaseException, meta: Dict[str, int]) -> bool:
    return not isinstance(error, CandidateStopError)


# ============================================================================
# Formatting
# ============================================================================


def format_settings_table(settings: ChainSettings) -> str:
    """Format ChainSettings as a readable text table."""
    lines = []
    lines.append("=" * 60)
    lines.append("FALLBACK CHAIN SETTINGS")
    lines.append("=" * 60)
    timeout = "disabled" if settings.timeout_ms is None else f"{settings.timeout_ms:g} ms"
    lines.append(f"  Default timeout:     {timeout}")
    if settings.attempt_timeouts_ms:
        for index, value in enumerate(settings.attempt_timeouts_ms):
            shown = "default" if value is None else f"{value:g} ms"
            lines.append(f"    attempt {index}:         {shown}")
    accept = settings.accept
    if accept == "status":
        accept = f"status in {settings.accept_status}"
    lines.append(f"  Accept:              {accept}")
    lines.append(f"  Log level:           {settings.log_level}")
    lines.append(f"  Telemetry path:      {settings.telemetry_path or '-'}")
    lines.append("=" * 60)
    return "\n".join(lines)


def _format_attempt(info: AttemptInfo) -> str:
    line = f"  [{info.attempt}] {info.name or '-':16} {info.outcome:12} {info.duration_ms:8.1f}ms"
    if info.error is not None:
        line += f"  {describe_error(info.error)}"
    return line


def _load(config: Optional[Path], overrides: Dict[str, Any]) -> ChainSettings:
    try:
        return load_settings(yaml_path=config, cli_overrides=overrides)
    except (FileNotFoundError, ConfigurationError) as e:
        typer.echo(f"Error loading settings: {e}", err=True)
        raise typer.Exit(code=2) from e


# ============================================================================
# Commands
# ============================================================================


@app.command()
def plan(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help="YAML settings file (defaults to the packaged one)."),
    ] = None,
    timeout_ms: Annotated[
        Optional[float],
        typer.Option("--timeout-ms", min=0, help="Override the default per-attempt timeout."),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: table or json."),
    ] = "table",
) -> None:
    """Show the effective settings after merging YAML, environment and CLI."""
    if output_format not in ("table", "json"):
        raise typer.BadParameter("format must be 'table' or 'json'", param_hint="--format")
    settings = _load(config, {"timeout_ms": timeout_ms})
    if output_format == "json":
        typer.echo(json.dumps(settings.model_dump(), indent=2))
    else:
        typer.echo(format_settings_table(settings))


@app.command()
def dryrun(
    candidates: Annotated[
        List[str],
        typer.Option(
            "--candidate",
            "-c",
            help="Simulated candidate as name=behaviour (repeat for each candidate).",
        ),
    ],
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help="YAML settings file (defaults to the packaged one)."),
    ] = None,
    timeout_ms: Annotated[
        Optional[float],
        typer.Option("--timeout-ms", min=0, help="Override the default per-attempt timeout."),
    ] = None,
    accept: Annotated[
        Optional[str],
        typer.Option("--accept", help="Accept predicate: any, ok, truthy, defined."),
    ] = None,
    telemetry: Annotated[
        Optional[Path],
        typer.Option("--telemetry", help="Append attempt records to this JSONL file."),
    ] = None,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs/--no-json-logs", help="Emit JSON log lines on stderr."),
    ] = False,
) -> None:
    """Run the orchestrator over simulated candidates."""
    chain = [parse_candidate_spec(spec) for spec in candidates]
    settings = _load(
        config,
        {
            "timeout_ms": timeout_ms,
            "accept": accept,
            "telemetry_path": str(telemetry) if telemetry is not None else None,
        },
    )
    run_id = generate_run_id()
    setup_logging(level=settings.log_level, json_logs=json_logs)

    sink = JsonlAttemptSink(settings.telemetry_path, run_id=run_id) if settings.telemetry_path else None
    observer = compose_observers(
        lambda info: typer.echo(_format_attempt(info)),
        LoggingObserver(run_id=run_id),
        sink,
    )
    options = build_options(settings, on_attempt=observer, retryable=_not_stopped)

    typer.echo(f"Dry-run {run_id}: {len(chain)} candidate(s)")
    try:
        value = asyncio.run(fallback(chain, options))
    except FallbackExhaustedError as e:
        typer.echo(f"Exhausted: {e}")
        raise typer.Exit(code=1) from e
    except CandidateStopError as e:
        typer.echo(f"Stopped: {describe_error(e)}")
        raise typer.Exit(code=2) from e
    typer.echo(f"Result: {value!r}")


@app.command()
def stats(
    path: Annotated[Path, typer.Argument(help="JSONL attempt log written by --telemetry.")],
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: table or json."),
    ] = "table",
) -> None:
    """Summarize attempt records per candidate."""
    if output_format not in ("table", "json"):
        raise typer.BadParameter("format must be 'table' or 'json'", param_hint="--format")
    try:
        records = load_attempt_records(path)
    except FileNotFoundError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=2) from e

    summary = summarize_records(records)
    if output_format == "json":
        typer.echo(json.dumps(summary, indent=2))
        return

    typer.echo(f"{len(records)} attempt(s), {len(summary)} candidate(s)")
    for name, row in summary.items():
        outcomes = ", ".join(f"{k}={v}" for k, v in row["outcomes"].items())
        typer.echo(
            f"  {name:20} attempts={row['attempts']:<4} "
            f"success={row['success_rate']:.0%}  mean={row['mean_duration_ms']:.1f}ms  {outcomes}"
        )


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
