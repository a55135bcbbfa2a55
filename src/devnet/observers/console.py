# src/devnet/observers/console.py
from __future__ import annotations

from datetime import datetime

import typer

from .events import (
    BaseEvent,
    StepStarted,
    StepSkipped,
    StepSucceeded,
    StepWarned,
    StepFailed,
    VersionResolved,
    ProbeReported,
    RunSummary,
)


def _stamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleObserver:
    """Operator-facing progress lines, one timestamped label per step."""

    def notify(self, event: BaseEvent) -> None:
        if isinstance(event, StepStarted):
            typer.echo("")
            typer.secho(
                f"[{_stamp()}] [{event.index}/{event.total}] {event.description}",
                bold=True,
            )
        elif isinstance(event, StepSkipped):
            typer.echo(f"  {event.name}: {event.reason}, skipping")
        elif isinstance(event, StepSucceeded):
            typer.secho(f"  {event.name}: done ({event.duration_ms} ms)", fg=typer.colors.GREEN)
        elif isinstance(event, StepWarned):
            typer.secho(f"  {event.name}: WARNING (continuing)\n{event.error}", fg=typer.colors.YELLOW)
        elif isinstance(event, StepFailed):
            typer.secho(f"  {event.name}: FAILED\n{event.error}", fg=typer.colors.RED, err=True)
        elif isinstance(event, VersionResolved):
            note = " (fallback)" if event.fallback else ""
            typer.echo(f"  storage node version: {event.resolved}{note}")
        elif isinstance(event, ProbeReported):
            mark = "ok" if event.ok else "unreachable"
            typer.echo(f"  probe {event.name:<14} {event.target:<40} {mark} {event.detail}".rstrip())
        elif isinstance(event, RunSummary):
            typer.echo("")
            line = f"OK={event.ok} SKIPPED={event.skipped} WARNED={event.warned} FAILED={event.failed}"
            if event.failed_step:
                typer.secho(f"{line}  (failed step: {event.failed_step})", fg=typer.colors.RED, bold=True, err=True)
            else:
                typer.secho(line, fg=typer.colors.GREEN, bold=True)
