# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .planner import plan
from .steps import Step, StepPolicy
from ..errors import PostConditionError

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    StepStarted,
    StepSkipped,
    StepSucceeded,
    StepWarned,
    StepFailed,
    RunSummary,
)

log = logging.getLogger("devnet")


@dataclass
class RunOptions:
    # dry runs execute no mutating commands, so post-conditions cannot hold
    enforce_postconditions: bool = True


@dataclass
class StepOutcome:
    name: str
    status: str                 # "OK" | "SKIPPED" | "WARNED" | "FAILED"
    duration_ms: int = 0
    error: Optional[str] = None


@dataclass
class ProvisionReport:
    outcomes: List[StepOutcome] = field(default_factory=list)

    def add(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed_step(self) -> Optional[str]:
        for o in self.outcomes:
            if o.status == "FAILED":
                return o.name
        return None

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def summary(self) -> str:
        return (
            f"OK={self.count('OK')} SKIPPED={self.count('SKIPPED')} "
            f"WARNED={self.count('WARNED')} FAILED={self.count('FAILED')}"
        )


def _error_text(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def _run_one(step: Step, options: RunOptions) -> None:
    step.action()
    if options.enforce_postconditions and step.verify is not None and not step.verify():
        raise PostConditionError(step.name)


def run_steps(
    steps: Sequence[Step],
    options: Optional[RunOptions] = None,
    observers: Optional[List] = None,
    run_ctx: Optional[dict] = None,
) -> ProvisionReport:
    """
    Run steps strictly in order. The first failing FATAL step ends the run;
    BEST_EFFORT and ADVISORY failures are reported and the run continues.
    Nothing already done is undone: re-running is the recovery path.
    """
    options = options or RunOptions()
    report = ProvisionReport()

    bus = EventBus(observers or [])
    run_ctx = run_ctx or new_ctx(host=None)

    ordered = plan(steps, bus=bus, run_ctx=run_ctx)
    total = len(ordered)

    for index, step in enumerate(ordered, 1):
        bus.emit(StepStarted(name=step.name, index=index, total=total, description=step.description, **run_ctx))
        t0 = time.monotonic()
        try:
            if step.check():
                report.add(StepOutcome(name=step.name, status="SKIPPED"))
                bus.emit(StepSkipped(name=step.name, **run_ctx))
                continue
            _run_one(step, options)
        except Exception as e:
            duration_ms = int((time.monotonic() - t0) * 1000)
            err = _error_text(e)
            if step.policy is StepPolicy.FATAL:
                log.debug("step %s failed", step.name, exc_info=True)
                report.add(StepOutcome(name=step.name, status="FAILED", duration_ms=duration_ms, error=err))
                bus.emit(StepFailed(name=step.name, error=err, **run_ctx))
                break
            report.add(StepOutcome(name=step.name, status="WARNED", duration_ms=duration_ms, error=err))
            bus.emit(StepWarned(name=step.name, error=err, **run_ctx))
            continue

        duration_ms = int((time.monotonic() - t0) * 1000)
        report.add(StepOutcome(name=step.name, status="OK", duration_ms=duration_ms))
        bus.emit(StepSucceeded(name=step.name, duration_ms=duration_ms, **run_ctx))

    bus.emit(
        RunSummary(
            ok=report.count("OK"),
            skipped=report.count("SKIPPED"),
            warned=report.count("WARNED"),
            failed=report.count("FAILED"),
            failed_step=report.failed_step,
            **run_ctx,
        )
    )
    return report
