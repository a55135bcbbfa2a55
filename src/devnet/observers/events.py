# src/devnet/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    run_id: str       # correlates all events in a single provisioning run
    host: str         # "local" or the SSH target address
    ts: str = field(default_factory=_now, kw_only=True)  # ISO timestamp, taken when the event is created

    def dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["event"] = type(self).__name__
        return d


def new_ctx(host: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "run_id": run_id or str(uuid.uuid4()),
        "host": host or "local",
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    name: str
    index: int
    total: int
    description: str

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    name: str
    reason: str = "already satisfied"

@dataclass(frozen=True)
class StepSucceeded(BaseEvent):
    name: str
    duration_ms: int

@dataclass(frozen=True)
class StepWarned(BaseEvent):
    """A best-effort or advisory step failed; the run carries on."""
    name: str
    error: str

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    name: str
    error: str


# ---------------------------------------------------------------------
# Probing & verification
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class VersionResolved(BaseEvent):
    requested: str
    resolved: str
    fallback: bool

@dataclass(frozen=True)
class ProbeReported(BaseEvent):
    name: str
    target: str
    ok: bool
    detail: str = ""


# ---------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunSummary(BaseEvent):
    ok: int
    skipped: int
    warned: int
    failed: int
    failed_step: Optional[str] = None
