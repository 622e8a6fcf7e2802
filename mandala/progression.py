"""
Progression controller for the 14-step wizard.

Pure functions over a PlanRecord plus an injectable "now":
- evaluate_access: may the account open step N right now (ignoring time)?
- complete_step: the record transition produced by saving step N
- next_boundary / time_gate: midnight gating in a fixed civil timezone
- resolve_entry: access and time gate combined into granted / wait / locked

Nothing here performs I/O. Callers persist the returned records.
"""
import copy
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from zoneinfo import ZoneInfo

from mandala.config_manager import SystemConfig, config
from mandala.exceptions import InvalidStepError
from mandala.logger import get_logger
from mandala.models import MUTABLE_FIELDS, Account, PlanRecord
from mandala.validators import validate_step

logger = get_logger("progression")

Clock = Callable[[], Optional[datetime]]

# Managed by complete_step only; step payloads may not set them.
PROGRESSION_FIELDS = frozenset({"current_step", "completed_steps", "step_completed_at"})


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


class AccessStatus(str, Enum):
    GRANTED = "granted"
    LOCKED = "locked"


class EntryStatus(str, Enum):
    GRANTED = "granted"
    WAIT = "wait"
    LOCKED = "locked"


@dataclass(frozen=True)
class AccessDecision:
    step: int
    status: AccessStatus
    reason: str

    @property
    def granted(self) -> bool:
        return self.status == AccessStatus.GRANTED


@dataclass(frozen=True)
class GateResult:
    """Outcome of the midnight gate. wait_until is None when passed or when no clock."""
    passed: bool
    wait_until: Optional[datetime] = None

    def remaining(self, now: datetime) -> timedelta:
        if self.passed or self.wait_until is None:
            return timedelta(0)
        return max(self.wait_until - _aware(now), timedelta(0))

    def format_countdown(self, now: datetime) -> str:
        total = int(self.remaining(now).total_seconds())
        hours, rest = divmod(total, 3600)
        minutes, seconds = divmod(rest, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass(frozen=True)
class EntryDecision:
    step: int
    status: EntryStatus
    reason: str
    wait_until: Optional[datetime] = None

    @property
    def granted(self) -> bool:
        return self.status == EntryStatus.GRANTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "status": self.status.value,
            "reason": self.reason,
            "wait_until": self.wait_until.isoformat() if self.wait_until else None,
        }


def _aware(moment: datetime) -> datetime:
    # naive datetimes are taken as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _is_reviewer(account: Optional[Account]) -> bool:
    return account is not None and account.is_reviewer


# ---------------------------------------------------------------------------
# Step graph
# ---------------------------------------------------------------------------

def successor(step: int, cfg: SystemConfig = config) -> int:
    """Next step after completing `step`; the last step is terminal."""
    return min(step + 1, cfg.TOTAL_STEPS)


def steps_marked_by(step: int, cfg: SystemConfig = config) -> List[int]:
    """Steps a save of `step` marks complete."""
    if step == 1 and cfg.FOLD_REFLECTION_NOTES:
        return [1, 2]
    return [step]


def gated_steps(cfg: SystemConfig = config) -> Set[int]:
    """Steps followed by a midnight gate."""
    gated = set(cfg.GATED_STEPS)
    if cfg.FOLD_REFLECTION_NOTES:
        # step 2 is folded into step 1 and never saved on its own
        gated.discard(2)
    return gated


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------

def evaluate_access(
    record: Optional[PlanRecord],
    requested_step: int,
    account: Optional[Account] = None,
    cfg: SystemConfig = config,
) -> AccessDecision:
    """
    Decide whether `account` may open `requested_step`.

    Rules (standard account):
        1. step 1 is always open
        2. completed steps are open for review/edit
        3. the current step is open only if its predecessor is completed
        4. steps below current_step are open (history)
        5. everything else is locked
    Reviewers skip the predecessor check in rule 3.
    """
    if not validate_step(requested_step, cfg):
        return AccessDecision(requested_step, AccessStatus.LOCKED, "invalid_step")

    if requested_step == 1:
        return AccessDecision(1, AccessStatus.GRANTED, "first_step")

    if record is None:
        return AccessDecision(requested_step, AccessStatus.LOCKED, "no_record")

    completed = set(record.completed_steps)
    current = record.current_step or 1

    if requested_step in completed:
        return AccessDecision(requested_step, AccessStatus.GRANTED, "completed")

    if requested_step == current:
        if _is_reviewer(account) or (requested_step - 1) in completed:
            return AccessDecision(requested_step, AccessStatus.GRANTED, "current")
        return AccessDecision(requested_step, AccessStatus.LOCKED, "predecessor_incomplete")

    if requested_step < current:
        return AccessDecision(requested_step, AccessStatus.GRANTED, "history")

    return AccessDecision(requested_step, AccessStatus.LOCKED, "ahead")


# ---------------------------------------------------------------------------
# Transition
# ---------------------------------------------------------------------------

def complete_step(
    record: PlanRecord,
    step: int,
    payload: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
    cfg: SystemConfig = config,
) -> PlanRecord:
    """
    Merge a step's payload into a copy of `record` and advance progression.

    completed_steps only grows and never holds duplicates; current_step never
    decreases. Re-saving a completed step keeps its original completion time.

    Raises:
        InvalidStepError: step outside 1..TOTAL_STEPS
        ValueError: payload names a progression or unknown field
    """
    if not validate_step(step, cfg):
        raise InvalidStepError(step)

    payload = payload or {}
    for key in payload:
        if key in PROGRESSION_FIELDS or key not in MUTABLE_FIELDS:
            raise ValueError(f"Field '{key}' cannot be set by a step payload")

    moment = _aware(now or system_clock())
    updated = copy.deepcopy(record)

    for key, value in payload.items():
        setattr(updated, key, copy.deepcopy(value))

    marked = steps_marked_by(step, cfg)
    for s in marked:
        if s not in updated.completed_steps:
            updated.completed_steps.append(s)
            updated.step_completed_at[str(s)] = moment.isoformat()

    updated.current_step = max(updated.current_step or 1, successor(marked[-1], cfg))

    logger.info(
        "Plan %s: step %s completed, current_step %s -> %s",
        record.id, step, record.current_step, updated.current_step,
    )
    return updated


def is_terminal(record: Optional[PlanRecord], cfg: SystemConfig = config) -> bool:
    if record is None:
        return False
    return set(range(1, cfg.TOTAL_STEPS + 1)).issubset(record.completed_steps)


def missing_steps(record: PlanRecord, upto: int, cfg: SystemConfig = config) -> List[int]:
    """Steps in 1..upto (inclusive) not yet completed."""
    upto = min(upto, cfg.TOTAL_STEPS)
    done = set(record.completed_steps)
    return [s for s in range(1, upto + 1) if s not in done]


# ---------------------------------------------------------------------------
# Time gate
# ---------------------------------------------------------------------------

def next_boundary(moment: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Return the first local midnight in the gate timezone strictly after `moment`.

    Example (Asia/Seoul, UTC+9):
        2026-01-05T14:59:59Z (23:59:59 KST) -> 2026-01-06T00:00:00+09:00
        2026-01-05T15:00:00Z (00:00:00 KST) -> 2026-01-07T00:00:00+09:00
    """
    zone = ZoneInfo(tz_name or config.GATE_TIMEZONE)
    local = _aware(moment).astimezone(zone)
    return datetime.combine(local.date() + timedelta(days=1), time.min, tzinfo=zone)


def time_gate(
    now: Optional[datetime],
    account: Optional[Account] = None,
    completed_at: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> GateResult:
    """
    Evaluate the midnight gate.

    Args:
        now: current instant; None means the clock is unavailable (gate stays closed)
        account: reviewers always pass
        completed_at: when the gated step was completed; None means "just now"
        tz_name: override for the gate timezone
    """
    if _is_reviewer(account):
        return GateResult(passed=True)

    if now is None:
        return GateResult(passed=False)

    now = _aware(now)
    boundary = next_boundary(completed_at if completed_at is not None else now, tz_name)
    if now >= boundary:
        return GateResult(passed=True)
    return GateResult(passed=False, wait_until=boundary)


def gate_after_completion(
    step: int,
    now: Optional[datetime],
    account: Optional[Account] = None,
    cfg: SystemConfig = config,
    record: Optional[PlanRecord] = None,
) -> GateResult:
    """
    Wait state for the step after `step`, as seen right after saving it.

    `record` is the saved record. The gate runs from the first completion
    time it holds, so re-saving an earlier step does not close a gate that
    has already opened.
    """
    last = steps_marked_by(step, cfg)[-1]
    if last not in gated_steps(cfg) or last >= cfg.TOTAL_STEPS:
        return GateResult(passed=True)

    completed_at = now
    if record is not None and last in record.completed_steps:
        completed_at = record.completed_at(last)
        if completed_at is None:
            # same rule as resolve_entry for untimed predecessors
            return GateResult(passed=True)
    return time_gate(now, account, completed_at=completed_at, tz_name=cfg.GATE_TIMEZONE)


def resolve_entry(
    record: Optional[PlanRecord],
    step: int,
    account: Optional[Account] = None,
    now: Optional[datetime] = None,
    cfg: SystemConfig = config,
) -> EntryDecision:
    """
    Combine evaluate_access with the time gate.

    Only entering a new step (step == current_step, not yet completed) can
    wait; review access to earlier or completed steps never does.
    """
    access = evaluate_access(record, step, account, cfg)
    if not access.granted:
        return EntryDecision(step, EntryStatus.LOCKED, access.reason)

    if record is None or _is_reviewer(account) or access.reason != "current":
        return EntryDecision(step, EntryStatus.GRANTED, access.reason)

    previous = step - 1
    if previous not in gated_steps(cfg):
        return EntryDecision(step, EntryStatus.GRANTED, access.reason)

    completed_at = record.completed_at(previous)
    if completed_at is None:
        # records written before completion times were tracked
        return EntryDecision(step, EntryStatus.GRANTED, "untimed_predecessor")

    gate = time_gate(now, account, completed_at=completed_at, tz_name=cfg.GATE_TIMEZONE)
    if gate.passed:
        return EntryDecision(step, EntryStatus.GRANTED, access.reason)
    return EntryDecision(step, EntryStatus.WAIT, "time_gate", wait_until=gate.wait_until)


def progress_percent(completed_steps: Iterable[int], cfg: SystemConfig = config) -> int:
    done = {s for s in completed_steps if 1 <= s <= cfg.TOTAL_STEPS}
    return round(len(done) * 100 / cfg.TOTAL_STEPS)
