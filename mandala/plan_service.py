"""
Plan application service.

Glue between the pure progression/intents layer and a PlanStore: read the
record, check access, apply the intent, write back conditionally on the
version that was read.
"""
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from mandala.config_manager import SystemConfig, config
from mandala.constants import STEP_TITLES
from mandala.exceptions import AccessDeniedError, RecordNotFoundError, ValidationError
from mandala.intents import Intent, ManualEdit, ReportGenerated, apply_intent
from mandala.logger import get_logger
from mandala.models import MUTABLE_FIELDS, Account, PlanRecord
from mandala.plan_store import PlanStore
from mandala.progression import (
    Clock,
    EntryDecision,
    GateResult,
    gate_after_completion,
    is_terminal,
    progress_percent,
    resolve_entry,
    system_clock,
)
from mandala.report_generator import ReportGenerator, is_stale

logger = get_logger("plan_service")


def changed_fields(before: PlanRecord, after: PlanRecord) -> Dict[str, Any]:
    return {
        name: getattr(after, name)
        for name in MUTABLE_FIELDS
        if getattr(after, name) != getattr(before, name)
    }


class PlanService:
    """Application service for plan operations."""

    def __init__(
        self,
        store: PlanStore,
        clock: Clock = system_clock,
        cfg: SystemConfig = config,
        generator: Optional[ReportGenerator] = None,
    ):
        self.store = store
        self.clock = clock
        self.cfg = cfg
        self._generator = generator

    @property
    def generator(self) -> ReportGenerator:
        if self._generator is None:
            self._generator = ReportGenerator(cfg=self.cfg)
        return self._generator

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------
    def get(self, user_id: str, year: int) -> Optional[PlanRecord]:
        return self.store.get(user_id, year)

    def require(self, user_id: str, year: int) -> PlanRecord:
        record = self.store.get(user_id, year)
        if record is None:
            raise RecordNotFoundError(f"{user_id}/{year}")
        return record

    def list_all(self):
        return self.store.list_all()

    # ---------------------------------------------------------------------
    # Writes
    # ---------------------------------------------------------------------
    def start(
        self,
        user_id: str,
        year: int,
        marketing_consent: bool = False,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> PlanRecord:
        """Create the plan for (user_id, year) or return the existing one."""
        record = self.store.create(user_id, year, marketing_consent)

        profile: Dict[str, Any] = {}
        if name and not record.name:
            profile["name"] = name.strip()
        if email and not record.email:
            profile["email"] = email.strip()
        if profile:
            record = self.store.update(record.id, profile, expected_version=record.version)
        return record

    def enter(self, account: Account, year: int, step: int, now: Optional[datetime] = None) -> EntryDecision:
        record = self.store.get(account.user_id, year)
        moment = now if now is not None else self.clock()
        return resolve_entry(record, step, account, moment, self.cfg)

    def _write(self, before: PlanRecord, after: PlanRecord) -> PlanRecord:
        fields = changed_fields(before, after)
        if not fields:
            return before
        return self.store.update(before.id, fields, expected_version=before.version)

    def submit(self, account: Account, year: int, intent: Intent) -> Tuple[PlanRecord, GateResult]:
        """
        Save one step.

        Returns:
            (updated record, gate for the following step)

        Raises:
            RecordNotFoundError: no plan started for this year
            AccessDeniedError: the step is locked for this account
            ValidationError: the submitted values were rejected
            ConflictError: the record changed since it was read
        """
        if isinstance(intent, ManualEdit):
            return self.edit(account, year, intent), GateResult(passed=True)

        record = self.require(account.user_id, year)
        now = self.clock()

        entry = resolve_entry(record, intent.step, account, now, self.cfg)
        if not entry.granted:
            logger.info("Plan %s: step %s denied (%s)", record.id, intent.step, entry.reason)
            raise AccessDeniedError(intent.step, entry.reason)

        updated = self._write(record, apply_intent(record, intent, now=now, cfg=self.cfg))
        return updated, gate_after_completion(intent.step, now, account, self.cfg, record=updated)

    def edit(self, account: Account, year: int, edit: ManualEdit) -> PlanRecord:
        record = self.require(account.user_id, year)
        return self._write(record, apply_intent(record, edit, cfg=self.cfg))

    def generate_report(self, account: Account, year: int, force: bool = False) -> PlanRecord:
        """
        Generate the summary report and complete the final step.

        An existing report is kept unless `force` is set or the goals it was
        built from have changed since.

        Raises:
            ValidationError: goals or action plans are incomplete
            LLMError / ReportGenerationError: the model call failed
        """
        record = self.require(account.user_id, year)
        step = self.cfg.TOTAL_STEPS

        entry = resolve_entry(record, step, account, self.clock(), self.cfg)
        if not entry.granted:
            raise AccessDeniedError(step, entry.reason)

        filled_goals = [g for g in record.sub_goals if g and g.strip()]
        if not record.center_goal or len(filled_goals) < self.cfg.TOTAL_SUB_GOALS:
            raise ValidationError("All 8 sub-goals are required before the report", field="sub_goals")
        missing = [
            str(i) for i in range(self.cfg.TOTAL_SUB_GOALS)
            if len(record.action_plans.get(str(i), [])) < self.cfg.TOTAL_ACTION_PLANS_PER_GOAL
        ]
        if missing:
            raise ValidationError(
                f"Action plans missing for sub-goals: {', '.join(missing)}",
                field="action_plans",
            )

        if record.ai_summary is not None and not force and not is_stale(record):
            if step in record.completed_steps:
                return record
            summary = record.ai_summary
        else:
            summary = self.generator.generate(record)

        updated, _ = self.submit(account, year, ReportGenerated(summary))
        return updated

    # ---------------------------------------------------------------------
    # Summaries
    # ---------------------------------------------------------------------
    def overview(self, record: PlanRecord) -> Dict[str, Any]:
        done = sorted({s for s in record.completed_steps if 1 <= s <= self.cfg.TOTAL_STEPS})
        return {
            "year": record.year,
            "current_step": record.current_step,
            "current_title": STEP_TITLES.get(record.current_step, ""),
            "completed_steps": done,
            "completed_count": len(done),
            "total_steps": self.cfg.TOTAL_STEPS,
            "progress_percent": progress_percent(done, self.cfg),
            "is_complete": is_terminal(record, self.cfg),
            "report_stale": is_stale(record),
        }
