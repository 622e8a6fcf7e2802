"""
Core data models for Mandala Planner.

PlanRecord is the only persisted entity: one per user per plan year.
Dataclasses keep asdict() compatibility with the JSON store.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from mandala.config_manager import config


class Role(str, Enum):
    STANDARD = "standard"
    REVIEWER = "reviewer"  # exempt from the time gate and predecessor check


class ReflectionTheme(str, Enum):
    THEME1 = "theme1"
    THEME2 = "theme2"
    THEME3 = "theme3"
    THEME4 = "theme4"
    THEME5 = "theme5"
    THEME6 = "theme6"


@dataclass(frozen=True)
class Account:
    """Caller identity, resolved once per session."""
    user_id: str
    email: str = ""
    role: Role = Role.STANDARD

    @property
    def is_reviewer(self) -> bool:
        return self.role == Role.REVIEWER


@dataclass
class AISummary:
    """Structured report returned by the report generator."""
    reflection_summary: str
    goal_analysis: str
    keywords: List[str]
    insights: str
    content_hash: Optional[str] = None  # hash of the inputs the report was built from

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "reflection_summary": self.reflection_summary,
            "goal_analysis": self.goal_analysis,
            "keywords": list(self.keywords),
            "insights": self.insights,
        }
        if self.content_hash is not None:
            data["content_hash"] = self.content_hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AISummary":
        return cls(
            reflection_summary=data.get("reflection_summary", ""),
            goal_analysis=data.get("goal_analysis", ""),
            keywords=list(data.get("keywords") or []),
            insights=data.get("insights", ""),
            content_hash=data.get("content_hash"),
        )


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class PlanRecord:
    """
    Plan record (reflection -> center goal -> sub-goals -> action plans -> report).

    Steps:
        1: reflection theme + answers    2: reflection notes
        3: center goal                   4-5: sub-goals (4 + 4)
        6-13: action plans for sub-goal 0..7
        14: AI summary
    """
    id: str
    user_id: str
    year: int
    # Step 1-2
    reflection_theme: Optional[str] = None
    reflection_answers: Dict[str, str] = field(default_factory=dict)
    reflection_notes: Optional[str] = None
    # Step 3-5
    center_goal: Optional[str] = None
    sub_goals: List[str] = field(default_factory=list)  # length 0 or 8
    # Step 6-13
    action_plans: Dict[str, List[str]] = field(default_factory=dict)  # "0".."7" -> 8 items
    # Step 14
    ai_summary: Optional[AISummary] = None
    # Progression
    current_step: int = 1
    completed_steps: List[int] = field(default_factory=list)
    step_completed_at: Dict[str, str] = field(default_factory=dict)  # "3" -> iso timestamp
    # Misc
    marketing_consent: bool = False
    name: Optional[str] = None
    email: Optional[str] = None
    version: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self):
        now = utc_now_iso()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now

    @property
    def is_complete(self) -> bool:
        """All configured steps done; progression.is_terminal takes an explicit config."""
        return set(range(1, config.TOTAL_STEPS + 1)).issubset(self.completed_steps)

    def completed_at(self, step: int) -> Optional[datetime]:
        raw = self.step_completed_at.get(str(step))
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None


# Fields a store update may touch. Identity fields are excluded.
MUTABLE_FIELDS = (
    "reflection_theme",
    "reflection_answers",
    "reflection_notes",
    "center_goal",
    "sub_goals",
    "action_plans",
    "ai_summary",
    "current_step",
    "completed_steps",
    "step_completed_at",
    "marketing_consent",
    "name",
    "email",
)


def record_to_dict(record: PlanRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "year": record.year,
        "reflection_theme": record.reflection_theme,
        "reflection_answers": dict(record.reflection_answers),
        "reflection_notes": record.reflection_notes,
        "center_goal": record.center_goal,
        "sub_goals": list(record.sub_goals),
        "action_plans": {k: list(v) for k, v in record.action_plans.items()},
        "ai_summary": record.ai_summary.to_dict() if record.ai_summary else None,
        "current_step": record.current_step,
        "completed_steps": list(record.completed_steps),
        "step_completed_at": dict(record.step_completed_at),
        "marketing_consent": record.marketing_consent,
        "name": record.name,
        "email": record.email,
        "version": record.version,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }


def record_from_dict(d: Dict[str, Any]) -> PlanRecord:
    summary = d.get("ai_summary")
    return PlanRecord(
        id=str(d["id"]),
        user_id=str(d["user_id"]),
        year=int(d["year"]),
        reflection_theme=d.get("reflection_theme"),
        reflection_answers=dict(d.get("reflection_answers") or {}),
        reflection_notes=d.get("reflection_notes"),
        center_goal=d.get("center_goal"),
        sub_goals=list(d.get("sub_goals") or []),
        action_plans={str(k): list(v) for k, v in (d.get("action_plans") or {}).items()},
        ai_summary=AISummary.from_dict(summary) if isinstance(summary, dict) else None,
        current_step=int(d.get("current_step") or 1),
        completed_steps=[int(s) for s in (d.get("completed_steps") or [])],
        step_completed_at={str(k): v for k, v in (d.get("step_completed_at") or {}).items()},
        marketing_consent=bool(d.get("marketing_consent", False)),
        name=d.get("name"),
        email=d.get("email"),
        version=int(d.get("version") or 1),
        created_at=d.get("created_at"),
        updated_at=d.get("updated_at"),
    )
