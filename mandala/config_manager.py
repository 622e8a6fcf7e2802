"""
Configuration Manager for Mandala Planner.

Collects the planner's constants in one place. Every value has a documented
default and can be overridden from config/runtime.yaml.

Usage:
    from mandala.config_manager import config
    limit = config.SUB_GOAL_MAX_LENGTH
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml

from mandala.logger import get_logger
from mandala.paths import CONFIG_DIR

logger = get_logger("config")

RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"


@dataclass
class SystemConfig:
    """
    Runtime constants.

    Defaults mirror the production wizard; adjust in runtime.yaml.
    """

    # === Steps ===

    TOTAL_STEPS: int = 14
    TOTAL_SUB_GOALS: int = 8
    SUB_GOAL_BATCH_SIZE: int = 4
    TOTAL_ACTION_PLANS_PER_GOAL: int = 8

    # Steps after which the next step waits for the midnight boundary.
    # No gate after 1 (notes follow reflection), 4 (second sub-goal batch)
    # or 13 (report is generated right away).
    GATED_STEPS: List[int] = field(default_factory=lambda: [2, 3, 5, 6, 7, 8, 9, 10, 11, 12])

    # When true, the step 1 submission also completes step 2 and the
    # wizard moves straight to step 3.
    FOLD_REFLECTION_NOTES: bool = False

    # === Time gate ===

    GATE_TIMEZONE: str = "Asia/Seoul"

    # === Field limits ===

    CENTER_GOAL_MAX_LENGTH: int = 100
    SUB_GOAL_MAX_LENGTH: int = 50
    ACTION_PLAN_MAX_LENGTH: int = 50
    REFLECTION_ANSWER_MAX_LENGTH: int = 1000

    # === Plan ===

    DEFAULT_PLAN_YEAR: int = 2026

    # === Accounts ===

    # Identifiers (email or user id) resolved to the reviewer role.
    REVIEWER_ACCOUNTS: List[str] = field(default_factory=list)

    # === AI ===

    REPORT_TEMPERATURE: float = 0.5
    REPORT_MAX_TOKENS: int = 2000
    RECOMMENDATION_TEMPERATURE: float = 0.6
    RECOMMENDATION_COUNT: int = 5

    # === Export ===

    PDF_FONT_NAME: str = "HYSMyeongJo-Medium"


@dataclass
class Settings:
    """Environment settings read at startup.

    A missing AI key is not an error here; it surfaces when a report is
    requested.
    """
    site_url: str = ""
    store_url: str = ""
    store_key: str = ""
    ai_api_key: str = ""


def _load_runtime_config(path: Path = RUNTIME_CONFIG_PATH) -> dict:
    """Load runtime overrides if present."""
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return {}


def get_config(path: Path = RUNTIME_CONFIG_PATH) -> SystemConfig:
    """
    Build the config instance.

    Priority: runtime.yaml > defaults. Reviewer identifiers may also come
    from the comma separated MANDALA_REVIEWERS env var.
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)

    for key, value in overrides.items():
        if hasattr(base, key):
            setattr(base, key, value)

    raw_reviewers = os.getenv("MANDALA_REVIEWERS", "")
    extra = [r.strip().lower() for r in raw_reviewers.split(",") if r.strip()]
    if extra:
        base.REVIEWER_ACCOUNTS = list(base.REVIEWER_ACCOUNTS) + extra

    return base


def load_settings() -> Settings:
    return Settings(
        site_url=os.getenv("MANDALA_SITE_URL", "http://localhost:8020"),
        store_url=os.getenv("MANDALA_STORE_URL", ""),
        store_key=os.getenv("MANDALA_STORE_KEY", ""),
        ai_api_key=os.getenv("MANDALA_AI_API_KEY", ""),
    )


# module-level singletons
config = get_config()
settings = load_settings()
