"""
Summary report generation.

Builds the coaching prompt from a PlanRecord, calls the configured LLM and
accepts the answer only when all four report fields are present. There is no
degraded or partial summary: anything short of a complete report raises.
"""
import hashlib
import json
from typing import Any, Dict, Optional

from mandala.config_manager import SystemConfig, config
from mandala.constants import REFLECTION_THEMES
from mandala.exceptions import ReportGenerationError
from mandala.llm_adapter import BaseLLMAdapter, get_llm
from mandala.logger import get_logger, log_rejected_report
from mandala.models import AISummary, PlanRecord
from mandala.utils import load_prompt, parse_llm_json

logger = get_logger("report_generator")

REQUIRED_TEXT_FIELDS = ("reflection_summary", "goal_analysis", "insights")


def analysed_fields(record: PlanRecord) -> Dict[str, Any]:
    """The record fields that feed the report."""
    return {
        "reflection_theme": record.reflection_theme or "",
        "reflection_answers": record.reflection_answers or {},
        "reflection_notes": record.reflection_notes or "",
        "center_goal": record.center_goal or "",
        "sub_goals": record.sub_goals or [],
        "action_plans": record.action_plans or {},
    }


def content_hash(record: PlanRecord) -> str:
    payload = json.dumps(analysed_fields(record), ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def is_stale(record: PlanRecord) -> bool:
    """True when a stored report was generated from different inputs."""
    summary = record.ai_summary
    if summary is None or not summary.content_hash:
        return False
    return summary.content_hash != content_hash(record)


def validate_report(data: Optional[Dict[str, Any]], raw: str = "") -> AISummary:
    """
    Turn parsed model output into an AISummary.

    Raises:
        ReportGenerationError: not a JSON object, or any required field missing
    """
    if not isinstance(data, dict):
        raise ReportGenerationError("No JSON object found in model response", raw_content=raw)

    missing = [f for f in REQUIRED_TEXT_FIELDS if not isinstance(data.get(f), str) or not data[f].strip()]
    keywords = data.get("keywords")
    if not isinstance(keywords, list) or not [k for k in keywords if isinstance(k, str) and k.strip()]:
        missing.append("keywords")
    if missing:
        raise ReportGenerationError(
            f"Model response is missing required fields: {', '.join(missing)}",
            raw_content=raw,
        )

    return AISummary(
        reflection_summary=data["reflection_summary"].strip(),
        goal_analysis=data["goal_analysis"].strip(),
        keywords=[k.strip() for k in keywords if isinstance(k, str) and k.strip()],
        insights=data["insights"].strip(),
    )


class ReportGenerator:
    """Text in, validated AISummary out."""

    def __init__(self, llm: Optional[BaseLLMAdapter] = None, cfg: SystemConfig = config):
        self._llm = llm
        self.cfg = cfg

    @property
    def llm(self) -> BaseLLMAdapter:
        # resolved lazily so a missing key only fails when a report is requested
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    def build_prompt(self, record: PlanRecord) -> str:
        theme = record.reflection_theme or ""
        return load_prompt("report", {
            "theme": theme,
            "theme_title": REFLECTION_THEMES.get(theme, {}).get("title", ""),
            "answers": json.dumps(record.reflection_answers or {}, ensure_ascii=False, indent=2),
            "notes": record.reflection_notes or "",
            "center_goal": record.center_goal or "",
            "sub_goals": ", ".join(record.sub_goals or []),
            "action_plans": json.dumps(record.action_plans or {}, ensure_ascii=False, indent=2),
        })

    def generate(self, record: PlanRecord) -> AISummary:
        """
        Generate the summary report for `record`.

        Raises:
            LLMError: the model call itself failed (including a missing API key)
            ReportGenerationError: the response was not a complete report
        """
        prompt = self.build_prompt(record)
        logger.info("Generating report for plan %s with %s", record.id, self.llm.get_model_name())

        response = self.llm.generate(
            prompt,
            temperature=self.cfg.REPORT_TEMPERATURE,
            max_tokens=self.cfg.REPORT_MAX_TOKENS,
        )
        if not response.success:
            raise ReportGenerationError(f"Model call failed: {response.error}")

        try:
            summary = validate_report(parse_llm_json(response.content), raw=response.content)
        except ReportGenerationError as e:
            log_rejected_report(record.id, response.content, e.message)
            raise

        summary.content_hash = content_hash(record)
        logger.info("Report generated for plan %s (%d keywords)", record.id, len(summary.keywords))
        return summary
