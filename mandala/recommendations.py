"""
AI suggestions for sub-goals and action plans.

Suggestions are optional help in the wizard: a failed call is logged and
yields an empty list instead of blocking the step.
"""
import json
from dataclasses import dataclass
from typing import List, Optional, Sequence

from mandala.config_manager import SystemConfig, config
from mandala.exceptions import MandalaError
from mandala.llm_adapter import BaseLLMAdapter, get_llm
from mandala.logger import get_logger
from mandala.utils import load_prompt, parse_llm_json

logger = get_logger("recommendations")


@dataclass
class Recommendation:
    text: str
    reason: str = ""


class Recommender:

    def __init__(self, llm: Optional[BaseLLMAdapter] = None, cfg: SystemConfig = config):
        self._llm = llm
        self.cfg = cfg

    @property
    def llm(self) -> BaseLLMAdapter:
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    def _ask(self, template: str, variables: dict, existing: Sequence[str], max_length: int) -> List[Recommendation]:
        taken = {e.strip() for e in existing if e and e.strip()}
        variables = dict(variables)
        variables["existing"] = json.dumps(sorted(taken), ensure_ascii=False)
        variables["count"] = self.cfg.RECOMMENDATION_COUNT

        try:
            response = self.llm.generate(
                load_prompt(template, variables),
                temperature=self.cfg.RECOMMENDATION_TEMPERATURE,
                max_tokens=800,
            )
        except MandalaError as e:
            logger.warning("Recommendation call failed (%s): %s", template, e)
            return []

        data = parse_llm_json(response.content) if response.success else None
        items = (data or {}).get("recommendations")
        if not isinstance(items, list):
            logger.warning("Recommendation response unusable (%s)", template)
            return []

        results: List[Recommendation] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            text = str(item.get("text", "")).strip()
            if not text or text in taken or len(text) > max_length:
                continue
            taken.add(text)
            results.append(Recommendation(text=text, reason=str(item.get("reason", "")).strip()))
        return results[:self.cfg.RECOMMENDATION_COUNT]

    def suggest_sub_goals(self, center_goal: str, existing: Sequence[str] = ()) -> List[Recommendation]:
        return self._ask(
            "recommend_sub_goals",
            {"center_goal": center_goal},
            existing,
            self.cfg.SUB_GOAL_MAX_LENGTH,
        )

    def suggest_action_plans(
        self,
        center_goal: str,
        sub_goal: str,
        existing: Sequence[str] = (),
    ) -> List[Recommendation]:
        return self._ask(
            "recommend_action_plans",
            {"center_goal": center_goal, "sub_goal": sub_goal},
            existing,
            self.cfg.ACTION_PLAN_MAX_LENGTH,
        )
