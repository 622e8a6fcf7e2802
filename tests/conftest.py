import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep tests off the real data dir and away from the hosted store.
os.environ.setdefault("MANDALA_DATA_DIR", tempfile.mkdtemp(prefix="mandala_test_"))
os.environ.setdefault("MANDALA_LOG_DIR", tempfile.mkdtemp(prefix="mandala_logs_"))
os.environ["MANDALA_STORE_URL"] = ""
os.environ["MANDALA_STORE_KEY"] = ""

from mandala.llm_adapter import LLMResponse  # noqa: E402
from mandala.plan_store import JsonPlanStore  # noqa: E402


class FakeLLM:
    """Stands in for an adapter; returns canned content and records prompts."""

    def __init__(self, content: str = "", error: str = None, exc: Exception = None):
        self.content = content
        self.error = error
        self.exc = exc
        self.prompts = []

    def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=1000):
        self.prompts.append(prompt)
        if self.exc is not None:
            raise self.exc
        return LLMResponse(content=self.content, model="fake-model", error=self.error)

    def get_model_name(self):
        return "fake-model"


@pytest.fixture
def store(tmp_path):
    return JsonPlanStore(path=tmp_path / "plans.json")


@pytest.fixture
def fake_llm():
    return FakeLLM


class MutableClock:
    def __init__(self, moment):
        self.moment = moment

    def __call__(self):
        return self.moment


@pytest.fixture
def clock():
    # 2026-01-05 10:00 KST
    return MutableClock(datetime(2026, 1, 5, 1, 0, tzinfo=timezone.utc))
