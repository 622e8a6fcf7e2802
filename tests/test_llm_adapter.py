import json

import httpx
import pytest

import mandala.llm_adapter as llm_adapter
from mandala.exceptions import (
    ConfigError,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
)
from mandala.llm_adapter import GeminiAdapter, OpenAIAdapter, create_llm_adapter, load_model_config


def _transport(status=200, payload=None, seen=None, headers=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload or {}, headers=headers)
    return httpx.MockTransport(handler)


def test_openai_adapter_posts_chat_completion():
    seen = []
    payload = {
        "model": "google/gemini-2.5-flash",
        "choices": [{"message": {"content": "hello"}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 1},
    }
    adapter = OpenAIAdapter({"api_key": "k", "base_url": "https://llm.test/v1"}, _transport(payload=payload, seen=seen))

    response = adapter.generate("hi", system_prompt="be brief", temperature=0.2, max_tokens=50)
    assert response.success
    assert response.content == "hello"

    request = seen[0]
    assert str(request.url) == "https://llm.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer k"
    body = json.loads(request.content)
    assert body["messages"][0] == {"role": "system", "content": "be brief"}
    assert body["max_tokens"] == 50


def test_gemini_adapter_joins_parts():
    seen = []
    payload = {
        "candidates": [{"content": {"parts": [{"text": "안녕"}, {"text": "하세요"}]}}],
        "usageMetadata": {"promptTokenCount": 4, "candidatesTokenCount": 2},
    }
    adapter = GeminiAdapter({"api_key": "g-key", "model_name": "gemini-2.5-flash"}, _transport(payload=payload, seen=seen))

    response = adapter.generate("prompt")
    assert response.content == "안녕하세요"
    assert response.usage == {"prompt_tokens": 4, "completion_tokens": 2}
    assert seen[0].url.params["key"] == "g-key"
    assert seen[0].url.path.endswith("/models/gemini-2.5-flash:generateContent")


def test_missing_key_fails_at_call_time(monkeypatch):
    monkeypatch.delenv("MANDALA_AI_API_KEY", raising=False)
    seen = []
    adapter = GeminiAdapter({"api_key": ""}, _transport(seen=seen))
    with pytest.raises(LLMAuthError):
        adapter.generate("prompt")
    assert seen == []


@pytest.mark.parametrize(
    "status,expected",
    [(401, LLMAuthError), (403, LLMAuthError), (429, LLMRateLimitError), (500, LLMError)],
)
def test_http_errors_are_mapped(status, expected):
    adapter = OpenAIAdapter({"api_key": "k"}, _transport(status=status, headers={"retry-after": "7"}))
    with pytest.raises(expected) as exc:
        adapter.generate("hi")
    if expected is LLMRateLimitError:
        assert exc.value.retry_after == 7


def test_connection_error_is_mapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    adapter = OpenAIAdapter({"api_key": "k"}, httpx.MockTransport(handler))
    with pytest.raises(LLMConnectionError):
        adapter.generate("hi")


def test_empty_choices_is_an_error():
    adapter = OpenAIAdapter({"api_key": "k"}, _transport(payload={"choices": []}))
    with pytest.raises(LLMError):
        adapter.generate("hi")


def test_load_model_config_expands_env(tmp_path, monkeypatch):
    model_yaml = tmp_path / "model.yaml"
    model_yaml.write_text(
        "active_profile: fast\n"
        "profiles:\n"
        "  fast:\n"
        "    provider: openai\n"
        "    model_name: small\n"
        "    api_key: ${MANDALA_AI_API_KEY}\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(llm_adapter, "MODEL_CONFIG_PATH", model_yaml)
    monkeypatch.setattr(llm_adapter, "LOCAL_MODEL_CONFIG_PATH", tmp_path / "absent.yaml")
    monkeypatch.setenv("MANDALA_AI_API_KEY", "secret")

    cfg = load_model_config()
    assert cfg["api_key"] == "secret"
    assert cfg["profile"] == "fast"
    assert isinstance(create_llm_adapter(cfg), OpenAIAdapter)

    with pytest.raises(ConfigError):
        load_model_config("missing")


def test_unknown_provider_raises():
    with pytest.raises(ConfigError):
        create_llm_adapter({"provider": "carrier-pigeon"})


def test_get_llm_caches_until_reset(monkeypatch):
    monkeypatch.setattr(llm_adapter, "load_model_config", lambda name=None: {"provider": "gemini", "api_key": "k"})
    llm_adapter.reset_llm()
    try:
        first = llm_adapter.get_llm()
        assert llm_adapter.get_llm() is first
        llm_adapter.reset_llm()
        assert llm_adapter.get_llm() is not first
    finally:
        llm_adapter.reset_llm()
