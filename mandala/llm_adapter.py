"""
Text generation backends for the summary report and the recommendations.

Two wire formats are spoken:
- OpenAI-style chat completions (OpenAI itself, OpenRouter)
- Gemini generateContent

Each adapter only knows how to shape its request body and read its reply;
the HTTP call, key check and error mapping live on BaseLLMAdapter.
Profiles come from config/model.yaml (or an untracked config/local_model.yaml).
"""
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpx
import yaml

from mandala.exceptions import (
    ConfigError,
    LLMAuthError,
    LLMConnectionError,
    LLMError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from mandala.logger import get_logger
from mandala.paths import CONFIG_DIR

logger = get_logger("llm_adapter")

MODEL_CONFIG_PATH = CONFIG_DIR / "model.yaml"
LOCAL_MODEL_CONFIG_PATH = CONFIG_DIR / "local_model.yaml"

API_KEY_ENV = "MANDALA_AI_API_KEY"
DEFAULT_PROFILE = {"provider": "gemini", "profile": "default"}

_ENV_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[Dict[str, int]] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class BaseLLMAdapter(ABC):
    """
    One configured model endpoint.

    Subclasses set `provider`, `default_base_url`, `default_model` and
    implement build_request / parse_reply.
    """

    provider = "unknown"
    default_base_url = ""
    default_model = "unknown"

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.base_url = config.get("base_url", self.default_base_url).rstrip("/")
        self.model_name = config.get("model_name", self.default_model)
        self.api_key = config.get("api_key") or os.environ.get(API_KEY_ENV, "")
        self.timeout_seconds = float(config.get("timeout", 60.0))
        self.transport = transport

    def get_model_name(self) -> str:
        return self.model_name

    @abstractmethod
    def build_request(
        self, prompt: str, system_prompt: Optional[str], temperature: float, max_tokens: int
    ) -> Tuple[str, Dict[str, Any]]:
        """Return (url, httpx keyword arguments) for one completion."""

    @abstractmethod
    def parse_reply(self, data: Dict[str, Any]) -> LLMResponse:
        """Read the provider JSON; raise KeyError/IndexError/TypeError if it has no text."""

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> LLMResponse:
        """
        Run one completion.

        Raises:
            LLMAuthError: no API key configured, or the key was rejected
            LLMRateLimitError / LLMTimeoutError / LLMConnectionError
            LLMError: any other transport failure or an empty reply
        """
        # the key is only required once a model is actually called
        if not self.api_key:
            raise LLMAuthError(**self._context())

        url, request_kwargs = self.build_request(prompt, system_prompt, temperature, max_tokens)
        data = self._post(url, **request_kwargs)
        try:
            return self.parse_reply(data)
        except (KeyError, IndexError, TypeError):
            raise LLMError("Reply contained no generated text", **self._context())

    def _context(self) -> Dict[str, Any]:
        return {"provider": self.provider, "model_name": self.model_name, "endpoint": self.base_url}

    def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = client.post(url, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response)
        except httpx.ConnectError:
            raise LLMConnectionError(**self._context())
        except httpx.TimeoutException:
            raise LLMTimeoutError(timeout_seconds=self.timeout_seconds, **self._context())
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"Request failed: {e}", **self._context())

    def _status_error(self, response: httpx.Response) -> LLMError:
        status = response.status_code
        if status in (401, 403):
            return LLMAuthError(**self._context())
        if status == 429:
            retry_after = response.headers.get("retry-after", "")
            return LLMRateLimitError(
                retry_after=int(retry_after) if retry_after.isdigit() else None,
                **self._context(),
            )
        logger.warning("%s answered HTTP %d: %.300s", self.provider, status, response.text)
        return LLMError(f"HTTP {status} from model service", **self._context())


class OpenAIAdapter(BaseLLMAdapter):
    """Chat completions; also used for OpenRouter."""

    provider = "openai"
    default_base_url = "https://openrouter.ai/api/v1"
    default_model = "google/gemini-2.5-flash"

    def build_request(self, prompt, system_prompt, temperature, max_tokens):
        messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        messages.append({"role": "user", "content": prompt})
        return f"{self.base_url}/chat/completions", {
            "headers": {"Authorization": f"Bearer {self.api_key}"},
            "json": {
                "model": self.model_name,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        }

    def parse_reply(self, data):
        text = data["choices"][0]["message"]["content"]
        return LLMResponse(content=text or "", model=data.get("model", self.model_name), usage=data.get("usage"))


class GeminiAdapter(BaseLLMAdapter):
    provider = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-2.5-flash"

    def build_request(self, prompt, system_prompt, temperature, max_tokens):
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        url = f"{self.base_url}/models/{self.model_name}:generateContent"
        return url, {"params": {"key": self.api_key}, "json": body}

    def parse_reply(self, data):
        parts = data["candidates"][0]["content"]["parts"]
        meta = data.get("usageMetadata") or {}
        return LLMResponse(
            content="".join(p.get("text", "") for p in parts),
            model=data.get("modelVersion", self.model_name),
            usage={
                "prompt_tokens": meta.get("promptTokenCount", 0),
                "completion_tokens": meta.get("candidatesTokenCount", 0),
            },
        )


ADAPTERS = {
    "openai": OpenAIAdapter,
    "openrouter": OpenAIAdapter,
    "gemini": GeminiAdapter,
}


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(value: Any) -> Any:
    # "${VAR}" becomes the variable's value, or "" when unset
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    if isinstance(value, str):
        match = _ENV_PLACEHOLDER.fullmatch(value)
        if match:
            return os.environ.get(match.group(1), "")
    return value


def load_model_config(profile_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Resolve a model profile.

    local_model.yaml wins over model.yaml; with neither present the built-in
    Gemini default is used. A file with a `profiles` map selects
    `profile_name` or its `active_profile`; a flat file is one profile.

    Raises:
        ConfigError: the requested profile is not defined
    """
    source = next((p for p in (LOCAL_MODEL_CONFIG_PATH, MODEL_CONFIG_PATH) if p.exists()), None)
    raw = _read_yaml(source) if source else {}
    if not raw:
        return dict(DEFAULT_PROFILE)

    if "profiles" not in raw:
        return _expand_env_vars(raw)

    name = profile_name or raw.get("active_profile")
    profiles = raw["profiles"] or {}
    if name not in profiles:
        raise ConfigError(f"LLM profile '{name}' is not defined", config_path=str(source))

    selected = dict(profiles[name])
    selected.setdefault("profile", name)
    return _expand_env_vars(selected)


def create_llm_adapter(
    config: Optional[Dict[str, Any]] = None,
    profile_name: Optional[str] = None,
) -> BaseLLMAdapter:
    """Build the adapter for `config` (loaded from YAML when omitted)."""
    if config is None:
        config = load_model_config(profile_name)

    provider = str(config.get("provider", "gemini")).lower()
    adapter_cls = ADAPTERS.get(provider)
    if adapter_cls is None:
        raise ConfigError(
            f"Unknown LLM provider '{provider}' (profile: {config.get('profile', profile_name)})",
            config_path=str(MODEL_CONFIG_PATH),
        )
    return adapter_cls(config)


_llm_cache: Dict[str, BaseLLMAdapter] = {}


def get_llm(profile_name: Optional[str] = None) -> BaseLLMAdapter:
    """Cached adapter per profile; None means the active profile."""
    key = profile_name or "__active__"
    if key not in _llm_cache:
        config = load_model_config(profile_name)
        logger.info("Using LLM profile %s (%s)", config.get("profile", key), config.get("provider", "gemini"))
        _llm_cache[key] = create_llm_adapter(config, profile_name)
    return _llm_cache[key]


def reset_llm() -> None:
    _llm_cache.clear()
