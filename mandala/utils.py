import json
import re
from typing import Any, Dict, Optional

from mandala.exceptions import ConfigError
from mandala.paths import CONFIG_DIR

PROMPTS_DIR = CONFIG_DIR / "prompts"

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


def load_prompt(name: str, variables: Optional[Dict[str, Any]] = None) -> str:
    """
    Read config/prompts/<name>.md and fill its {placeholders}.

    Only names present in `variables` are replaced, so literal JSON braces in
    a template survive untouched.

    Raises:
        ConfigError: template file missing
    """
    path = PROMPTS_DIR / f"{name}.md"
    if not path.is_file():
        raise ConfigError(f"Prompt template '{name}' not found", config_path=str(path))

    template = path.read_text(encoding="utf-8")
    values = variables or {}
    return _PLACEHOLDER.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), template)


def parse_llm_json(content: str) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of model output.

    A ``` fence is unwrapped first, then the widest {...} span is parsed.
    Returns None for anything that is not a JSON object.

    >>> parse_llm_json('Sure!\\n```json\\n{"keywords": ["a"]}\\n```')
    {'keywords': ['a']}
    """
    if not content:
        return None

    fenced = _FENCE.search(content)
    if fenced:
        content = fenced.group(1)

    match = _JSON_OBJECT.search(content)
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
