"""
Mandala Planner exception hierarchy.

- MandalaError: base class for every known failure
- ValidationError: submitted fields rejected before any store call
- InvalidStepError / AccessDeniedError: progression failures
- StoreError / ConflictError / RecordNotFoundError: persistence failures
- ConfigError: configuration missing or malformed
- LLMError family / ReportGenerationError: AI call failures
- ExportError: PDF or CSV rendering failures
"""
from typing import Optional


class MandalaError(Exception):
    """Base class for all expected errors.

    Catching this handles every failure the planner knows how to describe.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        """
        Args:
            message: error description
            hint: suggestion shown to the user
        """
        super().__init__(message)
        self.message = message
        self.hint = hint

    def get_user_message(self) -> str:
        """Return the message with the hint appended, if any."""
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ValidationError(MandalaError):
    """A submitted field failed validation.

    Raised before any mutation is attempted.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, hint="Check the highlighted field and try again")
        self.field = field


class ConfigError(MandalaError):
    """Configuration file or environment variable is missing or invalid."""

    def __init__(self, message: str, config_path: Optional[str] = None):
        hint = f"Check configuration: {config_path}" if config_path else "Check configuration format"
        super().__init__(message, hint)
        self.config_path = config_path


class InvalidStepError(MandalaError):
    """Step number outside 1..14."""

    def __init__(self, step: object):
        super().__init__(f"Invalid step: {step!r}", hint="Steps are numbered 1 to 14")
        self.step = step


class AccessDeniedError(MandalaError):
    """The requested step is locked for this account."""

    def __init__(self, step: int, reason: str = "locked"):
        super().__init__(f"Step {step} is not accessible ({reason})")
        self.step = step
        self.reason = reason


class StoreError(MandalaError):
    """Plan store read or write failed."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, hint="Please try again in a moment")
        self.operation = operation


class RecordNotFoundError(StoreError):
    """No plan record exists for the given key."""

    def __init__(self, key: str):
        super().__init__(f"Plan record not found: {key}", operation="get")
        self.hint = "Start the plan first"
        self.key = key


class ConflictError(StoreError):
    """Conditional update lost against a newer write."""

    def __init__(self, record_id: str, expected_version: int, actual_version: Optional[int]):
        super().__init__(
            f"Plan record {record_id} changed (expected version {expected_version}, "
            f"found {actual_version})",
            operation="update",
        )
        self.hint = "Reload the plan and apply your changes again"
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class LLMError(MandalaError):
    """A model call failed. Messages are prefixed with [provider/model]."""

    default_message = "Model call failed"
    default_hint: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        provider: Optional[str] = None,
        model_name: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        self.provider = provider or "unknown"
        self.model_name = model_name or "unknown"
        self.endpoint = endpoint
        super().__init__(
            f"[{self.provider}/{self.model_name}] {message or self.default_message}",
            hint=self.default_hint,
        )


class LLMConnectionError(LLMError):
    default_message = "Cannot connect to model service"
    default_hint = "Check network connectivity and the configured base_url"

    def __init__(self, provider=None, model_name=None, endpoint=None):
        super().__init__(None, provider, model_name, endpoint)


class LLMAuthError(LLMError):
    """No API key configured, or the provider rejected it."""

    default_message = "Model authentication failed"
    default_hint = "Set MANDALA_AI_API_KEY or add api_key to config/local_model.yaml"

    def __init__(self, provider=None, model_name=None, endpoint=None):
        super().__init__(None, provider, model_name, endpoint)


class LLMTimeoutError(LLMError):
    default_hint = "The model may be slow right now, please retry"

    def __init__(self, provider=None, model_name=None, endpoint=None, timeout_seconds: Optional[float] = None):
        message = f"Model call timed out ({timeout_seconds}s)" if timeout_seconds else "Model call timed out"
        super().__init__(message, provider, model_name, endpoint)
        self.timeout_seconds = timeout_seconds


class LLMRateLimitError(LLMError):
    default_message = "Rate limit exceeded"
    default_hint = "Please retry later"

    def __init__(self, provider=None, model_name=None, endpoint=None, retry_after: Optional[int] = None):
        super().__init__(None, provider, model_name, endpoint)
        self.retry_after = retry_after
        if retry_after:
            self.hint = f"Retry after {retry_after} seconds"


class ReportGenerationError(MandalaError):
    """The AI report was missing, malformed or incomplete.

    No partial summary is ever stored when this is raised.
    """

    def __init__(self, message: str, raw_content: Optional[str] = None):
        super().__init__(message, hint="Generate the report again")
        self.raw_content = raw_content


class ExportError(MandalaError):
    """PDF or CSV rendering failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, hint="Check the output location and retry")
        self.path = path
