"""
Shared router plumbing: service getters, caller identity, error mapping.

Routers call the getters at request time so tests can monkeypatch them.
"""
from typing import NoReturn, Optional

from fastapi import Header, HTTPException

from mandala.accounts import resolve_account
from mandala.config_manager import settings
from mandala.exceptions import (
    AccessDeniedError,
    ConflictError,
    InvalidStepError,
    LLMError,
    MandalaError,
    RecordNotFoundError,
    ReportGenerationError,
    StoreError,
    ValidationError,
)
from mandala.logger import get_logger
from mandala.models import Account
from mandala.plan_service import PlanService
from mandala.plan_store import create_plan_store
from mandala.recommendations import Recommender

logger = get_logger("api")

_plan_service: Optional[PlanService] = None
_recommender: Optional[Recommender] = None


def get_plan_service() -> PlanService:
    global _plan_service
    if _plan_service is None:
        _plan_service = PlanService(create_plan_store(settings.store_url, settings.store_key))
    return _plan_service


def get_recommender() -> Recommender:
    global _recommender
    if _recommender is None:
        _recommender = Recommender()
    return _recommender


def current_account(
    x_user_id: str = Header(...),
    x_user_email: Optional[str] = Header(None),
) -> Account:
    """Identity comes from the auth proxy; role is resolved here, once per request."""
    user_id = x_user_id.strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="Missing user id")
    return resolve_account(user_id, x_user_email)


def require_reviewer(account: Account) -> None:
    if not account.is_reviewer:
        raise HTTPException(status_code=403, detail="Reviewer access required")


def raise_http(exc: Exception) -> NoReturn:
    """Translate a domain error into an HTTPException."""
    if isinstance(exc, (ValidationError, InvalidStepError, ValueError)):
        status = 422
    elif isinstance(exc, AccessDeniedError):
        status = 403
    elif isinstance(exc, RecordNotFoundError):
        status = 404
    elif isinstance(exc, ConflictError):
        status = 409
    elif isinstance(exc, (LLMError, ReportGenerationError)):
        status = 502
    elif isinstance(exc, StoreError):
        status = 503
    else:
        status = 500

    if status >= 500:
        logger.error("Request failed: %s", exc)
    detail = exc.get_user_message() if isinstance(exc, MandalaError) else str(exc)
    raise HTTPException(status_code=status, detail=detail)
