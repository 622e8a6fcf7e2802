"""
Account role resolution.

The reviewer allow-list is consulted once, when the session's Account is
built. Everything downstream branches on Account.is_reviewer.
"""
from typing import Optional

from mandala.config_manager import SystemConfig, config
from mandala.logger import get_logger
from mandala.models import Account, Role

logger = get_logger("accounts")


def resolve_role(user_id: str, email: Optional[str], cfg: SystemConfig = config) -> Role:
    allowed = {a.strip().lower() for a in cfg.REVIEWER_ACCOUNTS if a and a.strip()}
    candidates = {user_id.strip().lower()}
    if email:
        candidates.add(email.strip().lower())
    if allowed & candidates:
        return Role.REVIEWER
    return Role.STANDARD


def resolve_account(user_id: str, email: Optional[str] = None, cfg: SystemConfig = config) -> Account:
    role = resolve_role(user_id, email, cfg)
    if role == Role.REVIEWER:
        logger.info("Session for %s resolved with reviewer role", user_id)
    return Account(user_id=user_id, email=email or "", role=role)
