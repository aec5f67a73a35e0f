"""
Admin authentication and per-origin rate limiting for the API.
"""

import hmac
import logging
from functools import lru_cache
from typing import Optional, Protocol

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader

from v4ult.api.dependencies import get_rate_limiter
from v4ult.config import settings
from v4ult.errors import ForbiddenError, RateLimited
from v4ult.services.rate_limit_service import RateLimiter

logger = logging.getLogger(__name__)

admin_token_header = APIKeyHeader(name=settings.admin_token_header, auto_error=False)


class AdminCredentialChecker(Protocol):
    def check(self, credential: Optional[str]) -> bool:
        ...


class StaticTokenChecker:
    """
    Shared-secret check. Uses a constant-time comparison; with no token
    configured nothing is accepted.
    """

    def __init__(self, token: str):
        self._token = token.encode() if token else b""

    def check(self, credential: Optional[str]) -> bool:
        if not self._token or not credential:
            return False
        return hmac.compare_digest(credential.encode(), self._token)


@lru_cache
def get_admin_checker() -> AdminCredentialChecker:
    if not settings.admin_token:
        logger.warning("Admin token not configured; admin endpoints are locked")
    return StaticTokenChecker(settings.admin_token)


def client_origin(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def require_admin(
    request: Request,
    credential: Optional[str] = Depends(admin_token_header),
    checker: AdminCredentialChecker = Depends(get_admin_checker),
):
    """Gate for every /admin route."""
    if not checker.check(credential):
        logger.warning(f"Rejected admin credential from {client_origin(request)}")
        raise ForbiddenError("Forbidden")
    return True


async def check_payment_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """One payment proof per origin per cooldown window."""
    origin = client_origin(request)
    decision = limiter.hit(origin)
    if not decision.allowed:
        logger.warning(f"Payment proof rate limit hit for {origin}")
        raise RateLimited(decision.retry_after)
    return origin
