"""
FastAPI dependency providers.

Every collaborator the routes use comes through one of these functions, so
tests (and alternative deployments) swap them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from v4ult.config import settings
from v4ult.database import SessionLocal
from v4ult.services.identity_service import IdentityProvider, build_identity_provider
from v4ult.services.notification_service import Notifier, build_notifier
from v4ult.services.rate_limit_service import CooldownRateLimiter, RateLimiter
from v4ult.services.toxicity_service import ToxicityClassifier, build_toxicity_classifier


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_identity_provider() -> IdentityProvider:
    return build_identity_provider()


@lru_cache
def get_toxicity_classifier() -> ToxicityClassifier:
    return build_toxicity_classifier()


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return CooldownRateLimiter(settings.payment_cooldown_seconds)


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier()
