"""
Author verification against the external identity provider.

V4ULT never stores credentials, only the provider's user id (``author_ref``).
When the provider knows the user's real name, that name replaces whatever
the client claimed, so senders cannot submit under someone else's name.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import requests

from v4ult.config import settings
from v4ult.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityVerification:
    verified: bool
    authoritative_name: Optional[str] = None
    profile_ref: Optional[str] = None


class IdentityProvider(Protocol):
    def verify(self, author_ref: str) -> IdentityVerification:
        ...


class SupabaseIdentityProvider:
    """Looks users up through the Supabase Auth admin API (service role key)."""

    def __init__(self, url: str, service_role_key: str, timeout: Optional[float] = None):
        self.url = url.rstrip("/")
        self.service_role_key = service_role_key
        self.timeout = timeout or settings.provider_timeout

    def verify(self, author_ref: str) -> IdentityVerification:
        try:
            response = requests.get(
                f"{self.url}/auth/v1/admin/users/{quote(author_ref, safe='')}",
                headers={
                    "apikey": self.service_role_key,
                    "Authorization": f"Bearer {self.service_role_key}",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError("supabase", f"user lookup failed: {e}") from e

        # Unknown or malformed ids are "not verified", not an outage
        if response.status_code in (400, 404):
            return IdentityVerification(verified=False)
        if not response.ok:
            raise UpstreamError("supabase", f"HTTP {response.status_code} {response.reason}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("supabase", "response was not JSON") from e

        user = data.get("user", data) if isinstance(data, dict) else {}
        if not user.get("id"):
            return IdentityVerification(verified=False)

        metadata = user.get("user_metadata") or {}
        return IdentityVerification(
            verified=True,
            authoritative_name=metadata.get("full_name") or metadata.get("name"),
            profile_ref=metadata.get("social_link") or metadata.get("preferred_username"),
        )


class TrustingIdentityProvider:
    """Development stand-in: accepts every author, supplies no name."""

    def verify(self, author_ref: str) -> IdentityVerification:
        return IdentityVerification(verified=bool(author_ref))


class UnconfiguredIdentityProvider:
    def verify(self, author_ref: str) -> IdentityVerification:
        raise UpstreamError("identity", "identity provider is not configured")


def build_identity_provider() -> IdentityProvider:
    if settings.supabase_configured:
        return SupabaseIdentityProvider(settings.supabase_url, settings.supabase_service_role_key)

    if settings.is_production:
        logger.warning("Supabase not configured in production mode! Submissions will fail.")
        return UnconfiguredIdentityProvider()

    logger.warning("Supabase not configured; trusting author references (dev mode)")
    return TrustingIdentityProvider()
