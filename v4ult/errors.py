"""
Error taxonomy for V4ULT.

Every domain error carries the HTTP status it maps to, so the API layer can
translate it with a single exception handler. Validation and authentication
errors are shown to the caller verbatim; upstream errors expose only
``public_message`` while the full detail goes to the server log.
"""

from typing import Iterable, Optional


class V4ultError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def public_message(self) -> str:
        return self.message


# ============== 400 ==============


class ValidationError(V4ultError):
    status_code = 400


class MissingFields(ValidationError):
    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class MissingField(ValidationError):
    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Field '{field}' is required")


class InvalidSenderName(ValidationError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid sender name: {reason}")


class InvalidTargetName(ValidationError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid target name: {reason}")


class ToxicContent(ValidationError):
    def __init__(self, score: float):
        self.score = score
        super().__init__(f"Message was flagged as toxic (score {score:.2f})")


# ============== 401 / 403 ==============


class AuthenticationError(V4ultError):
    status_code = 401


class UnverifiedAuthor(AuthenticationError):
    def __init__(self, author_ref: str):
        self.author_ref = author_ref
        super().__init__("Author could not be verified")


class ForbiddenError(V4ultError):
    status_code = 403


# ============== 404 ==============


class NotFoundError(V4ultError):
    status_code = 404


# ============== 400 / 409 ==============


class ConflictError(V4ultError):
    status_code = 409


class InvalidTransition(ConflictError):
    status_code = 400

    def __init__(self, field: str, old: str, new: str, reason: Optional[str] = None):
        self.field = field
        self.old = old
        self.new = new
        detail = f"Cannot move {field} from '{old}' to '{new}'"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


class CodeSpaceExhausted(ConflictError):
    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique short code after {attempts} attempts")


# ============== 429 ==============


class RateLimited(V4ultError):
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(f"Too many requests. Try again in {retry_after} seconds.")


# ============== 5xx ==============


class UpstreamError(V4ultError):
    status_code = 502

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")

    @property
    def public_message(self) -> str:
        return "An upstream service is unavailable. Please try again later."
