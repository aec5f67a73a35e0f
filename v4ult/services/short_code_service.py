"""
Short codes: the human-shareable lookup key printed on a confession receipt.
"""

import secrets
import string
from typing import Callable, Optional

from v4ult.config import settings
from v4ult.errors import CodeSpaceExhausted

ALPHABET = string.ascii_uppercase + string.digits


def normalize_short_code(code: str) -> str:
    """Lookups are case-insensitive; stored codes are uppercase."""
    return code.strip().upper()


class ShortCodeGenerator:
    """
    Generates ``PREFIX-XXXX`` codes and retries on collision.

    ``exists`` checks a candidate against stored records. The unique index on
    ``confessions.short_code`` remains the final guard against duplicates.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        prefix: Optional[str] = None,
        length: Optional[int] = None,
        max_attempts: Optional[int] = None,
        choice: Callable[[str], str] = secrets.choice,
    ):
        self.exists = exists
        self.prefix = (prefix or settings.short_code_prefix).upper()
        self.length = length or settings.short_code_length
        self.max_attempts = max_attempts or settings.short_code_max_attempts
        self._choice = choice

    def candidate(self) -> str:
        suffix = "".join(self._choice(ALPHABET) for _ in range(self.length))
        return f"{self.prefix}-{suffix}"

    def generate(self) -> str:
        for _ in range(self.max_attempts):
            code = self.candidate()
            if not self.exists(code):
                return code
        raise CodeSpaceExhausted(self.max_attempts)
