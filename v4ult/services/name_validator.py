"""
Name plausibility scoring.

Rejects names that cannot belong to a real person (digits, symbols, keyboard
mashing such as "aaaaaaa") and gives the rest a 0-100 trust score.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
REPEATING_CHAR_LIMIT = 2  # "aa" passes, "aaa" fails

NAME_CHARS = re.compile(r"[A-Za-z '\-]+")
REPEATING_CHARS = re.compile(r"(.)\1{%d,}" % REPEATING_CHAR_LIMIT, re.IGNORECASE)
DIGIT = re.compile(r"\d")


@dataclass(frozen=True)
class NameValidation:
    valid: bool
    reason: Optional[str] = None
    score: Optional[int] = None


def _trust_score(name: str) -> int:
    score = 100

    if len(name) < 4:
        score -= 20
    if len(name) > 50:
        score -= 10
    if " " not in name and len(name) < 10:
        score -= 15
    if DIGIT.search(name):
        score -= 30
    if not NAME_CHARS.fullmatch(name):
        score -= 50

    if " " in name:
        score += 10  # likely first + last name
    if "'" in name or "-" in name:
        score += 5

    return max(0, min(100, score))


def score_name(name: Any) -> NameValidation:
    """Validate a claimed human name; the first failing rule wins."""
    if not isinstance(name, str) or not name:
        return NameValidation(valid=False, reason="required")

    trimmed = name.strip()

    if len(trimmed) < MIN_NAME_LENGTH:
        return NameValidation(valid=False, reason="too short")
    if len(trimmed) > MAX_NAME_LENGTH:
        return NameValidation(valid=False, reason="too long")
    if not NAME_CHARS.fullmatch(trimmed):
        return NameValidation(valid=False, reason="invalid characters")
    if REPEATING_CHARS.search(trimmed):
        return NameValidation(valid=False, reason="too many repeating characters")

    return NameValidation(valid=True, score=_trust_score(trimmed))


def score_names(names: Iterable[str]) -> Dict[str, NameValidation]:
    """Batch helper for the admin console."""
    return {name: score_name(name) for name in names}
