"""Utility functions for sanitization and numeric rounding."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import bleach


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def sanitize_prompt(text: str) -> str:
    """Sanitize question prompt text to prevent XSS attacks.

    Allows basic formatting tags but removes script/dangerous content.
    """
    allowed_tags = ['b', 'i', 'u', 'em', 'strong', 'p', 'br', 'code', 'pre', 'ul', 'ol', 'li']
    allowed_attributes = {}

    sanitized = bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)
    return sanitized.strip()


def sanitize_comment(text: Optional[str]) -> Optional[str]:
    """Strip all HTML from a free-text comment; blank comments become None."""
    if text is None:
        return None
    sanitized = bleach.clean(text, tags=[], strip=True).strip()
    return sanitized or None


def percent_of(part: int, whole: int) -> int:
    """Return round-half-up(100 * part / whole), or 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    value = Decimal(100 * part) / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_one_decimal(value: Decimal) -> float:
    """Round half-up to one fractional digit, e.g. 10/3 -> 3.3, 3.25 -> 3.3."""
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
