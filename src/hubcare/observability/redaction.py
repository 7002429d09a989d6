"""Redaction helpers for safe logging. Request data must pass through these."""

import re
from decimal import Decimal
from typing import Any

# Digit runs glued to letters or hyphens (uuids, references) are not phones.
_PHONE_PATTERN = re.compile(r"(?<![\w-])\+?\d[\d\s\-()]{8,}\d(?![\w-])")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Stripe-style payment tokens (tok_, pm_, src_, card_)
_PAYMENT_TOKEN_PATTERN = re.compile(r"\b(?:tok|pm|src|card)_[A-Za-z0-9]{6,}\b")
# Bearer tokens / JWTs
_JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\b")

_REDACTED = "[REDACTED]"

# Context keys whose values are never logged, whatever their shape
_SECRET_KEYS = frozenset({"password", "token", "payment_token", "authorization", "api_key"})


def redact_string(value: str) -> str:
    """Redact PII and credentials from a string."""
    result = _JWT_PATTERN.sub(_REDACTED, value)
    result = _PAYMENT_TOKEN_PATTERN.sub(_REDACTED, result)
    result = _EMAIL_PATTERN.sub(_REDACTED, result)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    return result


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple, set)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    return {
        k: _REDACTED if k.lower() in _SECRET_KEYS else redact_value(v)
        for k, v in kwargs.items()
    }
