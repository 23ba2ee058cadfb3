# Overview: Error taxonomy and input coercion shared by every service.

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any

import nh3


# Maximum accepted amount: 99,99,99,999.99 (9,999,999,999 paisa)
# Keeps every minor-unit value inside a signed 64-bit column.
MAX_AMOUNT_PAISA = 9_999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class InvalidMonetaryInput(ValidationError):
    """Non-numeric, non-finite or negative quantity, rate or amount."""


class ConstraintViolation(ValueError):
    """409-level store constraint failure (uniqueness, foreign key)."""


class NotFoundError(LookupError):
    """Target entity is missing or soft-deleted for this tenant."""


def require_choice(field: str, value: Any, choices: tuple[str, ...] | list[str]) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of {list(choices)}")
    return value


def require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def optional_text(value: Any) -> str | None:
    """Empty strings collapse to None, like the client forms send them."""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def to_decimal(field: str, value: Any, *, allow_negative: bool = False) -> Decimal:
    """
    Convert a client-supplied number to Decimal without binary float drift.

    Floats go through repr() so 33.33 stays 33.33, never 33.3299999...
    Booleans are rejected even though bool is an int subclass.
    """
    if value is None or isinstance(value, bool):
        raise InvalidMonetaryInput(f"{field} must be a number")
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidMonetaryInput(f"{field} must be a finite number")
        value = repr(value)
    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise InvalidMonetaryInput(f"{field} must be a number")
    if not amount.is_finite():
        raise InvalidMonetaryInput(f"{field} must be a finite number")
    if amount < 0 and not allow_negative:
        raise InvalidMonetaryInput(f"{field} cannot be negative")
    return amount


def sanitize_text(value: Any) -> Any:
    """
    Strip markup from a free-text field before it is stored.

    No tag survives. Entity-encoded text stays encoded, so "&lt;b&gt;" is
    never turned back into live markup, and line breaks are kept.
    None and non-strings pass through untouched.
    """
    if value is None or not isinstance(value, str):
        return value
    return nh3.clean(value, tags=set())


def sanitize_address(value: Any) -> Any:
    """Addresses arrive either as a string or a flat JSON object of strings."""
    if isinstance(value, str):
        return sanitize_text(value) or None
    if isinstance(value, dict):
        return {key: sanitize_text(item) for key, item in value.items()}
    return value
