"""Field coercion for inbound tester events.

Clients send numbers either as JSON numbers or as form-style strings, so every
helper accepts both and returns the canonical Python type, raising
``ValidationError`` otherwise.
"""

from __future__ import annotations

import math
from typing import Any

from markupsafe import escape

from leaderboard.configurations.configuration_constants import Limits
from leaderboard.server.errors import ValidationError


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' must be a non-empty string")
    return value


def sanitize(value: str) -> str:
    """Escape markup-unsafe characters (& < > " ') in a display label."""
    return str(escape(value))


def parse_int(value: Any, field: str) -> int:
    # bool is an int subclass but never a meaningful id or count
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        raise ValidationError(f"'{field}' must be an integer")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"'{field}' must be an integer")


def parse_non_negative_int(value: Any, field: str) -> int:
    parsed = parse_int(value, field)
    if parsed < 0:
        raise ValidationError(f"'{field}' must be >= 0")
    return parsed


def parse_non_negative_float(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a number")
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            raise ValidationError(f"'{field}' must be a number") from None
    else:
        raise ValidationError(f"'{field}' must be a number")

    if not math.isfinite(parsed):
        raise ValidationError(f"'{field}' must be a finite number")
    if parsed < 0:
        raise ValidationError(f"'{field}' must be >= 0")
    return parsed


def parse_rating(value: Any) -> int | None:
    if value is None:
        return None
    rating = parse_int(value, "rating")
    if not Limits.MinRating <= rating <= Limits.MaxRating:
        raise ValidationError(
            f"'rating' must be between {Limits.MinRating} and {Limits.MaxRating}"
        )
    return rating
