from __future__ import annotations

from typing import Any, Optional

from ..core.exceptions import ValidationError


def optional_text(value: Any) -> Optional[str]:
    """Blank or missing text becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def require_coordinate(value: Any, field_name: str, *, limit: float) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number != number or not -limit <= number <= limit:
        raise ValidationError(f"{field_name} must be between {-limit:g} and {limit:g}")
    return number
