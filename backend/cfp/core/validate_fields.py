"""Field Validation — pure normalisation of user-supplied text and values.

Invariants:
    - Every function returns the normalised value or raises ValidationError
    - Strings are stripped before length checks
    - Same rules apply at the HTTP boundary and for direct service callers

Design Decisions:
    - Duplicated on purpose with Pydantic schemas: services are callable without the
      API layer (export and tagging collaborators call them directly)
"""

import re
from datetime import date

from cfp.core.errors import ValidationError


MAX_TITLE_LENGTH: int = 500
MAX_LABEL_NAME_LENGTH: int = 100
_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def require_text(value: str | None, field: str, max_length: int | None = None) -> str:
    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{field} is required", field)
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(
            f"{field} must be {max_length} characters or less", field,
        )
    return stripped


def optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_title(title: str | None) -> str:
    return require_text(title, "title", MAX_TITLE_LENGTH)


def normalize_summary(summary: str | None) -> str:
    return require_text(summary, "short_summary")


def normalize_label_name(name: str | None) -> str:
    return require_text(name, "name", MAX_LABEL_NAME_LENGTH)


def validate_color(color: str | None) -> str | None:
    """Hex colour like #FF5733 or #F57."""
    if color is None:
        return None
    if not _HEX_COLOR.match(color):
        raise ValidationError(
            "Color must be a valid hex color (e.g., #FF5733 or #F57)", "color",
        )
    return color


def validate_capacity(capacity: int | None) -> int | None:
    if capacity is not None and capacity < 1:
        raise ValidationError("Capacity must be at least 1", "capacity")
    return capacity


def validate_date_range(start: date, end: date) -> None:
    if end < start:
        raise ValidationError("End date must be after start date", "end_date")
