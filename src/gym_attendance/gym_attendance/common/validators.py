from __future__ import annotations

from typing import Any, Mapping

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_field(data: Mapping[str, Any], field_name: str) -> Any:
    if field_name not in data or data[field_name] in (None, ""):
        raise ValidationError(f"Missing field: {field_name}")
    return data[field_name]
