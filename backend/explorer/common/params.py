from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import request

from .errors import ValidationError


MISSING = object()
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("INVALID_BODY", "Request body must be a JSON object.")
    return payload


def pick(payload: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins, so ``parentId`` and ``parent_id`` are both accepted."""
    for key in keys:
        if key in payload:
            return payload[key]
    return MISSING


def parse_nullable_int(value: Any, field_name: str) -> int | None:
    if value is None or value in ("", "null"):
        return None
    message = f"{field_name} must be an integer or null."
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("INVALID_PARAMETER", message)
    try:
        parsed = int(value)
    except (TypeError, ValueError, OverflowError) as error:
        raise ValidationError("INVALID_PARAMETER", message) from error
    # Ids are stored as signed 64-bit integers.
    if not INT64_MIN <= parsed <= INT64_MAX:
        raise ValidationError("INVALID_PARAMETER", message)
    return parsed


def parse_size(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= INT64_MAX:
        raise ValidationError("INVALID_PARAMETER", "size must be a non-negative integer.")
    return value


def parse_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError("INVALID_PARAMETER", f"{field_name} must be a boolean.")
    return value


def parse_optional_str(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("INVALID_PARAMETER", f"{field_name} must be a string or null.")
    return value.strip() or None
