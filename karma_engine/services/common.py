"""
Small helpers shared by the engine services.
"""
from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

TWO_PLACES = Decimal("0.01")


def today() -> date:
    return datetime.now(tz=timezone.utc).date()


def ev(v) -> str:
    """Return bare string value from a str-enum or plain str."""
    return v.value if hasattr(v, "value") else str(v)


def jdump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def jload_list(text: Optional[str]) -> list:
    if not text:
        return []
    try:
        result = json.loads(text)
        return result if isinstance(result, list) else []
    except (ValueError, TypeError):
        return []


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize2(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_half_up(value: Decimal | float) -> int:
    """Round to the nearest integer, halves rounding up."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
