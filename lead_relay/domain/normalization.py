from __future__ import annotations

from typing import Any


_TRUTHY_STRINGS = {"1", "true", "yes", "on"}


def coerce_truthy(value: Any) -> bool:
    if value is True:
        return True
    if value is None or value is False:
        return False
    return str(value).strip().lower() in _TRUTHY_STRINGS


def coerce_loan_amount(value: Any) -> int | float | str:
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else value
    text = str(value).strip()
    if text.isascii() and text.isdigit():
        return int(text)
    return text


def as_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return str(value)


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = as_text(value)
    return text or None
