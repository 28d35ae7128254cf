"""
Placeholder value validation and normalisation.

Each typed placeholder (``%i``, ``%email``, ...) names a kind; the raw argument
is normalised to a string and checked against that kind before anything is
bound. Unknown kinds are opaque strings and always valid.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from pydantic import AnyUrl, TypeAdapter, ValidationError
from pydantic.networks import EmailStr

from polydb.core.errors import InvalidArgumentError

DATA_TYPES: dict[str, str] = {
    "b": "boolean",
    "i": "integer",
    "d": "decimal",
    "s": "string",
    "blob": "blob",
    "url": "url",
    "email": "email",
    "ds": "date stamp",
    "ts": "time stamp",
    "dt": "datetime stamp",
    "ls": "string match",
}

NUMERIC_KINDS = frozenset({"i", "d", "b"})

_PATTERNS: dict[str, re.Pattern[str]] = {
    "i": re.compile(r"-?[0-9]+"),
    "d": re.compile(r"-?[0-9]+(\.[0-9]+)?"),
    "ds": re.compile(r"\d{4}-\d{2}-\d{2}"),
    "ts": re.compile(r"\d{2}:\d{2}:\d{2}"),
    "dt": re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}"),
}

_EMAIL = TypeAdapter(EmailStr)
_URL = TypeAdapter(AnyUrl)


def _fixed_point(value: float | Decimal) -> str:
    if isinstance(value, Decimal):
        return format(value, "f")
    s = repr(value)
    if "e" in s.lower():
        s = format(Decimal(s), "f")
    return s


def _normalize(kind: str, value: Any) -> str | bytes:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, (float, Decimal)):
        return _fixed_point(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        if kind == "blob":
            return bytes(value)
        return bytes(value).decode("utf-8")
    return str(value)


def _is_email(value: str) -> bool:
    try:
        _EMAIL.validate_python(value)
    except ValidationError:
        return False
    return True


def _is_url(value: str) -> bool:
    try:
        _URL.validate_python(value)
    except ValidationError:
        return False
    return True


def check_value(kind: str, value: Any) -> str | bytes | None:
    """
    Normalise *value* for placeholder *kind*; return None when it is invalid.

    - bool -> "1"/"0"; date/time/datetime -> fixed-width stamps;
      floats in scientific notation -> fixed point.
    - "" for numeric kinds (i, d, b) -> "0".
    - blob keeps bytes untouched; every other result is a str.
    """
    try:
        normalized = _normalize(kind, value)
    except UnicodeDecodeError:
        return None
    if isinstance(normalized, bytes):
        return normalized

    if kind in NUMERIC_KINDS and normalized == "":
        normalized = "0"

    pattern = _PATTERNS.get(kind)
    if pattern is not None:
        return normalized if pattern.fullmatch(normalized) else None
    if kind == "b":
        return normalized if normalized in ("0", "1") else None
    if kind == "email":
        return normalized if _is_email(normalized) else None
    if kind == "url":
        return normalized if _is_url(normalized) else None
    return normalized


def validate(kind: str, value: Any, *, sql: str | None = None) -> str | bytes:
    """Like check_value() but raises InvalidArgumentError instead of returning None."""
    checked = check_value(kind, value)
    if checked is None:
        msg = (
            f"Invalid SQL argument, expecting a {DATA_TYPES.get(kind, kind)} "
            f"and received {value!r} instead"
        )
        if sql:
            msg += f" within SQL statement, {sql}"
        raise InvalidArgumentError(msg, kind=kind, value=value, sql=sql)
    return checked
