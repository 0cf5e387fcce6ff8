"""AMQP header field values and their canonical text form.

Header tables arrive already decoded by the broker client, which folds the
wire kinds onto a handful of Python types (every integer width becomes
``int``, both string kinds become ``str``). ``FieldValue`` keeps the wire
kind next to the value so coercion is a single exhaustive mapping over
``FieldKind``; values built from decoded headers get the widest matching kind.
"""
from __future__ import annotations

import calendar
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1


class FieldKind(str, Enum):
    BOOLEAN = "boolean"
    SHORT_SHORT_INT = "short_short_int"
    SHORT_SHORT_UINT = "short_short_uint"
    SHORT_INT = "short_int"
    SHORT_UINT = "short_uint"
    LONG_INT = "long_int"
    LONG_UINT = "long_uint"
    LONG_LONG_INT = "long_long_int"
    LONG_LONG_UINT = "long_long_uint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    SHORT_STRING = "short_string"
    LONG_STRING = "long_string"
    TIMESTAMP = "timestamp"
    FIELD_ARRAY = "field_array"
    FIELD_TABLE = "field_table"
    BYTE_ARRAY = "byte_array"
    VOID = "void"


@dataclass(frozen=True)
class FieldValue:
    """One typed header value (tagged by its AMQP field kind)."""

    kind: FieldKind
    value: Any = None


def _text_bool(value: Any) -> str:
    return "true" if value else "false"


def _text_int(value: Any) -> str:
    return str(int(value))


def _text_float(value: Any) -> str:
    # FLOAT arrives widened to a double, so 1.1 renders as 1.100000023841858
    return str(float(value))


def _text_decimal(value: Any) -> str:
    # "f" keeps plain notation: Decimal("1E+2") -> "100"
    return format(Decimal(value), "f")


def _text_str(value: Any) -> str:
    return str(value)


def _text_timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        # naive datetimes from the broker client are UTC
        return str(calendar.timegm(value.utctimetuple()))
    return str(int(value))


def _no_text(value: Any) -> None:
    return None


_COERCERS: dict[FieldKind, Callable[[Any], str | None]] = {
    FieldKind.BOOLEAN: _text_bool,
    FieldKind.SHORT_SHORT_INT: _text_int,
    FieldKind.SHORT_SHORT_UINT: _text_int,
    FieldKind.SHORT_INT: _text_int,
    FieldKind.SHORT_UINT: _text_int,
    FieldKind.LONG_INT: _text_int,
    FieldKind.LONG_UINT: _text_int,
    FieldKind.LONG_LONG_INT: _text_int,
    FieldKind.LONG_LONG_UINT: _text_int,
    FieldKind.FLOAT: _text_float,
    FieldKind.DOUBLE: _text_float,
    FieldKind.DECIMAL: _text_decimal,
    FieldKind.SHORT_STRING: _text_str,
    FieldKind.LONG_STRING: _text_str,
    FieldKind.TIMESTAMP: _text_timestamp,
    FieldKind.FIELD_ARRAY: _no_text,
    FieldKind.FIELD_TABLE: _no_text,
    FieldKind.BYTE_ARRAY: _no_text,
    FieldKind.VOID: _no_text,
}

# A new FieldKind without a coercer fails at import, not at runtime.
_missing = set(FieldKind) - set(_COERCERS)
if _missing:
    raise RuntimeError(f"no coercer for field kinds: {sorted(k.name for k in _missing)}")


def coerce_field_value(field: FieldValue) -> str | None:
    """Return the canonical text of a scalar field, or None for arrays, tables, bytes and void."""
    try:
        return _COERCERS[field.kind](field.value)
    except (TypeError, ValueError, ArithmeticError):
        return None


def field_value_from_native(value: Any) -> FieldValue:
    """Tag a broker-decoded Python value with its AMQP field kind."""
    if value is None:
        return FieldValue(FieldKind.VOID)
    # bool is an int subclass
    if isinstance(value, bool):
        return FieldValue(FieldKind.BOOLEAN, value)
    if isinstance(value, int):
        if _INT64_MIN <= value <= _INT64_MAX:
            return FieldValue(FieldKind.LONG_LONG_INT, value)
        if 0 < value <= _UINT64_MAX:
            return FieldValue(FieldKind.LONG_LONG_UINT, value)
        return FieldValue(FieldKind.VOID)
    if isinstance(value, float):
        return FieldValue(FieldKind.DOUBLE, value)
    if isinstance(value, Decimal):
        return FieldValue(FieldKind.DECIMAL, value)
    if isinstance(value, str):
        return FieldValue(FieldKind.LONG_STRING, value)
    if isinstance(value, datetime):
        return FieldValue(FieldKind.TIMESTAMP, value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return FieldValue(FieldKind.BYTE_ARRAY, bytes(value))
    if isinstance(value, Mapping):
        return FieldValue(FieldKind.FIELD_TABLE, value)
    if isinstance(value, (list, tuple)):
        return FieldValue(FieldKind.FIELD_ARRAY, value)
    return FieldValue(FieldKind.VOID)


def coerce_native(value: Any) -> str | None:
    return coerce_field_value(field_value_from_native(value))
