"""Unit tests for header value coercion."""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
import struct

import pytest

from hare.app.domain.field_values import (
    FieldKind,
    FieldValue,
    coerce_field_value,
    coerce_native,
    field_value_from_native,
)


@pytest.mark.parametrize(
    "kind, value, expected",
    [
        (FieldKind.BOOLEAN, True, "true"),
        (FieldKind.BOOLEAN, False, "false"),
        (FieldKind.SHORT_SHORT_INT, -128, "-128"),
        (FieldKind.SHORT_SHORT_UINT, 255, "255"),
        (FieldKind.SHORT_INT, -32768, "-32768"),
        (FieldKind.SHORT_UINT, 65535, "65535"),
        (FieldKind.LONG_INT, -2147483648, "-2147483648"),
        (FieldKind.LONG_UINT, 4294967295, "4294967295"),
        (FieldKind.LONG_LONG_INT, -9223372036854775808, "-9223372036854775808"),
        (FieldKind.LONG_LONG_UINT, 18446744073709551615, "18446744073709551615"),
        (FieldKind.FLOAT, 1.5, "1.5"),
        (FieldKind.DOUBLE, -0.25, "-0.25"),
        (FieldKind.DECIMAL, Decimal("1.50"), "1.50"),
        (FieldKind.DECIMAL, Decimal("1E+2"), "100"),
        (FieldKind.SHORT_STRING, "deploy", "deploy"),
        (FieldKind.LONG_STRING, "a longer value with spaces", "a longer value with spaces"),
        (FieldKind.TIMESTAMP, 1700000000, "1700000000"),
    ],
)
def test_scalar_kinds_render_as_text(kind, value, expected):
    assert coerce_field_value(FieldValue(kind, value)) == expected


@pytest.mark.parametrize(
    "kind, value",
    [
        (FieldKind.FIELD_ARRAY, [1, 2]),
        (FieldKind.FIELD_TABLE, {"a": 1}),
        (FieldKind.BYTE_ARRAY, b"\x00\x01"),
        (FieldKind.VOID, None),
    ],
)
def test_non_scalar_kinds_have_no_text(kind, value):
    assert coerce_field_value(FieldValue(kind, value)) is None


def test_every_kind_is_handled_without_raising():
    for kind in FieldKind:
        # a mismatched payload must not escape as an exception
        coerce_field_value(FieldValue(kind, object()))


def test_timestamp_from_datetime_uses_epoch_seconds():
    aware = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    naive = datetime(2023, 11, 14, 22, 13, 20)

    assert coerce_field_value(FieldValue(FieldKind.TIMESTAMP, aware)) == "1700000000"
    assert coerce_field_value(FieldValue(FieldKind.TIMESTAMP, naive)) == "1700000000"


@pytest.mark.parametrize(
    "value, kind",
    [
        (True, FieldKind.BOOLEAN),
        (7, FieldKind.LONG_LONG_INT),
        (-7, FieldKind.LONG_LONG_INT),
        (2**63, FieldKind.LONG_LONG_UINT),
        (2.5, FieldKind.DOUBLE),
        (Decimal("3.14"), FieldKind.DECIMAL),
        ("text", FieldKind.LONG_STRING),
        (datetime(2020, 1, 1), FieldKind.TIMESTAMP),
        ([1, "a"], FieldKind.FIELD_ARRAY),
        ({"nested": True}, FieldKind.FIELD_TABLE),
        (b"raw", FieldKind.BYTE_ARRAY),
        (bytearray(b"raw"), FieldKind.BYTE_ARRAY),
        (None, FieldKind.VOID),
    ],
)
def test_native_values_are_tagged_with_their_kind(value, kind):
    assert field_value_from_native(value).kind is kind


def test_bool_is_not_treated_as_integer():
    assert coerce_native(True) == "true"
    assert coerce_native(1) == "1"


def test_integer_outside_amqp_range_has_no_text():
    assert coerce_native(2**64) is None
    assert coerce_native(-(2**63) - 1) is None


def test_unknown_native_type_has_no_text():
    assert coerce_native(object()) is None


def test_single_precision_float_renders_its_widened_double_digits():
    # the broker client decodes a 32-bit float header straight into a Python float
    widened = struct.unpack(">f", struct.pack(">f", 1.1))[0]

    assert coerce_field_value(FieldValue(FieldKind.FLOAT, widened)) == "1.100000023841858"
    assert coerce_native(widened) == "1.100000023841858"
