"""JSON serialization utilities built on orjson.

orjson covers datetime, date, time, UUID, dataclasses and enums natively.
Result cells coming back from the drivers need a few more cases: Decimal
(SQL Server money/numeric, Oracle NUMBER), timedelta, binary columns and
interval-like values. Decimals stay exact: small integers become numbers,
everything else its decimal text.
"""

import base64
import datetime
import decimal
import ipaddress
from typing import Any

import orjson

# Largest integer a double represents exactly
_MAX_EXACT_INT = 2**53


def _decode_binary(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return base64.b64encode(data).decode("ascii")


def _default_handler(obj: Any) -> Any:
    """
    Custom default handler for types orjson doesn't handle natively.

    Raises:
        TypeError: If object cannot be serialized
    """
    if isinstance(obj, decimal.Decimal):
        # Exact text unless the value is an integer a JSON number holds exactly
        if obj.is_finite() and obj == obj.to_integral_value():
            as_int = int(obj)
            if abs(as_int) <= _MAX_EXACT_INT:
                return as_int
        return str(obj)

    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    if isinstance(obj, (bytes, bytearray)):
        return _decode_binary(bytes(obj))

    if isinstance(obj, memoryview):
        return _decode_binary(bytes(obj))

    if isinstance(obj, (set, frozenset)):
        return list(obj)

    if isinstance(
        obj,
        (
            ipaddress.IPv4Address,
            ipaddress.IPv6Address,
            ipaddress.IPv4Network,
            ipaddress.IPv6Network,
        ),
    ):
        return str(obj)

    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def convert_value_to_json_safe(value: Any) -> Any:
    """
    Convert a value to JSON-serializable format.

    Round-trips through orjson so the result matches what goes on the wire.
    Values orjson cannot handle at all become their string form.
    """
    try:
        return orjson.loads(orjson.dumps(value, default=_default_handler))
    except TypeError:
        return str(value)


def convert_row_to_json_safe(row: dict[str, Any]) -> dict[str, Any]:
    """Convert all values in a row dict to JSON-serializable formats."""
    return {key: convert_value_to_json_safe(value) for key, value in row.items()}


def convert_rows_to_json_safe(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [convert_row_to_json_safe(row) for row in rows]


def dumps(obj: Any, indent: bool = False) -> str:
    """
    Serialize object to JSON string using orjson.

    Args:
        obj: Object to serialize
        indent: Pretty-print with two-space indentation

    Returns:
        JSON string
    """
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(obj, default=_default_handler, option=option).decode("utf-8")


def loads(data: Any) -> Any:
    return orjson.loads(data)
