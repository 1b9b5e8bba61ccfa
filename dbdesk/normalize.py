"""Collapse driver-native column values into canonical text or ``None``.

Every engine family gets one entry point:

* :func:`normalize_sqlite` works from SQLite storage classes (the Python type
  ``aiosqlite`` hands back).
* :func:`normalize_mysql` works from the value plus the MySQL field type code.
* :func:`normalize_postgres` works from the value plus the PostgreSQL type name.

Date/time values render as ``YYYY-MM-DD[ HH:MM:SS[.ffffff]]``. SQLite integers and
floats that fall inside the Unix-epoch and Julian-day windows are rendered as
dates; a plain number in the same range is indistinguishable and is converted
too. That imprecision is accepted in exchange for readable dates.
"""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Mapping

from pymysql.constants import FIELD_TYPE

# 2000-01-01 .. 2100-01-01 (exclusive) in Unix seconds.
UNIX_TIMESTAMP_MIN = 946684800
UNIX_TIMESTAMP_MAX = 4102444800

# Julian days for roughly 1968 .. 2132 (exclusive).
JULIAN_DAY_MIN = 2440000.0
JULIAN_DAY_MAX = 2500000.0
JULIAN_UNIX_EPOCH = 2440587.5

MYSQL_TEMPORAL_TYPES = frozenset(
    {
        FIELD_TYPE.DATE,
        FIELD_TYPE.NEWDATE,
        FIELD_TYPE.DATETIME,
        FIELD_TYPE.TIMESTAMP,
        FIELD_TYPE.TIME,
        FIELD_TYPE.YEAR,
    }
)

_MYSQL_DATE_TYPES = frozenset({FIELD_TYPE.DATE, FIELD_TYPE.NEWDATE})
_MYSQL_DATETIME_TYPES = frozenset({FIELD_TYPE.DATETIME, FIELD_TYPE.TIMESTAMP})

_ZERO_DATE = re.compile(r"^0000-00-00( 00:00:00(\.0+)?)?$")


# ---------------------------------------------------------------------------
# canonical formatting


def format_date(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def format_time(value: time) -> str:
    text = f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return text


def format_datetime(value: datetime | date) -> str:
    """Render a date or datetime in the canonical textual form."""

    if not isinstance(value, datetime):
        return format_date(value)
    return f"{format_date(value)} {format_time(value.time())}"


def format_duration(value: timedelta) -> str:
    """Render an interval as ``[-]HH:MM:SS[.ffffff]``; hours may exceed 24."""

    total = abs(value)
    hours = total.days * 24 + total.seconds // 3600
    minutes = (total.seconds % 3600) // 60
    seconds = total.seconds % 60
    text = f"{'-' if value < timedelta(0) else ''}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if total.microseconds:
        text += f".{total.microseconds:06d}"
    return text


def format_unix_timestamp(seconds: float) -> str:
    """Render Unix seconds as a UTC datetime with whole-second precision."""

    moment = datetime.fromtimestamp(math.floor(seconds), tz=timezone.utc)
    return format_datetime(moment.replace(tzinfo=None))


def julian_day_to_datetime(julian_day: float) -> datetime:
    seconds = math.floor((julian_day - JULIAN_UNIX_EPOCH) * 86400.0)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def parse_canonical(text: str) -> datetime | date:
    """Parse canonical (or ISO-8601) date/time text; raises ``ValueError`` otherwise."""

    stripped = text.strip()
    if len(stripped) == 10:
        return date.fromisoformat(stripped)
    return datetime.fromisoformat(stripped)


def is_zero_date(text: str) -> bool:
    return bool(_ZERO_DATE.match(text.strip()))


def _is_unix_timestamp(value: int) -> bool:
    return UNIX_TIMESTAMP_MIN < value < UNIX_TIMESTAMP_MAX


def _is_julian_day(value: float) -> bool:
    return JULIAN_DAY_MIN < value < JULIAN_DAY_MAX


def _binary_placeholder(kind: str, payload: bytes | bytearray | memoryview) -> str:
    return f"<{kind} {len(payload)} bytes>"


# ---------------------------------------------------------------------------
# SQLite


def normalize_sqlite(value: Any) -> str | None:
    """Normalize a value by its SQLite storage class."""

    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        if _is_unix_timestamp(value):
            return format_unix_timestamp(value)
        return str(value)
    if isinstance(value, float):
        if _is_julian_day(value):
            return format_datetime(julian_day_to_datetime(value))
        return repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _binary_placeholder("BLOB", value)
    return str(value)


# ---------------------------------------------------------------------------
# MySQL


def _le_int(data: bytes) -> int:
    return int.from_bytes(data, "little")


def _check_date(year: int, month: int, day: int) -> None:
    if not (1 <= month <= 12 and 1 <= day <= 31):
        raise ValueError(f"invalid binary date {year:04d}-{month:02d}-{day:02d}")


def parse_mysql_binary_datetime(data: bytes, type_code: int) -> str | None:
    """Decode the MySQL binary-protocol layout for temporal columns.

    Returns ``None`` for zero dates and raises ``ValueError`` when the payload
    does not have a binary layout for ``type_code`` (callers fall back to text).

    PyMySQL converts temporal columns itself, so raw bytes only reach this
    decoder when the connection's ``conv`` mapping has no entry for the type,
    or when a value was captured from a server-side prepared statement result.
    """

    length = len(data)
    if type_code in _MYSQL_DATE_TYPES:
        if length != 4:
            raise ValueError("DATE payload must be 4 bytes")
        year, month, day = _le_int(data[0:2]), data[2], data[3]
        if year == 0 and month == 0 and day == 0:
            return None
        _check_date(year, month, day)
        return f"{year:04d}-{month:02d}-{day:02d}"

    if type_code in _MYSQL_DATETIME_TYPES:
        if length == 0:
            return None
        if length not in (4, 7, 11):
            raise ValueError("DATETIME payload must be 0, 4, 7 or 11 bytes")
        year, month, day = _le_int(data[0:2]), data[2], data[3]
        if year == 0 and month == 0 and day == 0:
            return None
        _check_date(year, month, day)
        if length == 4:
            return f"{year:04d}-{month:02d}-{day:02d} 00:00:00"
        hour, minute, second = data[4], data[5], data[6]
        text = f"{year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d}:{second:02d}"
        if length == 11:
            text += f".{_le_int(data[7:11]):06d}"
        return text

    if type_code == FIELD_TYPE.TIME:
        if length == 0:
            return "00:00:00"
        if length not in (8, 12):
            raise ValueError("TIME payload must be 0, 8 or 12 bytes")
        if data[0] not in (0, 1):
            raise ValueError("TIME sign byte must be 0 or 1")
        negative = data[0] == 1
        days = _le_int(data[1:5])
        hours = data[5] + days * 24
        text = f"{'-' if negative else ''}{hours:02d}:{data[6]:02d}:{data[7]:02d}"
        if length == 12 and _le_int(data[8:12]):
            text += f".{_le_int(data[8:12]):06d}"
        return text

    if type_code == FIELD_TYPE.YEAR:
        if length != 1:
            raise ValueError("YEAR payload must be 1 byte")
        return str(1900 + data[0])

    raise ValueError(f"type code {type_code} is not temporal")


def _normalize_temporal_text(text: str, type_code: int) -> str | None:
    if not text or is_zero_date(text):
        return None
    if type_code in _MYSQL_DATE_TYPES or type_code in _MYSQL_DATETIME_TYPES:
        try:
            return format_datetime(parse_canonical(text))
        except ValueError:
            return text
    return text


def decode_mysql_temporal(value: Any, type_code: int) -> str | None:
    """Normalize a DATE/DATETIME/TIMESTAMP/TIME/YEAR value."""

    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        payload = bytes(value)
        if not payload and type_code != FIELD_TYPE.TIME:
            return None
        try:
            return parse_mysql_binary_datetime(payload, type_code)
        except ValueError:
            pass
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError:
            return None
        return _normalize_temporal_text(text, type_code)
    if isinstance(value, (datetime, date)):
        return format_datetime(value)
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, time):
        return format_time(value)
    if isinstance(value, int):
        return str(value)
    return _normalize_temporal_text(str(value), type_code)


def normalize_mysql(value: Any, type_code: int | None = None) -> str | None:
    """Normalize a MySQL column value using its declared field type code."""

    if value is None:
        return None
    if type_code in MYSQL_TEMPORAL_TYPES:
        return decode_mysql_temporal(value, type_code)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        payload = bytes(value)
        if type_code == FIELD_TYPE.BIT and len(payload) == 1 and payload in (b"\x00", b"\x01"):
            return "1" if payload == b"\x01" else "0"
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError:
            return _binary_placeholder("BINARY", payload)
    if isinstance(value, (datetime, date)):
        return format_datetime(value)
    if isinstance(value, timedelta):
        return format_duration(value)
    return str(value)


# ---------------------------------------------------------------------------
# PostgreSQL


def normalize_postgres(value: Any, type_name: str | None = None) -> str | None:
    """Normalize an asyncpg-decoded value; ``type_name`` is the pg type name."""

    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, datetime):
        # timestamptz arrives as an aware datetime; render its wall clock.
        return format_datetime(value.replace(tzinfo=None))
    if isinstance(value, date):
        return format_date(value)
    if isinstance(value, time):
        return format_time(value)
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _binary_placeholder("BINARY", value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (list, tuple, Mapping)):
        return json.dumps(value, default=str)
    if type_name in ("bit", "varbit") and hasattr(value, "as_string"):
        return value.as_string()
    return str(value)


__all__ = [
    "JULIAN_UNIX_EPOCH",
    "MYSQL_TEMPORAL_TYPES",
    "decode_mysql_temporal",
    "format_date",
    "format_datetime",
    "format_duration",
    "format_time",
    "format_unix_timestamp",
    "is_zero_date",
    "julian_day_to_datetime",
    "normalize_mysql",
    "normalize_postgres",
    "normalize_sqlite",
    "parse_canonical",
    "parse_mysql_binary_datetime",
]
