#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import re
from datetime import datetime, timedelta, timezone
from types import UnionType
from typing import Any, overload

from .exceptions import DeserializationError

RFC3339 = "%Y-%m-%dT%H:%M:%SZ"
# Same as RFC3339, but with microsecond precision.
RFC3339_MICRO = "%Y-%m-%dT%H:%M:%S.%fZ"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def ensure_utc(value: datetime) -> datetime:
    """Ensures that the given datetime is a UTC timezone-aware datetime.

    If the datetime isn't timezone-aware, its timezone is set to UTC. If it is aware,
    it's replaced with the equivalent datetime under UTC.

    :param value: A datetime object that may or may not be timezone-aware.
    :returns: A UTC timezone-aware equivalent datetime.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    else:
        return value.astimezone(timezone.utc)


def epoch_seconds_to_datetime(value: int | float) -> datetime:
    """Parse numerical epoch timestamps (seconds since 1970) into a datetime in UTC.

    Falls back to using ``timedelta`` when ``fromtimestamp`` raises ``OverflowError``,
    which happens on platforms where the C ``localtime`` is restricted to 1970-2038.
    """
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except OverflowError:
        epoch_zero = datetime(1970, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
        return epoch_zero + timedelta(seconds=value)


@overload
def expect_type[T](typ: type[T], value: Any) -> T: ...


@overload
def expect_type(typ: UnionType, value: Any) -> Any: ...


def expect_type(typ: UnionType | type, value: Any) -> Any:
    """Asserts a value is of the given type and returns it unchanged.

    :param typ: The expected type.
    :param value: The value which is expected to be the given type.
    :returns: The given value.
    :raises DeserializationError: If the value does not match the type.
    """
    if not isinstance(value, typ):
        raise DeserializationError(f"Expected {typ}, found {type(value)}: {value}")
    return value


def serialize_rfc3339(given: datetime) -> str:
    """Serializes a datetime into an RFC3339 string representation.

    If ``microseconds`` is 0, no fractional part is serialized.

    :param given: The datetime to serialize.
    :returns: An RFC3339 formatted timestamp.
    """
    if given.microsecond != 0:
        return given.strftime(RFC3339_MICRO)
    else:
        return given.strftime(RFC3339)


def serialize_epoch_seconds(given: datetime) -> int | float:
    """Serializes a datetime into the seconds since the UNIX epoch.

    If ``microseconds`` is 0, the result is an int.

    :param given: The datetime to serialize.
    """
    result = given.timestamp()
    if given.microsecond == 0:
        return int(result)
    return result


def camel_to_snake(name: str) -> str:
    """Convert ``userName`` or ``UserName`` to ``user_name``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert ``user_name`` to ``userName``.

    Leading and trailing underscores are preserved.
    """
    stripped = name.strip("_")
    if not stripped:
        return name
    leading = name[: len(name) - len(name.lstrip("_"))]
    trailing = name[len(name.rstrip("_")) :]
    head, *rest = stripped.split("_")
    return leading + head + "".join(part[:1].upper() + part[1:] for part in rest) + trailing
