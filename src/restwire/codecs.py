#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Conversion between JSON documents and model types.

Models are plain dataclasses. Decoding walks the dataclass type hints, so nested
dataclasses, lists, dicts, unions, enums, timestamps and blobs all work without any
extra declarations. A field can pin its JSON name with
``field(metadata={"json_name": "..."})``.
"""

import json
from base64 import b64decode, b64encode
from binascii import Error as BinasciiError
from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, fields, is_dataclass, replace
from datetime import datetime
from decimal import Decimal
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum
from functools import cache
from io import BytesIO
from math import isinf
from types import NoneType, UnionType
from typing import Any, ClassVar, Literal, Union, get_args, get_origin, get_type_hints

import ijson  # type: ignore
from ijson.common import ObjectBuilder  # type: ignore

from .exceptions import DeserializationError, SerializationError
from .utils import (
    camel_to_snake,
    ensure_utc,
    epoch_seconds_to_datetime,
    expect_type,
    serialize_epoch_seconds,
    serialize_rfc3339,
    snake_to_camel,
)

JSON_NAME = "json_name"
"""Dataclass field metadata key that overrides the JSON name of a field."""


class KeyDecodingStrategy(Enum):
    """How JSON object keys are mapped to model field names."""

    USE_DEFAULT_KEYS = "use-default-keys"
    """JSON keys are used as field names unchanged."""

    CONVERT_FROM_CAMEL_CASE = "convert-from-camel-case"
    """``userName`` in JSON populates the ``user_name`` field."""

    def convert(self, key: str) -> str:
        match self:
            case KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE:
                return camel_to_snake(key)
            case _:
                return key


class KeyEncodingStrategy(Enum):
    """How model field names are written as JSON object keys."""

    USE_DEFAULT_KEYS = "use-default-keys"
    """Field names are written unchanged."""

    CONVERT_TO_CAMEL_CASE = "convert-to-camel-case"
    """The ``user_name`` field is written as ``userName``."""

    def convert(self, name: str) -> str:
        match self:
            case KeyEncodingStrategy.CONVERT_TO_CAMEL_CASE:
                return snake_to_camel(name)
            case _:
                return name


class DateStrategy(Enum):
    """Timestamp formats with serialization and deserialization helpers."""

    DATE_TIME = "date-time"
    """RFC3339 section 5.6 datetime with optional fractional seconds."""

    HTTP_DATE = "http-date"
    """An HTTP date as defined by the IMF-fixdate production in RFC 9110 section
    5.6.7."""

    EPOCH_SECONDS = "epoch-seconds"
    """Seconds since 00:00:00 UTC, 1 January 1970."""

    EPOCH_MILLISECONDS = "epoch-milliseconds"
    """Milliseconds since 00:00:00 UTC, 1 January 1970."""

    def serialize(self, value: datetime) -> str | int | float:
        """Serializes a datetime into the timestamp format."""
        value = ensure_utc(value)
        match self:
            case DateStrategy.EPOCH_SECONDS:
                return serialize_epoch_seconds(value)
            case DateStrategy.EPOCH_MILLISECONDS:
                return round(value.timestamp() * 1000)
            case DateStrategy.HTTP_DATE:
                return format_datetime(value, usegmt=True)
            case DateStrategy.DATE_TIME:
                return serialize_rfc3339(value)

    def deserialize(self, value: Any) -> datetime:
        """Deserializes a datetime from a value of the format.

        :raises DeserializationError: If the value doesn't match the format.
        """
        try:
            match self:
                case DateStrategy.EPOCH_SECONDS:
                    return epoch_seconds_to_datetime(_expect_number(value))
                case DateStrategy.EPOCH_MILLISECONDS:
                    return epoch_seconds_to_datetime(_expect_number(value) / 1000)
                case DateStrategy.HTTP_DATE:
                    return ensure_utc(parsedate_to_datetime(expect_type(str, value)))
                case DateStrategy.DATE_TIME:
                    return ensure_utc(datetime.fromisoformat(expect_type(str, value)))
        except (ValueError, TypeError, OverflowError) as e:
            raise DeserializationError(
                f"Expected a {self.value} timestamp, found: {value!r}"
            ) from e


class DataStrategy(Enum):
    """How binary data is represented in JSON."""

    BASE64 = "base64"
    """A base64 encoded string."""

    BYTE_ARRAY = "byte-array"
    """An array of integers in the range 0-255."""

    def encode(self, value: bytes | bytearray) -> str | list[int]:
        match self:
            case DataStrategy.BYTE_ARRAY:
                return list(value)
            case DataStrategy.BASE64:
                return b64encode(value).decode("ascii")

    def decode(self, value: Any) -> bytes:
        try:
            match self:
                case DataStrategy.BYTE_ARRAY:
                    return bytes(expect_type(list, value))
                case DataStrategy.BASE64:
                    return b64decode(expect_type(str, value), validate=True)
        except (ValueError, TypeError, BinasciiError) as e:
            raise DeserializationError(
                f"Expected {self.value} encoded data, found: {value!r}"
            ) from e


class _Policy:
    _DEFAULTS: ClassVar[dict[str, Any]]

    def merged[P: "_Policy"](self: P, overrides: P | None) -> P:
        """Return a copy of this policy with every field set on ``overrides`` taking
        precedence."""
        if overrides is None:
            return replace(self)  # type: ignore[type-var]
        changes = {
            fld.name: value
            for fld in fields(overrides)  # type: ignore[arg-type]
            if (value := getattr(overrides, fld.name)) is not None
        }
        return replace(self, **changes)  # type: ignore[type-var]

    def resolved[P: "_Policy"](self: P) -> P:
        """Return a copy of this policy with unset fields filled with library
        defaults."""
        defaults = {
            name: value
            for name, value in self._DEFAULTS.items()
            if getattr(self, name) is None
        }
        return replace(self, **defaults)  # type: ignore[type-var]


@dataclass(kw_only=True)
class DecodingPolicy(_Policy):
    """Strategies used when decoding JSON into models.

    Fields left as ``None`` inherit from the next layer of configuration, and
    ultimately from the library defaults.
    """

    _DEFAULTS: ClassVar[dict[str, Any]] = {
        "key_strategy": KeyDecodingStrategy.USE_DEFAULT_KEYS,
        "date_strategy": DateStrategy.DATE_TIME,
        "data_strategy": DataStrategy.BASE64,
    }

    key_strategy: KeyDecodingStrategy | None = None
    date_strategy: DateStrategy | None = None
    data_strategy: DataStrategy | None = None


@dataclass(kw_only=True)
class EncodingPolicy(_Policy):
    """Strategies used when encoding models into JSON.

    Fields left as ``None`` inherit from the next layer of configuration, and
    ultimately from the library defaults.
    """

    _DEFAULTS: ClassVar[dict[str, Any]] = {
        "key_strategy": KeyEncodingStrategy.USE_DEFAULT_KEYS,
        "date_strategy": DateStrategy.DATE_TIME,
        "data_strategy": DataStrategy.BASE64,
    }

    key_strategy: KeyEncodingStrategy | None = None
    date_strategy: DateStrategy | None = None
    data_strategy: DataStrategy | None = None


def parse_json(source: bytes | bytearray, *, use_float: bool = False) -> Any:
    """Parse a complete JSON document.

    Non-integral numbers are returned as ``Decimal`` unless ``use_float`` is set.

    :raises DeserializationError: If the source isn't a single valid JSON value.
    """
    builder = ObjectBuilder()
    try:
        for _, event, value in ijson.parse(BytesIO(source), use_float=use_float):
            builder.event(event, value)
    except (ijson.JSONError, UnicodeDecodeError, ValueError) as e:
        raise DeserializationError(f"Unable to parse JSON: {e}") from e
    if not hasattr(builder, "value"):
        raise DeserializationError("Unable to parse JSON: no content")
    return builder.value


class JSONDecoder:
    """Decodes JSON documents into model types."""

    def __init__(self, policy: DecodingPolicy | None = None) -> None:
        self.policy = (policy or DecodingPolicy()).resolved()

    def decode[T](self, model: type[T], data: bytes | bytearray) -> T:
        """Parse ``data`` and convert it into an instance of ``model``.

        :raises DeserializationError: If the data isn't JSON or doesn't fit the model.
        """
        return self.convert(model, parse_json(data))

    def convert(self, target: Any, value: Any, path: str = "$") -> Any:
        """Convert an already parsed JSON value into ``target``."""
        if target is Any or target is object:
            return value

        origin = get_origin(target)
        if origin is Union or origin is UnionType:
            return self._convert_union(target, value, path)
        if origin is Literal:
            if value not in get_args(target):
                raise DeserializationError(
                    f"Expected one of {get_args(target)} at {path}, found: {value!r}"
                )
            return value
        if origin in (list, Sequence):
            (item_type,) = get_args(target) or (Any,)
            return [
                self.convert(item_type, item, f"{path}[{i}]")
                for i, item in enumerate(self._expect(list, value, path))
            ]
        if origin is tuple:
            return self._convert_tuple(get_args(target), value, path)
        if origin in (dict, Mapping):
            key_type, value_type = get_args(target) or (Any, Any)
            return {
                self.convert(key_type, key, path): self.convert(
                    value_type, item, f"{path}.{key}"
                )
                for key, item in self._expect(dict, value, path).items()
            }

        if target is NoneType or target is None:
            if value is not None:
                raise DeserializationError(f"Expected null at {path}, found: {value!r}")
            return None
        if is_dataclass(target) and isinstance(target, type):
            return self._convert_dataclass(target, value, path)
        if isinstance(target, type) and issubclass(target, Enum):
            try:
                return target(value)
            except (ValueError, TypeError) as e:
                raise DeserializationError(
                    f"{value!r} at {path} is not a valid {target.__name__}"
                ) from e
        if target is datetime:
            return self.policy.date_strategy.deserialize(value)  # type: ignore[union-attr]
        if target is bytes:
            return self.policy.data_strategy.decode(value)  # type: ignore[union-attr]
        if target is bool:
            return self._expect(bool, value, path)
        if target is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise DeserializationError(f"Expected integer at {path}, found: {value!r}")
            return value
        if target is float:
            return _expect_number(value, path)
        if target is Decimal:
            if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
                raise DeserializationError(f"Expected number at {path}, found: {value!r}")
            return Decimal(value)
        if target is str:
            return self._expect(str, value, path)
        if target in (list, dict):
            return self._expect(target, value, path)

        raise DeserializationError(f"Unable to decode type {target!r} at {path}")

    def _convert_union(self, target: Any, value: Any, path: str) -> Any:
        members = get_args(target)
        if value is None and NoneType in members:
            return None
        errors: list[str] = []
        for member in members:
            if member is NoneType:
                continue
            try:
                return self.convert(member, value, path)
            except DeserializationError as e:
                errors.append(str(e))
        raise DeserializationError(
            f"Value at {path} matched no member of {target}: {'; '.join(errors)}"
        )

    def _convert_tuple(self, args: tuple[Any, ...], value: Any, path: str) -> tuple[Any, ...]:
        items = self._expect(list, value, path)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(
                self.convert(args[0], item, f"{path}[{i}]") for i, item in enumerate(items)
            )
        if args and len(args) != len(items):
            raise DeserializationError(
                f"Expected {len(args)} items at {path}, found {len(items)}"
            )
        if not args:
            return tuple(items)
        return tuple(
            self.convert(typ, item, f"{path}[{i}]")
            for i, (typ, item) in enumerate(zip(args, items))
        )

    def _convert_dataclass(self, target: type, value: Any, path: str) -> Any:
        document = self._expect(dict, value, path)
        key_strategy: KeyDecodingStrategy = self.policy.key_strategy  # type: ignore[assignment]
        by_name = {key_strategy.convert(key): item for key, item in document.items()}
        hints = _type_hints(target)

        kwargs: dict[str, Any] = {}
        for fld in fields(target):
            if not fld.init:
                continue
            json_name = fld.metadata.get(JSON_NAME)
            if json_name is not None:
                present, item = json_name in document, document.get(json_name)
            else:
                present, item = fld.name in by_name, by_name.get(fld.name)
            hint = hints.get(fld.name, Any)
            if present:
                kwargs[fld.name] = self.convert(
                    hint, item, f"{path}.{json_name or fld.name}"
                )
            elif fld.default is not MISSING or fld.default_factory is not MISSING:
                continue
            elif _allows_none(hint):
                kwargs[fld.name] = None
            else:
                raise DeserializationError(
                    f"Missing required key `{json_name or fld.name}` at {path} for "
                    f"{target.__name__}"
                )
        return target(**kwargs)

    def _expect[T](self, typ: type[T], value: Any, path: str) -> T:
        if not isinstance(value, typ):
            raise DeserializationError(
                f"Expected {typ.__name__} at {path}, found: {value!r}"
            )
        return value


class JSONEncoder:
    """Encodes models and plain values into compact UTF-8 JSON."""

    def __init__(self, policy: EncodingPolicy | None = None) -> None:
        self.policy = (policy or EncodingPolicy()).resolved()

    def encode(self, value: Any) -> bytes:
        """Encode ``value`` as JSON.

        :raises SerializationError: If the value, or something nested in it, can't be
            represented as JSON.
        """
        document = self.to_document(value)
        try:
            return json.dumps(document, separators=(",", ":"), allow_nan=False).encode(
                "utf-8"
            )
        except ValueError as e:
            raise SerializationError(f"Unable to encode JSON: {e}") from e

    def to_document(self, value: Any) -> Any:
        """Convert ``value`` into plain JSON-compatible Python values."""
        match value:
            case Enum():
                return self.to_document(value.value)
            case None | bool() | str() | int() | float():
                return value
            case Decimal():
                return int(value) if value == value.to_integral_value() else float(value)
            case datetime():
                return self.policy.date_strategy.serialize(value)  # type: ignore[union-attr]
            case bytes() | bytearray():
                return self.policy.data_strategy.encode(value)  # type: ignore[union-attr]
            case Mapping():
                return {
                    str(self.to_document(key)): self.to_document(item)
                    for key, item in value.items()
                }
            case list() | tuple() | set() | frozenset():
                return [self.to_document(item) for item in value]
            case _ if is_dataclass(value) and not isinstance(value, type):
                return self._dataclass_to_document(value)
            case _:
                raise SerializationError(
                    f"Unable to encode value of type {type(value).__name__}"
                )

    def _dataclass_to_document(self, value: Any) -> dict[str, Any]:
        key_strategy: KeyEncodingStrategy = self.policy.key_strategy  # type: ignore[assignment]
        document: dict[str, Any] = {}
        for fld in fields(value):
            item = getattr(value, fld.name)
            if item is None:
                continue
            name = fld.metadata.get(JSON_NAME) or key_strategy.convert(fld.name)
            document[name] = self.to_document(item)
        return document


@cache
def _type_hints(target: type) -> dict[str, Any]:
    return get_type_hints(target)


def _allows_none(hint: Any) -> bool:
    if hint is Any or hint is NoneType:
        return True
    origin = get_origin(hint)
    return (origin is Union or origin is UnionType) and NoneType in get_args(hint)


def _expect_number(value: Any, path: str = "$") -> float:
    if isinstance(value, bool) or not isinstance(value, int | float | Decimal):
        raise DeserializationError(f"Expected number at {path}, found: {value!r}")
    try:
        result = float(value)
    except OverflowError as e:
        raise DeserializationError(f"Number at {path} is out of range for a float") from e
    if isinf(result) and not isinstance(value, float):
        raise DeserializationError(f"Number at {path} is out of range for a float")
    return result
