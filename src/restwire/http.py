#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from collections import OrderedDict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import NamedTuple
from urllib.parse import urljoin, urlsplit, urlunsplit

from .exceptions import InvalidURLError


class HTTPMethod(StrEnum):
    """The HTTP method to use for a request."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"


@dataclass(kw_only=True, frozen=True)
class URI:
    """Universal Resource Identifier, target location for an :py:class:`HTTPRequest`."""

    scheme: str = "https"
    """For example ``http`` or ``https``."""

    username: str | None = None
    """Username part of the userinfo URI component."""

    password: str | None = None
    """Password part of the userinfo URI component."""

    host: str
    """The hostname, for example ``example.com``."""

    port: int | None = None
    """An explicit port number."""

    path: str | None = None
    """Path component of the URI."""

    query: str | None = None
    """Query component of the URI as string."""

    fragment: str | None = None
    """Part of the URI specification, but not transmitted by a client."""

    def __post_init__(self) -> None:
        if not self.host:
            raise InvalidURLError("A URI requires a host.")

    @classmethod
    def parse(cls, value: str) -> "URI":
        """Parse an absolute URL string.

        :param value: The URL to parse.
        :raises InvalidURLError: If the string isn't an absolute URL with a host, or
            contains whitespace or control characters.
        """
        if any(char.isspace() or ord(char) < 0x20 for char in value):
            raise InvalidURLError(f"URL contains whitespace: {value!r}")
        try:
            parts = urlsplit(value)
            port = parts.port
        except ValueError as e:
            raise InvalidURLError(f"Unable to parse URL: {value!r}") from e
        if not parts.scheme or not parts.hostname:
            raise InvalidURLError(f"URL must be absolute: {value!r}")
        return cls(
            scheme=parts.scheme,
            username=parts.username,
            password=parts.password,
            host=parts.hostname,
            port=port,
            path=parts.path or None,
            query=parts.query or None,
            fragment=parts.fragment or None,
        )

    def join(self, reference: str) -> "URI":
        """Resolve ``reference`` against this URI.

        :raises InvalidURLError: If the result isn't a valid absolute URL.
        """
        try:
            joined = urljoin(self.build(), reference)
        except ValueError as e:
            raise InvalidURLError(f"Unable to resolve {reference!r} against {self}") from e
        return URI.parse(joined)

    @property
    def netloc(self) -> str:
        """Construct netloc string in format ``{username}:{password}@{host}:{port}``

        ``username``, ``password``, and ``port`` are only included if set. ``password``
        is ignored, unless ``username`` is also set. IPv6 hosts are wrapped in square
        brackets.
        """
        if self.username is not None:
            password = "" if self.password is None else f":{self.password}"
            userinfo = f"{self.username}{password}@"
        else:
            userinfo = ""

        host = f"[{self.host}]" if ":" in self.host else self.host
        port = f":{self.port}" if self.port is not None else ""
        return f"{userinfo}{host}{port}"

    def build(self) -> str:
        """Construct URI string representation.

        Returns a string of the form
        ``{scheme}://{username}:{password}@{host}:{port}{path}?{query}#{fragment}``
        """
        components = (
            self.scheme,
            self.netloc,
            self.path or "",
            self.query or "",
            self.fragment or "",
        )
        return urlunsplit(components)

    def __str__(self) -> str:
        return self.build()


class Field:
    """A name-value pair representing a single header in an HTTP Request or Response.

    All field names are case insensitive and case-variance must be treated as
    equivalent. Names are preserved as given for transmission.
    """

    def __init__(self, *, name: str, values: Iterable[str] | None = None):
        self.name = name
        self.values: list[str] = [val for val in values] if values is not None else []

    def add(self, value: str) -> None:
        """Append a value to a field."""
        self.values.append(value)

    def as_string(self) -> str:
        """Get comma-delimited string of all values.

        Values that contain commas or double quotes are quoted, with pre-existing
        double quotes and backslashes escaped.
        """
        if len(self.values) == 1:
            return self.values[0]
        return ", ".join(quote_and_escape_field_value(val) for val in self.values)

    def as_tuples(self) -> list[tuple[str, str]]:
        """Get list of ``name``, ``value`` tuples, one per value."""
        return [(self.name, val) for val in self.values]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return self.name == other.name and self.values == other.values

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r})"


class Fields:
    """Collection of header entries mapped by case-insensitive name."""

    def __init__(self, initial: Iterable[Field] | None = None):
        self.entries: OrderedDict[str, Field] = OrderedDict()
        for fld in initial or ():
            key = self._normalize_field_name(fld.name)
            if key in self.entries:
                raise ValueError(
                    f"Field names of the initial list of fields must be unique: {key}"
                )
            self.entries[key] = fld

    def set_field(self, field: Field) -> None:
        """Set or replace the entry for ``field.name``."""
        self[field.name] = field

    def __setitem__(self, name: str, field: Field) -> None:
        normalized_name = self._normalize_field_name(name)
        if normalized_name != self._normalize_field_name(field.name):
            raise ValueError(
                f"Supplied key {name} does not match Field.name provided: {field.name}"
            )
        self.entries[normalized_name] = field

    def __getitem__(self, name: str) -> Field:
        return self.entries[self._normalize_field_name(name)]

    def as_tuples(self) -> list[tuple[str, str]]:
        return [pair for fld in self for pair in fld.as_tuples()]

    def _normalize_field_name(self, name: str) -> str:
        return name.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return self.entries == other.entries

    def __iter__(self) -> Iterator[Field]:
        yield from self.entries.values()

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return self._normalize_field_name(key) in self.entries

    def __repr__(self) -> str:
        return f"Fields({list(self.entries.values())})"


def quote_and_escape_field_value(value: str) -> str:
    """Escapes and quotes a single :class:`Field` value if necessary."""
    if any(char in (",", '"') for char in value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


def tuples_to_fields(tuples: Iterable[tuple[str, str]]) -> Fields:
    """Convert ``name``, ``value`` tuples to a ``Fields`` object. Repeated names are
    collected into one field."""
    fields = Fields()
    for name, value in tuples:
        try:
            fields[name].add(value)
        except KeyError:
            fields[name] = Field(name=name, values=[value])
    return fields


@dataclass(kw_only=True)
class HTTPRequest:
    """A fully built request, ready to be handed to a transport."""

    destination: URI
    """The URI where the request should be sent to."""

    method: str
    """The HTTP method, for example ``GET``."""

    fields: Fields = field(default_factory=Fields)
    """The request headers."""

    body: bytes = field(repr=False, default=b"")
    """The request payload."""


@dataclass(kw_only=True)
class HTTPResponse:
    """Status metadata of a response produced by a transport."""

    status: int
    """The 3 digit response status code (1xx, 2xx, 3xx, 4xx, 5xx)."""

    fields: Fields = field(default_factory=Fields)
    """The response headers."""

    reason: str | None = None
    """Optional string provided by the server explaining the status."""


class TransportResult(NamedTuple):
    """What a transport produces for a request: the raw body and the response
    metadata."""

    data: bytes
    response: HTTPResponse
