#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass, field


class RestWireError(Exception):
    """Base exception type for all exceptions raised by restwire."""


class PromiseAlreadyResolvedError(RestWireError):
    """Raised when a promise that already reached a terminal state is resolved or
    failed a second time."""


class FuturePendingError(RestWireError):
    """Raised when the result of a future is requested before it is resolved."""


class SerializationError(RestWireError):
    """Base exception type for exceptions raised during serialization."""


class DeserializationError(RestWireError):
    """Base exception type for exceptions raised during deserialization."""


class MissingDependencyError(RestWireError):
    """Exception type raised when a feature that requires a missing dependency is
    called."""


class TransportError(RestWireError):
    """Raised when a transport is unable to obtain a response."""


class RequestError(RestWireError):
    """Base exception type for errors raised by the request pipeline."""


class InvalidURLError(RequestError):
    """Raised when a request target can't be built from the given components."""


class BadResponseError(RequestError):
    """Raised when a transport produced something that isn't an HTTP response."""


class BadParameterError(RequestError):
    """Raised when request parameters can't be encoded."""


@dataclass(kw_only=True)
class StatusCodeResponseError(RequestError):
    """Raised for a non-2xx response whose body decoded as the declared error model."""

    status_code: int
    """The status code of the response."""

    message: str = field(default="", kw_only=False)
    """The textual description of the decoded error model."""

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass(kw_only=True)
class UnableToDecodeErrorResponseError(RequestError):
    """Raised for a non-2xx response whose body didn't decode as the declared error
    model."""

    status_code: int
    """The status code of the response."""

    message: str = field(default="", kw_only=False)

    def __post_init__(self) -> None:
        if not self.message:
            self.message = (
                f"Unable to decode error response with status {self.status_code}"
            )
        super().__init__(self.message)


class MockError(RestWireError):
    """Base exception type for errors raised by mock fixtures."""


class MockFolderNotFoundError(MockError):
    """Raised when a fixture file doesn't live beneath the mock marker folder."""


class MockFileDidNotParseError(MockError):
    """Raised when a fixture file isn't a JSON array of objects."""


class DuplicateMockError(MockError):
    """Raised when two fixtures are registered for the same method and path."""


@dataclass(kw_only=True)
class MockFieldMissingError(MockError):
    """Raised when a fixture record lacks a required field."""

    field_name: str
    """The name of the missing field."""

    source: str = ""
    """The fixture file the record was read from."""

    def __post_init__(self) -> None:
        location = f" in {self.source}" if self.source else ""
        super().__init__(f"Mock fixture is missing `{self.field_name}`{location}")


@dataclass(kw_only=True)
class MockRequestMissingError(MockFieldMissingError):
    field_name: str = "request"


@dataclass(kw_only=True)
class MockResponseMissingError(MockFieldMissingError):
    field_name: str = "response"


@dataclass(kw_only=True)
class MockMethodMissingError(MockFieldMissingError):
    field_name: str = "method"


class LoadFailureError(MockError, TransportError):
    """Raised when no fixture matches a request, or the request can't be matched at
    all."""


class ParamsDidNotParseError(MockError, TransportError):
    """Raised when a fixture's expected request shape isn't a JSON object."""
