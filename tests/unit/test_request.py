#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from unittest.mock import Mock

import pytest

from restwire.codecs import (
    DateStrategy,
    DecodingPolicy,
    EncodingPolicy,
    KeyDecodingStrategy,
    KeyEncodingStrategy,
)
from restwire.exceptions import (
    BadParameterError,
    BadResponseError,
    DeserializationError,
    InvalidURLError,
    StatusCodeResponseError,
    TransportError,
    UnableToDecodeErrorResponseError,
)
from restwire.futures import Future, new_promise
from restwire.http import URI, HTTPRequest, HTTPResponse, TransportResult
from restwire.request import JSONRequest
from restwire.session import Session
from restwire.transports import default_transport


@dataclass
class Model:
    value: int


@dataclass
class Partial:
    value: int | None = None


@dataclass
class ErrorBody:
    message: str

    def __str__(self) -> str:
        return self.message


def stub_transport(status: Any = 200, data: bytes = b'{"value": 10}') -> Mock:
    transport = Mock()
    transport.load_data.side_effect = lambda request: Future.resolved(
        TransportResult(data=data, response=HTTPResponse(status=status))
    )
    return transport


def sent_request(transport: Mock) -> HTTPRequest:
    return transport.load_data.call_args.args[0]


def make_request(
    method: str = "GET",
    url: str = "https://api.example.com/test",
    transport: Mock | None = None,
    **kwargs: Any,
) -> JSONRequest[Model, ErrorBody]:
    return JSONRequest(
        method,
        url,
        model=Model,
        error_model=ErrorBody,
        transport=transport or stub_transport(),
        **kwargs,
    )


def test_invalid_url_raises() -> None:
    with pytest.raises(InvalidURLError):
        make_request(url="/not/absolute")


def test_default_transport_is_used() -> None:
    request = JSONRequest(
        "GET", "https://api.example.com", model=Model, error_model=ErrorBody
    )
    assert request.transport is default_transport()


def test_get_parameters_become_query() -> None:
    transport = stub_transport()
    request = make_request(transport=transport)
    request.perform(parameters={"param1": "value1", "param2": "value 2"})
    sent = sent_request(transport)
    assert sent.method == "GET"
    assert sent.destination.path == "/test"
    assert sent.destination.query == "param1=value1&param2=value+2"
    assert sent.body == b""


def test_get_parameters_extend_existing_query() -> None:
    request = make_request(url="https://api.example.com/test?a=1")
    built = request.build_request(parameters={"b": "2"})
    assert built.destination.query == "a=1&b=2"


def test_post_parameters_become_body() -> None:
    transport = stub_transport()
    request = make_request("POST", transport=transport)
    request.perform(parameters={"param1": "value1", "param2": "value2"})
    sent = sent_request(transport)
    assert sent.destination.query is None
    assert sent.body == b'{"param1":"value1","param2":"value2"}'


def test_post_without_parameters_sends_empty_object() -> None:
    built = make_request("POST").build_request()
    assert built.body == b"{}"


def test_explicit_body_wins_over_parameters() -> None:
    request = make_request("PUT")
    assert request.build_request(parameters={"a": "1"}, body=b"raw").body == b"raw"
    assert request.build_request(body={"b": [1, 2]}).body == b'{"b":[1,2]}'


def test_body_is_encoded_with_encoding_policy() -> None:
    request = make_request(
        "POST",
        encoding=EncodingPolicy(
            key_strategy=KeyEncodingStrategy.CONVERT_TO_CAMEL_CASE,
            date_strategy=DateStrategy.EPOCH_SECONDS,
        ),
    )

    @dataclass
    class Payload:
        created_at: datetime

    body = Payload(created_at=datetime(1970, 1, 1, 0, 1, tzinfo=timezone.utc))
    assert request.build_request(body=body).body == b'{"createdAt":60}'


def test_unencodable_body_raises() -> None:
    with pytest.raises(BadParameterError):
        make_request("POST").perform(body=object())


def test_method_override() -> None:
    built = make_request("GET").build_request("DELETE", parameters={"a": "1"})
    assert built.method == "DELETE"
    assert built.body == b'{"a":"1"}'


@pytest.mark.parametrize(
    "url,command,expected",
    [
        ("https://api.example.com/", "commands/command1", "/commands/command1"),
        ("https://api.example.com/test", "/sub", "/test/sub"),
        ("https://api.example.com/test", "", "/test"),
        ("https://api.example.com/", "a b", "/a%20b"),
    ],
)
def test_command_is_appended_to_path(url: str, command: str, expected: str) -> None:
    built = make_request(url=url).build_request(command=command)
    assert built.destination.path == expected


def test_command_without_absolute_path_raises() -> None:
    request = make_request(url="https://api.example.com")
    with pytest.raises(InvalidURLError):
        request.perform(command="relative")


def test_explicit_url_is_used_verbatim() -> None:
    transport = stub_transport()
    request = make_request("POST", transport=transport)
    request.perform(
        command="ignored",
        url="https://other.example.com/x?y=1",
        parameters={"ignored": "yes"},
    )
    sent = sent_request(transport)
    assert sent.destination == URI.parse("https://other.example.com/x?y=1")
    assert sent.method == "POST"
    assert sent.body == b""
    assert sent.fields["Content-Type"].as_string() == "application/json"


def test_invalid_explicit_url_raises() -> None:
    transport = stub_transport()
    with pytest.raises(InvalidURLError):
        make_request(transport=transport).perform(url="no scheme")
    transport.load_data.assert_not_called()


def test_standard_headers_and_overrides() -> None:
    request = make_request(headers={"accept": "application/json", "X-Trace": "1"})
    fields = request.build_request().fields
    assert fields.as_tuples() == [
        ("Content-Type", "application/json"),
        ("accept", "application/json"),
        ("X-Trace", "1"),
    ]


def test_success_is_decoded() -> None:
    future = make_request().perform()
    assert future.result() == Model(value=10)


@pytest.mark.asyncio
async def test_success_can_be_awaited() -> None:
    assert await make_request().perform() == Model(value=10)


@pytest.mark.parametrize("status", [200, 201, 204, 299])
def test_2xx_is_success(status: int) -> None:
    request = make_request(transport=stub_transport(status=status))
    assert request.perform().result() == Model(value=10)


@pytest.mark.parametrize("status", [100, 199, 300, 302, 404, 500])
def test_other_statuses_are_errors(status: int) -> None:
    transport = stub_transport(status=status, data=b'{"message": "nope"}')
    future = make_request(transport=transport).perform()
    with pytest.raises(StatusCodeResponseError) as exc_info:
        future.result()
    assert exc_info.value == StatusCodeResponseError("nope", status_code=status)
    assert str(exc_info.value) == "nope"


def test_empty_success_body_is_empty_object() -> None:
    request = JSONRequest(
        "GET",
        "https://api.example.com",
        model=Partial,
        error_model=ErrorBody,
        transport=stub_transport(data=b""),
    )
    assert request.perform().result() == Partial()


def test_empty_success_body_with_required_fields_fails() -> None:
    future = make_request(transport=stub_transport(data=b"")).perform()
    assert isinstance(future.exception(), DeserializationError)


def test_success_decode_failure_is_propagated() -> None:
    future = make_request(transport=stub_transport(data=b'{"value": "x"}')).perform()
    assert isinstance(future.exception(), DeserializationError)


def test_undecodable_error_response() -> None:
    future = make_request(transport=stub_transport(status=500, data=b"<html>")).perform()
    error = future.exception()
    assert isinstance(error, UnableToDecodeErrorResponseError)
    assert error.status_code == 500
    assert isinstance(error.__cause__, DeserializationError)


@dataclass
class Measurement:
    value: float


@dataclass
class MeasuredError:
    message: float


def test_out_of_range_number_in_error_response() -> None:
    transport = stub_transport(status=500, data=b'{"message": 1' + b"9" * 400 + b"}")
    request = JSONRequest(
        "GET",
        "https://api.example.com/test",
        model=Measurement,
        error_model=MeasuredError,
        transport=transport,
    )
    error = request.perform().exception()
    assert isinstance(error, UnableToDecodeErrorResponseError)
    assert error.status_code == 500


def test_out_of_range_number_in_success_response() -> None:
    transport = stub_transport(data=b'{"value": 1' + b"9" * 400 + b"}")
    request = JSONRequest(
        "GET",
        "https://api.example.com/test",
        model=Measurement,
        error_model=ErrorBody,
        transport=transport,
    )
    assert isinstance(request.perform().exception(), DeserializationError)


@pytest.mark.parametrize("status", [None, "200", True])
def test_non_integer_status_is_bad_response(status: Any) -> None:
    future = make_request(transport=stub_transport(status=status)).perform()
    assert isinstance(future.exception(), BadResponseError)


def test_non_http_result_is_bad_response() -> None:
    transport = Mock()
    transport.load_data.return_value = Future.resolved(b"just bytes")
    future = make_request(transport=transport).perform()
    assert isinstance(future.exception(), BadResponseError)


def test_transport_failure_is_delivered_through_future() -> None:
    transport = Mock()
    transport.load_data.return_value = Future.failed(TransportError("offline"))
    future = make_request(transport=transport).perform()
    assert isinstance(future.exception(), TransportError)


def test_transport_raising_is_delivered_through_future() -> None:
    transport = Mock()
    transport.load_data.side_effect = TransportError("bad target")
    future = make_request(transport=transport).perform()
    assert isinstance(future.exception(), TransportError)


@pytest.mark.asyncio
async def test_pending_transport_result() -> None:
    pending, promise = new_promise()
    transport = Mock()
    transport.load_data.return_value = pending
    future = make_request(transport=transport).perform()
    assert not future.done()

    asyncio.get_running_loop().call_soon(
        promise.resolve,
        TransportResult(data=b'{"value": 3}', response=HTTPResponse(status=200)),
    )
    assert await future == Model(value=3)


def test_request_is_reusable() -> None:
    transport = stub_transport()
    request = make_request(transport=transport)
    first = request.perform(command="/a")
    second = request.perform(command="/b", parameters={"x": "1"})
    assert first.result() == second.result() == Model(value=10)
    paths = [call.args[0].destination.path for call in transport.load_data.call_args_list]
    assert paths == ["/test/a", "/test/b"]


def test_decoding_policy_applies() -> None:
    @dataclass
    class Camel:
        user_name: str

    request = JSONRequest(
        "GET",
        "https://api.example.com",
        model=Camel,
        error_model=ErrorBody,
        transport=stub_transport(data=b'{"userName": "ana"}'),
        decoding=DecodingPolicy(key_strategy=KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE),
    )
    assert request.perform().result() == Camel(user_name="ana")


def test_logs_request_and_response(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("restwire.tests")
    with caplog.at_level(logging.DEBUG, logger="restwire.tests"):
        make_request(logger=logger).perform().result()
    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("Sending request") for message in messages)
    assert any("value" in message for message in messages)


class TestFromSession:
    def session(self) -> Session:
        session = Session("https://api.example.com/v1/")
        session.headers = {"X-Default": "session", "X-Shared": "session"}
        session.auth_token = "Bearer abc"
        session.transport = stub_transport()
        return session

    def test_relative_path_is_resolved(self) -> None:
        session = self.session()
        request = JSONRequest.from_session(
            "GET", "users", session, model=Model, error_model=ErrorBody
        )
        assert request.url == URI.parse("https://api.example.com/v1/users")
        assert request.transport is session.transport

    def test_unresolvable_path_raises(self) -> None:
        with pytest.raises(InvalidURLError):
            JSONRequest.from_session(
                "GET", "http://[::1", self.session(), model=Model, error_model=ErrorBody
            )

    def test_resolved_url(self) -> None:
        url = URI.parse("https://elsewhere.example.com/x")
        request = JSONRequest.from_session_url(
            "GET", url, self.session(), model=Model, error_model=ErrorBody
        )
        assert request.url is url

    def test_headers_are_layered(self) -> None:
        request = JSONRequest.from_session(
            "GET",
            "users",
            self.session(),
            model=Model,
            error_model=ErrorBody,
            headers={"x-shared": "request"},
        )
        assert request.headers == {
            "X-Default": "session",
            "Authorization": "Bearer abc",
            "x-shared": "request",
        }
        sent = request.build_request().fields
        assert sent["Authorization"].as_string() == "Bearer abc"
        assert sent["X-Shared"].as_string() == "request"

    def test_explicit_transport_wins(self) -> None:
        transport = stub_transport()
        request = JSONRequest.from_session(
            "GET",
            "users",
            self.session(),
            model=Model,
            error_model=ErrorBody,
            transport=transport,
        )
        assert request.transport is transport

    def test_session_without_transport_uses_default(self) -> None:
        session = Session("https://api.example.com")
        request = JSONRequest.from_session(
            "GET", "/", session, model=Model, error_model=ErrorBody
        )
        assert request.transport is default_transport()

    def test_codec_policies_are_layered(self) -> None:
        session = self.session()
        session.decoding.key_strategy = KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE
        session.decoding.date_strategy = DateStrategy.HTTP_DATE
        request = JSONRequest.from_session(
            "GET",
            "users",
            session,
            model=Model,
            error_model=ErrorBody,
            decoding=DecodingPolicy(date_strategy=DateStrategy.EPOCH_SECONDS),
        )
        assert request.decoding.key_strategy is KeyDecodingStrategy.CONVERT_FROM_CAMEL_CASE
        assert request.decoding.date_strategy is DateStrategy.EPOCH_SECONDS
        assert request.encoding == EncodingPolicy().resolved()

    def test_later_session_edits_do_not_affect_request(self) -> None:
        session = self.session()
        request = JSONRequest.from_session(
            "GET", "users", session, model=Model, error_model=ErrorBody
        )
        session.headers["X-Late"] = "1"
        session.decoding.date_strategy = DateStrategy.HTTP_DATE
        assert "X-Late" not in request.headers
        assert request.decoding.date_strategy is DateStrategy.DATE_TIME
