#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import asyncio
import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any
from urllib.parse import quote, urlencode

from .codecs import DecodingPolicy, EncodingPolicy, JSONDecoder, JSONEncoder
from .exceptions import (
    BadParameterError,
    BadResponseError,
    DeserializationError,
    InvalidURLError,
    SerializationError,
    StatusCodeResponseError,
    UnableToDecodeErrorResponseError,
)
from .futures import Future, Promise, new_promise
from .http import URI, Field, Fields, HTTPMethod, HTTPRequest, TransportResult
from .interfaces import Transport
from .session import Session
from .transports import default_transport

_LOGGER = logging.getLogger(__name__)

_QUERY_METHODS = (HTTPMethod.GET, HTTPMethod.HEAD)


class JSONRequest[M, E]:
    """A reusable request against a JSON API.

    Responses with a 2xx status are decoded as ``model``. Any other status is decoded
    as ``error_model`` and reported as a
    :py:class:`restwire.exceptions.StatusCodeResponseError`.

    Every :py:meth:`perform` is an independent call. The request only holds
    configuration that was fixed when it was constructed.

    :param method: The default HTTP method, for example ``GET``.
    :param url: The absolute address of the endpoint.
    :param model: The type successful responses are decoded into.
    :param error_model: The type error responses are decoded into.
    :param transport: The transport used to send requests. Defaults to the platform
        transport.
    :param headers: Headers sent with every request.
    :param decoding: Decoding strategies for this request.
    :param encoding: Encoding strategies for this request.
    :param logger: The logger used for request tracing.
    :raises InvalidURLError: If ``url`` isn't an absolute URL.
    """

    def __init__(
        self,
        method: HTTPMethod | str,
        url: str | URI,
        *,
        model: type[M],
        error_model: type[E],
        transport: Transport | None = None,
        headers: Mapping[str, str] | None = None,
        decoding: DecodingPolicy | None = None,
        encoding: EncodingPolicy | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.method = str(method)
        self.url: URI = url if isinstance(url, URI) else URI.parse(url)
        self.model = model
        self.error_model = error_model
        self.transport: Transport = (
            transport if transport is not None else default_transport()
        )
        self.headers: dict[str, str] = dict(headers or {})
        self.decoding = DecodingPolicy().merged(decoding).resolved()
        self.encoding = EncodingPolicy().merged(encoding).resolved()
        self._decoder = JSONDecoder(self.decoding)
        self._encoder = JSONEncoder(self.encoding)
        self._logger = logger or _LOGGER

    @classmethod
    def from_session(
        cls,
        method: HTTPMethod | str,
        path: str,
        session: Session,
        *,
        model: type[M],
        error_model: type[E],
        transport: Transport | None = None,
        headers: Mapping[str, str] | None = None,
        decoding: DecodingPolicy | None = None,
        encoding: EncodingPolicy | None = None,
        logger: logging.Logger | None = None,
    ) -> "JSONRequest[M, E]":
        """Create a request for ``path`` relative to the session's base URL.

        The request adopts the session's headers, codec policies and transport.
        Anything passed explicitly takes precedence over the session.

        :raises InvalidURLError: If ``path`` can't be resolved against the base URL.
        """
        return cls.from_session_url(
            method,
            session.base_url.join(path),
            session,
            model=model,
            error_model=error_model,
            transport=transport,
            headers=headers,
            decoding=decoding,
            encoding=encoding,
            logger=logger,
        )

    @classmethod
    def from_session_url(
        cls,
        method: HTTPMethod | str,
        url: URI,
        session: Session,
        *,
        model: type[M],
        error_model: type[E],
        transport: Transport | None = None,
        headers: Mapping[str, str] | None = None,
        decoding: DecodingPolicy | None = None,
        encoding: EncodingPolicy | None = None,
        logger: logging.Logger | None = None,
    ) -> "JSONRequest[M, E]":
        """Create a request for an already resolved ``url`` using the session's
        headers, codec policies and transport."""
        return cls(
            method,
            url,
            model=model,
            error_model=error_model,
            transport=transport if transport is not None else session.transport,
            headers=_merge_headers(session.effective_headers, headers or {}),
            decoding=session.decoding.merged(decoding),
            encoding=session.encoding.merged(encoding),
            logger=logger,
        )

    def perform(
        self,
        method: HTTPMethod | str | None = None,
        command: str = "",
        *,
        url: str | URI | None = None,
        parameters: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> Future[M]:
        """Send the request and return a future for the decoded response.

        :param method: Overrides the request's method for this call.
        :param command: A sub path appended to the request's path.
        :param url: An absolute URL used instead of the request's own. ``command``
            and ``parameters`` are ignored when it's given.
        :param parameters: Query items for ``GET`` and ``HEAD``, otherwise encoded
            as the JSON body.
        :param body: The request body. Bytes are sent as is, anything else is
            encoded as JSON. Takes precedence over ``parameters``.
        :raises InvalidURLError: If the target URL can't be built.
        :raises BadParameterError: If the body or parameters can't be encoded.
        """
        request = self.build_request(
            method, command, url=url, parameters=parameters, body=body
        )
        return self.perform_request(request)

    def build_request(
        self,
        method: HTTPMethod | str | None = None,
        command: str = "",
        *,
        url: str | URI | None = None,
        parameters: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> HTTPRequest:
        """Build the wire request :py:meth:`perform` would send."""
        method = str(method or self.method)

        if url is not None:
            destination = url if isinstance(url, URI) else URI.parse(url)
            payload = self._encode_body(body) if body is not None else b""
        else:
            destination = self._append_command(command)
            if method in _QUERY_METHODS:
                if parameters:
                    destination = replace(
                        destination, query=_add_query(destination.query, parameters)
                    )
                payload = self._encode_body(body) if body is not None else b""
            elif body is not None:
                payload = self._encode_body(body)
            else:
                payload = self._encode_body(dict(parameters or {}))

        fields = Fields(
            [
                Field(name="Content-Type", values=["application/json"]),
                Field(name="Accept", values=["*/*"]),
            ]
        )
        for name, value in self.headers.items():
            fields.set_field(Field(name=name, values=[value]))

        return HTTPRequest(
            destination=destination, method=method, fields=fields, body=payload
        )

    def perform_request(self, request: HTTPRequest) -> Future[M]:
        """Send an already built request and return a future for the decoded
        response."""
        self._logger.debug("Sending request %s", request)
        future, promise = new_promise()
        try:
            pending = self.transport.load_data(request)
        except Exception as e:
            promise.fail(e)
            return future

        pending.add_done_callback(lambda done: self._complete(done, promise))
        return future

    def _complete(self, done: Future[TransportResult], promise: Promise[M]) -> None:
        try:
            value = self._handle_result(done.result())
        except (Exception, asyncio.CancelledError) as e:
            promise.fail(e)
        else:
            promise.resolve(value)

    def _handle_result(self, result: Any) -> M:
        status = getattr(getattr(result, "response", None), "status", None)
        data = getattr(result, "data", None)
        if isinstance(status, bool) or not isinstance(status, int):
            raise BadResponseError(f"Transport produced a non-HTTP response: {result!r}")
        if not isinstance(data, bytes | bytearray):
            raise BadResponseError(f"Transport produced a non-bytes body: {data!r}")

        payload = bytes(data) or b"{}"
        if 200 <= status <= 299:
            self._logger.debug("Received response: %r", bytes(data))
            return self._decoder.decode(self.model, payload)

        try:
            error = self._decoder.decode(self.error_model, payload)
        except DeserializationError as e:
            raise UnableToDecodeErrorResponseError(status_code=status) from e
        message = str(error)
        self._logger.debug("Received error response %s: %s", status, message)
        raise StatusCodeResponseError(message, status_code=status)

    def _append_command(self, command: str) -> URI:
        if not command:
            return self.url
        path = (self.url.path or "") + quote(command, safe="/")
        if not path.startswith("/"):
            raise InvalidURLError(
                f"Appending {command!r} to {self.url} doesn't produce an absolute path"
            )
        return replace(self.url, path=path)

    def _encode_body(self, body: Any) -> bytes:
        if isinstance(body, bytes | bytearray):
            return bytes(body)
        try:
            return self._encoder.encode(body)
        except SerializationError as e:
            raise BadParameterError(f"Unable to encode request body: {e}") from e

    def __repr__(self) -> str:
        return (
            f"JSONRequest(method={self.method!r}, url={str(self.url)!r}, "
            f"model={self.model!r}, error_model={self.error_model!r})"
        )


def _merge_headers(
    base: Mapping[str, str], overrides: Mapping[str, str]
) -> dict[str, str]:
    overridden = {name.lower() for name in overrides}
    merged = {
        name: value for name, value in base.items() if name.lower() not in overridden
    }
    merged.update(overrides)
    return merged


def _add_query(query: str | None, parameters: Mapping[str, Any]) -> str:
    encoded = urlencode(parameters)
    return f"{query}&{encoded}" if query else encoded
