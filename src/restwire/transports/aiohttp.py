#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlunsplit

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    import aiohttp
    import yarl

try:
    import aiohttp  # noqa: F811
    import yarl  # noqa: F811

    HAS_AIOHTTP = True
except ImportError:
    HAS_AIOHTTP = False  # type: ignore

from ..exceptions import MissingDependencyError, TransportError
from ..futures import Future, future_from_coroutine
from ..http import URI, HTTPRequest, HTTPResponse, TransportResult, tuples_to_fields
from ..interfaces import HTTPClientConfiguration

_LOGGER = logging.getLogger(__name__)


def _assert_aiohttp() -> None:
    if not HAS_AIOHTTP:
        raise MissingDependencyError(
            "Attempted to use aiohttp component, but aiohttp is not installed."
        )


@dataclass(kw_only=True)
class AIOHTTPClientConfig(HTTPClientConfiguration):
    def __post_init__(self) -> None:
        _assert_aiohttp()
        if self.force_http_2:
            raise TransportError("aiohttp doesn't support HTTP/2.")


class AIOHTTPTransport:
    """Implementation of :py:class:`restwire.interfaces.Transport` using aiohttp.

    Each request opens its own short-lived client session, so the transport can be
    shared between event loops. Pass ``_session`` to send every request through an
    existing session instead.
    """

    def __init__(
        self,
        *,
        client_config: AIOHTTPClientConfig | None = None,
        logger: logging.Logger | None = None,
        _session: "aiohttp.ClientSession | None" = None,
    ) -> None:
        """
        :param client_config: Configuration that applies to all requests made with this
        transport.
        :param logger: The logger used for request tracing.
        """
        _assert_aiohttp()
        self._config = client_config or AIOHTTPClientConfig()
        self._logger = logger or _LOGGER
        self._session = _session

    def load_data(self, request: HTTPRequest) -> Future[TransportResult]:
        """Schedule ``request`` on the running event loop.

        The returned future fails with :py:class:`TransportError` if there is no
        running loop.
        """
        try:
            return future_from_coroutine(self.send(request))
        except RuntimeError as e:
            error = TransportError(f"AIOHTTPTransport requires a running event loop: {e}")
            error.__cause__ = e
            return Future.failed(error)

    async def send(self, request: HTTPRequest) -> TransportResult:
        """Send HTTP request using aiohttp client.

        :param request: The request including destination URI, fields, payload.
        :raises TransportError: If no response could be obtained.
        """
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self._config.read_timeout)
        self._logger.debug("Sending %s %s", request.method, request.destination)
        try:
            if self._session is not None:
                return await self._send(self._session, request, timeout)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, request, timeout)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise TransportError(
                f"Unable to send request to {request.destination}: {e!r}"
            ) from e

    async def _send(
        self,
        session: "aiohttp.ClientSession",
        request: HTTPRequest,
        timeout: "aiohttp.ClientTimeout",
    ) -> TransportResult:
        async with session.request(
            method=request.method,
            url=yarl.URL(self._serialize_uri(request.destination), encoded=True),
            headers=request.fields.as_tuples(),
            data=request.body,
            timeout=timeout,
        ) as resp:
            return await self._marshal_response(resp)

    def _serialize_uri(self, uri: URI) -> str:
        """Serialize the URI without its fragment.

        The result is sent as already encoded, so the path and query reach the wire
        exactly as built.
        """
        components = (uri.scheme, uri.netloc, uri.path or "", uri.query or "", "")
        return urlunsplit(components)

    async def _marshal_response(
        self, aiohttp_resp: "aiohttp.ClientResponse"
    ) -> TransportResult:
        """Convert a ``aiohttp.ClientResponse`` to a ``TransportResult``"""
        response = HTTPResponse(
            status=aiohttp_resp.status,
            fields=tuples_to_fields(aiohttp_resp.headers.items()),
            reason=aiohttp_resp.reason,
        )
        return TransportResult(data=await aiohttp_resp.read(), response=response)

    def __repr__(self) -> str:
        return f"AIOHTTPTransport(client_config={self._config!r})"
