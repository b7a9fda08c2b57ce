#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
#  pyright: reportMissingTypeStubs=false,reportUnknownMemberType=false
#  flake8: noqa: F811
import logging
from concurrent.futures import Future as ConcurrentFuture
from dataclasses import dataclass
from io import BytesIO
from threading import Lock
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    # pyright doesn't like optional imports. This is reasonable because if we use these
    # in type hints then they'd result in runtime errors.
    from awscrt import http as crt_http
    from awscrt import io as crt_io

try:
    from awscrt import http as crt_http  # noqa: F811
    from awscrt import io as crt_io  # noqa: F811
    from awscrt.exceptions import AwsCrtError

    HAS_CRT = True
except ImportError:
    HAS_CRT = False  # type: ignore

from ..exceptions import MissingDependencyError, TransportError
from ..futures import Future, Promise, new_promise
from ..http import URI, HTTPRequest, HTTPResponse, TransportResult, tuples_to_fields
from ..interfaces import HTTPClientConfiguration

_LOGGER = logging.getLogger(__name__)


def _assert_crt() -> None:
    if not HAS_CRT:
        raise MissingDependencyError(
            "Attempted to use awscrt component, but awscrt is not installed."
        )


class _AWSCRTEventLoop:
    def __init__(self) -> None:
        _assert_crt()
        self.bootstrap = self._initialize_default_loop()

    def _initialize_default_loop(self) -> "crt_io.ClientBootstrap":
        event_loop_group = crt_io.EventLoopGroup(1)
        host_resolver = crt_io.DefaultHostResolver(event_loop_group)
        return crt_io.ClientBootstrap(event_loop_group, host_resolver)


@dataclass(kw_only=True)
class AWSCRTClientConfig(HTTPClientConfiguration):
    def __post_init__(self) -> None:
        _assert_crt()


class AWSCRTTransport:
    """Implementation of :py:class:`restwire.interfaces.Transport` using awscrt.

    Everything happens in CRT callbacks: the connection, the response headers, the
    body chunks and the stream completion. The returned future is resolved from the
    CRT event loop thread. Each request uses its own connection, which is closed once
    the response is complete.
    """

    _HTTP_PORT = 80
    _HTTPS_PORT = 443

    def __init__(
        self,
        eventloop: _AWSCRTEventLoop | None = None,
        client_config: AWSCRTClientConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        """
        :param client_config: Configuration that applies to all requests made with this
        transport.
        :param logger: The logger used for request tracing.
        """
        _assert_crt()
        self._config = AWSCRTClientConfig() if client_config is None else client_config
        if eventloop is None:
            eventloop = _AWSCRTEventLoop()
        self._eventloop = eventloop
        self._client_bootstrap = self._eventloop.bootstrap
        self._tls_ctx = crt_io.ClientTlsContext(crt_io.TlsContextOptions())
        self._socket_options = crt_io.SocketOptions()
        if self._config.read_timeout is not None:
            self._socket_options.connect_timeout_ms = int(
                self._config.read_timeout * 1000
            )
        self._logger = logger or _LOGGER

    def load_data(self, request: HTTPRequest) -> Future[TransportResult]:
        """Send ``request`` and return a future resolved by the CRT callbacks."""
        future, promise = new_promise()
        try:
            connect_future = self._build_new_connection(request.destination)
        except (TransportError, AwsCrtError) as e:
            _fail(promise, e)
            return future

        self._logger.debug("Sending %s %s", request.method, request.destination)
        exchange = _CRTExchange(self, request, promise)
        connect_future.add_done_callback(exchange.on_connected)
        return future

    def _build_new_connection(
        self, url: URI
    ) -> ConcurrentFuture["crt_http.HttpClientConnection"]:
        if url.scheme == "http":
            port = self._HTTP_PORT
            tls_connection_options = None
        elif url.scheme == "https":
            port = self._HTTPS_PORT
            tls_connection_options = self._tls_ctx.new_connection_options()
            tls_connection_options.set_server_name(url.host)
            tls_connection_options.set_alpn_list(["h2", "http/1.1"])
        else:
            raise TransportError(
                f"AWSCRTTransport does not support URL scheme {url.scheme}"
            )
        if url.port is not None:
            port = url.port

        connect_future: ConcurrentFuture[crt_http.HttpClientConnection] = (
            crt_http.HttpClientConnection.new(
                bootstrap=self._client_bootstrap,
                host_name=url.host,
                port=port,
                socket_options=self._socket_options,
                tls_connection_options=tls_connection_options,
            )
        )
        return connect_future

    def _validate_connection(self, connection: "crt_http.HttpClientConnection") -> None:
        """Validates a new connection against the client config.

        Checks performed:
        * If ``force_http_2`` is enabled: Is the connection HTTP/2?
        """
        force_http_2 = self._config.force_http_2
        if force_http_2 and connection.version is not crt_http.HttpVersion.Http2:
            connection.close()
            negotiated = crt_http.HttpVersion(connection.version).name
            raise TransportError(f"HTTP/2 could not be negotiated: {negotiated}")

    def _render_path(self, url: URI) -> str:
        path = url.path if url.path is not None else "/"
        query = f"?{url.query}" if url.query is not None else ""
        return f"{path}{query}"

    def _marshal_request(self, request: HTTPRequest) -> "crt_http.HttpRequest":
        """Create :py:class:`awscrt.http.HttpRequest` from
        :py:class:`restwire.http.HTTPRequest`"""
        headers_list = request.fields.as_tuples()
        if "host" not in request.fields:
            destination = request.destination
            host = destination.host
            if ":" in host:
                host = f"[{host}]"
            port = f":{destination.port}" if destination.port is not None else ""
            headers_list.insert(0, ("host", f"{host}{port}"))
        if request.body and "content-length" not in request.fields:
            headers_list.append(("content-length", str(len(request.body))))

        return crt_http.HttpRequest(
            method=request.method,
            path=self._render_path(request.destination),
            headers=crt_http.HttpHeaders(headers_list),
            body_stream=BytesIO(request.body),
        )

    def __repr__(self) -> str:
        return f"AWSCRTTransport(client_config={self._config!r})"


class _CRTExchange:
    """Accumulates one CRT response and settles its promise when the stream
    completes."""

    def __init__(
        self,
        transport: AWSCRTTransport,
        request: HTTPRequest,
        promise: Promise[TransportResult],
    ) -> None:
        self._transport = transport
        self._request = request
        self._promise = promise
        self._connection: "crt_http.HttpClientConnection | None" = None
        self._response: HTTPResponse | None = None
        self._chunks: list[bytes] = []
        self._lock = Lock()

    def on_connected(
        self, connect_future: ConcurrentFuture["crt_http.HttpClientConnection"]
    ) -> None:  # pragma: crt-callback
        try:
            connection = connect_future.result()
            self._connection = connection
            self._transport._validate_connection(connection)  # pyright: ignore[reportPrivateUsage]
            stream = connection.request(
                self._transport._marshal_request(self._request),  # pyright: ignore[reportPrivateUsage]
                self._on_response,
                self._on_body,
            )
            stream.completion_future.add_done_callback(self._on_complete)
            stream.activate()
        except Exception as e:
            self._finish(error=e)

    def _on_response(
        self, status_code: int, headers: list[tuple[str, str]], **kwargs: Any
    ) -> None:  # pragma: crt-callback
        self._response = HTTPResponse(
            status=status_code, fields=tuples_to_fields(headers)
        )

    def _on_body(self, chunk: bytes, **kwargs: Any) -> None:  # pragma: crt-callback
        with self._lock:
            self._chunks.append(chunk)

    def _on_complete(
        self, completion_future: ConcurrentFuture[int]
    ) -> None:  # pragma: crt-callback
        try:
            status = completion_future.result()
        except Exception as e:
            self._finish(error=e)
            return

        response = self._response or HTTPResponse(status=status)
        with self._lock:
            data = b"".join(self._chunks)
        self._finish(result=TransportResult(data=data, response=response))

    def _finish(
        self,
        *,
        result: TransportResult | None = None,
        error: Exception | None = None,
    ) -> None:
        if self._connection is not None:
            self._connection.close()
        if error is not None:
            _fail(self._promise, error)
        elif result is not None:
            self._promise.resolve(result)


def _fail(promise: Promise[TransportResult], error: Exception) -> None:
    if isinstance(error, TransportError):
        promise.fail(error)
        return
    wrapped = TransportError(f"Unable to complete CRT request: {error!r}")
    wrapped.__cause__ = error
    promise.fail(wrapped)
