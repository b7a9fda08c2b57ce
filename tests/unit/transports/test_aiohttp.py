#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
#  pyright: reportPrivateUsage=false
import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiohttp
import pytest
from aiohttp import test_utils, web

from restwire.exceptions import TransportError
from restwire.http import URI, Field, Fields, HTTPRequest
from restwire.transports.aiohttp import AIOHTTPClientConfig, AIOHTTPTransport


async def echo(request: web.Request) -> web.Response:
    if "sleep" in request.query:
        await asyncio.sleep(float(request.query["sleep"]))
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": request.path,
            "query": sorted(request.query.items()),
            "raw_query": request.query_string,
            "header": request.headers.get("X-Test"),
            "body": body.decode("utf-8"),
        },
        status=int(request.query.get("status", "200")),
        headers={"X-Reply": "yes"},
    )


@asynccontextmanager
async def serve() -> AsyncIterator[URI]:
    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", echo)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield URI(scheme="http", host=server.host, port=server.port)
    finally:
        await server.close()


def create_request(
    base: URI,
    method: str = "GET",
    path: str = "/echo",
    query: str | None = None,
    body: bytes = b"",
) -> HTTPRequest:
    return HTTPRequest(
        method=method,
        destination=URI(
            scheme=base.scheme, host=base.host, port=base.port, path=path, query=query
        ),
        fields=Fields([Field(name="X-Test", values=["value"])]),
        body=body,
    )


@pytest.mark.asyncio
async def test_send_get() -> None:
    async with serve() as base:
        result = await AIOHTTPTransport().send(
            create_request(base, query="a=1&b=two%20words&empty=")
        )

    assert result.response.status == 200
    assert result.response.fields["x-reply"].as_string() == "yes"
    assert result.response.reason == "OK"
    echoed = json.loads(result.data)
    assert echoed["method"] == "GET"
    assert echoed["path"] == "/echo"
    assert echoed["query"] == [["a", "1"], ["b", "two words"], ["empty", ""]]
    assert echoed["header"] == "value"


@pytest.mark.asyncio
async def test_query_is_sent_as_built() -> None:
    async with serve() as base:
        result = await AIOHTTPTransport().send(
            create_request(base, query="flag&b=two%20words&c=%2F")
        )
    assert json.loads(result.data)["raw_query"] == "flag&b=two%20words&c=%2F"


@pytest.mark.asyncio
async def test_send_post_body() -> None:
    async with serve() as base:
        result = await AIOHTTPTransport().send(
            create_request(base, method="POST", body=b'{"a":1}')
        )

    echoed = json.loads(result.data)
    assert echoed["method"] == "POST"
    assert echoed["body"] == '{"a":1}'


@pytest.mark.asyncio
async def test_error_status_is_a_response() -> None:
    async with serve() as base:
        result = await AIOHTTPTransport().send(create_request(base, query="status=404"))
    assert result.response.status == 404


@pytest.mark.asyncio
async def test_load_data_on_running_loop() -> None:
    async with serve() as base:
        result = await AIOHTTPTransport().load_data(create_request(base))
    assert result.response.status == 200


@pytest.mark.asyncio
async def test_injected_session() -> None:
    async with serve() as base, aiohttp.ClientSession() as session:
        transport = AIOHTTPTransport(_session=session)
        result = await transport.send(create_request(base))
        assert not session.closed
    assert result.response.status == 200


@pytest.mark.asyncio
async def test_connection_failure_is_transport_error() -> None:
    async with serve() as base:
        pass
    with pytest.raises(TransportError) as exc_info:
        await AIOHTTPTransport().load_data(create_request(base))
    assert isinstance(exc_info.value.__cause__, aiohttp.ClientError)


@pytest.mark.asyncio
async def test_read_timeout_is_transport_error() -> None:
    config = AIOHTTPClientConfig(read_timeout=0.05)
    async with serve() as base:
        with pytest.raises(TransportError):
            await AIOHTTPTransport(client_config=config).send(
                create_request(base, query="sleep=1")
            )


def test_load_data_without_loop_fails_future() -> None:
    request = create_request(URI(host="example.com"))
    future = AIOHTTPTransport().load_data(request)
    assert isinstance(future.exception(), TransportError)


def test_http_2_is_not_supported() -> None:
    with pytest.raises(TransportError):
        AIOHTTPClientConfig(force_http_2=True)


def test_serialize_uri_drops_fragment() -> None:
    uri = URI(host="example.com", port=8443, path="/a/b", query="x=1", fragment="f")
    assert (
        AIOHTTPTransport()._serialize_uri(uri) == "https://example.com:8443/a/b?x=1"
    )
