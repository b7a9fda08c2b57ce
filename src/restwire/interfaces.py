#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .futures import Future
    from .http import HTTPRequest, TransportResult


@runtime_checkable
class Transport(Protocol):
    """Sends a request and asynchronously produces the response.

    This is the only extension point between the request pipeline and the network.
    Production HTTP clients and the mock transport both implement it.
    """

    def load_data(self, request: "HTTPRequest") -> "Future[TransportResult]":
        """Send ``request`` and return a future for the raw body and response.

        The future fails with :py:class:`restwire.exceptions.TransportError` when no
        response can be obtained.

        :param request: The request including destination URI, fields, payload.
        """
        ...


@dataclass(kw_only=True)
class HTTPClientConfiguration:
    """Configuration that applies to all requests sent by an HTTP transport.

    :param read_timeout: How long, in seconds, to wait for a response before giving
        up. ``None`` waits indefinitely.
    :param force_http_2: Whether to require HTTP/2.
    """

    read_timeout: float | None = None
    force_http_2: bool = False
