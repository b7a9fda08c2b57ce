#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
"""Typed requests against JSON HTTP APIs.

Configure a :py:class:`Session`, create a :py:class:`JSONRequest` with the model
types to decode into, and await the future returned by
:py:meth:`JSONRequest.perform`.
"""

from .codecs import (
    DataStrategy,
    DateStrategy,
    DecodingPolicy,
    EncodingPolicy,
    JSONDecoder,
    JSONEncoder,
    KeyDecodingStrategy,
    KeyEncodingStrategy,
)
from .futures import Future, Promise, new_promise
from .http import URI, HTTPMethod, HTTPRequest, HTTPResponse, TransportResult
from .interfaces import Transport
from .request import JSONRequest
from .session import Session

__version__ = "0.1.0"

__all__ = (
    "DataStrategy",
    "DateStrategy",
    "DecodingPolicy",
    "EncodingPolicy",
    "Future",
    "HTTPMethod",
    "HTTPRequest",
    "HTTPResponse",
    "JSONDecoder",
    "JSONEncoder",
    "JSONRequest",
    "KeyDecodingStrategy",
    "KeyEncodingStrategy",
    "Promise",
    "Session",
    "Transport",
    "TransportResult",
    "URI",
    "new_promise",
)
