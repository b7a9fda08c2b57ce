#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from functools import cache

from ..interfaces import Transport


@cache
def default_transport() -> Transport:
    """The transport used by requests that aren't given one, shared by all of them."""
    from .aiohttp import AIOHTTPTransport

    return AIOHTTPTransport()
