#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0
from copy import deepcopy

from .codecs import DecodingPolicy, EncodingPolicy
from .http import URI
from .interfaces import Transport

AUTHORIZATION = "Authorization"


class Session:
    """Configuration shared by every request created from it.

    A session holds no network resources. Requests copy what they need out of the
    session when they're constructed, so editing a session afterwards doesn't affect
    requests that already exist.

    :param base_url: The absolute URL relative request paths are resolved against.
    :raises InvalidURLError: If ``base_url`` isn't an absolute URL.
    """

    def __init__(self, base_url: str | URI) -> None:
        self.base_url: URI = base_url if isinstance(base_url, URI) else URI.parse(base_url)
        self.headers: dict[str, str] = {}
        self.auth_token: str = ""
        self.decoding = DecodingPolicy()
        self.encoding = EncodingPolicy()
        self.transport: Transport | None = None

    @classmethod
    def copy_of(cls, other: "Session") -> "Session":
        """Create an independent copy of ``other``.

        Headers and codec policies are copied, the transport is shared.
        """
        session = cls(other.base_url)
        session.headers = dict(other.headers)
        session.auth_token = other.auth_token
        session.decoding = deepcopy(other.decoding)
        session.encoding = deepcopy(other.encoding)
        session.transport = other.transport
        return session

    @property
    def effective_headers(self) -> dict[str, str]:
        """The default headers with the auth token merged in as ``Authorization``.

        The auth token replaces any ``Authorization`` header regardless of the case
        it was set with.
        """
        if not self.auth_token:
            return dict(self.headers)
        headers = {
            name: value
            for name, value in self.headers.items()
            if name.lower() != AUTHORIZATION.lower()
        }
        headers[AUTHORIZATION] = self.auth_token
        return headers

    def __repr__(self) -> str:
        return (
            f"Session(base_url={str(self.base_url)!r}, headers={self.headers!r}, "
            f"decoding={self.decoding!r}, encoding={self.encoding!r}, "
            f"transport={self.transport!r})"
        )
