#  Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
#  SPDX-License-Identifier: Apache-2.0

"""Fixture-backed transport for exercising requests without a network."""

from .mockserver import MockFixture, MockKey, MockRegistry
from .mocktransport import MockTransport

__all__ = (
    "MockFixture",
    "MockKey",
    "MockRegistry",
    "MockTransport",
)
