"""Shared fixtures: frozen clock, account factory and provider builder.

The whole suite runs offline; HTTP traffic is mocked with respx or an
`httpx.MockTransport`.
"""
from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest

from smsdispatch.accounts import Account
from smsdispatch.clients.signing import FixedClock

FROZEN_NOW = datetime(2024, 3, 1, 8, 30, 0, tzinfo=timezone.utc)
FROZEN_NONCE = "1709281800123"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(FROZEN_NOW, FROZEN_NONCE)


@pytest.fixture
def make_account():
    def _make(name: str = "primary", sub_type: str = "", **kw) -> Account:
        kw.setdefault("api_key", "ak")
        kw.setdefault("api_secret", "sk")
        return Account(name=name, sub_type=sub_type, **kw)
    return _make


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)
