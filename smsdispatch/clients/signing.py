"""Clock/nonce sources and digest helpers used by vendor signers.

Vendors that sign requests take a `Clock` so tests can freeze time and nonces;
production uses `SystemClock` (wall clock plus a monotonic nonce).
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import itertools
import threading
import time
from datetime import datetime, timezone
from typing import Protocol
from urllib.parse import quote


class Clock(Protocol):
    def now(self) -> datetime: ...

    def nonce(self) -> str: ...


class SystemClock:
    def __init__(self):
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def nonce(self) -> str:
        with self._lock:
            seq = next(self._seq) % 1000
        return f"{time.monotonic_ns()}{seq:03d}"


class FixedClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, now: datetime, nonce: str = "1234567890"):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self._now = now
        self._nonce = nonce

    def now(self) -> datetime:
        return self._now

    def nonce(self) -> str:
        return self._nonce


def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def sha1_hex(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_b64(text: str) -> str:
    return base64.b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode()


def hmac_sha1_b64(key: str, text: str) -> str:
    mac = hmac.new(key.encode("utf-8"), text.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(mac).decode()


def b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode()


def percent_encode(value: str) -> str:
    """RFC 3986 encoding: space -> %20, `*` -> %2A, `~` kept."""
    return quote(value, safe="~")


def unix_seconds(clock: Clock) -> int:
    return int(clock.now().timestamp())


__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
    "md5_hex",
    "sha1_hex",
    "sha256_hex",
    "sha256_b64",
    "hmac_sha1_b64",
    "b64",
    "percent_encode",
    "unix_seconds",
]
