"""Error taxonomy shared by transformers, the dispatcher and the provider.

Every error is tagged with the vendor (sub-provider) it originated from so a
caller can log or branch on it without parsing strings. Inspect `kind` (or use
`isinstance`) to build a retry policy; the library itself never retries.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_MESSAGE = "invalid_message"
    UNSUPPORTED_SUBPROVIDER = "unsupported_subprovider"
    UNSUPPORTED_MESSAGE_TYPE = "unsupported_message_type"
    UNSUPPORTED_CATEGORY = "unsupported_category"
    UNSUPPORTED_INTERNATIONAL = "unsupported_international"
    AUTH = "auth_error"
    TRANSPORT = "transport_error"
    PROVIDER = "provider_error"
    CANCELLED = "cancelled"
    NO_AVAILABLE_ACCOUNT = "no_available_account"
    CONFIG = "invalid_config"


class SMSError(Exception):
    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        code: str | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.code = code if code is not None else self.kind.value
        self.retryable = retryable

    def __str__(self) -> str:
        tag = self.provider or "sms"
        if self.code and self.code != self.kind.value:
            return f"[{tag}] {self.kind.value} ({self.code}): {self.message}"
        return f"[{tag}] {self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(provider={self.provider!r}, code={self.code!r}, message={self.message!r})"


class InvalidMessageError(SMSError):
    kind = ErrorKind.INVALID_MESSAGE


class UnsupportedSubProviderError(SMSError):
    kind = ErrorKind.UNSUPPORTED_SUBPROVIDER


class UnsupportedMessageTypeError(SMSError):
    kind = ErrorKind.UNSUPPORTED_MESSAGE_TYPE


class UnsupportedCategoryError(SMSError):
    kind = ErrorKind.UNSUPPORTED_CATEGORY


class UnsupportedInternationalError(SMSError):
    kind = ErrorKind.UNSUPPORTED_INTERNATIONAL


class AuthError(SMSError):
    kind = ErrorKind.AUTH


class TransportError(SMSError):
    """I/O failure, timeout or an HTTP status outside 2xx."""

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        code: str | None = None,
        retryable: bool = False,
        status_code: int | None = None,
        body: bytes = b"",
    ):
        super().__init__(message, provider=provider, code=code, retryable=retryable)
        self.status_code = status_code
        self.body = body


class ProviderError(SMSError):
    """The vendor answered 2xx but reported a business-level failure."""

    kind = ErrorKind.PROVIDER


class SendCancelledError(SMSError):
    kind = ErrorKind.CANCELLED


class NoAvailableAccountError(SMSError):
    kind = ErrorKind.NO_AVAILABLE_ACCOUNT


class ConfigurationError(SMSError):
    kind = ErrorKind.CONFIG


def is_retryable(err: BaseException) -> bool:
    return isinstance(err, SMSError) and err.retryable


__all__ = [
    "ErrorKind",
    "SMSError",
    "InvalidMessageError",
    "UnsupportedSubProviderError",
    "UnsupportedMessageTypeError",
    "UnsupportedCategoryError",
    "UnsupportedInternationalError",
    "AuthError",
    "TransportError",
    "ProviderError",
    "SendCancelledError",
    "NoAvailableAccountError",
    "ConfigurationError",
    "is_retryable",
]
