"""Transformer scaffolding shared by every vendor adapter.

A transformer turns a `Message` plus the selected `Account` into an
`HTTPRequestSpec` and a response handler. `BaseTransformer` supplies the common
pipeline: apply account defaults, run before-hooks in registration order,
dispatch on `msg.type` to a handler slot, and interpret the response through a
declarative `ResponseHandlerConfig`.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Protocol, Sequence, Tuple, Union
from urllib.parse import parse_qs, urlencode
import json
import logging

from ..accounts import Account
from ..errors import (
    AuthError,
    InvalidMessageError,
    ProviderError,
    TransportError,
    UnsupportedInternationalError,
    UnsupportedMessageTypeError,
    UnsupportedSubProviderError,
)
from ..models import Message, MessageType
from .result import SendResult
from .signing import Clock, SystemClock

logger = logging.getLogger("smsdispatch.clients")


class BodyType(str, Enum):
    JSON = "json"
    FORM = "form"
    RAW = "raw"


@dataclass
class HTTPRequestSpec:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    body_type: BodyType = BodyType.RAW

    def form(self) -> Dict[str, str]:
        """Decoded form body (last value wins)."""
        return {k: v[-1] for k, v in parse_qs(self.body.decode("utf-8"), keep_blank_values=True).items()}

    def json(self) -> Any:
        return json.loads(self.body)


def json_body(payload: Any) -> bytes:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def form_body(fields: Mapping[str, Any] | Sequence[Tuple[str, Any]]) -> bytes:
    return urlencode(fields).encode("utf-8")


def compact_json(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


# ---------------------------------------------------------------------------
# Declarative response handling
# ---------------------------------------------------------------------------
class ResponseType(str, Enum):
    JSON = "json"
    TEXT = "text"


class MatchMode(str, Enum):
    EQ = "eq"
    NOT_EQ = "not_eq"
    CONTAINS = "contains"


PathSpec = Union[str, Tuple[str, ...]]

ResponseHandler = Callable[[SendResult], None]


@dataclass(frozen=True)
class ResponseHandlerConfig:
    """How to decide whether a 2xx response is a business success.

    `path` is a dotted JSON path (a tuple lists alternatives, first present
    wins); `expect` may also be a tuple of accepted literals. On failure the
    extracted value (or the value at `code_path`) becomes the error code and the
    value at `message_path` (or a mapped `error_messages` entry, or the raw body)
    the message. With `body_type=TEXT` the whole stripped body is the value.
    """

    body_type: ResponseType = ResponseType.JSON
    check_body: bool = False
    path: PathSpec = ""
    expect: Union[str, Tuple[str, ...]] = ""
    mode: MatchMode = MatchMode.EQ
    code_path: PathSpec = ""
    message_path: PathSpec = ""
    error_messages: Mapping[str, str] = field(default_factory=dict)


_MISSING = object()


def extract_path(data: Any, path: str) -> Any:
    """Walk a dotted path through dicts and lists; returns `_MISSING` when absent."""
    cur = data
    for part in path.split("."):
        if isinstance(cur, dict):
            if part not in cur:
                return _MISSING
            cur = cur[part]
        elif isinstance(cur, list) and part.isdigit() and int(part) < len(cur):
            cur = cur[int(part)]
        else:
            return _MISSING
    return cur


def extract_first(data: Any, paths: PathSpec) -> Any:
    for path in _as_tuple(paths):
        value = extract_path(data, path)
        if value is not _MISSING:
            return value
    return _MISSING


def stringify(value: Any) -> str:
    if value is None or value is _MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _as_tuple(value: Union[str, Tuple[str, ...]]) -> Tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    return (value,) if value else ()


def _matches(actual: str, config: ResponseHandlerConfig) -> bool:
    expected = _as_tuple(config.expect) or ("",)
    if config.mode is MatchMode.NOT_EQ:
        return actual not in expected
    if config.mode is MatchMode.CONTAINS:
        return any(e in actual for e in expected)
    return actual in expected


def ensure_success_status(result: SendResult, provider: str) -> None:
    if result.ok:
        return
    snippet = result.text[:200]
    logger.warning("%s returned HTTP %s: %s", provider, result.status_code, snippet)
    raise TransportError(
        f"unexpected HTTP status {result.status_code}: {snippet}",
        provider=provider,
        code=f"http_{result.status_code}",
        status_code=result.status_code,
        body=result.body,
        retryable=result.status_code >= 500 or result.status_code == 429,
    )


def build_response_handler(config: ResponseHandlerConfig, provider: str) -> ResponseHandler:
    def handler(result: SendResult) -> None:
        ensure_success_status(result, provider)
        if not config.check_body:
            return
        data: Any = None
        if config.body_type is ResponseType.TEXT:
            value: Any = result.text.strip()
        else:
            try:
                data = result.json()
            except ValueError:
                raise ProviderError(
                    f"response is not valid JSON: {result.text[:200]}",
                    provider=provider,
                    code="invalid_response",
                )
            value = extract_first(data, config.path)
        actual = stringify(value)
        if value is not _MISSING and _matches(actual, config):
            return
        code = actual
        if config.code_path and data is not None:
            code = stringify(extract_first(data, config.code_path)) or actual
        message = ""
        if config.message_path and data is not None:
            message = stringify(extract_first(data, config.message_path))
        if not message:
            message = config.error_messages.get(code, "") or result.text[:200]
        raise ProviderError(message, provider=provider, code=code or "unknown")

    return handler


# ---------------------------------------------------------------------------
# Transformer contract
# ---------------------------------------------------------------------------
class Transformer(Protocol):
    sub_provider: str

    def can_transform(self, msg: Message) -> bool: ...

    def transform(self, msg: Message, account: Account) -> Tuple[HTTPRequestSpec, ResponseHandler]: ...


BuildResult = Union[HTTPRequestSpec, Tuple[HTTPRequestSpec, "ResponseHandler | None"]]
RequestBuilder = Callable[[Message, Account], BuildResult]
BeforeHook = Callable[[Message, Account], None]


class BaseTransformer:
    sub_provider: str = ""
    response_config: ResponseHandlerConfig = ResponseHandlerConfig()

    def __init__(
        self,
        sub_provider: str | None = None,
        response_config: ResponseHandlerConfig | None = None,
        *,
        sms_handler: RequestBuilder | None = None,
        voice_handler: RequestBuilder | None = None,
        mms_handler: RequestBuilder | None = None,
        before_hooks: Sequence[BeforeHook] = (),
        clock: Clock | None = None,
    ):
        self.sub_provider = sub_provider or type(self).sub_provider
        if not self.sub_provider:
            raise ValueError("transformer needs a sub-provider tag")
        self.response_config = response_config or type(self).response_config
        self.clock: Clock = clock or SystemClock()
        self._handlers: Dict[MessageType, RequestBuilder] = {}
        for msg_type, fn in (
            (MessageType.TEXT, sms_handler),
            (MessageType.VOICE, voice_handler),
            (MessageType.MMS, mms_handler),
        ):
            if fn is not None:
                self._handlers[msg_type] = fn
        self._before_hooks: List[BeforeHook] = [self._require_mobiles, *before_hooks]
        self._response_handler = build_response_handler(self.response_config, self.sub_provider)

    def register_handler(self, msg_type: MessageType, fn: RequestBuilder) -> "BaseTransformer":
        self._handlers[MessageType(msg_type)] = fn
        return self

    def add_before_hook(self, hook: BeforeHook) -> "BaseTransformer":
        self._before_hooks.append(hook)
        return self

    def supports(self, msg_type: MessageType) -> bool:
        return msg_type in self._handlers

    def can_transform(self, msg: Message) -> bool:
        return getattr(msg, "sub_provider", None) == self.sub_provider

    def validate(self, msg: Message, account: Account) -> None:
        for hook in self._before_hooks:
            hook(msg, account)

    def build_request(self, msg: Message, account: Account) -> Tuple[HTTPRequestSpec, ResponseHandler | None]:
        fn = self._handlers.get(msg.type)
        if fn is None:
            raise UnsupportedMessageTypeError(
                f"message type {getattr(msg.type, 'value', msg.type)} is not supported",
                provider=self.sub_provider,
            )
        out = fn(msg, account)
        if isinstance(out, HTTPRequestSpec):
            return out, None
        return out

    def interpret_response(self, result: SendResult) -> None:
        self._response_handler(result)

    def transform(self, msg: Message, account: Account) -> Tuple[HTTPRequestSpec, ResponseHandler]:
        if not self.can_transform(msg):
            raise UnsupportedSubProviderError(
                f"transformer {self.sub_provider} cannot handle sub-provider {msg.sub_provider!r}",
                provider=self.sub_provider,
            )
        if msg.type not in self._handlers:
            raise UnsupportedMessageTypeError(
                f"message type {getattr(msg.type, 'value', msg.type)} is not supported",
                provider=self.sub_provider,
            )
        prepared = msg.with_defaults(account)
        self.validate(prepared, account)
        spec, handler = self.build_request(prepared, account)
        if handler is None:
            return spec, self.interpret_response
        return spec, self._guarded(handler)

    def _guarded(self, handler: ResponseHandler) -> ResponseHandler:
        provider = self.sub_provider

        def guarded(result: SendResult) -> None:
            ensure_success_status(result, provider)
            handler(result)

        return guarded

    def _require_mobiles(self, msg: Message, account: Account) -> None:
        if not msg.mobiles:
            raise InvalidMessageError("at least one mobile is required", provider=self.sub_provider, code="missing_mobiles")

    # -- validation helpers used by vendor before-hooks --------------------------
    def invalid(self, message: str, code: str | None = None) -> InvalidMessageError:
        return InvalidMessageError(message, provider=self.sub_provider, code=code)

    def require_credentials(self, account: Account, *fields: str) -> None:
        missing = [f for f in fields if not getattr(account, f)]
        if missing:
            raise AuthError(
                f"account {account.name!r} is missing {', '.join(missing)}",
                provider=self.sub_provider,
            )

    def require_template(self, msg: Message) -> None:
        if not msg.template_id:
            raise self.invalid("template id is required", "missing_template")

    def require_sign_name(self, msg: Message) -> None:
        if not msg.sign_name:
            raise self.invalid("sign name is required", "missing_sign_name")

    def require_content(self, msg: Message) -> None:
        if not msg.content:
            raise self.invalid("content is required", "missing_content")

    def require_single_recipient(self, msg: Message, what: str = "this message type") -> None:
        if msg.has_multiple_recipients():
            raise self.invalid(f"{what} only supports a single mobile", "too_many_mobiles")

    def require_max_recipients(self, msg: Message, limit: int) -> None:
        if len(msg.mobiles) > limit:
            raise self.invalid(f"at most {limit} mobiles per request, got {len(msg.mobiles)}", "too_many_mobiles")

    def require_domestic(self, msg: Message, what: str = "this message type") -> None:
        if msg.is_intl():
            raise UnsupportedInternationalError(
                f"{what} does not support international numbers", provider=self.sub_provider
            )


def base_url(value: str) -> str:
    """Accept a bare host or a full URL; no trailing slash."""
    if "://" not in value:
        value = f"https://{value}"
    return value.rstrip("/")


def resolve_endpoint(account: Account, msg: Message, default: str, *, intl_default: str | None = None) -> str:
    """Pick the base URL: account overrides first, vendor defaults last."""
    if msg.is_intl():
        if account.intl_endpoint:
            return base_url(account.intl_endpoint)
        if intl_default is not None:
            return base_url(intl_default)
    return base_url(account.endpoint or default)


__all__ = [
    "BodyType",
    "HTTPRequestSpec",
    "ResponseType",
    "MatchMode",
    "ResponseHandlerConfig",
    "ResponseHandler",
    "Transformer",
    "BaseTransformer",
    "build_response_handler",
    "ensure_success_status",
    "extract_path",
    "extract_first",
    "stringify",
    "json_body",
    "form_body",
    "compact_json",
    "base_url",
    "resolve_endpoint",
]
