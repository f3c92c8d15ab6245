"""Single-shot SMS dispatch over a pool of vendor accounts.

Usage::

    provider = new({"strategy": "weighted", "items": [...]})
    async with provider:
        await provider.send(Message(sub_provider="aliyun", mobiles=["13800138000"], ...))

`send` validates, selects an account, renders the vendor request, executes it
and normalizes the response. It raises an `SMSError` subclass on failure and
never retries.
"""
from __future__ import annotations

import asyncio
import random
import time
import uuid
from typing import Any, Mapping

import httpx

from ..accounts import Config
from ..clients.factory import SMSTransformer
from ..clients.registry import TransformerRegistry
from ..clients.result import SendResult
from ..errors import InvalidMessageError, SendCancelledError, SMSError
from ..logging import (
    log_account_selected,
    log_send_cancelled,
    log_send_failed,
    log_send_started,
    log_send_succeeded,
    send_log_context,
    set_log_account,
)
from ..models import Message
from ..selector import Selector, preferred_account
from .dispatcher import HTTPDispatcher


class Provider:
    def __init__(
        self,
        config: Config | Mapping[str, Any],
        *,
        registry: TransformerRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_body_bytes: int | None = None,
        rng: random.Random | None = None,
    ):
        cfg = config if isinstance(config, Config) else Config.model_validate(config)
        cfg.ensure_usable()
        self.config = cfg
        self.selector = Selector(cfg.items, cfg.strategy, rng=rng)
        self.transformer = SMSTransformer(registry)
        self.dispatcher = HTTPDispatcher(client, timeout=timeout, max_body_bytes=max_body_bytes)

    async def send(self, message: Message, *, account: str | None = None, timeout: float | None = None) -> SendResult:
        """Send one message.

        `account` prefers a named account for this call (same effect as
        `use_account`). `timeout` is an overall deadline in seconds; when it
        expires the request is aborted and `SendCancelledError` is raised.
        Cancelling the calling task aborts the request and re-raises
        `asyncio.CancelledError`.
        """
        sub_provider = getattr(message, "sub_provider", "")
        with send_log_context(uuid.uuid4().hex, sub_provider):
            started = time.perf_counter()
            try:
                if timeout is None:
                    result = await self._send(message, account, deadline_managed=False)
                else:
                    try:
                        async with asyncio.timeout(timeout):
                            result = await self._send(message, account, deadline_managed=True)
                    except TimeoutError as e:
                        raise SendCancelledError(
                            f"send deadline of {timeout}s exceeded", provider=sub_provider, code="deadline_exceeded"
                        ) from e
            except asyncio.CancelledError:
                log_send_cancelled(sub_provider, "task cancelled")
                raise
            except SendCancelledError as err:
                log_send_cancelled(sub_provider, err.message)
                raise
            except SMSError as err:
                log_send_failed(sub_provider, err.kind.value, err.code, err.message, err.retryable)
                raise
            log_send_succeeded(sub_provider, result.status_code, (time.perf_counter() - started) * 1000)
            return result

    async def _send(self, message: Message, account: str | None, *, deadline_managed: bool) -> SendResult:
        self.transformer.resolve(message)
        if not isinstance(message, Message):
            raise InvalidMessageError("message must be a smsdispatch Message", provider=message.sub_provider)
        log_send_started(message.sub_provider, message.type.value, len(message.mobiles))
        message.validate()
        preferred = account if account is not None else preferred_account()
        chosen = self.selector.select(message.sub_provider, preferred=preferred)
        set_log_account(chosen.name)
        log_account_selected(chosen.name, self.selector.strategy.value, preferred=preferred)
        spec, handler = self.transformer.transform(message, chosen)
        result = await self.dispatcher.execute(spec, provider=message.sub_provider, deadline_managed=deadline_managed)
        handler(result)
        return result

    async def aclose(self) -> None:
        await self.dispatcher.aclose()

    async def __aenter__(self) -> "Provider":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def new(config: Config | Mapping[str, Any], **kwargs: Any) -> Provider:
    """Build a `Provider`; raises `ConfigurationError` on an empty or fully disabled pool."""
    return Provider(config, **kwargs)


__all__ = ["Provider", "new"]
