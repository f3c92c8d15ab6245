"""Centralized logging utilities wrapping structlog configuration and reusable event helpers.

Send-scoped data (send id, sub-provider, account name) lives in ContextVars so
every event emitted while a send is in flight carries it, including events from
concurrent asyncio tasks which each get their own copy of the context.

Import order safety: this module only depends on settings, never on transformers
or the provider.
"""
from __future__ import annotations

import logging
import contextvars
import structlog
from contextlib import contextmanager
from typing import Any, Iterator

from .core.settings import get_settings

# -------------------------
# ContextVars for send-scoped data
# -------------------------
_send_id_var = contextvars.ContextVar("send_id", default=None)
_provider_var = contextvars.ContextVar("sub_provider", default=None)
_account_var = contextvars.ContextVar("account", default=None)

structlog_context = {
    "send_id": _send_id_var,
    "sub_provider": _provider_var,
    "account": _account_var,
}


def _add_context(logger, method_name: str, event_dict: dict[str, Any]):  # noqa: D401
    sid = _send_id_var.get()
    if sid:
        event_dict["send_id"] = sid
    prov = _provider_var.get()
    if prov:
        event_dict.setdefault("sub_provider", prov)
    acct = _account_var.get()
    if acct:
        event_dict.setdefault("account", acct)
    return event_dict

# -------------------------
# structlog configuration
# -------------------------
logging.getLogger("smsdispatch").addHandler(logging.NullHandler())


def configure_logging(level: str | None = None, *, force: bool = False) -> bool:
    """Install the JSON structlog pipeline used by smsdispatch.

    A host application that already configured structlog keeps its setup
    unless `force` is set. Returns True when the pipeline was installed.
    """
    if structlog.is_configured() and not force:
        return False
    resolved = logging.getLevelName((level or get_settings().LOG_LEVEL).upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_context,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved),
        cache_logger_on_first_use=False,
    )
    return True


configure_logging()

slog = structlog.get_logger("smsdispatch")

# -------------------------
# Public helper functions
# -------------------------

def set_log_send(send_id: str | None):
    _send_id_var.set(send_id)

def set_log_provider(provider: str | None):
    _provider_var.set(provider)

def set_log_account(account: str | None):
    _account_var.set(account)

@contextmanager
def send_log_context(send_id: str, sub_provider: str | None) -> Iterator[None]:
    """Scope the send context vars to one send; the caller's values come back afterwards."""
    tokens = [
        (_send_id_var, _send_id_var.set(send_id)),
        (_provider_var, _provider_var.set(sub_provider)),
        (_account_var, _account_var.set(None)),
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)

# Event helpers reused across modules

def log_send_started(sub_provider: str, message_type: str, recipients: int, **extra):
    slog.info("sms_send_started", sub_provider=sub_provider, message_type=message_type, recipients=recipients, **extra)

def log_account_selected(account: str, strategy: str, preferred: str | None = None, **extra):
    slog.info("sms_account_selected", account=account, strategy=strategy, preferred=preferred, **extra)

def log_send_succeeded(sub_provider: str, status_code: int, elapsed_ms: float, **extra):
    slog.info("sms_send_succeeded", sub_provider=sub_provider, status_code=status_code, elapsed_ms=round(elapsed_ms, 1), **extra)

def log_send_failed(sub_provider: str, kind: str, code: str | None, error: str, retryable: bool, **extra):
    slog.warning("sms_send_failed", sub_provider=sub_provider, kind=kind, code=code, error=error, retryable=retryable, **extra)

def log_send_cancelled(sub_provider: str, reason: str, **extra):
    slog.warning("sms_send_cancelled", sub_provider=sub_provider, reason=reason, **extra)
