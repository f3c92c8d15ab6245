from __future__ import annotations
from typing import Dict, List
import json

from ..accounts import Account
from ..models import Message, MessageType, add_signature
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, form_body, resolve_endpoint
from .signing import Clock, md5_hex, sha1_hex, unix_seconds

SUBMAIL_DOMAIN = "https://api-v4.mysubmail.com"

# (intl, template, batch) -> path
SUBMAIL_SMS_PATHS = {
    (False, False, False): "/sms/send",
    (False, False, True): "/sms/multisend",
    (False, True, False): "/sms/xsend",
    (False, True, True): "/sms/multixsend",
    (True, False, False): "/internationalsms/send",
    (True, False, True): "/internationalsms/batchsend",
    (True, True, False): "/internationalsms/xsend",
    (True, True, True): "/internationalsms/multixsend",
}
SUBMAIL_VOICE_SEND = "/voice/send"
SUBMAIL_VOICE_XSEND = "/voice/xsend"
SUBMAIL_MMS_SEND = "/mms/send"

SUBMAIL_DOMESTIC_LIMIT = 10000
SUBMAIL_INTL_LIMIT = 1000

_UNSIGNED_KEYS = frozenset({"signature", "sign_type", "sign_version"})


def sign_params(params: Dict[str, str], secret: str, sign_type: str = "md5") -> str:
    """Sorted `k=v&...` over the signed keys with the secret appended, hashed per `sign_type`."""
    if sign_type == "normal":
        return secret
    text = "&".join(f"{k}={params[k]}" for k in sorted(params) if k not in _UNSIGNED_KEYS) + secret
    if sign_type == "sha1":
        return sha1_hex(text)
    return md5_hex(text)


def sms_path(intl: bool, template: bool, batch: bool) -> str:
    return SUBMAIL_SMS_PATHS[(intl, template, batch)]


class SubmailTransformer(BaseTransformer):
    sub_provider = "submail"
    response_config = ResponseHandlerConfig(
        check_body=True, path="status", expect="success", code_path="code", message_path="msg"
    )

    def __init__(self, clock: Clock | None = None):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            mms_handler=self._build_mms,
            before_hooks=(self._validate,),
            clock=clock,
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        if not msg.template_id and not msg.content:
            raise self.invalid("submail needs a template id or content", "missing_content")
        if msg.type is MessageType.VOICE:
            self.require_single_recipient(msg, "submail voice")
        elif msg.type is MessageType.MMS:
            self.require_single_recipient(msg, "submail mms")
            self.require_template(msg)
        else:
            self.require_max_recipients(msg, SUBMAIL_INTL_LIMIT if msg.is_intl() else SUBMAIL_DOMESTIC_LIMIT)
        sign_type = msg.extras.str_or("sign_type", "md5")
        if sign_type not in ("md5", "sha1", "normal"):
            raise self.invalid(f"unknown submail sign_type {sign_type!r}", "invalid_sign_type")

    def _recipient(self, msg: Message, mobile: str) -> str:
        if msg.is_intl() and not mobile.startswith("+"):
            return f"+{msg.region_code}{mobile}"
        return mobile

    def _finish(self, msg: Message, account: Account, path: str, params: Dict[str, str]) -> HTTPRequestSpec:
        extras = msg.extras
        params["appid"] = account.api_key
        params["timestamp"] = str(unix_seconds(self.clock))
        for key in ("sender", "tag"):
            value = extras.str_or(key)
            if value:
                params[key] = value
        sign_type = extras.str_or("sign_type", "md5")
        params["sign_type"] = sign_type
        params["signature"] = sign_params(params, account.api_secret, sign_type)
        domain = resolve_endpoint(account, msg, SUBMAIL_DOMAIN)
        return HTTPRequestSpec(
            method="POST",
            url=domain + path,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=form_body(params),
            body_type=BodyType.FORM,
        )

    def _vars(self, msg: Message) -> str:
        return json.dumps(msg.template_params, ensure_ascii=False, separators=(",", ":"), sort_keys=True)

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        template = bool(msg.template_id)
        batch = msg.has_multiple_recipients()
        intl = msg.is_intl()
        recipients = [self._recipient(msg, m) for m in msg.mobiles]
        params: Dict[str, str] = {}
        if template:
            params["project"] = msg.template_id
            if batch:
                multi: List[Dict[str, object]] = [{"to": r, "vars": msg.template_params} for r in recipients]
                params["multi"] = json.dumps(multi, ensure_ascii=False, separators=(",", ":"))
            else:
                params["to"] = recipients[0]
                if msg.template_params:
                    params["vars"] = self._vars(msg)
        else:
            params["content"] = add_signature(msg.content, msg.sign_name)
            if batch and not intl:
                params["multi"] = json.dumps([{"to": r} for r in recipients], separators=(",", ":"))
            else:
                params["to"] = ",".join(recipients)
        return self._finish(msg, account, sms_path(intl, template, batch), params)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        params: Dict[str, str] = {"to": msg.mobiles[0]}
        if msg.template_id:
            params["project"] = msg.template_id
            if msg.template_params:
                params["vars"] = self._vars(msg)
            return self._finish(msg, account, SUBMAIL_VOICE_XSEND, params)
        params["content"] = msg.content
        return self._finish(msg, account, SUBMAIL_VOICE_SEND, params)

    def _build_mms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        params: Dict[str, str] = {"to": msg.mobiles[0], "project": msg.template_id}
        if msg.template_params:
            params["vars"] = self._vars(msg)
        return self._finish(msg, account, SUBMAIL_MMS_SEND, params)
