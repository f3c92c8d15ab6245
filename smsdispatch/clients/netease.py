from __future__ import annotations
import json

from ..accounts import Account
from ..models import Category, Message
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, form_body
from .signing import Clock, sha1_hex, unix_seconds

NETEASE_BASE = "https://api.netease.im/sms"
NETEASE_SEND_CODE = "/sendcode.action"
NETEASE_SEND_TEMPLATE = "/sendtemplate.action"
NETEASE_MAX_MOBILES = 100


def checksum(app_secret: str, nonce: str, cur_time: str) -> str:
    return sha1_hex(app_secret + nonce + cur_time)


class NeteaseTransformer(BaseTransformer):
    sub_provider = "netease"
    response_config = ResponseHandlerConfig(check_body=True, path="code", expect="200", message_path="msg")

    def __init__(self, clock: Clock | None = None):
        super().__init__(sms_handler=self._build_sms, before_hooks=(self._validate,), clock=clock)

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        if self._is_code(msg):
            self.require_single_recipient(msg, "netease verification sms")
            return
        self.require_template(msg)
        self.require_max_recipients(msg, NETEASE_MAX_MOBILES)

    def _is_code(self, msg: Message) -> bool:
        return msg.category is Category.VERIFICATION and not msg.has_multiple_recipients()

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        if self._is_code(msg):
            fields = {"mobile": msg.mobiles[0]}
            if msg.template_id:
                fields["templateid"] = msg.template_id
            if msg.content:
                fields["authCode"] = msg.content
            code_len, ok = msg.extras.get_int("code_len")
            if ok:
                fields["codeLen"] = str(code_len)
            path = NETEASE_SEND_CODE
        else:
            fields = {
                "templateid": msg.template_id,
                "mobiles": json.dumps(msg.mobiles, separators=(",", ":")),
                "params": json.dumps(list(msg.params_order) or list(msg.template_params.values()), ensure_ascii=False, separators=(",", ":")),
            }
            path = NETEASE_SEND_TEMPLATE
        nonce = self.clock.nonce()
        cur_time = str(unix_seconds(self.clock))
        base = base_url(account.endpoint) if account.endpoint else NETEASE_BASE
        return HTTPRequestSpec(
            method="POST",
            url=base + path,
            headers={
                "Content-Type": "application/x-www-form-urlencoded;charset=utf-8",
                "AppKey": account.api_key,
                "Nonce": nonce,
                "CurTime": cur_time,
                "CheckSum": checksum(account.api_secret, nonce, cur_time),
            },
            body=form_body(fields),
            body_type=BodyType.FORM,
        )
