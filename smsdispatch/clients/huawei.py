"""Huawei Cloud batch SMS with WSSE UsernameToken auth.

The sender channel number comes from the `from` extra or `Account.from_`; when
neither is set the field is sent empty and Huawei applies the app default.
"""
from __future__ import annotations
from datetime import timezone
from typing import Dict
import json

from ..accounts import Account
from ..models import Message
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, form_body, resolve_endpoint
from .signing import Clock, sha256_b64

HUAWEI_DEFAULT_ENDPOINT = "https://api.rtc.huaweicloud.com:10443"
HUAWEI_SEND_PATH = "/sms/batchSendSms/v1"
HUAWEI_MAX_MOBILES = 500

WSSE_AUTHORIZATION = 'WSSE realm="SDP",profile="UsernameToken",type="Appkey"'


def build_wsse(app_key: str, app_secret: str, nonce: str, created: str) -> str:
    digest = sha256_b64(nonce + created + app_secret)
    return f'UsernameToken Username="{app_key}",PasswordDigest="{digest}",Nonce="{nonce}",Created="{created}"'


class HuaweiTransformer(BaseTransformer):
    sub_provider = "huawei"
    response_config = ResponseHandlerConfig(check_body=True, path="code", expect="000000", message_path="description")

    def __init__(self, clock: Clock | None = None):
        super().__init__(sms_handler=self._build_sms, before_hooks=(self._validate,), clock=clock)

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        self.require_template(msg)
        self.require_sign_name(msg)
        self.require_max_recipients(msg, HUAWEI_MAX_MOBILES)

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        to = ",".join(f"+{msg.region_code}{m.lstrip('+')}" for m in msg.mobiles)
        fields: Dict[str, str] = {
            "from": msg.extras.str_or("from", account.from_),
            "to": to,
            "templateId": msg.template_id,
            "templateParas": json.dumps(msg.params_order, ensure_ascii=False, separators=(",", ":")) if msg.params_order else "",
        }
        if msg.is_domestic():
            fields["signature"] = msg.sign_name
        if msg.callback_url:
            fields["statusCallback"] = msg.callback_url
        if msg.extend:
            fields["extend"] = msg.extend
        created = self.clock.now().astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        nonce = self.clock.nonce()
        url = resolve_endpoint(account, msg, HUAWEI_DEFAULT_ENDPOINT, intl_default=HUAWEI_DEFAULT_ENDPOINT)
        return HTTPRequestSpec(
            method="POST",
            url=url + HUAWEI_SEND_PATH,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": WSSE_AUTHORIZATION,
                "X-WSSE": build_wsse(account.api_key, account.api_secret, nonce, created),
            },
            body=form_body(fields),
            body_type=BodyType.FORM,
        )
