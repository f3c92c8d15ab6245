from __future__ import annotations
from datetime import timedelta, timezone
from typing import Any, Dict

from ..accounts import Account
from ..models import Category, Message, MessageType
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, json_body
from .signing import Clock, b64, md5_hex

YUNTONGXUN_HOST = "app.cloopen.com:8883"
YUNTONGXUN_HK_HOST = "hksms.cloopen.com:8883"
YUNTONGXUN_VERSION = "2013-12-26"
YUNTONGXUN_MAX_MOBILES = 200

# request timestamps are validated against Beijing time
_BEIJING = timezone(timedelta(hours=8))


def sign_request(account_sid: str, token: str, stamp: str) -> tuple[str, str]:
    """Returns `(sig, authorization)` for one request timestamp."""
    return md5_hex(account_sid + token + stamp).upper(), b64(f"{account_sid}:{stamp}")


class YuntongxunTransformer(BaseTransformer):
    sub_provider = "yuntongxun"
    response_config = ResponseHandlerConfig(check_body=True, path="statusCode", expect="000000", message_path="statusMsg")

    def __init__(self, clock: Clock | None = None):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            before_hooks=(self._validate,),
            clock=clock,
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret", "app_id")
        if msg.type is MessageType.VOICE:
            self.require_domestic(msg, "yuntongxun voice")
            self.require_single_recipient(msg, "yuntongxun voice")
            self.require_content(msg)
            return
        if msg.is_intl():
            self.require_content(msg)
            self.require_single_recipient(msg, "yuntongxun international sms")
            return
        self.require_template(msg)
        self.require_max_recipients(msg, YUNTONGXUN_MAX_MOBILES)

    def _signed(self, url: str, account: Account, payload: Dict[str, Any]) -> HTTPRequestSpec:
        stamp = self.clock.now().astimezone(_BEIJING).strftime("%Y%m%d%H%M%S")
        sig, authorization = sign_request(account.api_key, account.api_secret, stamp)
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json;charset=utf-8",
                "Authorization": authorization,
            },
            query_params={"sig": [sig]},
            body=json_body(payload),
            body_type=BodyType.JSON,
        )

    def _account_base(self, account: Account) -> str:
        host = base_url(account.endpoint or YUNTONGXUN_HOST)
        return f"{host}/{YUNTONGXUN_VERSION}/Accounts/{account.api_key}"

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        if msg.is_intl():
            default = YUNTONGXUN_HOST if account.region in ("", "cn") else YUNTONGXUN_HK_HOST
            host = base_url(account.intl_endpoint or default)
            payload = {
                "mobile": f"00{msg.region_code}{msg.mobiles[0].lstrip('+')}",
                "content": msg.content,
                "appId": account.app_id,
            }
            return self._signed(f"{host}/v2/account/{account.api_key}/international/send", account, payload)
        payload = {
            "to": ",".join(msg.mobiles),
            "appId": account.app_id,
            "templateId": msg.template_id,
            "datas": list(msg.params_order) or list(msg.template_params.values()),
        }
        return self._signed(self._account_base(account) + "/SMS/TemplateSMS", account, payload)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        extras = msg.extras
        payload: Dict[str, Any] = {"appId": account.app_id, "to": msg.mobiles[0], "playTimes": str(extras.int_or("play_times", 2))}
        display = extras.str_or("display_num", account.from_)
        if display:
            payload["displayNum"] = display
        if msg.callback_url:
            payload["respUrl"] = msg.callback_url
        if msg.uid:
            payload["userData"] = msg.uid
        if msg.category is Category.VERIFICATION:
            payload["verifyCode"] = msg.content
            path = "/Calls/VoiceVerify"
        else:
            payload["mediaTxt"] = msg.content
            path = "/Calls/LandingCalls"
        return self._signed(self._account_base(account) + path, account, payload)
