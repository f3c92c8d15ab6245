from __future__ import annotations
from typing import Dict

from ..accounts import Account
from ..errors import UnsupportedCategoryError
from ..models import Category, Message, MessageType, add_signature
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, form_body
from .signing import b64

LUOSIMAO_SMS_BASE = "https://sms-api.luosimao.com"
LUOSIMAO_VOICE_BASE = "https://voice-api.luosimao.com"
LUOSIMAO_SEND = "/v1/send.json"
LUOSIMAO_SEND_BATCH = "/v1/send_batch.json"
LUOSIMAO_VOICE_VERIFY = "/v1/verify.json"
LUOSIMAO_MAX_MOBILES = 100000


def basic_auth(secret: str) -> str:
    return "Basic " + b64(f"api:key-{secret}")


class LuosimaoTransformer(BaseTransformer):
    sub_provider = "luosimao"
    response_config = ResponseHandlerConfig(
        check_body=True, path=("error", "errorno"), expect="0", message_path="msg"
    )

    def __init__(self):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            before_hooks=(self._validate,),
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_secret")
        self.require_domestic(msg, "luosimao")
        self.require_content(msg)
        if msg.type is MessageType.VOICE:
            if msg.category is not Category.VERIFICATION:
                raise UnsupportedCategoryError(
                    "luosimao voice only sends verification codes", provider=self.sub_provider
                )
            self.require_single_recipient(msg, "luosimao voice")
            if not msg.content.isdigit():
                raise self.invalid("luosimao voice verification code must be digits", "invalid_content")
            return
        self.require_max_recipients(msg, LUOSIMAO_MAX_MOBILES)
        if not msg.sign_name and not msg.content.startswith("【"):
            raise self.invalid("luosimao sms needs a sign name", "missing_sign_name")

    def _request(self, url: str, account: Account, fields: Dict[str, str]) -> HTTPRequestSpec:
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": basic_auth(account.api_secret),
            },
            body=form_body(fields),
            body_type=BodyType.FORM,
        )

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        base = base_url(account.endpoint) if account.endpoint else LUOSIMAO_SMS_BASE
        content = add_signature(msg.content, msg.sign_name)
        if not msg.has_multiple_recipients() and msg.scheduled_at is None:
            return self._request(base + LUOSIMAO_SEND, account, {"mobile": msg.mobiles[0], "message": content})
        fields = {"mobile_list": ",".join(msg.mobiles), "message": content}
        if msg.scheduled_at is not None:
            fields["time"] = msg.scheduled_at.strftime("%Y-%m-%d %H:%M:%S")
        return self._request(base + LUOSIMAO_SEND_BATCH, account, fields)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        base = msg.extras.str_or("voice_endpoint", LUOSIMAO_VOICE_BASE)
        return self._request(base_url(base) + LUOSIMAO_VOICE_VERIFY, account, {"mobile": msg.mobiles[0], "code": msg.content})
