from __future__ import annotations
from typing import Any, Dict, List
import logging
import zlib

from ..accounts import Account
from ..models import Category, Message, MessageType
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, json_body
from .signing import Clock, sha256_hex, unix_seconds

logger = logging.getLogger("smsdispatch.tencent")

TENCENT_SMS_BASE = "https://yun.tim.qq.com/v5/tlssmssvr"
TENCENT_VOICE_BASE = "https://cloud.tim.qq.com/v5/tlsvoicesvr"
TENCENT_MAX_MOBILES = 200


def sign_v5(appkey: str, random: str, timestamp: int, mobiles: List[str]) -> str:
    return sha256_hex(f"appkey={appkey}&random={random}&time={timestamp}&mobile={','.join(mobiles)}")


class TencentTransformer(BaseTransformer):
    sub_provider = "tencent"
    response_config = ResponseHandlerConfig(check_body=True, path="result", expect="0", message_path="errmsg")

    def __init__(self, clock: Clock | None = None):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            before_hooks=(self._validate,),
            clock=clock,
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "app_id", "api_secret")
        if not msg.template_id and not msg.content:
            raise self.invalid("tencent needs a template id or content", "missing_content")
        if msg.template_id and not msg.template_id.isdigit():
            raise self.invalid("tencent template id must be numeric", "invalid_template")
        if msg.type is MessageType.VOICE:
            self.require_single_recipient(msg, "tencent voice")
            return
        if msg.is_domestic() and msg.template_id:
            self.require_sign_name(msg)
        self.require_max_recipients(msg, TENCENT_MAX_MOBILES)

    def _random(self) -> str:
        # v5 expects an unsigned 32-bit number; any nonce string maps onto one
        return str(zlib.crc32(self.clock.nonce().encode("utf-8")))

    def _tel(self, msg: Message, mobile: str) -> Dict[str, str]:
        return {"mobile": mobile.lstrip("+"), "nationcode": str(msg.region_code)}

    def _request(self, url: str, account: Account, random: str, payload: Dict[str, Any]) -> HTTPRequestSpec:
        logger.debug("tencent request -> %s", url)
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={"Content-Type": "application/json"},
            query_params={"sdkappid": [account.app_id], "random": [random]},
            body=json_body(payload),
            body_type=BodyType.JSON,
        )

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        random = self._random()
        ts = unix_seconds(self.clock)
        mobiles = [m.lstrip("+") for m in msg.mobiles]
        payload: Dict[str, Any] = {
            "ext": msg.uid,
            "extend": msg.extend,
            "sig": sign_v5(account.api_secret, random, ts, mobiles),
            "time": ts,
        }
        if msg.has_multiple_recipients():
            payload["tel"] = [self._tel(msg, m) for m in msg.mobiles]
            path = "/sendmultisms2"
        else:
            payload["tel"] = self._tel(msg, msg.mobiles[0])
            path = "/sendsms"
        if msg.template_id:
            payload["tpl_id"] = int(msg.template_id)
            payload["params"] = list(msg.params_order) or list(msg.template_params.values())
            payload["sign"] = msg.sign_name
        else:
            payload["msg"] = msg.content
            payload["type"] = 1 if msg.category is Category.PROMOTION else 0
        base = base_url(account.endpoint) if account.endpoint else TENCENT_SMS_BASE
        return self._request(base + path, account, random, payload)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        random = self._random()
        ts = unix_seconds(self.clock)
        mobile = msg.mobiles[0]
        payload: Dict[str, Any] = {
            "tel": self._tel(msg, mobile),
            "playtimes": msg.extras.int_or("play_times", 2),
            "sig": sign_v5(account.api_secret, random, ts, [mobile.lstrip("+")]),
            "time": ts,
            "ext": msg.uid,
        }
        if msg.category is Category.VERIFICATION and not msg.template_id:
            payload["msg"] = msg.content
            path = "/sendcvoice"
        elif msg.template_id:
            payload["tpl_id"] = int(msg.template_id)
            payload["params"] = list(msg.params_order) or list(msg.template_params.values())
            path = "/sendtvoice"
        else:
            payload["promptfile"] = msg.content
            payload["prompttype"] = 2
            path = "/sendvoiceprompt"
        base = msg.extras.str_or("voice_endpoint", TENCENT_VOICE_BASE)
        return self._request(base_url(base) + path, account, random, payload)
