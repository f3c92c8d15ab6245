from __future__ import annotations
from datetime import timezone
from typing import Dict, Mapping
import logging

from ..accounts import Account
from ..models import Message, MessageType
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, compact_json, resolve_endpoint
from .signing import Clock, hmac_sha1_b64, percent_encode

logger = logging.getLogger("smsdispatch.aliyun")

ALIYUN_SMS_HOST = "dysmsapi.aliyuncs.com"
ALIYUN_VOICE_HOST = "dyvmsapi.aliyuncs.com"
ALIYUN_API_VERSION = "2017-05-25"
ALIYUN_REGION = "cn-hangzhou"
ALIYUN_MAX_MOBILES = 1000


def canonicalize(params: Mapping[str, str]) -> str:
    return "&".join(f"{percent_encode(k)}={percent_encode(v)}" for k, v in sorted(params.items()))


def sign_rpc(params: Mapping[str, str], secret: str, method: str = "POST") -> str:
    """RPC signature v1: HMAC-SHA1 over `METHOD&%2F&<encoded canonical query>`."""
    string_to_sign = f"{method}&{percent_encode('/')}&{percent_encode(canonicalize(params))}"
    return hmac_sha1_b64(f"{secret}&", string_to_sign)


class AliyunTransformer(BaseTransformer):
    sub_provider = "aliyun"
    response_config = ResponseHandlerConfig(check_body=True, path="Code", expect="OK", message_path="Message")

    def __init__(self, clock: Clock | None = None):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            before_hooks=(self._validate,),
            clock=clock,
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        self.require_template(msg)
        if msg.type is MessageType.VOICE:
            self.require_domestic(msg, "aliyun voice")
            self.require_single_recipient(msg, "aliyun voice")
            return
        if not msg.template_id.startswith("SMS_"):
            raise self.invalid("aliyun sms template id must start with SMS_", "invalid_template")
        if msg.is_domestic():
            self.require_sign_name(msg)
        self.require_max_recipients(msg, ALIYUN_MAX_MOBILES)

    def _common_params(self, account: Account, action: str) -> Dict[str, str]:
        now = self.clock.now().astimezone(timezone.utc)
        return {
            "AccessKeyId": account.api_key,
            "Action": action,
            "Format": "JSON",
            "RegionId": account.region or ALIYUN_REGION,
            "SignatureMethod": "HMAC-SHA1",
            "SignatureNonce": self.clock.nonce(),
            "SignatureVersion": "1.0",
            "Timestamp": now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "Version": ALIYUN_API_VERSION,
        }

    def _signed_request(self, url: str, params: Dict[str, str], secret: str) -> HTTPRequestSpec:
        signature = sign_rpc(params, secret)
        body = f"Signature={percent_encode(signature)}&{canonicalize(params)}"
        logger.debug("aliyun %s -> %s", params.get("Action"), url)
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=body.encode("utf-8"),
            body_type=BodyType.FORM,
        )

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        params = self._common_params(account, "SendSms")
        if msg.is_intl():
            phones = [f"{msg.region_code}{m.lstrip('+')}" for m in msg.mobiles]
        else:
            phones = list(msg.mobiles)
        params["PhoneNumbers"] = ",".join(phones)
        params["TemplateCode"] = msg.template_id
        if msg.sign_name:
            params["SignName"] = msg.sign_name
        if msg.template_params:
            params["TemplateParam"] = compact_json(msg.template_params)
        if msg.uid:
            params["OutId"] = msg.uid
        if msg.extend:
            params["SmsUpExtendCode"] = msg.extend
        url = resolve_endpoint(account, msg, ALIYUN_SMS_HOST) + "/"
        return self._signed_request(url, params, account.api_secret)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        extras = msg.extras
        if msg.template_id.startswith("TTS_"):
            params = self._common_params(account, "SingleCallByTts")
            params["TtsCode"] = msg.template_id
            if msg.template_params:
                params["TtsParam"] = compact_json(msg.template_params)
        else:
            params = self._common_params(account, "SingleCallByVoice")
            params["VoiceCode"] = msg.template_id
        params["CalledNumber"] = msg.mobiles[0]
        show_number = extras.str_or("called_show_number", account.from_)
        if show_number:
            params["CalledShowNumber"] = show_number
        params["PlayTimes"] = str(extras.int_or("play_times", 1))
        params["Volume"] = str(extras.int_or("volume", 100))
        speed, ok = extras.get_int("speed")
        if ok:
            params["Speed"] = str(speed)
        if msg.uid:
            params["OutId"] = msg.uid
        url = base_url(extras.str_or("voice_endpoint", ALIYUN_VOICE_HOST)) + "/"
        return self._signed_request(url, params, account.api_secret)
