from __future__ import annotations
from typing import Dict

from ..accounts import Account
from ..models import Message, MessageType, add_signature
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, form_body
from .juhe import encode_tpl_value

YUNPIAN_SMS_BASE = "https://sms.yunpian.com"
YUNPIAN_VOICE_BASE = "https://voice.yunpian.com"
YUNPIAN_VSMS_BASE = "https://vsms.yunpian.com"

YUNPIAN_SINGLE_SEND = "/v2/sms/single_send.json"
YUNPIAN_BATCH_SEND = "/v2/sms/batch_send.json"
YUNPIAN_TPL_SINGLE_SEND = "/v2/sms/tpl_single_send.json"
YUNPIAN_TPL_BATCH_SEND = "/v2/sms/tpl_batch_send.json"
YUNPIAN_VOICE_SEND = "/v2/voice/send.json"
YUNPIAN_VSMS_SEND = "/v2/vsms/tpl_batch_send.json"
YUNPIAN_MAX_MOBILES = 1000


class YunpianTransformer(BaseTransformer):
    sub_provider = "yunpian"
    response_config = ResponseHandlerConfig(check_body=True, path="code", expect="0", message_path=("msg", "detail"))

    def __init__(self):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            mms_handler=self._build_mms,
            before_hooks=(self._validate,),
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_secret")
        if msg.type is MessageType.VOICE:
            self.require_domestic(msg, "yunpian voice")
            self.require_single_recipient(msg, "yunpian voice")
            self.require_content(msg)
            return
        if msg.type is MessageType.MMS:
            self.require_domestic(msg, "yunpian mms")
            self.require_template(msg)
            return
        if msg.is_intl():
            self.require_single_recipient(msg, "yunpian international sms")
            if msg.template_id:
                raise self.invalid("yunpian international sms does not take templates", "template_not_allowed")
            self.require_content(msg)
            return
        if not msg.template_id and not msg.content:
            raise self.invalid("yunpian needs a template id or content", "missing_content")
        self.require_max_recipients(msg, YUNPIAN_MAX_MOBILES)

    def _fields(self, msg: Message, account: Account) -> Dict[str, str]:
        fields = {"apikey": account.api_secret}
        if msg.extend:
            fields["extend"] = msg.extend
        if msg.uid:
            fields["uid"] = msg.uid
        if msg.callback_url:
            fields["callback_url"] = msg.callback_url
        for flag in ("register", "mobile_stat"):
            value, ok = msg.extras.get_bool(flag)
            if ok:
                fields[flag] = "true" if value else "false"
        return fields

    def _request(self, url: str, fields: Dict[str, str]) -> HTTPRequestSpec:
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={"Content-Type": "application/x-www-form-urlencoded;charset=utf-8"},
            body=form_body(fields),
            body_type=BodyType.FORM,
        )

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        base = base_url(account.endpoint) if account.endpoint else YUNPIAN_SMS_BASE
        fields = self._fields(msg, account)
        if msg.is_intl():
            mobile = msg.mobiles[0]
            fields["mobile"] = mobile if mobile.startswith("+") else f"+{msg.region_code}{mobile}"
            fields["text"] = add_signature(msg.content, msg.sign_name)
            return self._request(base + YUNPIAN_SINGLE_SEND, fields)
        batch = msg.has_multiple_recipients()
        fields["mobile"] = ",".join(msg.mobiles)
        if msg.template_id:
            fields["tpl_id"] = msg.template_id
            fields["tpl_value"] = encode_tpl_value(msg.template_params)
            return self._request(base + (YUNPIAN_TPL_BATCH_SEND if batch else YUNPIAN_TPL_SINGLE_SEND), fields)
        fields["text"] = add_signature(msg.content, msg.sign_name)
        return self._request(base + (YUNPIAN_BATCH_SEND if batch else YUNPIAN_SINGLE_SEND), fields)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        fields = self._fields(msg, account)
        fields["mobile"] = msg.mobiles[0]
        fields["code"] = msg.content
        base = msg.extras.str_or("voice_endpoint", YUNPIAN_VOICE_BASE)
        return self._request(base_url(base) + YUNPIAN_VOICE_SEND, fields)

    def _build_mms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        fields = self._fields(msg, account)
        fields["mobile"] = ",".join(msg.mobiles)
        fields["tpl_id"] = msg.template_id
        base = msg.extras.str_or("mms_endpoint", YUNPIAN_VSMS_BASE)
        return self._request(base_url(base) + YUNPIAN_VSMS_SEND, fields)
