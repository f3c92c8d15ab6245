from __future__ import annotations
from typing import Any, Dict

from ..accounts import Account
from ..models import Message, add_signature
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, json_body

CL253_DOMESTIC_URL = "https://smssh1.253.com/msg/v1/send/json"
CL253_INTL_URL = "https://intapi.253.com/send/sms"
CL253_MAX_MOBILES = 1000


class CL253Transformer(BaseTransformer):
    sub_provider = "cl253"
    # domestic answers carry `code`, some gateways answer `status`
    response_config = ResponseHandlerConfig(
        check_body=True, path=("code", "status"), expect="0", message_path=("errorMsg", "message")
    )

    def __init__(self):
        super().__init__(sms_handler=self._build_sms, before_hooks=(self._validate,))

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        self.require_content(msg)
        if msg.is_intl():
            self.require_single_recipient(msg, "cl253 international sms")
            return
        if not msg.sign_name and not msg.content.startswith("【"):
            raise self.invalid("cl253 domestic sms needs a sign name", "missing_sign_name")
        self.require_max_recipients(msg, CL253_MAX_MOBILES)

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        extras = msg.extras
        payload: Dict[str, Any] = {"account": account.api_key, "password": account.api_secret}
        if msg.is_intl():
            payload["mobile"] = f"{msg.region_code}{msg.mobiles[0].lstrip('+')}"
            payload["msg"] = msg.content
            for key, extra in (("tdFlag", "td_flag"), ("templateId", "template_id"), ("senderId", "sender_id")):
                value = extras.str_or(extra)
                if value:
                    payload[key] = value
            if msg.template_id:
                payload["templateId"] = msg.template_id
            if msg.uid:
                payload["uid"] = msg.uid
            url = base_url(account.intl_endpoint) if account.intl_endpoint else CL253_INTL_URL
        else:
            payload["msg"] = add_signature(msg.content, msg.sign_name)
            payload["phone"] = ",".join(msg.mobiles)
            report, ok = extras.get_bool("report")
            if ok:
                payload["report"] = "true" if report else "false"
            if msg.callback_url:
                payload["callbackUrl"] = msg.callback_url
            if msg.uid:
                payload["uid"] = msg.uid
            if msg.extend:
                payload["extend"] = msg.extend
            if msg.scheduled_at is not None:
                payload["sendtime"] = msg.scheduled_at.strftime("%Y%m%d%H%M")
            url = base_url(account.endpoint) if account.endpoint else CL253_DOMESTIC_URL
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={"Content-Type": "application/json"},
            body=json_body(payload),
            body_type=BodyType.JSON,
        )
