from __future__ import annotations
from typing import Dict, Mapping
from urllib.parse import quote_plus

from ..accounts import Account
from ..models import Message, MessageType
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, form_body, resolve_endpoint

JUHE_BASE = "https://v.juhe.cn"
JUHE_SMS_PATH = "/sms/send"
JUHE_INTL_PATH = "/smsInternational/send"
JUHE_MMS_PATH = "/caixinv2/send"


def encode_tpl_value(params: Mapping[str, str]) -> str:
    """Juhe's `#key#=value&...` template variable string, each side url-encoded."""
    return "&".join(f"{quote_plus(f'#{k}#')}={quote_plus(str(params[k]))}" for k in sorted(params))


class JuheTransformer(BaseTransformer):
    sub_provider = "juhe"
    response_config = ResponseHandlerConfig(check_body=True, path="error_code", expect="0", message_path="reason")

    def __init__(self):
        super().__init__(sms_handler=self._build_sms, mms_handler=self._build_mms, before_hooks=(self._validate,))

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key")
        self.require_template(msg)
        if msg.type is MessageType.TEXT:
            self.require_single_recipient(msg, "juhe sms")

    def _request(self, url: str, fields: Dict[str, str]) -> HTTPRequestSpec:
        return HTTPRequestSpec(
            method="POST",
            url=url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            body=form_body(fields),
            body_type=BodyType.FORM,
        )

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        fields = {
            "mobile": msg.mobiles[0],
            "tpl_id": msg.template_id,
            "tpl_value": encode_tpl_value(msg.template_params),
            "key": account.api_key,
        }
        if msg.extend:
            fields["ext"] = msg.extend
        base = resolve_endpoint(account, msg, JUHE_BASE)
        if msg.is_intl():
            fields["areaNum"] = str(msg.region_code)
            return self._request(base + JUHE_INTL_PATH, fields)
        return self._request(base + JUHE_SMS_PATH, fields)

    def _build_mms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        fields = {
            "mobile": ",".join(msg.mobiles),
            "tpl_id": msg.template_id,
            "tpl_value": encode_tpl_value(msg.template_params),
            "key": account.api_key,
        }
        return self._request(resolve_endpoint(account, msg, JUHE_BASE) + JUHE_MMS_PATH, fields)
