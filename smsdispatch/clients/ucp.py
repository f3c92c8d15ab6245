from __future__ import annotations
from typing import Any, Dict

from ..accounts import Account
from ..models import Message
from .base import BaseTransformer, BodyType, HTTPRequestSpec, ResponseHandlerConfig, base_url, json_body

UCP_BASE = "https://open2.ucpaas.com/sms-server"
UCP_SINGLE_PATH = "/variablesms"
UCP_BATCH_PATH = "/templatesms"
UCP_MAX_MOBILES = 100


class UCPTransformer(BaseTransformer):
    sub_provider = "ucp"
    # v1 answers code 0, v2 answers "000000"
    response_config = ResponseHandlerConfig(check_body=True, path="code", expect=("0", "000000"), message_path="msg")

    def __init__(self):
        super().__init__(sms_handler=self._build_sms, before_hooks=(self._validate,))

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        self.require_template(msg)
        self.require_max_recipients(msg, UCP_MAX_MOBILES)

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        params = list(msg.params_order) or [str(v) for v in msg.template_params.values()]
        payload: Dict[str, Any] = {
            "clientid": account.api_key,
            "password": account.api_secret,
            "templateid": msg.template_id,
            "mobile": ",".join(msg.mobiles),
            "param": ";".join(params),
        }
        if msg.uid:
            payload["uid"] = msg.uid
        base = base_url(account.endpoint) if account.endpoint else UCP_BASE
        path = UCP_BATCH_PATH if msg.has_multiple_recipients() else UCP_SINGLE_PATH
        return HTTPRequestSpec(
            method="POST",
            url=base + path,
            headers={"Content-Type": "application/json;charset=utf-8", "Accept": "application/json"},
            body=json_body(payload),
            body_type=BodyType.JSON,
        )
