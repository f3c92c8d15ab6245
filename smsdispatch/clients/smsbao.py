from __future__ import annotations
from typing import Dict, List
import re

from ..accounts import Account
from ..errors import UnsupportedInternationalError
from ..models import Message, MessageType, add_signature
from .base import BaseTransformer, HTTPRequestSpec, ResponseHandlerConfig, ResponseType, base_url
from .signing import md5_hex

SMSBAO_BASE = "https://api.smsbao.com"
SMSBAO_DOMESTIC_PATH = "/sms"
SMSBAO_INTL_PATH = "/wsms"
SMSBAO_VOICE_PATH = "/voice"
SMSBAO_MAX_MOBILES = 99

SMSBAO_ERRORS = {
    "30": "password error",
    "40": "account does not exist",
    "41": "insufficient balance",
    "42": "account expired",
    "43": "IP address restriction",
    "50": "content contains sensitive words",
    "51": "incorrect mobile number",
}

_CN_MOBILE_RE = re.compile(r"^1\d{10}$")


class SmsbaoTransformer(BaseTransformer):
    sub_provider = "smsbao"
    response_config = ResponseHandlerConfig(
        body_type=ResponseType.TEXT, check_body=True, expect="0", error_messages=SMSBAO_ERRORS
    )

    def __init__(self):
        super().__init__(
            sms_handler=self._build_sms,
            voice_handler=self._build_voice,
            before_hooks=(self._validate,),
        )

    def _validate(self, msg: Message, account: Account) -> None:
        self.require_credentials(account, "api_key", "api_secret")
        self.require_content(msg)
        if msg.type is MessageType.VOICE:
            self.require_single_recipient(msg, "smsbao voice")
            if msg.is_intl() or not _CN_MOBILE_RE.match(msg.mobiles[0]):
                raise UnsupportedInternationalError(
                    f"smsbao voice only reaches mainland China mobiles, got {msg.mobiles[0]!r}",
                    provider=self.sub_provider,
                    code="unsupported_country",
                )
            return
        self.require_max_recipients(msg, SMSBAO_MAX_MOBILES)

    def _request(self, url: str, query: Dict[str, List[str]]) -> HTTPRequestSpec:
        return HTTPRequestSpec(method="GET", url=url, query_params=query)

    def _auth(self, account: Account) -> Dict[str, List[str]]:
        return {"u": [account.api_key], "p": [md5_hex(account.api_secret)]}

    def _base(self, account: Account, msg: Message) -> str:
        if msg.is_intl() and account.intl_endpoint:
            return base_url(account.intl_endpoint)
        return base_url(account.endpoint) if account.endpoint else SMSBAO_BASE

    def _build_sms(self, msg: Message, account: Account) -> HTTPRequestSpec:
        query = self._auth(account)
        query["m"] = [",".join(msg.mobiles)]
        query["c"] = [add_signature(msg.content, msg.sign_name)]
        if msg.is_intl():
            return self._request(self._base(account, msg) + SMSBAO_INTL_PATH, query)
        product = msg.template_id or account.from_
        if product:
            query["g"] = [product]
        return self._request(self._base(account, msg) + SMSBAO_DOMESTIC_PATH, query)

    def _build_voice(self, msg: Message, account: Account) -> HTTPRequestSpec:
        query = self._auth(account)
        query["m"] = [msg.mobiles[0]]
        query["c"] = [msg.content]
        return self._request(self._base(account, msg) + SMSBAO_VOICE_PATH, query)
