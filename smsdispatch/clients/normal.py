"""Generic HTTP channel for gateways without a dedicated adapter.

Driven entirely by the account and message extras:

* ``url`` (or ``Account.endpoint``): target URL
* ``method``: HTTP method, default POST
* ``content_type``: ``json`` (default) or ``form``
* ``body_template``: optional raw body with ``{{mobile}}``/``{{content}}`` placeholders
* ``extra_<name>``: copied into the body as ``<name>``
* ``success_path``/``success_value``/``success_mode``: optional body check
"""
from __future__ import annotations
from typing import Any, Dict

from ..accounts import Account
from ..models import Message, add_signature, render_template
from .base import (
    BaseTransformer,
    BodyType,
    HTTPRequestSpec,
    MatchMode,
    ResponseHandlerConfig,
    build_response_handler,
    form_body,
    json_body,
)

_METHODS = frozenset({"GET", "POST", "PUT", "PATCH"})


class NormalTransformer(BaseTransformer):
    sub_provider = "normal"

    def __init__(self):
        super().__init__(sms_handler=self._build_sms, before_hooks=(self._validate,))

    def _validate(self, msg: Message, account: Account) -> None:
        if not msg.extras.str_or("url", account.endpoint):
            raise self.invalid("normal channel needs a url extra or an account endpoint", "missing_url")
        if msg.extras.str_or("method", "POST").upper() not in _METHODS:
            raise self.invalid(f"unsupported method {msg.extras.str_or('method')!r}", "invalid_method")
        if msg.extras.str_or("content_type", "json") not in ("json", "form"):
            raise self.invalid("content_type must be json or form", "invalid_content_type")
        if msg.extras.str_or("success_mode", MatchMode.EQ.value) not in {m.value for m in MatchMode}:
            raise self.invalid("success_mode must be eq, not_eq or contains", "invalid_success_mode")
        self.require_content(msg)

    def _success_handler(self, msg: Message):
        path = msg.extras.str_or("success_path")
        if not path:
            return None
        config = ResponseHandlerConfig(
            check_body=True,
            path=path,
            expect=msg.extras.str_or("success_value"),
            mode=MatchMode(msg.extras.str_or("success_mode", MatchMode.EQ.value)),
            message_path=msg.extras.str_or("message_path"),
        )
        return build_response_handler(config, self.sub_provider)

    def _build_sms(self, msg: Message, account: Account):
        extras = msg.extras
        content = add_signature(render_template(msg.content, msg.template_params), msg.sign_name)
        mobile = ",".join(msg.mobiles)
        method = extras.str_or("method", "POST").upper()
        url = extras.str_or("url", account.endpoint)
        content_type = extras.str_or("content_type", "json")

        template = extras.str_or("body_template")
        if template:
            body = template.replace("{{mobile}}", mobile).replace("{{content}}", content).encode("utf-8")
            header = "application/json" if content_type == "json" else "application/x-www-form-urlencoded"
            spec = HTTPRequestSpec(method=method, url=url, headers={"Content-Type": header}, body=body, body_type=BodyType.RAW)
            return spec, self._success_handler(msg)

        fields: Dict[str, Any] = {"mobile": mobile, "content": content}
        if account.app_id or account.api_key:
            fields["app_id"] = account.app_id or account.api_key
        if account.api_secret:
            fields["app_secret"] = account.api_secret
        for key, value in extras.items():
            if key.startswith("extra_"):
                fields[key[len("extra_"):]] = value

        if method == "GET":
            query = {k: [str(v)] for k, v in fields.items()}
            spec = HTTPRequestSpec(method=method, url=url, query_params=query)
        elif content_type == "form":
            spec = HTTPRequestSpec(method=method, url=url, body=form_body(fields), body_type=BodyType.FORM)
        else:
            spec = HTTPRequestSpec(method=method, url=url, body=json_body(fields), body_type=BodyType.JSON)
        return spec, self._success_handler(msg)
