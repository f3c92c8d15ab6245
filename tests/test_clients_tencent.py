import hashlib
import zlib
from datetime import datetime, timezone

import pytest

from smsdispatch.accounts import Account
from smsdispatch.clients.result import SendResult
from smsdispatch.clients.signing import FixedClock
from smsdispatch.clients.tencent import TencentTransformer
from smsdispatch.errors import InvalidMessageError, ProviderError
from smsdispatch.models import Category, Message, MessageType

ACCOUNT = Account(name="tc", sub_type="tencent", app_id="1400000000", api_secret="appkey")


def _msg(**kw):
    base = dict(sub_provider="tencent", mobiles=["13800138000"], template_id="1001", params_order=["1234"], sign_name="Acme")
    base.update(kw)
    return Message(**base)


def test_single_template_sms(clock):
    spec, _ = TencentTransformer(clock=clock).transform(_msg(), ACCOUNT)
    body = spec.json()
    random = spec.query_params["random"][0]
    assert spec.url == "https://yun.tim.qq.com/v5/tlssmssvr/sendsms"
    assert spec.query_params["sdkappid"] == ["1400000000"]
    assert body["tel"] == {"mobile": "13800138000", "nationcode": "86"}
    assert body["tpl_id"] == 1001
    assert body["params"] == ["1234"]
    assert body["sign"] == "Acme"
    ts = int(clock.now().timestamp())
    assert body["time"] == ts
    expected = hashlib.sha256(f"appkey=appkey&random={random}&time={ts}&mobile=13800138000".encode()).hexdigest()
    assert body["sig"] == expected


def test_multi_sms_signs_all_mobiles(clock):
    spec, _ = TencentTransformer(clock=clock).transform(_msg(mobiles=["13800138000", "13800138001"]), ACCOUNT)
    body = spec.json()
    random = spec.query_params["random"][0]
    assert spec.url.endswith("/sendmultisms2")
    assert [t["mobile"] for t in body["tel"]] == ["13800138000", "13800138001"]
    ts = body["time"]
    expected = hashlib.sha256(f"appkey=appkey&random={random}&time={ts}&mobile=13800138000,13800138001".encode()).hexdigest()
    assert body["sig"] == expected


def test_free_text_and_determinism(clock):
    t = TencentTransformer(clock=clock)
    first, _ = t.transform(_msg(template_id="", content="hello", category=Category.PROMOTION), ACCOUNT)
    second, _ = t.transform(_msg(template_id="", content="hello", category=Category.PROMOTION), ACCOUNT)
    assert first.body == second.body
    assert first.json()["msg"] == "hello"
    assert first.json()["type"] == 1


def test_voice_paths(clock):
    t = TencentTransformer(clock=clock)
    spec, _ = t.transform(_msg(type=MessageType.VOICE, template_id="", content="1234"), ACCOUNT)
    assert spec.url == "https://cloud.tim.qq.com/v5/tlsvoicesvr/sendcvoice"
    spec, _ = t.transform(_msg(type=MessageType.VOICE, category=Category.NOTIFICATION), ACCOUNT)
    assert spec.url.endswith("/sendtvoice")
    with pytest.raises(InvalidMessageError):
        t.transform(_msg(type=MessageType.VOICE, mobiles=["13800138000", "13800138001"]), ACCOUNT)


def test_domestic_template_requires_sign():
    with pytest.raises(InvalidMessageError):
        TencentTransformer().transform(_msg(sign_name=""), ACCOUNT)


def test_response():
    _, handler = TencentTransformer().transform(_msg(), ACCOUNT)
    handler(SendResult(200, body=b'{"result":0,"errmsg":"OK"}'))
    with pytest.raises(ProviderError) as exc:
        handler(SendResult(200, body=b'{"result":1014,"errmsg":"package format error"}'))
    assert exc.value.code == "1014"


def test_random_accepts_non_numeric_nonce():
    clock = FixedClock(datetime(2024, 3, 1, tzinfo=timezone.utc), nonce="req-7f3a")
    spec, _ = TencentTransformer(clock=clock).transform(_msg(), ACCOUNT)
    random = spec.query_params["random"][0]
    assert random == str(zlib.crc32(b"req-7f3a"))
    ts = spec.json()["time"]
    expected = hashlib.sha256(f"appkey=appkey&random={random}&time={ts}&mobile=13800138000".encode()).hexdigest()
    assert spec.json()["sig"] == expected
