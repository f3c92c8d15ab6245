import base64
import hashlib
import json

import pytest

from smsdispatch.accounts import Account
from smsdispatch.clients import get_transformer
from smsdispatch.clients.cl253 import CL253Transformer
from smsdispatch.clients.juhe import JuheTransformer, encode_tpl_value
from smsdispatch.clients.luosimao import LuosimaoTransformer
from smsdispatch.clients.netease import NeteaseTransformer
from smsdispatch.clients.normal import NormalTransformer
from smsdispatch.clients.result import SendResult
from smsdispatch.clients.ucp import UCPTransformer
from smsdispatch.clients.yunpian import YunpianTransformer
from smsdispatch.clients.yuntongxun import YuntongxunTransformer
from smsdispatch.errors import InvalidMessageError, ProviderError, TransportError, UnsupportedCategoryError
from smsdispatch.models import Category, Message, MessageType

FULL_ACCOUNT = Account(name="acct", api_key="key", api_secret="secret", app_id="app", endpoint="", **{"from": "1069"})


def _message(tag, **kw):
    base = dict(
        sub_provider=tag,
        mobiles=["13800138000"],
        content="code 1234",
        sign_name="Acme",
        template_id="SMS_1" if tag == "aliyun" else "1001",
        template_params={"code": "1234"},
        params_order=["1234"],
    )
    if tag == "normal":
        base["extras"] = {"url": "https://gw.example.com/send", "success_path": "ok", "success_value": "true"}
    if tag in ("cl253", "smsbao", "luosimao", "normal"):
        base["template_id"] = ""
    base.update(kw)
    return Message(**base)


# (tag, success body, failure body, expected failure code)
FIXTURES = [
    ("aliyun", b'{"Code":"OK"}', b'{"Code":"isv.BUSINESS_LIMIT_CONTROL","Message":"limit"}', "isv.BUSINESS_LIMIT_CONTROL"),
    ("tencent", b'{"result":0,"errmsg":"OK"}', b'{"result":1016,"errmsg":"bad mobile"}', "1016"),
    ("huawei", b'{"code":"000000"}', b'{"code":"E000623","description":"sp error"}', "E000623"),
    ("submail", b'{"status":"success"}', b'{"status":"error","code":"106","msg":"bad sign"}', "106"),
    ("cl253", b'{"code":"0","msgId":"1"}', b'{"code":"103","errorMsg":"too fast"}', "103"),
    ("luosimao", b'{"error":0,"msg":"ok"}', b'{"error":-20,"msg":"balance"}', "-20"),
    ("smsbao", b"0", b"43", "43"),
    ("juhe", b'{"error_code":0,"reason":"ok"}', b'{"error_code":205401,"reason":"bad mobile"}', "205401"),
    ("yunpian", b'{"code":0,"msg":"OK"}', b'{"code":2,"msg":"bad param"}', "2"),
    ("ucp", b'{"code":"000000","msg":"OK"}', b'{"code":"100015","msg":"bad number"}', "100015"),
    ("yuntongxun", b'{"statusCode":"000000"}', b'{"statusCode":"160038","statusMsg":"too often"}', "160038"),
    ("netease", b'{"code":200,"msg":"1"}', b'{"code":416,"msg":"frequency"}', "416"),
    ("normal", b'{"ok":true}', b'{"ok":false}', "false"),
]


@pytest.mark.parametrize("tag,ok_body,bad_body,code", FIXTURES)
def test_success_and_failure_fixture(tag, ok_body, bad_body, code):
    _, handler = get_transformer(tag).transform(_message(tag), FULL_ACCOUNT)
    handler(SendResult(200, body=ok_body))
    with pytest.raises(ProviderError) as exc:
        handler(SendResult(200, body=bad_body))
    assert exc.value.code == code
    assert exc.value.provider == tag


@pytest.mark.parametrize("tag", [f[0] for f in FIXTURES])
def test_non_2xx_maps_to_transport_error(tag):
    _, handler = get_transformer(tag).transform(_message(tag), FULL_ACCOUNT)
    with pytest.raises(TransportError) as exc:
        handler(SendResult(502, body=b"bad gateway"))
    assert exc.value.status_code == 502
    assert exc.value.body == b"bad gateway"
    assert exc.value.provider == tag


def test_cl253_domestic_and_intl():
    from datetime import datetime

    t = CL253Transformer()
    spec, _ = t.transform(_message("cl253", mobiles=["13800138000", "13800138001"], scheduled_at=datetime(2024, 5, 1, 9, 30)), FULL_ACCOUNT)
    body = spec.json()
    assert spec.url == "https://smssh1.253.com/msg/v1/send/json"
    assert body["account"] == "key" and body["password"] == "secret"
    assert body["phone"] == "13800138000,13800138001"
    assert body["msg"] == "【Acme】code 1234"
    assert body["sendtime"] == "202405010930"

    spec, _ = t.transform(_message("cl253", region_code=44, mobiles=["7700900123"]), FULL_ACCOUNT)
    assert spec.url == "https://intapi.253.com/send/sms"
    assert spec.json()["mobile"] == "447700900123"
    with pytest.raises(InvalidMessageError):
        t.transform(_message("cl253", region_code=44, mobiles=["7700900123", "7700900124"]), FULL_ACCOUNT)


def test_luosimao_auth_batch_and_voice():
    from datetime import datetime

    t = LuosimaoTransformer()
    spec, _ = t.transform(_message("luosimao"), FULL_ACCOUNT)
    assert spec.url == "https://sms-api.luosimao.com/v1/send.json"
    assert spec.headers["Authorization"] == "Basic " + base64.b64encode(b"api:key-secret").decode()
    assert spec.form() == {"mobile": "13800138000", "message": "【Acme】code 1234"}

    spec, _ = t.transform(_message("luosimao", mobiles=["13800138000", "13800138001"], scheduled_at=datetime(2024, 5, 1, 9, 30)), FULL_ACCOUNT)
    assert spec.url.endswith("/v1/send_batch.json")
    assert spec.form()["time"] == "2024-05-01 09:30:00"

    spec, _ = t.transform(_message("luosimao", type=MessageType.VOICE, content="1234"), FULL_ACCOUNT)
    assert spec.url == "https://voice-api.luosimao.com/v1/verify.json"
    assert spec.form()["code"] == "1234"
    with pytest.raises(UnsupportedCategoryError):
        t.transform(_message("luosimao", type=MessageType.VOICE, content="1234", category=Category.NOTIFICATION), FULL_ACCOUNT)


def test_luosimao_v2_errorno():
    _, handler = LuosimaoTransformer().transform(_message("luosimao"), FULL_ACCOUNT)
    handler(SendResult(200, body=b'{"errorno":0}'))
    with pytest.raises(ProviderError):
        handler(SendResult(200, body=b'{"errorno":-10}'))


def test_juhe_domestic_intl_and_mms():
    t = JuheTransformer()
    spec, _ = t.transform(_message("juhe"), FULL_ACCOUNT)
    form = spec.form()
    assert spec.url == "https://v.juhe.cn/sms/send"
    assert form["tpl_value"] == "%23code%23=1234"
    assert form["key"] == "key"

    spec, _ = t.transform(_message("juhe", region_code=44, mobiles=["7700900123"]), FULL_ACCOUNT)
    assert spec.url == "https://v.juhe.cn/smsInternational/send"
    assert spec.form()["areaNum"] == "44"

    spec, _ = t.transform(_message("juhe", type=MessageType.MMS, mobiles=["13800138000", "13800138001"]), FULL_ACCOUNT)
    assert spec.url == "https://v.juhe.cn/caixinv2/send"
    with pytest.raises(InvalidMessageError):
        t.transform(_message("juhe", mobiles=["13800138000", "13800138001"]), FULL_ACCOUNT)


def test_juhe_tpl_value_is_sorted_and_encoded():
    assert encode_tpl_value({"b": "x y", "a": "1&2"}) == "%23a%23=1%262&%23b%23=x+y"


def test_yunpian_routes():
    t = YunpianTransformer()
    spec, _ = t.transform(_message("yunpian"), FULL_ACCOUNT)
    assert spec.url == "https://sms.yunpian.com/v2/sms/tpl_single_send.json"
    assert spec.form()["apikey"] == "secret"
    spec, _ = t.transform(_message("yunpian", template_id="", mobiles=["13800138000", "13800138001"]), FULL_ACCOUNT)
    assert spec.url.endswith("/v2/sms/batch_send.json")
    assert spec.form()["text"] == "【Acme】code 1234"
    spec, _ = t.transform(_message("yunpian", template_id="", region_code=44, mobiles=["7700900123"]), FULL_ACCOUNT)
    assert spec.form()["mobile"] == "+447700900123"
    spec, _ = t.transform(_message("yunpian", type=MessageType.VOICE, content="1234"), FULL_ACCOUNT)
    assert spec.url == "https://voice.yunpian.com/v2/voice/send.json"
    spec, _ = t.transform(_message("yunpian", type=MessageType.MMS), FULL_ACCOUNT)
    assert spec.url == "https://vsms.yunpian.com/v2/vsms/tpl_batch_send.json"
    with pytest.raises(InvalidMessageError):
        t.transform(_message("yunpian", region_code=44, mobiles=["7700900123"]), FULL_ACCOUNT)


def test_ucp_body():
    t = UCPTransformer()
    spec, _ = t.transform(_message("ucp", params_order=["1234", "5"]), FULL_ACCOUNT)
    body = spec.json()
    assert spec.url == "https://open2.ucpaas.com/sms-server/variablesms"
    assert body["param"] == "1234;5"
    assert body["clientid"] == "key"
    spec, _ = t.transform(_message("ucp", mobiles=["13800138000", "13800138001"]), FULL_ACCOUNT)
    assert spec.url.endswith("/templatesms")
    _, handler = t.transform(_message("ucp"), FULL_ACCOUNT)
    handler(SendResult(200, body=b'{"code":0}'))


def test_yuntongxun_signing(clock):
    t = YuntongxunTransformer(clock=clock)
    spec, _ = t.transform(_message("yuntongxun"), FULL_ACCOUNT)
    stamp = "20240301163000"  # 08:30 UTC in Beijing time
    assert spec.url == "https://app.cloopen.com:8883/2013-12-26/Accounts/key/SMS/TemplateSMS"
    assert spec.query_params["sig"] == [hashlib.md5(f"keysecret{stamp}".encode()).hexdigest().upper()]
    assert spec.headers["Authorization"] == base64.b64encode(f"key:{stamp}".encode()).decode()
    assert spec.json() == {"to": "13800138000", "appId": "app", "templateId": "1001", "datas": ["1234"]}

    spec, _ = t.transform(_message("yuntongxun", type=MessageType.VOICE, content="1234"), FULL_ACCOUNT)
    assert spec.url.endswith("/Calls/VoiceVerify")
    assert spec.json()["verifyCode"] == "1234"

    spec, _ = t.transform(_message("yuntongxun", region_code=44, mobiles=["7700900123"]), FULL_ACCOUNT)
    assert spec.url == "https://app.cloopen.com:8883/v2/account/key/international/send"
    assert spec.json()["mobile"] == "00447700900123"


def test_netease_checksum(clock):
    t = NeteaseTransformer(clock=clock)
    spec, _ = t.transform(_message("netease"), FULL_ACCOUNT)
    headers = spec.headers
    assert spec.url == "https://api.netease.im/sms/sendcode.action"
    assert headers["AppKey"] == "key"
    assert headers["Nonce"] == clock.nonce()
    assert headers["CheckSum"] == hashlib.sha1(f"secret{headers['Nonce']}{headers['CurTime']}".encode()).hexdigest()
    assert spec.form()["authCode"] == "code 1234"

    spec, _ = t.transform(_message("netease", category=Category.NOTIFICATION, mobiles=["13800138000", "13800138001"]), FULL_ACCOUNT)
    form = spec.form()
    assert spec.url.endswith("/sendtemplate.action")
    assert json.loads(form["mobiles"]) == ["13800138000", "13800138001"]
    assert json.loads(form["params"]) == ["1234"]


def test_normal_channel_variants():
    t = NormalTransformer()
    spec, _ = t.transform(_message("normal", content="hi #name#", template_params={"name": "bob"}), FULL_ACCOUNT)
    body = spec.json()
    assert spec.url == "https://gw.example.com/send"
    assert body["content"] == "【Acme】hi bob"
    assert body["app_id"] == "app"

    spec, handler = t.transform(
        _message("normal", extras={"url": "https://gw.example.com/q", "method": "get", "extra_channel": "7"}),
        FULL_ACCOUNT,
    )
    assert spec.method == "GET"
    assert spec.query_params["channel"] == ["7"]
    handler(SendResult(200, body=b"anything"))

    spec, _ = t.transform(
        _message("normal", extras={"url": "https://gw.example.com/raw", "body_template": '{"to":"{{mobile}}","text":"{{content}}"}'}),
        FULL_ACCOUNT,
    )
    assert json.loads(spec.body) == {"to": "13800138000", "text": "【Acme】code 1234"}

    with pytest.raises(InvalidMessageError):
        t.transform(_message("normal", extras={}), FULL_ACCOUNT)


@pytest.mark.parametrize("extras", [
    {"url": "https://gw.example.com/send"},
    {"url": "https://gw.example.com/send", "success_path": "result", "success_value": "ok"},
])
def test_normal_channel_builds_with_bare_account(extras):
    msg = Message(sub_provider="normal", mobiles=["13800138000"], content="hello", extras=extras)
    spec, handler = NormalTransformer().transform(msg, Account(name="a"))
    assert spec.json() == {"mobile": "13800138000", "content": "hello"}
    handler(SendResult(200, body=b'{"result":"ok"}'))
    with pytest.raises(TransportError):
        handler(SendResult(502, body=b"bad gateway"))
