import asyncio
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from smsdispatch import Message, MessageType, new, use_account
from smsdispatch.errors import (
    ConfigurationError,
    InvalidMessageError,
    NoAvailableAccountError,
    ProviderError,
    SendCancelledError,
    TransportError,
    UnsupportedSubProviderError,
)
from smsdispatch.logging import structlog_context

ALIYUN_URL = "https://dysmsapi.aliyuncs.com/"

CONFIG = {
    "strategy": "weighted",
    "items": [
        {"name": "primary", "sub_type": "aliyun", "weight": 100, "api_key": "ak-primary", "api_secret": "sk"},
        {"name": "secondary", "sub_type": "aliyun", "weight": 1, "api_key": "ak-secondary", "api_secret": "sk"},
        {"name": "gateway", "sub_type": "normal", "endpoint": "https://gw.example.com/send"},
    ],
}


def _aliyun_msg(**kw):
    base = dict(
        sub_provider="aliyun",
        mobiles=["13800138000"],
        sign_name="sign",
        template_id="SMS_123456",
        template_params={"code": "1234"},
    )
    base.update(kw)
    return Message(**base)


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.mark.asyncio
@respx.mock
async def test_aliyun_happy_path():
    route = respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "OK", "Message": "OK"}))
    async with new(CONFIG) as provider:
        result = await provider.send(_aliyun_msg())
    assert route.called
    form = _form(route.calls.last.request)
    assert form["PhoneNumbers"] == "13800138000"
    assert form["SignName"] == "sign"
    assert form["TemplateCode"] == "SMS_123456"
    assert form["TemplateParam"] == '{"code":"1234"}'
    assert "Signature" in form
    assert route.calls.last.request.headers["content-type"] == "application/x-www-form-urlencoded"
    assert result.status_code == 200


@pytest.mark.asyncio
@respx.mock
async def test_aliyun_business_failure():
    respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "isv.INVALID", "Message": "invalid"}))
    async with new(CONFIG) as provider:
        with pytest.raises(ProviderError) as exc:
            await provider.send(_aliyun_msg())
    assert exc.value.code == "isv.INVALID"
    assert "aliyun" in str(exc.value) and "isv.INVALID" in str(exc.value)
    assert exc.value.retryable is False


@pytest.mark.asyncio
@respx.mock
async def test_non_2xx_is_transport_error():
    respx.post(ALIYUN_URL).mock(return_value=httpx.Response(503, text="try later"))
    async with new(CONFIG) as provider:
        with pytest.raises(TransportError) as exc:
            await provider.send(_aliyun_msg())
    assert exc.value.status_code == 503
    assert exc.value.body == b"try later"
    assert exc.value.retryable is True


@pytest.mark.asyncio
@respx.mock
async def test_network_failure_is_transport_error():
    respx.post(ALIYUN_URL).mock(side_effect=httpx.ConnectError("refused"))
    async with new(CONFIG) as provider:
        with pytest.raises(TransportError) as exc:
            await provider.send(_aliyun_msg())
    assert exc.value.code == "network_error"


@pytest.mark.asyncio
@respx.mock
async def test_preferred_account_override():
    route = respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "OK"}))
    async with new(CONFIG) as provider:
        with use_account("secondary"):
            for _ in range(20):
                await provider.send(_aliyun_msg())
        await provider.send(_aliyun_msg(), account="secondary")
    keys = {_form(call.request)["AccessKeyId"] for call in route.calls}
    assert keys == {"ak-secondary"}
    assert route.call_count == 21


@pytest.mark.asyncio
async def test_cancellation_aborts_inflight_request():
    started = asyncio.Event()
    calls = []

    async def slow(request):
        calls.append(request)
        started.set()
        await asyncio.sleep(10)
        return httpx.Response(200, json={"Code": "OK"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(slow))
    provider = new(CONFIG, client=client)
    task = asyncio.create_task(provider.send(_aliyun_msg()))
    await asyncio.wait_for(started.wait(), timeout=1)
    loop = asyncio.get_running_loop()
    t0 = loop.time()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert loop.time() - t0 < 0.05
    assert len(calls) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_deadline_raises_cancelled_not_transport():
    async def slow(request):
        await asyncio.sleep(10)
        return httpx.Response(200, json={"Code": "OK"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
        provider = new(CONFIG, client=client)
        with pytest.raises(SendCancelledError) as exc:
            await provider.send(_aliyun_msg(), timeout=0.05)
    assert exc.value.kind.value == "cancelled"
    assert not isinstance(exc.value, TransportError)


@pytest.mark.asyncio
async def test_response_body_is_bounded():
    def big(request):
        return httpx.Response(200, content=b"x" * 500)

    async with httpx.AsyncClient(transport=httpx.MockTransport(big)) as client:
        provider = new(CONFIG, client=client, max_body_bytes=100)
        with pytest.raises(TransportError) as exc:
            await provider.send(_aliyun_msg())
    assert exc.value.code == "response_too_large"


@pytest.mark.asyncio
@respx.mock
async def test_default_headers_and_query_params():
    route = respx.route(method="GET", host="gw.example.com", path="/send").mock(return_value=httpx.Response(200, text="ok"))
    msg = Message(sub_provider="normal", mobiles=["13800138000"], content="hi", extras={"method": "GET", "extra_channel": "7"})
    async with new(CONFIG) as provider:
        await provider.send(msg)
    request = route.calls.last.request
    assert request.url.params["channel"] == "7"
    assert request.url.params["mobile"] == "13800138000"
    assert request.headers["user-agent"].startswith("smsdispatch/")

    json_route = respx.post("https://gw.example.com/send").mock(return_value=httpx.Response(200, text="ok"))
    async with new(CONFIG) as provider:
        await provider.send(Message(sub_provider="normal", mobiles=["13800138000"], content="hi"))
    assert json_route.calls.last.request.headers["content-type"] == "application/json"


@pytest.mark.asyncio
@respx.mock
async def test_local_failures_never_hit_the_network():
    route = respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "OK"}))
    async with new(CONFIG) as provider:
        with pytest.raises(InvalidMessageError):
            await provider.send(_aliyun_msg(mobiles=[]))
        with pytest.raises(InvalidMessageError) as exc:
            await provider.send(_aliyun_msg(sub_provider=""))
        assert exc.value.code == "missing_subprovider"
        with pytest.raises(UnsupportedSubProviderError):
            await provider.send(_aliyun_msg(sub_provider="carrier-pigeon"))
        with pytest.raises(NoAvailableAccountError):
            await provider.send(Message(sub_provider="huawei", mobiles=["13800138000"], template_id="T", sign_name="S"))
    assert not route.called


@pytest.mark.asyncio
@respx.mock
async def test_log_context_is_scoped_to_the_send():
    respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "OK"}))
    async with new(CONFIG) as provider:
        await provider.send(_aliyun_msg())
    assert all(var.get() is None for var in structlog_context.values())


def test_new_rejects_unusable_pools():
    with pytest.raises(ConfigurationError):
        new({"items": []})
    with pytest.raises(ConfigurationError):
        new({"disabled": True, "items": [{"name": "a"}]})
    with pytest.raises(ConfigurationError):
        new({"items": [{"name": "a", "disabled": True}]})


@pytest.mark.asyncio
@respx.mock
async def test_concurrent_sends_round_robin():
    route = respx.post(ALIYUN_URL).mock(return_value=httpx.Response(200, json={"Code": "OK"}))
    cfg = {**CONFIG, "strategy": "round_robin"}
    async with new(cfg) as provider:
        await asyncio.gather(*(provider.send(_aliyun_msg()) for _ in range(10)))
    keys = [_form(call.request)["AccessKeyId"] for call in route.calls]
    assert keys.count("ak-primary") == 5
    assert keys.count("ak-secondary") == 5


@pytest.mark.asyncio
@respx.mock
async def test_voice_through_provider():
    route = respx.post("https://dyvmsapi.aliyuncs.com/").mock(return_value=httpx.Response(200, json={"Code": "OK"}))
    async with new(CONFIG) as provider:
        await provider.send(_aliyun_msg(type=MessageType.VOICE, template_id="TTS_100"))
    assert _form(route.calls.last.request)["Action"] == "SingleCallByTts"
