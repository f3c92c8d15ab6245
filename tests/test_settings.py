from smsdispatch.core.settings import Settings
from smsdispatch.services.dispatcher import HTTPDispatcher


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SMSDISPATCH_HTTP_TIMEOUT", "5")
    monkeypatch.setenv("SMSDISPATCH_USER_AGENT", "acme-sms/2")
    settings = Settings()
    assert settings.HTTP_TIMEOUT == 5.0
    assert settings.USER_AGENT == "acme-sms/2"
    assert settings.MAX_RESPONSE_BYTES == 1024 * 1024


def test_explicit_arguments_win():
    dispatcher = HTTPDispatcher(timeout=2.5, max_body_bytes=64, user_agent="x/1")
    assert dispatcher.timeout == 2.5
    assert dispatcher.max_body_bytes == 64
    assert dispatcher.user_agent == "x/1"
