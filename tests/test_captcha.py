import asyncio

import httpx
import pytest

from ototamirci import captcha, config
from ototamirci.exceptions import ValidationError

RealAsyncClient = httpx.AsyncClient


def use_transport(monkeypatch, handler):
    monkeypatch.setattr(config, "RECAPTCHA_SECRET_KEY", "server-secret")
    monkeypatch.setattr(
        captcha.httpx, "AsyncClient", lambda: RealAsyncClient(transport=httpx.MockTransport(handler))
    )


def test_skipped_without_secret(monkeypatch):
    monkeypatch.setattr(config, "RECAPTCHA_SECRET_KEY", "")
    assert asyncio.run(captcha.verify_captcha(None)) is None


def test_missing_token_is_rejected(monkeypatch):
    monkeypatch.setattr(config, "RECAPTCHA_SECRET_KEY", "server-secret")
    with pytest.raises(ValidationError):
        asyncio.run(captcha.verify_captcha(None))


def test_accepted_token(monkeypatch):
    seen = {}

    def handler(request):
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"success": True})

    use_transport(monkeypatch, handler)
    asyncio.run(captcha.verify_captcha("token-123", "10.0.0.1"))

    assert seen["params"] == {"secret": "server-secret", "response": "token-123", "remoteip": "10.0.0.1"}


def test_rejected_token(monkeypatch):
    use_transport(monkeypatch, lambda request: httpx.Response(200, json={"success": False}))
    with pytest.raises(ValidationError):
        asyncio.run(captcha.verify_captcha("bad-token"))


def test_outage_lets_registration_through(monkeypatch):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    use_transport(monkeypatch, handler)
    assert asyncio.run(captcha.verify_captcha("token-123")) is None
