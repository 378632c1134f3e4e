import inspect

import pytest
import redis
from starlette.requests import Request

from ototamirci import config, rate_limiter
from ototamirci.exceptions import RateLimitError


def make_request(forwarded_for=None, host="203.0.113.7"):
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": (host, 5000)})


class UnreachableRedis:
    def ping(self):
        raise redis.ConnectionError("Connection refused")


def test_failed_redis_connect_is_not_retried_on_every_hit(monkeypatch):
    attempts = []

    def from_url(url, **kwargs):
        attempts.append(url)
        return UnreachableRedis()

    monkeypatch.setattr(config, "REDIS_URL", "redis://redis.invalid:6379/0")
    monkeypatch.setattr(rate_limiter.redis, "from_url", from_url)

    results = [rate_limiter.check_rate_limit("api:10.0.0.1", 100, 60) for _ in range(5)]

    assert len(attempts) == 1
    assert [count for _, count, _ in results] == [1, 2, 3, 4, 5]
    assert all(allowed for allowed, _, _ in results)


def test_redis_connect_is_retried_after_interval(monkeypatch):
    attempts = []

    def from_url(url, **kwargs):
        attempts.append(url)
        return UnreachableRedis()

    monkeypatch.setattr(config, "REDIS_URL", "redis://redis.invalid:6379/0")
    monkeypatch.setattr(rate_limiter.redis, "from_url", from_url)

    rate_limiter.get_redis_client()
    monkeypatch.setattr(rate_limiter, "redis_retry_at", 0.0)
    rate_limiter.get_redis_client()

    assert len(attempts) == 2


def test_limiter_is_a_sync_dependency():
    # FastAPI runs sync dependencies in its threadpool
    assert not inspect.iscoroutinefunction(rate_limiter.api_rate_limit)


def test_api_limit_ignores_forwarded_header():
    limiter = rate_limiter.create_rate_limiter(limit=2, window_seconds=60, key_prefix="test-api")

    limiter(make_request("1.1.1.1"))
    limiter(make_request("2.2.2.2"))
    with pytest.raises(RateLimitError):
        limiter(make_request("3.3.3.3"))


def test_trusted_limiter_keys_on_forwarded_header():
    limiter = rate_limiter.create_rate_limiter(limit=1, window_seconds=60, key_prefix="test-login", trust_forwarded=True)

    limiter(make_request("1.1.1.1, 10.0.0.1"))
    limiter(make_request("2.2.2.2"))
    with pytest.raises(RateLimitError) as excinfo:
        limiter(make_request("1.1.1.1"))
    assert "Retry-After" in excinfo.value.headers


def test_client_ip():
    assert rate_limiter.client_ip(make_request("198.51.100.1, 10.0.0.1")) == "198.51.100.1"
    assert rate_limiter.client_ip(make_request("198.51.100.1"), trust_forwarded=False) == "203.0.113.7"
    assert rate_limiter.client_ip(make_request()) == "203.0.113.7"
