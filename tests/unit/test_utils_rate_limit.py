from contextlib import asynccontextmanager

from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient
from fastapi_limiter import FastAPILimiter
from redis.exceptions import ConnectionError as RedisConnectionError

from storefront.utils import rate_limit
from storefront.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60, lifespan=None):
    app = FastAPI(lifespan=lifespan)
    dep = optional_rate_limit(times, seconds)

    @app.get("/limitedA", dependencies=[Depends(dep)])
    def limited_a():
        return {"ok": True}

    @app.get("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    app.state.limited_a_dep = dep
    return app

@asynccontextmanager
async def _fake_redis_lifespan(app: FastAPI):
    await FastAPILimiter.init(FakeRedis(server=FakeServer()))
    yield


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2))
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429


def test_rate_limit_fallback_accepts_true(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "true")
    client = TestClient(_make_app(times=1))
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429


def test_rate_limit_is_per_path_and_client_ip(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1))
    assert client.get("/limitedA", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200
    assert client.get("/limitedA", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
    # autre IP, autre chemin: compteurs indépendants
    assert client.get("/limitedA", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200
    assert client.get("/limitedB", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 200


def test_rate_limit_fallback_drops_expired_keys(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    clock = {"now": 1000.0}
    monkeypatch.setattr(rate_limit, "_now", lambda: clock["now"])
    app = _make_app(times=1, seconds=60)
    client = TestClient(app)
    for i in range(3):
        client.get("/limitedA", headers={"X-Forwarded-For": f"10.0.0.{i}"})
    hits = app.state.limited_a_dep.hits_by_key
    assert len(hits) == 3

    clock["now"] += 61
    assert client.get("/limitedA", headers={"X-Forwarded-For": "10.0.0.9"}).status_code == 200
    assert list(hits) == ["ip:10.0.0.9:/limitedA"]


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1)
    app.state.rate_limit_enabled = False
    client = TestClient(app)
    for _ in range(3):
        assert client.get("/limitedA").status_code == 200


def test_rate_limit_uses_redis_when_initialised(monkeypatch):
    monkeypatch.setattr(FastAPILimiter, "redis", None)
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=2, lifespan=_fake_redis_lifespan)
    with TestClient(app) as client:
        codes = [client.get("/limitedA").status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        assert client.get("/limitedB").status_code == 200
        assert client.get("/rl_info").json()["ready"] is True


class _DownRedisLimiter:
    calls = 0

    def __init__(self, **kwargs):
        pass

    async def __call__(self, request, response):
        type(self).calls += 1
        raise RedisConnectionError("redis down")


def test_redis_error_lets_request_through(monkeypatch):
    monkeypatch.setattr(rate_limit, "RateLimiter", _DownRedisLimiter)
    monkeypatch.setattr(FastAPILimiter, "redis", object())
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    _DownRedisLimiter.calls = 0
    client = TestClient(_make_app(times=1))
    assert [client.get("/limitedA").status_code for _ in range(2)] == [200, 200]
    assert _DownRedisLimiter.calls == 2


def test_redis_error_uses_local_fallback_when_enabled(monkeypatch):
    monkeypatch.setattr(rate_limit, "RateLimiter", _DownRedisLimiter)
    monkeypatch.setattr(FastAPILimiter, "redis", object())
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "yes")
    client = TestClient(_make_app(times=1))
    assert [client.get("/limitedA").status_code for _ in range(2)] == [200, 429]


def test_rate_limit_health_info_when_disabled():
    app = _make_app()
    app.state.rate_limit_enabled = False
    info = TestClient(app).get("/rl_info").json()
    assert info["enabled"] is False
    assert info["backend"] in (None, "redis")
