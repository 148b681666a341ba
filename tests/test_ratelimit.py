from core.ratelimit import RateLimiter, rate_limiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_quota_per_window():
    clock = FakeClock()
    limiter = RateLimiter(limit=3, window_seconds=60, clock=clock)
    assert [limiter.hit("10.0.0.1") for _ in range(4)] == [True, True, True, False]
    assert limiter.retry_after("10.0.0.1") == 60

    clock.now += 30
    assert limiter.hit("10.0.0.1") is False
    assert limiter.retry_after("10.0.0.1") == 30

    clock.now += 30
    assert limiter.hit("10.0.0.1") is True


def test_clients_are_counted_separately():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    assert limiter.hit("10.0.0.1")
    assert limiter.hit("10.0.0.2")
    assert not limiter.hit("10.0.0.1")


async def test_too_many_requests_envelope(client, monkeypatch):
    monkeypatch.setattr(rate_limiter, "limit", 2)
    assert (await client.get("/health")).status_code == 200
    assert (await client.get("/api/available")).status_code == 200

    resp = await client.get("/health")
    assert resp.status_code == 429
    assert resp.json() == {
        "success": False,
        "message": "Too many requests from this IP, please try again later.",
    }
    assert int(resp.headers["Retry-After"]) > 0


async def test_security_headers_on_every_response(client):
    for path in ("/health", "/nowhere"):
        resp = await client.get(path)
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
