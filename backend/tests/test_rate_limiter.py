from types import SimpleNamespace

import pytest

from authgate.services import rate_limiter as rate_limiter_module
from authgate.services.rate_limiter import SWEEP_INTERVAL_SECONDS, InMemoryRateLimiter, RateLimit

PER_MINUTE = RateLimit("minute", 2, 60)
PER_HOUR = RateLimit("hour", 3, 3600)


@pytest.fixture
def clock(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_limiter_module, "time", SimpleNamespace(monotonic=lambda: now[0]))
    return now


def test_hit_until_limit():
    limiter = InMemoryRateLimiter()
    assert limiter.hit("10.0.0.1", PER_MINUTE) is None
    assert limiter.hit("10.0.0.1", PER_MINUTE) is None
    assert limiter.hit("10.0.0.1", PER_MINUTE) is PER_MINUTE
    assert limiter.hit("10.0.0.2", PER_MINUTE) is None


def test_rejected_attempt_is_not_recorded(clock):
    limiter = InMemoryRateLimiter()
    limiter.hit("k", PER_MINUTE, PER_HOUR)
    limiter.hit("k", PER_MINUTE, PER_HOUR)
    assert limiter.hit("k", PER_MINUTE, PER_HOUR) is PER_MINUTE

    clock[0] += 61
    assert limiter.hit("k", PER_MINUTE, PER_HOUR) is None
    assert limiter.hit("k", PER_MINUTE, PER_HOUR) is PER_HOUR


def test_window_expiry(clock):
    limiter = InMemoryRateLimiter()

    limiter.hit("k", PER_MINUTE)
    limiter.hit("k", PER_MINUTE)
    assert limiter.hit("k", PER_MINUTE) is PER_MINUTE

    clock[0] += 61
    assert limiter.hit("k", PER_MINUTE) is None


def test_retry_after(clock):
    limiter = InMemoryRateLimiter()
    assert limiter.retry_after("k", PER_MINUTE) == 0

    limiter.hit("k", PER_MINUTE)
    clock[0] += 20
    limiter.hit("k", PER_MINUTE)
    assert limiter.retry_after("k", PER_MINUTE) == 40

    clock[0] += 39.5
    assert limiter.retry_after("k", PER_MINUTE) == 1


def test_expired_keys_are_swept(clock):
    limiter = InMemoryRateLimiter()
    for i in range(50):
        limiter.hit(f"login:10.0.0.1:user{i}@example.com", PER_MINUTE)
    assert len(limiter._hits) == 50

    clock[0] += SWEEP_INTERVAL_SECONDS + PER_MINUTE.window_seconds + 1
    limiter.hit("login:10.0.0.1:fresh@example.com", PER_MINUTE)
    assert list(limiter._hits) == [("minute", "login:10.0.0.1:fresh@example.com")]


def test_sweep_keeps_live_windows(clock):
    limiter = InMemoryRateLimiter()
    limiter.hit("slow", PER_HOUR)
    limiter.hit("fast", PER_MINUTE)

    clock[0] += SWEEP_INTERVAL_SECONDS + 1
    limiter.hit("other", PER_MINUTE)

    assert ("hour", "slow") in limiter._hits
    assert ("minute", "fast") not in limiter._hits


def test_reset():
    limiter = InMemoryRateLimiter()
    limiter.hit("k", PER_MINUTE)
    limiter.hit("k", PER_MINUTE)
    limiter.reset()
    assert limiter.hit("k", PER_MINUTE) is None
