import pytest

from lawsphere import rate_limiter


def test_memory_counter_blocks_after_limit():
    results = [rate_limiter.check_rate_limit("t:1.2.3.4", limit=3, window_seconds=60) for _ in range(4)]
    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_keys_are_independent():
    for _ in range(2):
        rate_limiter.check_rate_limit("t:a", limit=2, window_seconds=60)
    allowed, count, _ = rate_limiter.check_rate_limit("t:b", limit=2, window_seconds=60)
    assert allowed
    assert count == 1


def test_expired_window_resets():
    assert rate_limiter.check_rate_limit("t:w", limit=1, window_seconds=10)[0]
    assert not rate_limiter.check_rate_limit("t:w", limit=1, window_seconds=10)[0]

    rate_limiter.memory_cache["t:w"]["reset_time"] = 0
    assert rate_limiter.check_rate_limit("t:w", limit=1, window_seconds=10)[0]


def test_failed_redis_connect_is_not_retried_immediately(monkeypatch):
    attempts = []

    class Unreachable:
        def ping(self):
            raise ConnectionError("connection refused")

    def fake_from_url(url, **kwargs):
        attempts.append(url)
        return Unreachable()

    monkeypatch.setattr(rate_limiter, "REDIS_URL", "redis://redis.invalid:6379/0")
    monkeypatch.setattr(rate_limiter.redis, "from_url", fake_from_url)

    with pytest.raises(ConnectionError):
        rate_limiter.get_redis_client()
    with pytest.raises(RuntimeError, match="retrying"):
        rate_limiter.get_redis_client()
    assert len(attempts) == 1

    rate_limiter.redis_failed_at -= rate_limiter.REDIS_RETRY_BACKOFF_SECONDS + 1
    with pytest.raises(ConnectionError):
        rate_limiter.get_redis_client()
    assert len(attempts) == 2


def test_rate_limit_still_applies_while_redis_backs_off(monkeypatch):
    monkeypatch.setattr(rate_limiter, "REDIS_URL", "redis://redis.invalid:6379/0")
    monkeypatch.setattr(rate_limiter, "redis_failed_at", rate_limiter.time.monotonic())

    with pytest.raises(RuntimeError):
        rate_limiter.get_redis_client()
    assert rate_limiter.check_rate_limit("t:backoff", limit=1, window_seconds=60)[0]
    assert not rate_limiter.check_rate_limit("t:backoff", limit=1, window_seconds=60)[0]
