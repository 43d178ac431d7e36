"""Tests for the expiring cache."""

import pytest

from ridgeline_dns.utils.expiring_cache import ExpiringCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_expired_until_first_reset():
    cache = ExpiringCache(60, clock=FakeClock())
    assert cache.expired()
    assert cache.get() is None


def test_expires_after_duration():
    clock = FakeClock()
    cache = ExpiringCache(60, clock=clock)
    cache.reset(["zone"])
    assert not cache.expired()
    assert cache.get() == ["zone"]

    clock.now += 59
    assert not cache.expired()
    clock.now += 1
    assert cache.expired()
    # Value stays readable after expiry
    assert cache.get() == ["zone"]


def test_reset_restarts_lifetime():
    clock = FakeClock()
    cache = ExpiringCache(10, clock=clock)
    cache.reset(1)
    clock.now += 10
    assert cache.expired()
    cache.reset(2)
    assert not cache.expired()
    assert cache.get() == 2


def test_zero_duration_always_expired():
    cache = ExpiringCache(0, clock=FakeClock())
    cache.reset("value")
    assert cache.expired()


def test_negative_duration():
    with pytest.raises(ValueError):
        ExpiringCache(-1)
