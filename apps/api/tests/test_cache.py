"""Tests for the in-process read cache."""

from helpdesk.core import cache
from helpdesk.core.config import settings


def _counter():
    calls = []

    def fn():
        calls.append(1)
        return len(calls)

    return fn, calls


def test_get_or_set_memoises_by_params():
    fn, calls = _counter()

    assert cache.get_or_set("ticket:list", {"a": 1, "b": 2}, fn, tags=["t"]) == 1
    # key order does not matter
    assert cache.get_or_set("ticket:list", {"b": 2, "a": 1}, fn, tags=["t"]) == 1
    assert len(calls) == 1

    assert cache.get_or_set("ticket:list", {"a": 2}, fn, tags=["t"]) == 2
    assert len(calls) == 2


def test_invalidate_tag_evicts_tagged_entries_only():
    fn, calls = _counter()
    cache.get_or_set("x", {"k": 1}, fn, tags=[cache.TAG_TICKET_LIST])
    cache.get_or_set("y", {"k": 1}, fn, tags=[cache.TAG_USER_LIST])

    assert cache.invalidate_tag(cache.TAG_TICKET_LIST) == 1
    assert cache.size() == 1

    cache.invalidate_user_cache()
    assert cache.size() == 0


def test_ticket_detail_tag_is_per_ticket():
    fn, _ = _counter()
    cache.get_or_set("ticket:detail", {"id": "1"}, fn, tags=[cache.ticket_detail_tag("1")])
    cache.get_or_set("ticket:detail", {"id": "2"}, fn, tags=[cache.ticket_detail_tag("2")])

    cache.invalidate_ticket_detail("1")
    assert cache.size() == 1


def test_expired_entries_are_recomputed(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(cache.time, "monotonic", lambda: now[0])
    fn, calls = _counter()

    cache.get_or_set("p", None, fn, ttl=30)
    now[0] += 29
    cache.get_or_set("p", None, fn, ttl=30)
    assert len(calls) == 1

    now[0] += 2
    cache.get_or_set("p", None, fn, ttl=30)
    assert len(calls) == 2


def test_store_sweeps_expired_keys(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(cache.time, "monotonic", lambda: now[0])
    fn, _ = _counter()

    for i in range(20):
        cache.get_or_set("user:list", {"search": f"q{i}"}, fn, ttl=30)
    assert cache.size() == 20

    now[0] += 31
    cache.get_or_set("user:list", {"search": "fresh"}, fn, ttl=30)
    assert cache.size() == 1


def test_disabled_cache_always_calls_through(monkeypatch):
    monkeypatch.setattr(settings, "CACHE_ENABLED", False)
    fn, calls = _counter()

    cache.get_or_set("p", {}, fn)
    cache.get_or_set("p", {}, fn)
    assert len(calls) == 2
    assert cache.size() == 0


def test_build_key_is_canonical():
    assert cache.build_key("p", {"b": 1, "a": [1]}) == 'p:{"a": [1], "b": 1}'
    assert cache.build_key("p", None) == "p:{}"
