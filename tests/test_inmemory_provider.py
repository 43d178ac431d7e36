"""Tests for the in-memory provider and change batching."""

import asyncio

import pytest

from ridgeline_dns.filter import DomainFilter, ZoneTypeFilter
from ridgeline_dns.models import Changes, Endpoint, Zone
from ridgeline_dns.provider import InMemoryProvider, batch_changes
from ridgeline_dns.provider.inmemory import InMemoryChangeError


def _ep(name, targets, record_type="A", ttl=None):
    return Endpoint(name, list(targets), record_type, ttl)


@pytest.fixture
def provider():
    return InMemoryProvider([Zone("z1", "example.com"), Zone("z2", "sub.example.com")])


def _apply(provider, **kwargs):
    asyncio.run(provider.apply_changes(Changes(**kwargs)))


def _ids(endpoints):
    return sorted(ep.id for ep in endpoints)


class TestApplyChanges:
    def test_create_update_delete(self, provider):
        _apply(provider, create=[_ep("www.example.com", ["1.1.1.1"]), _ep("old.example.com", ["1.1.1.1"])])
        _apply(
            provider,
            update_old=[_ep("www.example.com", ["1.1.1.1"])],
            update_new=[_ep("www.example.com", ["2.2.2.2"], ttl=600)],
            delete=[_ep("old.example.com", ["1.1.1.1"])],
        )
        records = asyncio.run(provider.records())
        assert _ids(records) == ["www.example.com:A"]
        assert records[0].targets == ["2.2.2.2"]
        assert records[0].record_ttl == 600

    def test_routes_to_most_specific_zone(self, provider):
        _apply(provider, create=[_ep("a.sub.example.com", ["1.1.1.1"]), _ep("b.example.com", ["1.1.1.1"])])
        assert _ids(provider.zone_records("z2")) == ["a.sub.example.com:A"]
        assert _ids(provider.zone_records("z1")) == ["b.example.com:A"]

    def test_unroutable_change_skipped(self, provider):
        _apply(provider, create=[_ep("www.example.org", ["1.1.1.1"]), _ep("www.example.com", ["1.1.1.1"])])
        assert _ids(asyncio.run(provider.records())) == ["www.example.com:A"]

    def test_create_existing_record_fails(self, provider):
        _apply(provider, create=[_ep("www.example.com", ["1.1.1.1"])])
        with pytest.raises(InMemoryChangeError):
            _apply(provider, create=[_ep("www.example.com", ["2.2.2.2"])])

    def test_delete_missing_record_fails(self, provider):
        with pytest.raises(InMemoryChangeError):
            _apply(provider, delete=[_ep("www.example.com", ["1.1.1.1"])])

    def test_failed_batch_writes_nothing(self, provider):
        with pytest.raises(InMemoryChangeError):
            _apply(
                provider,
                create=[_ep("www.example.com", ["1.1.1.1"])],
                delete=[_ep("missing.example.com", ["1.1.1.1"])],
            )
        assert asyncio.run(provider.records()) == []

    def test_delete_then_create_same_key(self, provider):
        _apply(provider, create=[_ep("www.example.com", ["1.1.1.1"])])
        _apply(
            provider,
            delete=[_ep("www.example.com", ["1.1.1.1"])],
            create=[_ep("www.example.com", ["2.2.2.2"])],
        )
        assert asyncio.run(provider.records())[0].targets == ["2.2.2.2"]

    def test_dry_run_leaves_store_unchanged(self):
        provider = InMemoryProvider([Zone("z1", "example.com")], dry_run=True)
        _apply(provider, create=[_ep("www.example.com", ["1.1.1.1"])])
        assert asyncio.run(provider.records()) == []

    def test_batched_apply(self):
        provider = InMemoryProvider([Zone("z1", "example.com")], batch_change_size=2)
        _apply(provider, create=[_ep(f"h{i}.example.com", ["1.1.1.1"]) for i in range(5)])
        assert len(asyncio.run(provider.records())) == 5


class TestZones:
    def test_domain_filter_limits_records(self):
        provider = InMemoryProvider(
            [Zone("z1", "example.com")], domain_filter=DomainFilter(["api.example.com"])
        )
        _apply(provider, create=[_ep("www.api.example.com", ["1.1.1.1"]), _ep("www.example.com", ["1.1.1.1"])])
        assert _ids(asyncio.run(provider.records())) == ["www.api.example.com:A"]

    def test_zone_type_filter(self):
        provider = InMemoryProvider(
            [Zone("pub", "example.com"), Zone("priv", "corp.example.com", visibility="private")],
            zone_type_filter=ZoneTypeFilter("private"),
        )
        assert [zone.id for zone in asyncio.run(provider.zones())] == ["priv"]

    def test_zones_served_from_cache(self):
        provider = InMemoryProvider([Zone("z1", "example.com")], zones_cache_duration=3600)
        assert len(asyncio.run(provider.zones())) == 1
        provider.create_zone(Zone("z2", "example.org"))
        assert len(asyncio.run(provider.zones())) == 1

    def test_zones_cache_not_shared_with_callers(self):
        provider = InMemoryProvider([Zone("z1", "example.com")], zones_cache_duration=3600)
        asyncio.run(provider.zones()).clear()
        zones = asyncio.run(provider.zones())
        zones.append(Zone("z2", "example.org"))
        assert [zone.id for zone in asyncio.run(provider.zones())] == ["z1"]

    def test_zones_not_cached_by_default(self, provider):
        asyncio.run(provider.zones())
        provider.create_zone(Zone("z3", "example.org"))
        assert len(asyncio.run(provider.zones())) == 3

    def test_duplicate_zone(self, provider):
        with pytest.raises(InMemoryChangeError):
            provider.create_zone(Zone("z1", "example.net"))

    def test_adjust_endpoints_leaves_target_checks_to_the_plan(self, provider):
        kept = provider.adjust_endpoints([_ep("www.example.com", ["1.1.1.1"]), _ep("bad.example.com", ["nope"])])
        assert _ids(kept) == ["bad.example.com:A", "www.example.com:A"]


class TestBatchChanges:
    def test_no_limit(self):
        changes = Changes(create=[_ep("a.example.com", ["1.1.1.1"])])
        assert batch_changes(changes, 0) == [changes]

    def test_empty(self):
        assert batch_changes(Changes(), 10) == []

    def test_within_limit(self):
        changes = Changes(create=[_ep("a.example.com", ["1.1.1.1"])])
        assert batch_changes(changes, 5) == [changes]

    def test_operations_for_one_name_stay_together(self):
        changes = Changes(
            delete=[_ep("a.example.com", ["1.1.1.1"])],
            create=[
                _ep("a.example.com", ["2.2.2.2"], "AAAA"),
                _ep("b.example.com", ["1.1.1.1"]),
                _ep("c.example.com", ["1.1.1.1"]),
            ],
        )
        batches = batch_changes(changes, 2)
        assert len(batches) == 2
        assert _ids(batches[0].delete) == ["a.example.com:A"]
        assert _ids(batches[0].create) == ["a.example.com:AAAA"]
        assert _ids(batches[1].create) == ["b.example.com:A", "c.example.com:A"]
        assert all(batch.count() <= 2 for batch in batches)

    def test_oversized_name_skipped(self):
        changes = Changes(
            update_old=[_ep("x.example.com", ["1.1.1.1"])],
            update_new=[_ep("x.example.com", ["2.2.2.2"])],
            create=[_ep("y.example.com", ["1.1.1.1"])],
        )
        batches = batch_changes(changes, 1)
        assert len(batches) == 1
        assert _ids(batches[0].create) == ["y.example.com:A"]
        assert not batches[0].update_new
