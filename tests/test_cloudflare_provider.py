"""Tests for the Cloudflare provider."""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import cloudflare
import httpx
import pytest

from ridgeline_dns.errors import ConfigError, SoftError
from ridgeline_dns.models import Changes, Endpoint
from ridgeline_dns.provider.cloudflare import PROXIED_KEY, CloudflareProvider


def _record(record_id, name, record_type, content, ttl=1, proxied=False, priority=None):
    return SimpleNamespace(
        id=record_id, name=name, type=record_type, content=content,
        ttl=ttl, proxied=proxied, priority=priority,
    )


def _ep(name, targets, record_type="A", ttl=None, **kwargs):
    return Endpoint(name, list(targets), record_type, ttl, **kwargs)


@pytest.fixture
def client():
    client = MagicMock()
    client.zones.list.return_value = [SimpleNamespace(id="z1", name="example.com")]
    client.records = [
        _record("r1", "www.example.com", "A", "1.1.1.1", ttl=300, proxied=True),
        _record("r2", "www.example.com", "A", "2.2.2.2", ttl=300, proxied=True),
        _record("r3", "example.com", "MX", "mail.example.com", priority=10),
        _record("r4", "_sip._tcp.example.com", "SRV", "10 5060 sip.example.com"),
    ]

    def list_records(zone_id, name=None, type=None, per_page=100):
        return [
            record for record in client.records
            if (name is None or record.name == name) and (type is None or record.type == type)
        ]

    client.dns.records.list.side_effect = list_records
    return client


@pytest.fixture
def provider(client):
    return CloudflareProvider("token", client=client)


def _apply(provider, **kwargs):
    asyncio.run(provider.apply_changes(Changes(**kwargs)))


class TestRecords:
    def test_groups_records_per_name_and_type(self, provider):
        endpoints = {ep.id: ep for ep in asyncio.run(provider.records())}
        assert set(endpoints) == {"www.example.com:A", "example.com:MX"}

        www = endpoints["www.example.com:A"]
        assert www.targets == ["1.1.1.1", "2.2.2.2"]
        assert www.record_ttl == 300
        assert www.provider_specific == {PROXIED_KEY: "true"}

    def test_auto_ttl_and_mx_priority(self, provider):
        mx = {ep.id: ep for ep in asyncio.run(provider.records())}["example.com:MX"]
        assert mx.targets == ["10 mail.example.com"]
        assert mx.record_ttl is None
        assert mx.provider_specific == {}

    def test_zone_list_failure_is_soft(self, client, provider):
        client.zones.list.side_effect = cloudflare.APIConnectionError(
            request=httpx.Request("GET", "https://api.cloudflare.com/client/v4/zones")
        )
        with pytest.raises(SoftError):
            asyncio.run(provider.records())


class TestAdjustEndpoints:
    def test_defaults_and_minimum_ttl(self, client):
        provider = CloudflareProvider("token", client=client, proxied_by_default=True)
        adjusted = {ep.id: ep for ep in provider.adjust_endpoints([
            _ep("www.example.com", ["1.1.1.1"], ttl=30),
            _ep("txt.example.com", ["hello"], "TXT", provider_specific={PROXIED_KEY: "true"}),
            _ep("_sip._tcp.example.com", ["10 5 5060 sip.example.com"], "SRV"),
        ])}
        assert set(adjusted) == {"www.example.com:A", "txt.example.com:TXT"}
        assert adjusted["www.example.com:A"].record_ttl == 60
        assert adjusted["www.example.com:A"].provider_specific == {PROXIED_KEY: "true"}
        assert adjusted["txt.example.com:TXT"].provider_specific == {}

    def test_explicit_proxied_kept(self, provider):
        adjusted = provider.adjust_endpoints([
            _ep("www.example.com", ["1.1.1.1"], provider_specific={PROXIED_KEY: "true"})
        ])
        assert adjusted[0].provider_specific == {PROXIED_KEY: "true"}


class TestApplyChanges:
    def test_create(self, client, provider):
        _apply(provider, create=[_ep("new.example.com", ["3.3.3.3"])])
        client.dns.records.create.assert_called_once_with(
            zone_id="z1", name="new.example.com", type="A", content="3.3.3.3", ttl=1, proxied=False
        )

    def test_create_mx_splits_priority(self, client, provider):
        _apply(provider, create=[_ep("mail2.example.com", ["20 mx2.example.com"], "MX", ttl=300)])
        client.dns.records.create.assert_called_once_with(
            zone_id="z1", name="mail2.example.com", type="MX",
            content="mx2.example.com", ttl=300, priority=20,
        )

    def test_update_per_target(self, client, provider):
        old = _ep("www.example.com", ["1.1.1.1", "2.2.2.2"], ttl=300, provider_specific={PROXIED_KEY: "true"})
        new = _ep("www.example.com", ["2.2.2.2", "3.3.3.3"], ttl=600, provider_specific={PROXIED_KEY: "true"})
        _apply(provider, update_old=[old], update_new=[new])

        client.dns.records.delete.assert_called_once_with(dns_record_id="r1", zone_id="z1")
        client.dns.records.update.assert_called_once_with(
            dns_record_id="r2", zone_id="z1", name="www.example.com", type="A",
            content="2.2.2.2", ttl=600, proxied=True,
        )
        client.dns.records.create.assert_called_once_with(
            zone_id="z1", name="www.example.com", type="A", content="3.3.3.3", ttl=600, proxied=True
        )

    def test_delete_all_targets(self, client, provider):
        _apply(provider, delete=[_ep("www.example.com", ["1.1.1.1", "2.2.2.2"])])
        deleted = sorted(call.kwargs["dns_record_id"] for call in client.dns.records.delete.call_args_list)
        assert deleted == ["r1", "r2"]

    def test_unroutable_change_skipped(self, client, provider):
        _apply(provider, create=[_ep("www.example.org", ["1.1.1.1"])])
        client.dns.records.create.assert_not_called()

    def test_dry_run_makes_no_mutating_calls(self, client):
        provider = CloudflareProvider("token", client=client, dry_run=True)
        _apply(
            provider,
            create=[_ep("new.example.com", ["3.3.3.3"])],
            update_old=[_ep("www.example.com", ["1.1.1.1", "2.2.2.2"])],
            update_new=[_ep("www.example.com", ["2.2.2.2", "4.4.4.4"])],
            delete=[_ep("example.com", ["10 mail.example.com"], "MX")],
        )
        client.dns.records.create.assert_not_called()
        client.dns.records.update.assert_not_called()
        client.dns.records.delete.assert_not_called()

    def test_rate_limit_is_soft(self, client, provider):
        response = httpx.Response(429, request=httpx.Request("POST", "https://api.cloudflare.com"))
        client.dns.records.create.side_effect = cloudflare.RateLimitError(
            "rate limited", response=response, body=None
        )
        with pytest.raises(SoftError):
            _apply(provider, create=[_ep("new.example.com", ["3.3.3.3"])])


def test_requires_token():
    with pytest.raises(ConfigError):
        CloudflareProvider("")
