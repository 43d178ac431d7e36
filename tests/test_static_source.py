"""Tests for the static endpoint source."""

import asyncio

import pytest

from ridgeline_dns.errors import ConfigError
from ridgeline_dns.source.static import StaticSource


def test_parses_definitions():
    source = StaticSource([
        {"name": "www.example.com", "targets": ["1.1.1.1", "2.2.2.2"], "ttl": 300},
        {"name": "alias.example.com", "type": "cname", "targets": "www.example.com"},
        {
            "name": "api.example.com",
            "targets": ["3.3.3.3"],
            "set_identifier": "eu",
            "provider_specific": {"cloudflare/proxied": True},
        },
    ])
    endpoints = asyncio.run(source.endpoints())

    assert [ep.id for ep in endpoints] == [
        "www.example.com:A",
        "alias.example.com:CNAME",
        "api.example.com:A:eu",
    ]
    assert endpoints[0].record_ttl == 300
    assert endpoints[1].targets == ["www.example.com"]
    assert endpoints[2].provider_specific == {"cloudflare/proxied": "True"}
    assert all(ep.labels == {"resource": "static"} for ep in endpoints)


def test_returns_copies():
    source = StaticSource([{"name": "www.example.com", "targets": ["1.1.1.1"]}])
    first = asyncio.run(source.endpoints())
    first[0].targets.append("9.9.9.9")
    assert asyncio.run(source.endpoints())[0].targets == ["1.1.1.1"]


def test_empty():
    assert asyncio.run(StaticSource([]).endpoints()) == []


@pytest.mark.parametrize(
    "definition",
    [
        {"targets": ["1.1.1.1"]},
        {"name": "www.example.com"},
        {"name": "www.example.com", "targets": ["1.1.1.1"], "ttl": -5},
    ],
)
def test_invalid_definitions(definition):
    with pytest.raises(ConfigError):
        StaticSource([definition])
