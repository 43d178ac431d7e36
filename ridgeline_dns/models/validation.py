"""
Syntactic validation of endpoint targets per record type.
"""

import ipaddress
import re
from typing import Optional

from ridgeline_dns.models.models import (
    RECORD_TYPE_A,
    RECORD_TYPE_AAAA,
    RECORD_TYPE_CNAME,
    RECORD_TYPE_MX,
    RECORD_TYPE_NS,
    RECORD_TYPE_PTR,
    RECORD_TYPE_SRV,
    RECORD_TYPE_TXT,
    Endpoint,
)

_LABEL = re.compile(r"^(?!-)[A-Za-z0-9_-]{1,63}(?<!-)$")


def is_hostname(value: str) -> bool:
    """Check that a value is a syntactically valid host name (trailing dot allowed)."""
    name = value[:-1] if value.endswith(".") else value
    if not name or len(name) > 253:
        return False
    return all(_LABEL.match(label) for label in name.split("."))


def _is_u16(value: str) -> bool:
    return value.isdigit() and 0 <= int(value) <= 65535


def _valid_ipv4(target: str) -> bool:
    try:
        ipaddress.IPv4Address(target)
    except ValueError:
        return False
    return True


def _valid_ipv6(target: str) -> bool:
    try:
        ipaddress.IPv6Address(target)
    except ValueError:
        return False
    return True


def _valid_mx(target: str) -> bool:
    parts = target.split()
    return len(parts) == 2 and _is_u16(parts[0]) and is_hostname(parts[1])


def _valid_srv(target: str) -> bool:
    parts = target.split()
    return (
        len(parts) == 4
        and all(_is_u16(part) for part in parts[:3])
        and (parts[3] == "." or is_hostname(parts[3]))
    )


_TARGET_CHECKS = {
    RECORD_TYPE_A: _valid_ipv4,
    RECORD_TYPE_AAAA: _valid_ipv6,
    RECORD_TYPE_CNAME: is_hostname,
    RECORD_TYPE_NS: is_hostname,
    RECORD_TYPE_PTR: is_hostname,
    RECORD_TYPE_MX: _valid_mx,
    RECORD_TYPE_SRV: _valid_srv,
    RECORD_TYPE_TXT: lambda target: target != "",
}


def target_error(endpoint: Endpoint) -> Optional[str]:
    """
    Describe why an endpoint's targets are invalid for its record type.

    Args:
        endpoint: Endpoint to check

    Returns:
        Optional[str]: Reason, or None when the targets are valid
    """
    if not endpoint.targets:
        return "no targets"

    if endpoint.record_type == RECORD_TYPE_CNAME and len(endpoint.targets) != 1:
        return f"CNAME requires exactly one target, got {len(endpoint.targets)}"

    check = _TARGET_CHECKS.get(endpoint.record_type, lambda target: bool(target.strip()))
    for target in endpoint.targets:
        if not check(target):
            return f"invalid {endpoint.record_type} target '{target}'"

    return None


def validate_targets(endpoint: Endpoint) -> bool:
    """Return True if all targets conform to the endpoint's record type."""
    return target_error(endpoint) is None
