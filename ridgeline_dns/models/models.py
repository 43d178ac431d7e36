"""
Data models for Ridgeline-DNS.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from ridgeline_dns.errors import DuplicateEndpointError, InvalidChangesError

RECORD_TYPE_A = "A"
RECORD_TYPE_AAAA = "AAAA"
RECORD_TYPE_CNAME = "CNAME"
RECORD_TYPE_MX = "MX"
RECORD_TYPE_NS = "NS"
RECORD_TYPE_PTR = "PTR"
RECORD_TYPE_SRV = "SRV"
RECORD_TYPE_TXT = "TXT"
RECORD_TYPE_CAA = "CAA"

# Record types whose targets are host names
NAME_TARGET_TYPES = frozenset(
    {RECORD_TYPE_CNAME, RECORD_TYPE_NS, RECORD_TYPE_PTR, RECORD_TYPE_MX, RECORD_TYPE_SRV}
)

# Label keys shared by the registry and the plan
OWNER_LABEL = "owner"
RESOURCE_LABEL = "resource"


def normalize_name(name: str) -> str:
    """Lower-case a DNS name and strip its trailing dot."""
    return name.strip().rstrip(".").lower()


class EndpointKey(NamedTuple):
    """Identity of an endpoint within one zone."""

    dnsname: str
    record_type: str
    set_identifier: str


@dataclass
class Endpoint:
    """
    Represents a DNS endpoint (record) to be managed by Ridgeline-DNS.

    ``record_ttl`` of ``None`` or ``0`` means "unconfigured": the provider
    default applies.
    """

    dnsname: str
    targets: List[str]
    record_type: str
    record_ttl: Optional[int] = None
    labels: Dict[str, str] = field(default_factory=dict)
    provider_specific: Dict[str, str] = field(default_factory=dict)
    set_identifier: str = ""

    def __post_init__(self):
        if self.record_ttl is not None and self.record_ttl < 0:
            raise ValueError(
                f"TTL for {self.dnsname} ({self.record_type}) must not be negative, got {self.record_ttl}"
            )
        self.record_type = self.record_type.upper()

    @property
    def key(self) -> EndpointKey:
        """
        Generate the identity of this endpoint.

        Returns:
            EndpointKey: (normalized name, record type, set identifier)
        """
        return EndpointKey(
            normalize_name(self.dnsname), self.record_type, self.set_identifier
        )

    @property
    def id(self) -> str:
        """
        Generate a printable identifier for this endpoint.

        Returns:
            str: Unique identifier
        """
        if self.set_identifier:
            return f"{self.dnsname}:{self.record_type}:{self.set_identifier}"
        return f"{self.dnsname}:{self.record_type}"

    @property
    def ttl_configured(self) -> bool:
        return bool(self.record_ttl)

    def copy(self) -> "Endpoint":
        """
        Return a copy that shares no mutable containers with this endpoint.
        """
        return Endpoint(
            dnsname=self.dnsname,
            targets=list(self.targets),
            record_type=self.record_type,
            record_ttl=self.record_ttl,
            labels=dict(self.labels),
            provider_specific=dict(self.provider_specific),
            set_identifier=self.set_identifier,
        )

    def with_sorted_targets(self) -> "Endpoint":
        """Return a copy whose targets are sorted and de-duplicated."""
        endpoint = self.copy()
        endpoint.targets = sorted(set(self.targets))
        return endpoint

    def __str__(self) -> str:
        ttl = self.record_ttl if self.ttl_configured else "default"
        return f"{self.id} {self.targets} (TTL: {ttl})"


def merge_endpoints(endpoints: List[Endpoint]) -> List[Endpoint]:
    """
    Collapse endpoints sharing a key into one endpoint per key.

    Targets are unioned in first-seen order. The effective TTL is the first
    configured TTL in input order. Labels and provider-specific data come
    from the first endpoint of each key.

    Args:
        endpoints: Endpoints, possibly several per key

    Returns:
        List[Endpoint]: One endpoint per key, in order of first appearance

    Raises:
        DuplicateEndpointError: if two endpoints of one key carry different
            provider-specific data
    """
    merged: Dict[EndpointKey, Endpoint] = {}

    for endpoint in endpoints:
        existing = merged.get(endpoint.key)
        if existing is None:
            merged[endpoint.key] = endpoint.copy()
            continue

        if existing.provider_specific != endpoint.provider_specific:
            raise DuplicateEndpointError(
                f"Endpoints for {endpoint.id} disagree on provider-specific settings: "
                f"{existing.provider_specific} != {endpoint.provider_specific}"
            )

        for target in endpoint.targets:
            if target not in existing.targets:
                existing.targets.append(target)

        if not existing.ttl_configured and endpoint.ttl_configured:
            existing.record_ttl = endpoint.record_ttl

    return list(merged.values())


@dataclass
class Zone:
    """
    A provider-managed authoritative domain.
    """

    id: str
    name: str
    visibility: str = "public"


@dataclass
class Changes:
    """
    Represents changes to be applied to DNS records.

    ``update_old`` and ``update_new`` are parallel lists: the pair at index i
    is one update.
    """

    create: List[Endpoint] = field(default_factory=list)
    update_old: List[Endpoint] = field(default_factory=list)
    update_new: List[Endpoint] = field(default_factory=list)
    delete: List[Endpoint] = field(default_factory=list)

    def has_changes(self) -> bool:
        """
        Check if there are any changes to be applied.

        Returns:
            bool: True if there are changes, False otherwise
        """
        return bool(self.create or self.update_old or self.delete)

    def updates(self) -> Iterator[Tuple[Endpoint, Endpoint]]:
        """Iterate over (old, new) update pairs."""
        return zip(self.update_old, self.update_new)

    def count(self) -> int:
        """Number of provider operations; an update counts as a delete plus a create."""
        return len(self.create) + len(self.delete) + 2 * len(self.update_new)

    def validate(self) -> None:
        """
        Check the structural invariants of this change set.

        Raises:
            InvalidChangesError: if a key is used by more than one of create,
                delete and update-new, or an update pair is inconsistent
        """
        if len(self.update_old) != len(self.update_new):
            raise InvalidChangesError(
                f"Update lists differ in length: {len(self.update_old)} old, {len(self.update_new)} new"
            )

        for old, new in self.updates():
            if old.key != new.key:
                raise InvalidChangesError(
                    f"Update pair keys differ: {old.id} -> {new.id}"
                )

        seen: Dict[EndpointKey, str] = {}
        for kind, endpoints in (
            ("create", self.create),
            ("update", self.update_new),
            ("delete", self.delete),
        ):
            for endpoint in endpoints:
                previous = seen.get(endpoint.key)
                if previous is not None:
                    raise InvalidChangesError(
                        f"Endpoint {endpoint.id} appears in both {previous} and {kind}"
                    )
                seen[endpoint.key] = kind

    def summary(self) -> str:
        return (
            f"{len(self.create)} creates, {len(self.update_new)} updates, "
            f"{len(self.delete)} deletes"
        )
