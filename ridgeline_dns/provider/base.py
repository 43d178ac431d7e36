"""
Provider interface for Ridgeline-DNS.

Every DNS backend implements :class:`Provider`. The plan hands its change set
to exactly one provider, usually through the registry.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Iterable, List, Optional

from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.filter.zone_filter import (
    ZoneIDFilter,
    ZoneIndex,
    ZoneTypeFilter,
    filter_zones,
)
from ridgeline_dns.models.models import Changes, Endpoint, Zone, normalize_name
from ridgeline_dns.utils.expiring_cache import ExpiringCache

logger = logging.getLogger("ridgeline-dns.provider")


class Provider(ABC):
    """
    Abstract contract for DNS backends.

    Implementations return one endpoint per (name, type, set identifier) from
    :meth:`records`, apply deletes before updates before creates, and make
    no mutating calls when ``dry_run`` is set. Transient backend failures
    are raised as :class:`~ridgeline_dns.errors.SoftError`.
    """

    # None means every record type is supported
    supported_record_types: Optional[Iterable[str]] = None

    def __init__(
        self,
        domain_filter: Optional[DomainFilter] = None,
        zone_id_filter: Optional[ZoneIDFilter] = None,
        zone_type_filter: Optional[ZoneTypeFilter] = None,
        zones_cache_duration: float = 0,
        dry_run: bool = False,
    ):
        self.domain_filter = domain_filter or DomainFilter()
        self.zone_id_filter = zone_id_filter or ZoneIDFilter()
        self.zone_type_filter = zone_type_filter or ZoneTypeFilter()
        self.dry_run = dry_run
        self.zones_cache: ExpiringCache[List[Zone]] = ExpiringCache(
            zones_cache_duration, name=f"{type(self).__name__} zones"
        )

    @abstractmethod
    async def records(self) -> List[Endpoint]:
        """Return every record in the managed zones, one endpoint per key."""

    @abstractmethod
    async def apply_changes(self, changes: Changes) -> None:
        """Apply a change set: deletes, then updates, then creates."""

    @abstractmethod
    async def list_zones(self) -> List[Zone]:
        """Return all zones known to the backend, unfiltered and uncached."""

    async def zones(self) -> List[Zone]:
        """
        Returns the zones that pass the domain, zone ID and zone type filters.

        The list is served from the zones cache while it is fresh.

        Returns:
            List[Zone]: Eligible zones
        """
        if not self.zones_cache.expired():
            cached = self.zones_cache.get()
            logger.debug(f"Using {len(cached)} cached zones")
            return list(cached)

        zones = filter_zones(
            await self.list_zones(),
            self.domain_filter,
            self.zone_id_filter,
            self.zone_type_filter,
        )
        logger.debug(f"Found {len(zones)} eligible zones, updating zones cache")
        self.zones_cache.reset(zones)
        return list(zones)

    async def zone_index(self) -> ZoneIndex:
        return ZoneIndex(await self.zones())

    def adjust_endpoints(self, endpoints: List[Endpoint]) -> List[Endpoint]:
        """
        Drop desired endpoints whose record type this provider cannot represent.

        Target syntax is left to the plan, which keeps the existing record
        of an invalid endpoint untouched.

        Args:
            endpoints: Desired endpoints

        Returns:
            List[Endpoint]: Endpoints the provider accepts
        """
        supported = (
            {record_type.upper() for record_type in self.supported_record_types}
            if self.supported_record_types is not None
            else None
        )
        adjusted = []
        for endpoint in endpoints:
            if supported is not None and endpoint.record_type not in supported:
                logger.warning(
                    f"Ignoring endpoint {endpoint.id}: record type {endpoint.record_type} "
                    f"is not supported by {type(self).__name__}"
                )
                continue
            adjusted.append(endpoint)
        return adjusted


def batch_changes(changes: Changes, max_operations: int) -> List[Changes]:
    """
    Split a change set into batches of at most ``max_operations`` operations.

    All operations touching one DNS name stay in the same batch so that a
    delete of a name still precedes a create of that name. Within a batch
    the usual delete, update, create order applies. An update counts as two
    operations. A name whose own operations exceed the limit cannot be
    applied atomically and is skipped with an error.

    Args:
        changes: Change set to split
        max_operations: Maximum operations per batch; 0 or less disables batching

    Returns:
        List[Changes]: Batches, in order of first appearance of each name
    """
    if max_operations <= 0 or changes.count() <= max_operations:
        return [changes] if changes.has_changes() else []

    groups: "OrderedDict[str, Changes]" = OrderedDict()

    def group_for(endpoint: Endpoint) -> Changes:
        return groups.setdefault(normalize_name(endpoint.dnsname), Changes())

    for endpoint in changes.delete:
        group_for(endpoint).delete.append(endpoint)
    for old, new in changes.updates():
        group = group_for(new)
        group.update_old.append(old)
        group.update_new.append(new)
    for endpoint in changes.create:
        group_for(endpoint).create.append(endpoint)

    batches: List[Changes] = []
    batch = Changes()
    for name, group in groups.items():
        if group.count() > max_operations:
            logger.error(
                f"Skipping {group.count()} changes for {name}: they exceed the batch size of {max_operations}"
            )
            continue
        if batch.count() + group.count() > max_operations:
            batches.append(batch)
            batch = Changes()
        batch.delete.extend(group.delete)
        batch.update_old.extend(group.update_old)
        batch.update_new.extend(group.update_new)
        batch.create.extend(group.create)

    if batch.has_changes():
        batches.append(batch)
    return batches
