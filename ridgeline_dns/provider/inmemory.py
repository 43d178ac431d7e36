"""
In-memory provider module for Ridgeline-DNS.

Keeps records in process memory. Used for tests, demos and for checking what
a configuration would do without touching a real DNS backend.
"""

import logging
from typing import Dict, List, Optional

from ridgeline_dns.errors import RidgelineError
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.filter.zone_filter import ZoneIDFilter, ZoneIndex, ZoneTypeFilter
from ridgeline_dns.models.models import Changes, Endpoint, EndpointKey, Zone
from ridgeline_dns.provider.base import Provider, batch_changes


class InMemoryChangeError(RidgelineError):
    """A change conflicts with the stored records."""


class InMemoryProvider(Provider):
    """
    Provider backed by a dictionary of zones.
    """

    def __init__(
        self,
        zones: Optional[List[Zone]] = None,
        domain_filter: Optional[DomainFilter] = None,
        zone_id_filter: Optional[ZoneIDFilter] = None,
        zone_type_filter: Optional[ZoneTypeFilter] = None,
        zones_cache_duration: float = 0,
        batch_change_size: int = 0,
        dry_run: bool = False,
    ):
        """
        Initialize an InMemoryProvider.

        Args:
            zones: Zones to serve
            domain_filter: Domains to manage
            zone_id_filter: Zone IDs to manage
            zone_type_filter: Zone visibility to manage
            zones_cache_duration: Seconds to cache the filtered zone list
            batch_change_size: Maximum operations per applied batch (0 = unlimited)
            dry_run: Whether to run in dry-run mode
        """
        super().__init__(
            domain_filter=domain_filter,
            zone_id_filter=zone_id_filter,
            zone_type_filter=zone_type_filter,
            zones_cache_duration=zones_cache_duration,
            dry_run=dry_run,
        )
        self.batch_change_size = batch_change_size
        self.logger = logging.getLogger("ridgeline-dns.provider.inmemory")
        self._zones: Dict[str, Zone] = {}
        self._store: Dict[str, Dict[EndpointKey, Endpoint]] = {}
        for zone in zones or []:
            self.create_zone(zone)

    def create_zone(self, zone: Zone) -> None:
        if zone.id in self._zones:
            raise InMemoryChangeError(f"Zone {zone.id} already exists")
        self._zones[zone.id] = zone
        self._store[zone.id] = {}

    def zone_records(self, zone_id: str) -> List[Endpoint]:
        """Return copies of the records stored in one zone."""
        return [endpoint.copy() for endpoint in self._store[zone_id].values()]

    async def list_zones(self) -> List[Zone]:
        return list(self._zones.values())

    async def records(self) -> List[Endpoint]:
        """
        Returns all records in the eligible zones.

        Returns:
            List[Endpoint]: List of endpoints
        """
        endpoints = []
        for zone in await self.zones():
            for endpoint in self._store[zone.id].values():
                if not self.domain_filter.match(endpoint.dnsname):
                    continue
                endpoints.append(endpoint.copy())
        self.logger.debug(f"Returning {len(endpoints)} records")
        return endpoints

    async def apply_changes(self, changes: Changes) -> None:
        """
        Applies the specified changes to the stored records.

        Each batch is validated as a whole before anything is written.

        Args:
            changes: Changes to apply

        Raises:
            InMemoryChangeError: if a create targets an existing record or an
                update/delete a missing one
        """
        index = await self.zone_index()

        for batch in batch_changes(changes, self.batch_change_size):
            per_zone = self._route(index, batch)

            for zone_id, zone_changes in per_zone.items():
                self._validate(zone_id, zone_changes)

            for zone_id, zone_changes in per_zone.items():
                self._apply_zone(zone_id, zone_changes)

    def _route(self, index: ZoneIndex, changes: Changes) -> Dict[str, Changes]:
        per_zone: Dict[str, Changes] = {}

        def zone_changes(endpoint: Endpoint) -> Optional[Changes]:
            zone_id, _ = index.find_zone(endpoint.dnsname)
            if zone_id is None:
                self.logger.warning(
                    f"Ignoring change for {endpoint.id}: no matching zone found"
                )
                return None
            return per_zone.setdefault(zone_id, Changes())

        for endpoint in changes.delete:
            target = zone_changes(endpoint)
            if target is not None:
                target.delete.append(endpoint)
        for old, new in changes.updates():
            target = zone_changes(new)
            if target is not None:
                target.update_old.append(old)
                target.update_new.append(new)
        for endpoint in changes.create:
            target = zone_changes(endpoint)
            if target is not None:
                target.create.append(endpoint)
        return per_zone

    def _validate(self, zone_id: str, changes: Changes) -> None:
        records = self._store[zone_id]
        deleted = {endpoint.key for endpoint in changes.delete}
        for endpoint in changes.delete:
            if endpoint.key not in records:
                raise InMemoryChangeError(f"Cannot delete {endpoint.id}: record not found")
        for old in changes.update_old:
            if old.key not in records:
                raise InMemoryChangeError(f"Cannot update {old.id}: record not found")
        for endpoint in changes.create:
            if endpoint.key in records and endpoint.key not in deleted:
                raise InMemoryChangeError(f"Cannot create {endpoint.id}: record already exists")

    def _apply_zone(self, zone_id: str, changes: Changes) -> None:
        records = self._store[zone_id]
        prefix = "Would " if self.dry_run else ""

        for endpoint in changes.delete:
            self.logger.info(f"{prefix}DELETE in zone {zone_id}: {endpoint}")
            if not self.dry_run:
                del records[endpoint.key]

        for old, new in changes.updates():
            self.logger.info(f"{prefix}UPDATE in zone {zone_id}: {old} -> {new}")
            if not self.dry_run:
                records[new.key] = new.copy()

        for endpoint in changes.create:
            self.logger.info(f"{prefix}CREATE in zone {zone_id}: {endpoint}")
            if not self.dry_run:
                records[endpoint.key] = endpoint.copy()
