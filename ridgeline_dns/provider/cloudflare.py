"""
Cloudflare provider module for Ridgeline-DNS.

This module is responsible for interfacing with the Cloudflare API to manage DNS records.
Cloudflare stores one record per target, so an endpoint with several targets maps to
several Cloudflare records and updates are applied per target.
"""

import logging
from typing import Dict, List, Optional, Tuple

import cloudflare

from ridgeline_dns.errors import ConfigError, SoftError
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.filter.zone_filter import ZoneIDFilter, ZoneIndex
from ridgeline_dns.models.models import (
    RECORD_TYPE_A,
    RECORD_TYPE_AAAA,
    RECORD_TYPE_CNAME,
    RECORD_TYPE_MX,
    RECORD_TYPE_NS,
    RECORD_TYPE_TXT,
    Changes,
    Endpoint,
    Zone,
)
from ridgeline_dns.provider.base import Provider

PROXIED_KEY = "cloudflare/proxied"

# Cloudflare uses TTL 1 for "automatic"
AUTO_TTL = 1
MIN_TTL = 60

PROXIABLE_TYPES = (RECORD_TYPE_A, RECORD_TYPE_AAAA, RECORD_TYPE_CNAME)

# Failures worth retrying on the next cycle
TRANSIENT_ERRORS = (
    cloudflare.RateLimitError,
    cloudflare.InternalServerError,
    cloudflare.APIConnectionError,
)


class CloudflareProvider(Provider):
    """
    Provider that interfaces with the Cloudflare API.
    """

    supported_record_types = (
        RECORD_TYPE_A,
        RECORD_TYPE_AAAA,
        RECORD_TYPE_CNAME,
        RECORD_TYPE_MX,
        RECORD_TYPE_NS,
        RECORD_TYPE_TXT,
    )

    def __init__(
        self,
        api_token: str,
        domain_filter: Optional[DomainFilter] = None,
        zone_id_filter: Optional[ZoneIDFilter] = None,
        zones_cache_duration: float = 0,
        proxied_by_default: bool = False,
        dry_run: bool = False,
        client=None,
    ):
        """
        Initialize a CloudflareProvider.

        Args:
            api_token: Cloudflare API token
            domain_filter: Domains to manage
            zone_id_filter: Zone IDs to manage
            zones_cache_duration: Seconds to cache the zone list
            proxied_by_default: Whether to proxy records by default
            dry_run: Whether to run in dry-run mode
            client: Preconfigured Cloudflare client, mainly for tests

        Raises:
            ConfigError: if no API token and no client is given
        """
        if not api_token and client is None:
            raise ConfigError("Cloudflare provider requires an API token")

        super().__init__(
            domain_filter=domain_filter,
            zone_id_filter=zone_id_filter,
            zones_cache_duration=zones_cache_duration,
            dry_run=dry_run,
        )
        self.proxied_by_default = proxied_by_default
        self.logger = logging.getLogger("ridgeline-dns.provider.cloudflare")

        self.cf = client if client is not None else cloudflare.Cloudflare(api_token=api_token)

    async def list_zones(self) -> List[Zone]:
        """
        Returns all zones visible to the API token.

        Returns:
            List[Zone]: List of zones
        """
        self.logger.debug("Fetching zones from Cloudflare API...")
        try:
            raw_zones = list(self.cf.zones.list(per_page=50))
        except TRANSIENT_ERRORS as e:
            raise SoftError(f"Unable to list Cloudflare zones: {e}") from e

        zones = []
        for zone in raw_zones:
            zone_name = getattr(zone, "name", None)
            zone_id = getattr(zone, "id", None)
            if not zone_name or not zone_id:
                self.logger.warning(f"Skipping zone object due to missing name or id: {zone}")
                continue
            zones.append(Zone(id=zone_id, name=zone_name, visibility="public"))

        self.logger.debug(f"Received {len(zones)} zones from Cloudflare API.")
        return zones

    async def records(self) -> List[Endpoint]:
        """
        Returns all DNS records in managed zones, one endpoint per name and type.

        Returns:
            List[Endpoint]: List of endpoints
        """
        endpoints: Dict[Tuple[str, str], Endpoint] = {}

        for zone in await self.zones():
            try:
                dns_records = list(self.cf.dns.records.list(zone_id=zone.id, per_page=100))
            except TRANSIENT_ERRORS as e:
                raise SoftError(f"Unable to list records for zone {zone.name}: {e}") from e

            for record in dns_records:
                record_type = getattr(record, "type", None)
                record_name = getattr(record, "name", None)
                record_content = getattr(record, "content", None)

                if not all([record_type, record_name, record_content]):
                    self.logger.warning(
                        f"Skipping record object due to missing type, name, or content: {record}"
                    )
                    continue
                if record_type not in self.supported_record_types:
                    continue
                if not self.domain_filter.match(record_name):
                    continue

                target = self._record_target(record)
                key = (record_name, record_type)
                endpoint = endpoints.get(key)
                if endpoint is None:
                    endpoints[key] = Endpoint(
                        dnsname=record_name,
                        targets=[target],
                        record_type=record_type,
                        record_ttl=self._endpoint_ttl(getattr(record, "ttl", None)),
                        provider_specific=self._provider_specific(
                            record_type, getattr(record, "proxied", False)
                        ),
                    )
                elif target not in endpoint.targets:
                    endpoint.targets.append(target)

        self.logger.debug(f"Fetched {len(endpoints)} endpoints from Cloudflare")
        return list(endpoints.values())

    def adjust_endpoints(self, endpoints: List[Endpoint]) -> List[Endpoint]:
        """
        Fill in the proxied setting and raise TTLs below Cloudflare's minimum.

        Args:
            endpoints: Desired endpoints

        Returns:
            List[Endpoint]: Adjusted copies of the endpoints Cloudflare accepts
        """
        adjusted = []
        for endpoint in super().adjust_endpoints(endpoints):
            endpoint = endpoint.copy()
            if endpoint.record_type in PROXIABLE_TYPES:
                endpoint.provider_specific.setdefault(
                    PROXIED_KEY, str(self.proxied_by_default).lower()
                )
            else:
                endpoint.provider_specific.pop(PROXIED_KEY, None)

            if endpoint.ttl_configured and endpoint.record_ttl < MIN_TTL:
                self.logger.warning(
                    f"TTL {endpoint.record_ttl} of {endpoint.id} is below Cloudflare's minimum, using {MIN_TTL}"
                )
                endpoint.record_ttl = MIN_TTL
            adjusted.append(endpoint)
        return adjusted

    async def apply_changes(self, changes: Changes) -> None:
        """
        Applies the specified changes to DNS records.

        Args:
            changes: Changes to apply
        """
        index = await self.zone_index()

        for endpoint in changes.delete:
            zone_id = self._zone_for(index, endpoint)
            if zone_id:
                await self._delete_targets(zone_id, endpoint, endpoint.targets)

        for old_endpoint, new_endpoint in changes.updates():
            zone_id = self._zone_for(index, new_endpoint)
            if zone_id:
                await self._update_record(zone_id, old_endpoint, new_endpoint)

        for endpoint in changes.create:
            zone_id = self._zone_for(index, endpoint)
            if zone_id:
                await self._create_targets(zone_id, endpoint, endpoint.targets)

    def _zone_for(self, index: ZoneIndex, endpoint: Endpoint) -> Optional[str]:
        zone_id, _ = index.find_zone(endpoint.dnsname)
        if zone_id is None:
            self.logger.warning(
                f"Ignoring change for {endpoint.id}: no matching Cloudflare zone found"
            )
        return zone_id

    async def _create_targets(
        self, zone_id: str, endpoint: Endpoint, targets: List[str]
    ) -> None:
        """
        Creates one Cloudflare record per target.

        Args:
            zone_id: Zone ID
            endpoint: Endpoint the targets belong to
            targets: Targets to create
        """
        for target in targets:
            record_data = self._record_data(endpoint, target)
            if self.dry_run:
                self.logger.info(f"Would create DNS record: {endpoint.record_type} {endpoint.dnsname} -> {target}")
                continue

            self.logger.info(
                f"Creating DNS record: {endpoint.record_type} {endpoint.dnsname} -> {target} (TTL: {record_data['ttl']})"
            )
            try:
                self.cf.dns.records.create(zone_id=zone_id, **record_data)
            except TRANSIENT_ERRORS as e:
                raise SoftError(f"Unable to create record {endpoint.id}: {e}") from e

    async def _update_record(
        self, zone_id: str, old_endpoint: Endpoint, new_endpoint: Endpoint
    ) -> None:
        """
        Updates an existing DNS record set target by target.

        Targets only in the old endpoint are deleted, targets only in the new
        one are created, and kept targets are rewritten with the new TTL and
        proxied setting.

        Args:
            zone_id: Zone ID
            old_endpoint: Old endpoint
            new_endpoint: New endpoint
        """
        removed = [t for t in old_endpoint.targets if t not in new_endpoint.targets]
        added = [t for t in new_endpoint.targets if t not in old_endpoint.targets]
        kept = [t for t in new_endpoint.targets if t in old_endpoint.targets]

        await self._delete_targets(zone_id, old_endpoint, removed)

        existing = self._existing_records(zone_id, new_endpoint)
        for target in kept:
            record_id = existing.get(target)
            if not record_id:
                self.logger.warning(
                    f"Record for {new_endpoint.id} -> {target} not found, creating instead."
                )
                added.append(target)
                continue

            record_data = self._record_data(new_endpoint, target)
            if self.dry_run:
                self.logger.info(f"Would update DNS record {record_id}: {new_endpoint.record_type} {new_endpoint.dnsname} -> {target}")
                continue

            self.logger.info(
                f"Updating DNS record {record_id}: {new_endpoint.record_type} {new_endpoint.dnsname} -> {target} (TTL: {record_data['ttl']})"
            )
            try:
                self.cf.dns.records.update(dns_record_id=record_id, zone_id=zone_id, **record_data)
            except TRANSIENT_ERRORS as e:
                raise SoftError(f"Unable to update record {new_endpoint.id}: {e}") from e

        await self._create_targets(zone_id, new_endpoint, added)

    async def _delete_targets(
        self, zone_id: str, endpoint: Endpoint, targets: List[str]
    ) -> None:
        """
        Deletes the Cloudflare records holding the given targets.

        Args:
            zone_id: Zone ID
            endpoint: Endpoint the targets belong to
            targets: Targets to delete
        """
        if not targets:
            return

        existing = self._existing_records(zone_id, endpoint)
        for target in targets:
            record_id = existing.get(target)
            if not record_id:
                self.logger.warning(
                    f"Could not find record for {endpoint.id} -> {target}. Skipping deletion."
                )
                continue
            if self.dry_run:
                self.logger.info(f"Would delete DNS record: {endpoint.record_type} {endpoint.dnsname} -> {target} (ID: {record_id})")
                continue

            self.logger.info(
                f"Deleting DNS record: {endpoint.record_type} {endpoint.dnsname} -> {target} (ID: {record_id})"
            )
            try:
                self.cf.dns.records.delete(dns_record_id=record_id, zone_id=zone_id)
            except TRANSIENT_ERRORS as e:
                raise SoftError(f"Unable to delete record {endpoint.id}: {e}") from e

    def _existing_records(self, zone_id: str, endpoint: Endpoint) -> Dict[str, str]:
        """
        Maps the targets of an endpoint's current Cloudflare records to record IDs.

        Args:
            zone_id: Zone ID
            endpoint: Endpoint

        Returns:
            Dict[str, str]: Target to record ID
        """
        try:
            dns_records = list(
                self.cf.dns.records.list(
                    zone_id=zone_id,
                    name=endpoint.dnsname,
                    type=endpoint.record_type,
                    per_page=100,
                )
            )
        except TRANSIENT_ERRORS as e:
            raise SoftError(f"Unable to look up records for {endpoint.id}: {e}") from e

        existing = {}
        for record in dns_records:
            record_id = getattr(record, "id", None)
            if (
                record_id
                and getattr(record, "name", None) == endpoint.dnsname
                and getattr(record, "type", None) == endpoint.record_type
            ):
                existing[self._record_target(record)] = record_id
        return existing

    def _record_data(self, endpoint: Endpoint, target: str) -> dict:
        """Build the keyword arguments for a Cloudflare create/update call."""
        record_data = {
            "name": endpoint.dnsname,
            "type": endpoint.record_type,
            "content": target,
            "ttl": endpoint.record_ttl if endpoint.ttl_configured else AUTO_TTL,
        }
        if endpoint.record_type == RECORD_TYPE_MX:
            priority, _, host = target.partition(" ")
            record_data["priority"] = int(priority)
            record_data["content"] = host
        if endpoint.record_type in PROXIABLE_TYPES:
            proxied = endpoint.provider_specific.get(
                PROXIED_KEY, str(self.proxied_by_default).lower()
            )
            record_data["proxied"] = proxied == "true"
        return record_data

    @staticmethod
    def _record_target(record) -> str:
        content = getattr(record, "content", "")
        if getattr(record, "type", None) == RECORD_TYPE_MX:
            return f"{getattr(record, 'priority', 0)} {content}"
        return content

    @staticmethod
    def _endpoint_ttl(ttl) -> Optional[int]:
        if not ttl or ttl == AUTO_TTL:
            return None
        return int(ttl)

    @staticmethod
    def _provider_specific(record_type: str, proxied) -> Dict[str, str]:
        if record_type not in PROXIABLE_TYPES:
            return {}
        return {PROXIED_KEY: "true" if proxied else "false"}
