"""
Zone filtering and zone lookup for Ridgeline-DNS.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ridgeline_dns.errors import ConfigError
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.models.models import Zone, normalize_name

logger = logging.getLogger("ridgeline-dns.filter.zones")

ZONE_TYPE_PUBLIC = "public"
ZONE_TYPE_PRIVATE = "private"


class ZoneIDFilter:
    """Allow-list of provider zone IDs. An empty list allows every zone."""

    def __init__(self, zone_ids: Optional[List[str]] = None):
        self.zone_ids = [zone_id for zone_id in zone_ids or [] if zone_id]

    def match(self, zone_id: str) -> bool:
        return not self.zone_ids or zone_id in self.zone_ids


class ZoneTypeFilter:
    """Restricts zones by visibility ("public" or "private")."""

    def __init__(self, zone_type: str = ""):
        zone_type = (zone_type or "").lower()
        if zone_type not in ("", ZONE_TYPE_PUBLIC, ZONE_TYPE_PRIVATE):
            raise ConfigError(
                f"Unknown zone type filter '{zone_type}', expected 'public' or 'private'"
            )
        self.zone_type = zone_type

    def match(self, zone: Zone) -> bool:
        return not self.zone_type or zone.visibility.lower() == self.zone_type


def filter_zones(
    zones: List[Zone],
    domain_filter: Optional[DomainFilter] = None,
    zone_id_filter: Optional[ZoneIDFilter] = None,
    zone_type_filter: Optional[ZoneTypeFilter] = None,
) -> List[Zone]:
    """
    Select the zones passing every configured filter.

    Args:
        zones: Zones reported by a provider
        domain_filter: Domain filter, matched against the zone name
        zone_id_filter: Zone ID allow-list
        zone_type_filter: Visibility filter

    Returns:
        List[Zone]: Eligible zones, in input order
    """
    eligible = []
    for zone in zones:
        if domain_filter is not None and not (
            domain_filter.match(zone.name) or domain_filter.match_parent(zone.name)
        ):
            logger.debug(f"Zone '{zone.name}' is not covered by the domain filter, skipping.")
            continue
        if zone_id_filter is not None and not zone_id_filter.match(zone.id):
            logger.debug(f"Zone '{zone.name}' ({zone.id}) is not in the zone ID filter, skipping.")
            continue
        if zone_type_filter is not None and not zone_type_filter.match(zone):
            logger.debug(
                f"Zone '{zone.name}' has visibility '{zone.visibility}', skipping."
            )
            continue
        eligible.append(zone)
    return eligible


class ZoneIndex:
    """
    Maps zone names to IDs and finds the most specific zone for a DNS name.
    """

    def __init__(self, zones: Optional[List[Zone]] = None):
        self._zones: Dict[str, str] = {}
        for zone in zones or []:
            self.add(zone.id, zone.name)

    def add(self, zone_id: str, zone_name: str) -> None:
        self._zones[zone_id] = normalize_name(zone_name)

    def find_zone(self, name: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Find the zone with the longest name that equals or contains ``name``.

        Args:
            name: DNS name

        Returns:
            Tuple[Optional[str], Optional[str]]: (zone ID, zone name), or
                (None, None) if no zone covers the name
        """
        name = normalize_name(name)
        best_id, best_name = None, None
        for zone_id, zone_name in self._zones.items():
            if name != zone_name and not name.endswith("." + zone_name):
                continue
            if best_name is None or len(zone_name) > len(best_name):
                best_id, best_name = zone_id, zone_name
        return best_id, best_name

    def __len__(self) -> int:
        return len(self._zones)
