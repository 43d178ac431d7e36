from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.filter.zone_filter import (
    ZoneIDFilter,
    ZoneIndex,
    ZoneTypeFilter,
    filter_zones,
)

__all__ = ["DomainFilter", "ZoneIDFilter", "ZoneIndex", "ZoneTypeFilter", "filter_zones"]
