from ridgeline_dns.models.models import (
    NAME_TARGET_TYPES,
    OWNER_LABEL,
    RECORD_TYPE_A,
    RECORD_TYPE_AAAA,
    RECORD_TYPE_CAA,
    RECORD_TYPE_CNAME,
    RECORD_TYPE_MX,
    RECORD_TYPE_NS,
    RECORD_TYPE_PTR,
    RECORD_TYPE_SRV,
    RECORD_TYPE_TXT,
    RESOURCE_LABEL,
    Changes,
    Endpoint,
    EndpointKey,
    Zone,
    merge_endpoints,
    normalize_name,
)
from ridgeline_dns.models.validation import target_error, validate_targets

__all__ = [
    "NAME_TARGET_TYPES",
    "OWNER_LABEL",
    "RECORD_TYPE_A",
    "RECORD_TYPE_AAAA",
    "RECORD_TYPE_CAA",
    "RECORD_TYPE_CNAME",
    "RECORD_TYPE_MX",
    "RECORD_TYPE_NS",
    "RECORD_TYPE_PTR",
    "RECORD_TYPE_SRV",
    "RECORD_TYPE_TXT",
    "RESOURCE_LABEL",
    "Changes",
    "Endpoint",
    "EndpointKey",
    "Zone",
    "merge_endpoints",
    "normalize_name",
    "target_error",
    "validate_targets",
]
