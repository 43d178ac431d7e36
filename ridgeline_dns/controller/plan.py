"""
Plan module for Ridgeline-DNS.

This module is responsible for calculating the changes needed to bring the current state
in line with the desired state.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from ridgeline_dns.errors import ConfigError, DuplicateEndpointError
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.models.models import (
    NAME_TARGET_TYPES,
    OWNER_LABEL,
    RECORD_TYPE_CNAME,
    Changes,
    Endpoint,
    EndpointKey,
    merge_endpoints,
    normalize_name,
)
from ridgeline_dns.models.validation import target_error

POLICY_SYNC = "sync"
POLICY_UPSERT_ONLY = "upsert-only"
POLICY_CREATE_ONLY = "create-only"
POLICIES = (POLICY_SYNC, POLICY_UPSERT_ONLY, POLICY_CREATE_ONLY)


class Plan:
    """
    Plan calculates the changes needed to bring the current state in line with the desired state.

    The plan performs no I/O. Running it twice against unchanged state
    yields an empty change set.
    """

    def __init__(
        self,
        current: List[Endpoint],
        desired: List[Endpoint],
        policy: str = POLICY_SYNC,
        owner_id: Optional[str] = None,
        domain_filter: Optional[DomainFilter] = None,
        managed_record_types: Optional[Iterable[str]] = None,
    ):
        """
        Initialize a Plan.

        Args:
            current: Current endpoints, one per key, with ownership labels resolved
            desired: Desired endpoints; several endpoints per key are merged
            policy: Synchronization policy (sync, upsert-only, create-only)
            owner_id: Owner identifier of this instance; None disables ownership checks
            domain_filter: Only names matching this filter are planned
            managed_record_types: Only these record types are planned (all if None)
        """
        if policy not in POLICIES:
            raise ConfigError(
                f"Unknown policy '{policy}', expected one of {', '.join(POLICIES)}"
            )
        self.current = current
        self.desired = desired
        self.policy = policy
        self.owner_id = owner_id
        self.domain_filter = domain_filter
        self.managed_record_types = (
            {record_type.upper() for record_type in managed_record_types}
            if managed_record_types is not None
            else None
        )
        self.logger = logging.getLogger("ridgeline-dns.plan")

    def calculate_changes(self) -> Changes:
        """
        Calculate the changes needed to bring the current state in line with the desired state.

        Returns:
            Changes: Changes to be applied, sorted by key with sorted targets

        Raises:
            DuplicateEndpointError: if current contains a key twice, or desired
                endpoints of one key cannot be merged
        """
        changes = Changes()

        current_by_key = self._index_current(self._select(self.current))
        desired_endpoints, protected_keys = self._valid_desired(
            merge_endpoints(self._select(self.desired))
        )
        desired_endpoints = self._resolve_cname_conflicts(desired_endpoints, protected_keys)
        desired_by_key: Dict[EndpointKey, Endpoint] = {
            endpoint.key: endpoint for endpoint in desired_endpoints
        }

        for key in sorted(desired_by_key):
            desired_endpoint = desired_by_key[key]
            current_endpoint = current_by_key.get(key)

            if current_endpoint is None:
                self.logger.info(f"Endpoint {desired_endpoint.id} will be created")
                changes.create.append(desired_endpoint.with_sorted_targets())
                continue

            if not self._is_owned(current_endpoint):
                self.logger.info(
                    f"Skipping {desired_endpoint.id}: record is owned by "
                    f"'{current_endpoint.labels.get(OWNER_LABEL, '')}', not '{self.owner_id}'"
                )
                continue

            if self._needs_update(current_endpoint, desired_endpoint):
                if self.policy == POLICY_CREATE_ONLY:
                    self.logger.debug(
                        f"Endpoint {desired_endpoint.id} differs but policy is {self.policy}"
                    )
                    continue
                self.logger.info(f"Endpoint {desired_endpoint.id} needs update")
                changes.update_old.append(current_endpoint.with_sorted_targets())
                changes.update_new.append(
                    self._update_target(current_endpoint, desired_endpoint)
                )
            else:
                self.logger.debug(f"Endpoint {desired_endpoint.id} is up-to-date")

        # Process current endpoints that are not in desired endpoints
        if self.policy == POLICY_SYNC:
            for key in sorted(current_by_key):
                if key in desired_by_key or key in protected_keys:
                    continue
                current_endpoint = current_by_key[key]
                if not self._is_owned(current_endpoint):
                    self.logger.debug(
                        f"Endpoint {current_endpoint.id} is not desired but not owned by us, leaving it."
                    )
                    continue
                self.logger.info(
                    f"Endpoint {current_endpoint.id} ({current_endpoint.dnsname}) is no longer desired and will be deleted"
                )
                changes.delete.append(current_endpoint.with_sorted_targets())

        changes.validate()
        return changes

    def _select(self, endpoints: List[Endpoint]) -> List[Endpoint]:
        """Drop endpoints outside the domain filter or the managed record types."""
        selected = []
        for endpoint in endpoints:
            if self.domain_filter is not None and not self.domain_filter.match(
                endpoint.dnsname
            ):
                self.logger.debug(f"Ignoring {endpoint.id}: outside the domain filter")
                continue
            if (
                self.managed_record_types is not None
                and endpoint.record_type not in self.managed_record_types
            ):
                self.logger.debug(f"Ignoring {endpoint.id}: record type is not managed")
                continue
            selected.append(endpoint)
        return selected

    @staticmethod
    def _index_current(endpoints: List[Endpoint]) -> Dict[EndpointKey, Endpoint]:
        current_by_key: Dict[EndpointKey, Endpoint] = {}
        for endpoint in endpoints:
            if endpoint.key in current_by_key:
                raise DuplicateEndpointError(
                    f"Current state contains {endpoint.id} more than once; "
                    "providers must return one endpoint per key"
                )
            current_by_key[endpoint.key] = endpoint
        return current_by_key

    def _valid_desired(self, endpoints: List[Endpoint]):
        """
        Split desired endpoints into valid ones and keys of invalid ones.

        Keys of invalid endpoints are protected: their current records are
        neither updated nor deleted.
        """
        valid = []
        protected: Set[EndpointKey] = set()
        for endpoint in endpoints:
            error = target_error(endpoint)
            if error:
                self.logger.warning(f"Ignoring desired endpoint {endpoint.id}: {error}")
                protected.add(endpoint.key)
                continue
            valid.append(endpoint)
        return valid, protected

    def _resolve_cname_conflicts(
        self, endpoints: List[Endpoint], protected: Set[EndpointKey]
    ) -> List[Endpoint]:
        """A CNAME cannot share its name with other records; drop conflicting CNAMEs."""
        types_by_name: Dict[str, Set[str]] = {}
        for endpoint in endpoints:
            types_by_name.setdefault(normalize_name(endpoint.dnsname), set()).add(
                endpoint.record_type
            )

        resolved = []
        for endpoint in endpoints:
            types = types_by_name[normalize_name(endpoint.dnsname)]
            if endpoint.record_type == RECORD_TYPE_CNAME and len(types) > 1:
                self.logger.warning(
                    f"Ignoring desired endpoint {endpoint.id}: a CNAME cannot coexist with "
                    f"{', '.join(sorted(types - {RECORD_TYPE_CNAME}))} records"
                )
                protected.add(endpoint.key)
                continue
            resolved.append(endpoint)
        return resolved

    def _is_owned(self, endpoint: Endpoint) -> bool:
        if self.owner_id is None:
            return True
        return endpoint.labels.get(OWNER_LABEL) == self.owner_id

    @staticmethod
    def _update_target(current: Endpoint, desired: Endpoint) -> Endpoint:
        """Build the new side of an update; labels are copied, never shared."""
        new_endpoint = desired.with_sorted_targets()
        labels = dict(current.labels)
        labels.update(desired.labels)
        new_endpoint.labels = labels
        return new_endpoint

    @staticmethod
    def _comparable_targets(endpoint: Endpoint) -> Set[str]:
        if endpoint.record_type in NAME_TARGET_TYPES:
            return {target.rstrip(".").lower() for target in endpoint.targets}
        return set(endpoint.targets)

    @classmethod
    def _needs_update(cls, current: Endpoint, desired: Endpoint) -> bool:
        """
        Check if an endpoint needs to be updated.

        Args:
            current: Current endpoint
            desired: Desired endpoint

        Returns:
            bool: True if the endpoint needs to be updated, False otherwise
        """
        if cls._comparable_targets(current) != cls._comparable_targets(desired):
            return True

        # An unconfigured desired TTL means "provider default": never a diff
        if desired.ttl_configured and current.record_ttl != desired.record_ttl:
            return True

        if current.provider_specific != desired.provider_specific:
            return True

        return False

