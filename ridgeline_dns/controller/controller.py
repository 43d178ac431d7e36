"""
Controller module for Ridgeline-DNS.

This module is responsible for coordinating between the source, registry, and provider
components to ensure that the desired state is maintained.
"""

import asyncio
import logging
from typing import List, Optional

from ridgeline_dns.controller.plan import POLICY_SYNC, Plan
from ridgeline_dns.errors import SoftError
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.models.models import Changes
from ridgeline_dns.utils.health import HealthState


class Controller:
    """
    Controller that coordinates between the source, registry, and provider components.
    """

    def __init__(
        self,
        source,
        registry,
        provider,
        interval: int = 60,
        policy: str = POLICY_SYNC,
        domain_filter: Optional[DomainFilter] = None,
        managed_record_types: Optional[List[str]] = None,
        health: Optional[HealthState] = None,
    ):
        """
        Initialize a Controller.

        Args:
            source: Source component
            registry: Registry component
            provider: Provider component
            interval: Reconciliation interval in seconds
            policy: Plan policy (sync, upsert-only or create-only)
            domain_filter: Domains the plan is allowed to touch
            managed_record_types: Record types the plan is allowed to touch
            health: State shared with the health check server
        """
        self.source = source
        self.registry = registry
        self.provider = provider
        self.interval = interval
        self.policy = policy
        self.domain_filter = domain_filter
        self.managed_record_types = managed_record_types
        self.health = health if health is not None else HealthState()
        self.logger = logging.getLogger("ridgeline-dns.controller")

    async def run_reconciliation_loop(self) -> None:
        """
        Runs the controller's reconciliation loop at the specified interval.
        """
        self.logger.debug(
            f"Reconciliation loop starting with interval {self.interval} seconds"
        )

        while True:
            try:
                await self.run_once()
            except Exception as e:
                self.logger.error(f"Error in reconciliation loop: {e}", exc_info=True)

            await asyncio.sleep(self.interval)

    async def run_once(self) -> Changes:
        """
        Performs a single reconciliation run.

        A transient provider failure is logged and recorded, and the cycle
        is skipped with an empty change set.

        Returns:
            Changes: The change set that was handed to the registry
        """
        try:
            changes = await self._reconcile()
        except SoftError as e:
            self.logger.warning(f"Transient provider error, skipping this cycle: {e}")
            self.health.record_failure(e)
            return Changes()
        except Exception as e:
            self.health.record_failure(e)
            raise

        self.health.record_success(changes)
        return changes

    async def _reconcile(self) -> Changes:
        # Desired state, stamped with our ownership and trimmed to what the provider supports
        desired_endpoints = await self.source.endpoints()
        desired_endpoints = self.provider.adjust_endpoints(
            self.registry.stamp(desired_endpoints)
        )

        current_endpoints = await self.registry.records()

        changes = Plan(
            current_endpoints,
            desired_endpoints,
            policy=self.policy,
            owner_id=self.registry.owner_id,
            domain_filter=self.domain_filter,
            managed_record_types=self.managed_record_types,
        ).calculate_changes()

        log_level = logging.INFO if changes.has_changes() else logging.DEBUG
        self.logger.log(
            log_level,
            f"Running reconciliation: Found {len(desired_endpoints)} desired and "
            f"{len(current_endpoints)} current endpoints.",
        )

        if changes.has_changes():
            self.logger.info(f"Applying changes: {changes.summary()}")
            await self.registry.apply_changes(changes)
        else:
            self.logger.debug("All records are already up to date")

        return changes
