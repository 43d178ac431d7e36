"""
No-op registry for Ridgeline-DNS: every record in the managed zones is
treated as managed, and no ownership markers are written.
"""

import logging
from typing import List

from ridgeline_dns.models.models import Changes, Endpoint


class NoopRegistry:
    """Registry that passes records and changes straight through to the provider."""

    # Ownership checks in the plan are disabled
    owner_id = None

    def __init__(self, provider):
        self.provider = provider
        self.logger = logging.getLogger("ridgeline-dns.registry.noop")

    async def records(self) -> List[Endpoint]:
        return await self.provider.records()

    def stamp(self, endpoints: List[Endpoint]) -> List[Endpoint]:
        return [endpoint.copy() for endpoint in endpoints]

    async def apply_changes(self, changes: Changes) -> None:
        if not changes.has_changes():
            self.logger.debug("No changes to apply")
            return
        await self.provider.apply_changes(changes)
