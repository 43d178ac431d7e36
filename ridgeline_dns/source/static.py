"""
Static source module for Ridgeline-DNS.

Desired endpoints are listed directly in the configuration file.
"""

import logging
from typing import Any, Dict, List

from ridgeline_dns.errors import ConfigError
from ridgeline_dns.models.models import RESOURCE_LABEL, Endpoint


class StaticSource:
    """
    Source that returns a fixed list of endpoints.
    """

    def __init__(self, endpoints: List[Dict[str, Any]], resource: str = "static"):
        """
        Initialize a StaticSource.

        Args:
            endpoints: Endpoint definitions with keys ``name``, ``type``,
                ``targets`` and optionally ``ttl``, ``set_identifier`` and
                ``provider_specific``
            resource: Value of the resource label on every endpoint

        Raises:
            ConfigError: if a definition is incomplete or malformed
        """
        self.logger = logging.getLogger("ridgeline-dns.source.static")
        self._endpoints = [
            self._parse(definition, resource) for definition in endpoints or []
        ]

    @staticmethod
    def _parse(definition: Dict[str, Any], resource: str) -> Endpoint:
        try:
            name = definition["name"]
            targets = definition["targets"]
        except KeyError as e:
            raise ConfigError(f"Static endpoint {definition} is missing {e}") from e

        if isinstance(targets, str):
            targets = [targets]

        try:
            return Endpoint(
                dnsname=name,
                targets=[str(target) for target in targets],
                record_type=definition.get("type", "A"),
                record_ttl=definition.get("ttl"),
                labels={RESOURCE_LABEL: resource},
                provider_specific={
                    str(k): str(v)
                    for k, v in (definition.get("provider_specific") or {}).items()
                },
                set_identifier=definition.get("set_identifier", ""),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid static endpoint {name}: {e}") from e

    async def endpoints(self) -> List[Endpoint]:
        """
        Returns copies of the configured endpoints.

        Returns:
            List[Endpoint]: List of endpoints
        """
        self.logger.debug(f"Returning {len(self._endpoints)} static endpoints")
        return [endpoint.copy() for endpoint in self._endpoints]
