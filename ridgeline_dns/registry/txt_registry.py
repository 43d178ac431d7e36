"""
TXT registry module for Ridgeline-DNS.

This module is responsible for tracking which DNS records are managed by this
Ridgeline-DNS instance using companion TXT records ("ownership markers").
"""

import base64
import logging
from typing import Dict, List, Optional, Set, Tuple

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ridgeline_dns.errors import ConfigError
from ridgeline_dns.filter.zone_filter import ZoneIndex
from ridgeline_dns.models.models import (
    OWNER_LABEL,
    RECORD_TYPE_TXT,
    RESOURCE_LABEL,
    Changes,
    Endpoint,
    EndpointKey,
    normalize_name,
)

HERITAGE = "ridgeline-dns"
ENCRYPTED_PREFIX = "v1:AES256:"

# (normalized marker name, set identifier)
MarkerKey = Tuple[str, str]


class TXTRegistry:
    """
    Registry that tracks DNS record ownership using TXT records.
    """

    def __init__(
        self,
        provider,
        txt_owner_id: str = "default",
        txt_prefix: str = "",
        txt_suffix: str = "",
        txt_wildcard_replacement: str = "star",
        encrypt_txt: bool = False,
        encryption_key: Optional[str] = None,
        adopt_unowned: bool = False,
    ):
        """
        Initialize a TXTRegistry.

        Args:
            provider: DNS provider
            txt_owner_id: Owner ID written to and expected in TXT markers
            txt_prefix: Prefix for TXT marker names
            txt_suffix: Suffix appended to the first label of TXT marker names
            txt_wildcard_replacement: Replacement for wildcards in TXT marker names
            encrypt_txt: Whether to encrypt TXT marker content
            encryption_key: Encryption key for TXT marker content
            adopt_unowned: Whether records without any marker may be taken over

        Raises:
            ConfigError: on contradictory or incomplete settings
        """
        if not txt_owner_id:
            raise ConfigError("TXT registry requires a non-empty owner ID")
        if txt_prefix and txt_suffix:
            raise ConfigError("TXT prefix and TXT suffix are mutually exclusive")
        if encrypt_txt and not encryption_key:
            raise ConfigError("TXT encryption is enabled but no encryption key is set")

        self.provider = provider
        self.owner_id = txt_owner_id
        self.txt_prefix = txt_prefix
        self.txt_suffix = txt_suffix
        self.txt_wildcard_replacement = txt_wildcard_replacement
        self.encrypt_txt = encrypt_txt
        self.adopt_unowned = adopt_unowned
        self.logger = logging.getLogger("ridgeline-dns.registry.txt")

        self.fernet = self._create_fernet(encryption_key) if encryption_key else None

        # Refreshed by records()
        self._markers: Dict[MarkerKey, Endpoint] = {}
        self._marker_owners: Dict[MarkerKey, str] = {}
        self._zones = ZoneIndex()
        self._adopted: Set[EndpointKey] = set()

    async def records(self) -> List[Endpoint]:
        """
        Returns the provider's records with ownership resolved.

        Every returned endpoint carries an ``owner`` label: the owner found in
        its marker, or an empty string if it has none. Marker records are not
        returned.

        Returns:
            List[Endpoint]: List of endpoints
        """
        all_records = await self.provider.records()
        self._zones = await self.provider.zone_index()

        markers: Dict[MarkerKey, Endpoint] = {}
        marker_content: Dict[MarkerKey, Dict[str, str]] = {}
        records = []
        for record in all_records:
            if record.record_type == RECORD_TYPE_TXT:
                content = self._read_marker(record)
                if content is not None:
                    key = (normalize_name(record.dnsname), record.set_identifier)
                    markers[key] = record
                    marker_content[key] = content
                    continue
            records.append(record)

        self._markers = markers
        self._marker_owners = {
            key: content.get("owner", "") for key, content in marker_content.items()
        }
        self._adopted = set()

        for record in records:
            content = marker_content.get(self._marker_key(record), {})
            owner = content.get("owner", "")
            if content.get("resource"):
                record.labels[RESOURCE_LABEL] = content["resource"]

            if not owner and self.adopt_unowned:
                self.logger.debug(f"Adopting unowned record {record.id}")
                owner = self.owner_id
                self._adopted.add(record.key)

            record.labels[OWNER_LABEL] = owner

        self.logger.debug(
            f"Resolved ownership for {len(records)} records using {len(markers)} TXT markers"
        )
        return records

    def stamp(self, endpoints: List[Endpoint]) -> List[Endpoint]:
        """
        Returns copies of desired endpoints labelled with this instance's owner ID.

        Args:
            endpoints: Desired endpoints

        Returns:
            List[Endpoint]: Stamped copies
        """
        stamped = []
        for endpoint in endpoints:
            endpoint = endpoint.copy()
            endpoint.labels[OWNER_LABEL] = self.owner_id
            stamped.append(endpoint)
        return stamped

    async def apply_changes(self, changes: Changes) -> None:
        """
        Applies changes together with the matching TXT marker changes.

        Updates and deletes of records this instance does not own are
        dropped. Creates under a name whose marker belongs to another owner
        are dropped as well.

        Args:
            changes: Changes to apply
        """
        self._zones = await self.provider.zone_index()
        result = Changes()

        for endpoint in changes.delete:
            if not self._owns(endpoint):
                continue
            result.delete.append(endpoint)
            marker = self._markers.get(self._marker_key(endpoint))
            if marker is not None:
                result.delete.append(marker)

        for old, new in changes.updates():
            if not self._owns(old):
                continue
            result.update_old.append(old)
            result.update_new.append(new)
            if old.key in self._adopted:
                self._upsert_marker(result, new)

        for endpoint in changes.create:
            marker_owner = self._marker_owners.get(self._marker_key(endpoint))
            if marker_owner is not None and marker_owner not in ("", self.owner_id):
                self.logger.info(
                    f"Skipping create of {endpoint.id}: name is claimed by owner '{marker_owner}'"
                )
                continue
            result.create.append(endpoint)
            self._upsert_marker(result, endpoint)

        if not result.has_changes():
            self.logger.debug("No changes left after ownership checks")
            return

        result.validate()
        await self.provider.apply_changes(result)

    def _owns(self, endpoint: Endpoint) -> bool:
        owner = endpoint.labels.get(OWNER_LABEL, "")
        if owner == self.owner_id:
            return True
        self.logger.info(
            f"Skipping change to {endpoint.id}: owned by '{owner}', not '{self.owner_id}'"
        )
        return False

    def _upsert_marker(self, changes: Changes, endpoint: Endpoint) -> None:
        """Create the marker for an endpoint, or overwrite a stale one left behind."""
        marker = self._marker_endpoint(endpoint)
        existing = self._markers.get(self._marker_key(endpoint))
        if existing is None:
            changes.create.append(marker)
        else:
            changes.update_old.append(existing)
            changes.update_new.append(marker)

    def _marker_key(self, endpoint: Endpoint) -> MarkerKey:
        return normalize_name(self._get_txt_record_name(endpoint)), endpoint.set_identifier

    def _marker_endpoint(self, endpoint: Endpoint) -> Endpoint:
        return Endpoint(
            dnsname=self._get_txt_record_name(endpoint),
            targets=[f'"{self._get_txt_record_content(endpoint)}"'],
            record_type=RECORD_TYPE_TXT,
            labels={OWNER_LABEL: self.owner_id},
            set_identifier=endpoint.set_identifier,
        )

    def _get_txt_record_name(self, endpoint: Endpoint) -> str:
        """
        Gets the TXT marker name for an endpoint.

        The record type is part of the name so that records of different
        types under one DNS name have separate markers. With a suffix, the
        suffix is appended to the first label instead of prefixing the name.
        The marker of a zone apex is the child label
        ``<prefix><type><suffix>`` under the apex, so it stays in the zone.

        Args:
            endpoint: Endpoint

        Returns:
            str: TXT record name
        """
        typed = f"{endpoint.record_type.lower()}-"
        name = endpoint.dnsname.rstrip(".")

        if self._is_zone_apex(name):
            txt_name = f"{self.txt_prefix}{endpoint.record_type.lower()}{self.txt_suffix}.{name}"
        elif self.txt_suffix:
            first, _, rest = name.partition(".")
            txt_name = f"{typed}{first}{self.txt_suffix}"
            if rest:
                txt_name = f"{txt_name}.{rest}"
        else:
            txt_name = f"{self.txt_prefix}{typed}{name}"

        # Replace wildcard character if present
        if "*" in txt_name:
            txt_name = txt_name.replace("*", self.txt_wildcard_replacement)

        return txt_name

    def _is_zone_apex(self, name: str) -> bool:
        _, zone_name = self._zones.find_zone(name)
        return zone_name is not None and zone_name == normalize_name(name)

    def _get_txt_record_content(self, endpoint: Endpoint) -> str:
        """
        Creates the content for a TXT marker, optionally encrypting it.

        Args:
            endpoint: Endpoint

        Returns:
            str: TXT record content
        """
        content = {
            "heritage": HERITAGE,
            "owner": self.owner_id,
        }
        if endpoint.labels.get(RESOURCE_LABEL):
            content["resource"] = endpoint.labels[RESOURCE_LABEL]

        content_str = ",".join([f"{k}={v}" for k, v in content.items()])

        if self.encrypt_txt and self.fernet:
            return self._encrypt_txt_content(content_str)

        return content_str

    def _read_marker(self, record: Endpoint) -> Optional[Dict[str, str]]:
        """
        Interpret a TXT record as an ownership marker.

        Returns:
            Optional[Dict[str, str]]: Parsed marker content, an empty dict for
                a marker that cannot be read, or None if the record is not a marker
        """
        for target in record.targets:
            content = target
            if content.startswith('"') and content.endswith('"'):
                content = content[1:-1]

            if content.startswith(ENCRYPTED_PREFIX):
                decrypted = self._decrypt_txt_content(content)
                if decrypted is None:
                    self.logger.warning(
                        f"Failed to decrypt TXT marker {record.dnsname}; treating the record as unowned"
                    )
                    return {}
                content = decrypted

            parsed = self._parse_txt_content(content)
            if parsed.get("heritage") != HERITAGE:
                continue
            if not parsed.get("owner"):
                self.logger.warning(
                    f"TXT marker {record.dnsname} has no owner ('{content}'); treating the record as unowned"
                )
                return {}
            return parsed

        return None

    def _encrypt_txt_content(self, content: str) -> str:
        """
        Encrypts the TXT record content using AES-256.

        Args:
            content: TXT record content

        Returns:
            str: Encrypted TXT record content
        """
        encrypted = self.fernet.encrypt(content.encode())

        # Return as base64-encoded string with version prefix
        return f"{ENCRYPTED_PREFIX}{encrypted.decode()}"

    def _decrypt_txt_content(self, content: str) -> Optional[str]:
        """
        Decrypts the TXT record content.

        Args:
            content: Encrypted TXT record content

        Returns:
            Optional[str]: Decrypted TXT record content, None if it cannot be decrypted
        """
        if not self.fernet:
            self.logger.debug("Found an encrypted TXT marker but no encryption key is configured")
            return None

        try:
            decrypted = self.fernet.decrypt(content[len(ENCRYPTED_PREFIX):].encode())
        except InvalidToken:
            self.logger.error("Error decrypting TXT record content: invalid token or key")
            return None
        return decrypted.decode()

    @staticmethod
    def _create_fernet(key: str) -> Fernet:
        """
        Creates a Fernet instance for encryption/decryption.

        Args:
            key: Encryption key

        Returns:
            Fernet: Fernet instance
        """
        # Fixed salt for deterministic key derivation
        salt = HERITAGE.encode()
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(), length=32, salt=salt, iterations=100000
        )
        key_bytes = kdf.derive(key.encode())

        return Fernet(base64.urlsafe_b64encode(key_bytes))

    @staticmethod
    def _parse_txt_content(txt_content: str) -> Dict[str, str]:
        """
        Parses TXT record content into a dictionary.
        Format: "heritage=ridgeline-dns,owner=default,resource=static"

        Args:
            txt_content: TXT record content

        Returns:
            Dict[str, str]: Parsed TXT record content
        """
        return {
            key.strip(): value.strip()
            for part in txt_content.split(",")
            if "=" in part
            for key, value in [part.split("=", 1)]
        }
