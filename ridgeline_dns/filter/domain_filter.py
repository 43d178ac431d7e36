"""
Domain filter module for Ridgeline-DNS.

This module decides whether a DNS name falls under the configured domains.
"""

import re
from typing import List, Optional

from ridgeline_dns.errors import ConfigError
from ridgeline_dns.models.models import normalize_name


class DomainFilter:
    """
    Matches DNS names against include/exclude domain suffixes, or against
    regular expressions.
    """

    def __init__(
        self,
        filters: Optional[List[str]] = None,
        exclusions: Optional[List[str]] = None,
        regex: Optional[str] = None,
        regex_exclusion: Optional[str] = None,
    ):
        """
        Initialize a DomainFilter.

        Args:
            filters: Domains to include. "example.com" covers the apex and all
                subdomains, ".example.com" or "*.example.com" only subdomains.
            exclusions: Domains to exclude, same syntax as filters
            regex: Regular expression a name must match
            regex_exclusion: Regular expression a name must not match

        Raises:
            ConfigError: if regular expressions are combined with domain lists
                or fail to compile
        """
        self.filters = self._prepare(filters)
        self.exclusions = self._prepare(exclusions)

        if (regex or regex_exclusion) and (self.filters or self.exclusions):
            raise ConfigError(
                "Regex domain filters and domain include/exclude lists are mutually exclusive"
            )

        self.regex = self._compile(regex)
        self.regex_exclusion = self._compile(regex_exclusion)

    @staticmethod
    def _prepare(domains: Optional[List[str]]) -> List[str]:
        prepared = []
        for domain in domains or []:
            domain = domain.strip().lower()
            if domain.startswith("*."):
                domain = domain[1:]
            domain = domain.rstrip(".")
            if domain and domain != ".":
                prepared.append(domain)
        return prepared

    @staticmethod
    def _compile(pattern: Optional[str]) -> Optional[re.Pattern]:
        if not pattern:
            return None
        try:
            return re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"Invalid domain filter regex '{pattern}': {e}") from e

    def is_configured(self) -> bool:
        """Return True if any filtering is configured."""
        return bool(
            self.filters or self.exclusions or self.regex or self.regex_exclusion
        )

    def match(self, name: str) -> bool:
        """
        Check whether a DNS name is covered by this filter.

        Args:
            name: DNS name, with or without trailing dot

        Returns:
            bool: True if the name is covered
        """
        name = normalize_name(name)

        if self.regex or self.regex_exclusion:
            if self.regex_exclusion and self.regex_exclusion.search(name):
                return False
            return self.regex is None or bool(self.regex.search(name))

        if self.exclusions and self._matches_any(name, self.exclusions):
            return False
        return not self.filters or self._matches_any(name, self.filters)

    def match_parent(self, name: str) -> bool:
        """
        Check whether some include filter names a domain below ``name``.

        A zone "example.com" is relevant for a filter "api.example.com"
        even though the zone name itself does not match the filter.

        Args:
            name: Candidate parent domain

        Returns:
            bool: True if a filter is a subdomain of name
        """
        name = normalize_name(name)
        for domain in self.filters:
            domain = domain.lstrip(".")
            if domain.endswith("." + name):
                return True
        return False

    @staticmethod
    def _matches_any(name: str, domains: List[str]) -> bool:
        for domain in domains:
            if domain.startswith("."):
                # Subdomains only
                if name.endswith(domain):
                    return True
            elif name == domain or name.endswith("." + domain):
                return True
        return False

    def __repr__(self) -> str:
        if self.regex or self.regex_exclusion:
            return f"DomainFilter(regex={self.regex}, regex_exclusion={self.regex_exclusion})"
        return f"DomainFilter(filters={self.filters}, exclusions={self.exclusions})"
