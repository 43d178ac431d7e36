"""
Configuration module for Ridgeline-DNS.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ridgeline_dns.controller.plan import POLICIES
from ridgeline_dns.errors import ConfigError

PROVIDERS = ("inmemory", "cloudflare")
REGISTRIES = ("txt", "noop")
LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

_DURATION_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


def parse_duration(duration_str: Union[str, int]) -> int:
    """
    Parse a duration string like '15m' into seconds.

    A bare number is taken as seconds.

    Args:
        duration_str: Duration string

    Returns:
        int: Duration in seconds

    Raises:
        ValueError: if the string is not a valid duration
    """
    if isinstance(duration_str, int):
        if duration_str < 0:
            raise ValueError(f"Duration must not be negative: {duration_str}")
        return duration_str

    # Pattern for duration string (e.g., 15m, 1h, 30s)
    match = re.match(r"^(\d+)([smhd]?)$", duration_str.strip())
    if not match:
        raise ValueError(f"Invalid duration '{duration_str}', expected e.g. 30s, 5m, 1h or 1d")

    value, unit = match.groups()
    return int(value) * _DURATION_UNITS[unit or "s"]


class Config(BaseModel):
    """Configuration for Ridgeline-DNS."""

    # Source configuration
    endpoints: List[Dict[str, Any]] = Field(default_factory=list)

    # Provider configuration
    provider: str = "inmemory"
    cloudflare_api_token: str = ""
    cloudflare_proxied_by_default: bool = False
    inmemory_zones: List[Dict[str, str]] = Field(default_factory=list)
    zones_cache_duration: Union[str, int] = "0s"
    batch_change_size: int = Field(default=0, ge=0)
    zone_id_filter: List[str] = Field(default_factory=list)
    zone_type_filter: str = ""

    # Registry configuration
    registry: str = "txt"
    txt_prefix: str = ""
    txt_suffix: str = ""
    txt_owner_id: str = "default"
    txt_wildcard_replacement: str = "star"
    encrypt_txt: bool = False
    encryption_key: Optional[str] = None
    adopt_unowned: bool = False

    # Controller configuration
    interval: Union[str, int] = "1m"
    once: bool = False
    dry_run: bool = False
    policy: str = "sync"
    managed_record_types: List[str] = Field(default_factory=lambda: ["A", "AAAA", "CNAME"])

    # Domain filtering
    domain_filter: List[str] = Field(default_factory=list)
    exclude_domains: List[str] = Field(default_factory=list)
    regex_domain_filter: Optional[str] = None
    regex_domain_exclusion: Optional[str] = None

    # Logging and health configuration
    log_level: str = "info"
    health_port: int = 8080

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: str) -> str:
        if value not in PROVIDERS:
            raise ValueError(f"unknown provider '{value}', expected one of {', '.join(PROVIDERS)}")
        return value

    @field_validator("registry")
    @classmethod
    def _check_registry(cls, value: str) -> str:
        if value not in REGISTRIES:
            raise ValueError(f"unknown registry '{value}', expected one of {', '.join(REGISTRIES)}")
        return value

    @field_validator("policy")
    @classmethod
    def _check_policy(cls, value: str) -> str:
        if value not in POLICIES:
            raise ValueError(f"unknown policy '{value}', expected one of {', '.join(POLICIES)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        if value.lower() not in LOG_LEVELS:
            raise ValueError(f"unknown log level '{value}'")
        return value.lower()

    @field_validator("zone_type_filter")
    @classmethod
    def _check_zone_type(cls, value: str) -> str:
        if value.lower() not in ("", "public", "private"):
            raise ValueError(f"unknown zone type '{value}', expected 'public' or 'private'")
        return value.lower()

    @field_validator("interval", "zones_cache_duration")
    @classmethod
    def _check_duration(cls, value: Union[str, int]) -> Union[str, int]:
        parse_duration(value)
        return value

    @field_validator("managed_record_types")
    @classmethod
    def _upper_record_types(cls, value: List[str]) -> List[str]:
        return [record_type.upper() for record_type in value]

    @model_validator(mode="after")
    def _check_combinations(self) -> "Config":
        if self.txt_prefix and self.txt_suffix:
            raise ValueError("txt_prefix and txt_suffix are mutually exclusive")
        if self.encrypt_txt and not self.encryption_key:
            raise ValueError("encrypt is enabled but no encryption_key is set")
        if (self.regex_domain_filter or self.regex_domain_exclusion) and (
            self.domain_filter or self.exclude_domains
        ):
            raise ValueError("regex domain filters and include/exclude lists are mutually exclusive")
        if self.provider == "cloudflare" and not self.cloudflare_api_token:
            raise ValueError("the cloudflare provider requires an api_token")
        return self

    @property
    def interval_seconds(self) -> int:
        return parse_duration(self.interval)

    @property
    def zones_cache_seconds(self) -> int:
        return parse_duration(self.zones_cache_duration)

    @classmethod
    def from_yaml(cls, config_path: Optional[Union[str, Path]] = None) -> "Config":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            Config: Config instance populated with values from the YAML file

        Raises:
            ConfigError: if the file cannot be parsed or the values are invalid
        """
        # Default configuration paths to check
        default_paths = [
            Path("./ridgeline-dns.yaml"),
            Path("./ridgeline-dns.yml"),
            Path("/etc/ridgeline-dns/ridgeline-dns.yaml"),
            Path("/etc/ridgeline-dns/config.yaml"),
        ]

        if config_path:
            paths = [Path(config_path)]
            if not paths[0].exists():
                raise ConfigError(f"Configuration file {config_path} does not exist")
        else:
            paths = default_paths

        # Try to load configuration from the first existing path
        config_data = {}
        for path in paths:
            if path.exists():
                with open(path, "r") as f:
                    yaml_content = cls._substitute_env_vars(f.read())
                try:
                    config_data = yaml.safe_load(yaml_content) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(f"Could not parse {path}: {e}") from e
                break

        return cls.from_dict(config_data)

    @classmethod
    def from_dict(cls, config_data: dict) -> "Config":
        """
        Build a Config from nested configuration data.

        Raises:
            ConfigError: if the values are invalid
        """
        try:
            return cls(**cls._flatten_config(config_data))
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @staticmethod
    def _substitute_env_vars(content: str) -> str:
        """
        Substitute environment variables in the configuration content.

        Args:
            content: Configuration content

        Returns:
            str: Configuration content with environment variables substituted
        """
        # Pattern for ${ENV_VAR} or ${ENV_VAR:-default}
        pattern = r"\${([^}]+)}"

        def replace_env_var(match):
            env_var = match.group(1)
            if ":-" in env_var:
                env_var, default = env_var.split(":-", 1)
                return os.environ.get(env_var, default)
            return os.environ.get(env_var, "")

        return re.sub(pattern, replace_env_var, content)

    @staticmethod
    def _flatten_config(config_data: dict) -> dict:
        """
        Flatten nested configuration, leaving out keys that are not set.

        Args:
            config_data: Nested configuration data

        Returns:
            dict: Flattened configuration data
        """
        flat_config = {}

        def copy(section: dict, key: str, target: str) -> None:
            if key in section and section[key] is not None:
                flat_config[target] = section[key]

        # Source configuration
        source = config_data.get("source") or {}
        copy(source, "endpoints", "endpoints")

        # Provider configuration
        provider = config_data.get("provider") or {}
        copy(provider, "name", "provider")
        copy(provider, "zones_cache_duration", "zones_cache_duration")
        copy(provider, "batch_change_size", "batch_change_size")
        copy(provider, "zone_id_filter", "zone_id_filter")
        copy(provider, "zone_type_filter", "zone_type_filter")

        cloudflare = provider.get("cloudflare") or {}
        copy(cloudflare, "api_token", "cloudflare_api_token")
        copy(cloudflare, "proxied_by_default", "cloudflare_proxied_by_default")

        inmemory = provider.get("inmemory") or {}
        copy(inmemory, "zones", "inmemory_zones")

        # Registry configuration
        registry = config_data.get("registry") or {}
        copy(registry, "type", "registry")
        copy(registry, "txt_prefix", "txt_prefix")
        copy(registry, "txt_suffix", "txt_suffix")
        copy(registry, "txt_owner_id", "txt_owner_id")
        copy(registry, "txt_wildcard_replacement", "txt_wildcard_replacement")
        copy(registry, "encrypt", "encrypt_txt")
        copy(registry, "encryption_key", "encryption_key")
        copy(registry, "adopt_unowned", "adopt_unowned")

        # Controller configuration
        controller = config_data.get("controller") or {}
        copy(controller, "interval", "interval")
        copy(controller, "once", "once")
        copy(controller, "dry_run", "dry_run")
        copy(controller, "policy", "policy")
        copy(controller, "managed_record_types", "managed_record_types")

        # Domain filtering
        domains = config_data.get("domains") or {}
        copy(domains, "include", "domain_filter")
        copy(domains, "exclude", "exclude_domains")
        copy(domains, "regex", "regex_domain_filter")
        copy(domains, "regex_exclude", "regex_domain_exclusion")

        # Logging and health configuration
        logging_section = config_data.get("logging") or {}
        copy(logging_section, "level", "log_level")
        health = config_data.get("health") or {}
        copy(health, "port", "health_port")

        return flat_config
