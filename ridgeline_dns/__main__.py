"""
Main entry point for Ridgeline-DNS.
"""

import asyncio
import logging
import sys
from pathlib import Path

from ridgeline_dns import __version__
from ridgeline_dns.config.config import Config
from ridgeline_dns.controller.controller import Controller
from ridgeline_dns.filter.domain_filter import DomainFilter
from ridgeline_dns.filter.zone_filter import ZoneIDFilter, ZoneTypeFilter
from ridgeline_dns.models.models import Zone
from ridgeline_dns.provider.inmemory import InMemoryProvider
from ridgeline_dns.registry.noop_registry import NoopRegistry
from ridgeline_dns.registry.txt_registry import TXTRegistry
from ridgeline_dns.source.static import StaticSource
from ridgeline_dns.utils.health import HealthCheckServer, HealthState


def build_provider(config: Config, domain_filter: DomainFilter):
    """Build the DNS provider named in the configuration."""
    zone_id_filter = ZoneIDFilter(config.zone_id_filter)

    if config.provider == "cloudflare":
        # Imported here so the in-memory provider works without the Cloudflare SDK loaded
        from ridgeline_dns.provider.cloudflare import CloudflareProvider

        return CloudflareProvider(
            config.cloudflare_api_token,
            domain_filter=domain_filter,
            zone_id_filter=zone_id_filter,
            zones_cache_duration=config.zones_cache_seconds,
            proxied_by_default=config.cloudflare_proxied_by_default,
            dry_run=config.dry_run,
        )

    zones = [
        Zone(
            id=zone.get("id") or zone["name"],
            name=zone["name"],
            visibility=zone.get("visibility", "public"),
        )
        for zone in config.inmemory_zones
    ]
    return InMemoryProvider(
        zones,
        domain_filter=domain_filter,
        zone_id_filter=zone_id_filter,
        zone_type_filter=ZoneTypeFilter(config.zone_type_filter),
        zones_cache_duration=config.zones_cache_seconds,
        batch_change_size=config.batch_change_size,
        dry_run=config.dry_run,
    )


def build_registry(config: Config, provider):
    """Build the ownership registry named in the configuration."""
    if config.registry == "noop":
        return NoopRegistry(provider)

    return TXTRegistry(
        provider,
        txt_owner_id=config.txt_owner_id,
        txt_prefix=config.txt_prefix,
        txt_suffix=config.txt_suffix,
        txt_wildcard_replacement=config.txt_wildcard_replacement,
        encrypt_txt=config.encrypt_txt,
        encryption_key=config.encryption_key,
        adopt_unowned=config.adopt_unowned,
    )


def build_controller(config: Config, health: HealthState) -> Controller:
    """Wire source, provider, registry and controller from the configuration."""
    domain_filter = DomainFilter(
        config.domain_filter,
        config.exclude_domains,
        regex=config.regex_domain_filter,
        regex_exclusion=config.regex_domain_exclusion,
    )
    provider = build_provider(config, domain_filter)
    registry = build_registry(config, provider)
    source = StaticSource(config.endpoints)

    return Controller(
        source,
        registry,
        provider,
        interval=config.interval_seconds,
        policy=config.policy,
        domain_filter=domain_filter,
        managed_record_types=config.managed_record_types,
        health=health,
    )


async def run(config_path=None):
    """Load the configuration and run the controller."""
    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger("ridgeline-dns")
    logger.info(f"Starting Ridgeline-DNS v{__version__}")

    config = Config.from_yaml(config_path)

    # Set log level from configuration
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    # Set httpx logger level to WARNING unless root is DEBUG
    httpx_log_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    logging.getLogger("httpx").setLevel(httpx_log_level)

    if config.dry_run:
        logger.info("Dry run enabled, no records will be changed")

    health = HealthState()
    controller = build_controller(config, health)

    # Start health check server
    health_server = HealthCheckServer(health, port=config.health_port)
    health_server.start()

    try:
        if config.once:
            await controller.run_once()
        else:
            await controller.run_reconciliation_loop()
    finally:
        # Stop health check server
        health_server.stop()


def main():
    """Console script entry point."""
    config_path = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        asyncio.run(run(config_path))
    except KeyboardInterrupt:
        print("\nShutting down Ridgeline-DNS")
        sys.exit(0)


if __name__ == "__main__":
    main()
