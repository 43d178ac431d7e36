from ridgeline_dns.registry.noop_registry import NoopRegistry
from ridgeline_dns.registry.txt_registry import TXTRegistry

__all__ = ["NoopRegistry", "TXTRegistry"]
