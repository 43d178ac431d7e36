from ridgeline_dns.provider.base import Provider, batch_changes
from ridgeline_dns.provider.inmemory import InMemoryProvider

__all__ = ["InMemoryProvider", "Provider", "batch_changes"]
