from ridgeline_dns.controller.controller import Controller
from ridgeline_dns.controller.plan import Plan

__all__ = ["Controller", "Plan"]
