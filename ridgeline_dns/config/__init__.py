from ridgeline_dns.config.config import Config, parse_duration

__all__ = ["Config", "parse_duration"]
