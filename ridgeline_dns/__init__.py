"""
Ridgeline-DNS keeps DNS provider records in line with a declared set of endpoints.
"""

__version__ = "0.1.0"
