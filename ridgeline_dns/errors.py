"""
Exception hierarchy for Ridgeline-DNS.

Only structural failures are raised to the controller. Per-endpoint problems
(invalid targets, unroutable names, ownership conflicts) are logged and
dropped where they are detected.
"""


class RidgelineError(Exception):
    """Root exception for all Ridgeline-DNS errors."""


class ConfigError(RidgelineError):
    """Invalid or contradictory configuration, raised before any reconciliation runs."""


class SoftError(RidgelineError):
    """
    Transient provider failure (rate limit, timeout, temporary 5xx).

    The controller skips the current cycle and tries again on the next one.
    """


class DuplicateEndpointError(RidgelineError):
    """Two endpoints share a key and cannot be merged."""


class InvalidChangesError(RidgelineError):
    """A change set violates its structural invariants."""
