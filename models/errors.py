"""
Configuration errors for the Resource Allocation & Deadlock Engine.

Denials (need exceeded, resources busy, unsafe state, capacity exceeded) are
not errors: they are returned as outcomes. Only a configuration that can never
be simulated raises.
"""


class ConfigError(Exception):
    """Raised when a system cannot be configured as requested."""
    pass


class OverAllocatedError(ConfigError):
    """Raised when declared claims or initial allocations exceed capacity."""

    def __init__(self, resource_type: int, demanded: int, total: int, what: str = "maximum claims"):
        self.resource_type = resource_type
        self.demanded = demanded
        self.total = total
        super().__init__(
            f"R{resource_type}: {what} ({demanded}) exceed total instances ({total})"
        )
