"""
Engine configuration for the Resource Allocation & Deadlock Engine.

Values come from, in priority order: command-line flags, the scenario
file's "config" block, and the defaults below.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from algorithms.reduction import ScanOrder
from models.errors import ConfigError
from models.system_state import ClaimPolicy


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings for a simulation session.

    Attributes:
        scan_order: Reduction tie-break discipline (restart or sweep)
        claim_policy: How max claims are checked at configuration
        verbose: Enable debug-level logging (reduction traces, state dumps)
        log_file: Optional path the logger also writes to
    """
    scan_order: ScanOrder = ScanOrder.RESTART
    claim_policy: ClaimPolicy = ClaimPolicy.AGGREGATE
    verbose: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        """
        Parse a scenario "config" block.

        Raises:
            ConfigError: On unknown keys or values
        """
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"config must be an object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        values = dict(data)
        if 'scan_order' in values:
            values['scan_order'] = _parse_enum(ScanOrder, values['scan_order'], 'scan_order')
        if 'claim_policy' in values:
            values['claim_policy'] = _parse_enum(ClaimPolicy, values['claim_policy'], 'claim_policy')
        if 'verbose' in values and not isinstance(values['verbose'], bool):
            raise ConfigError(f"verbose must be true or false, got {values['verbose']!r}")
        return cls(**values)

    def with_overrides(self, **overrides) -> "EngineConfig":
        """Return a copy with every non-None override applied (CLI flags)."""
        values = {}
        for key, value in overrides.items():
            if value is None:
                continue
            if key == 'scan_order':
                value = _parse_enum(ScanOrder, value, key)
            elif key == 'claim_policy':
                value = _parse_enum(ClaimPolicy, value, key)
            values[key] = value
        return replace(self, **values)


def _parse_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"Invalid {name} {value!r} (expected one of: {choices})")
