"""
HarrierFaults - Structured fault objects.

Errors in Harrier are typed fault signals carrying a stable code, a domain,
a severity and retry semantics, so callers and tests can inspect *why*
something failed instead of parsing messages.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain taxonomy
- Severity: Severity levels
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Domain faults
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
]
