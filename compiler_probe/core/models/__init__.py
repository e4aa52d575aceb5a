"""
Domain models — enums, probe inputs and results.

All models are re-exported here for convenient access:

    from compiler_probe.core.models import CompilerFamily, IdentificationResult
"""

from compiler_probe.core.models.family import KIND_ALIASES, CompilerFamily, ProbeKind
from compiler_probe.core.models.probe import InvocationKey, ProbeFragment
from compiler_probe.core.models.result import (
    IdentificationResult,
    InvocationOutput,
    VersionInfo,
)

__all__ = [
    # family.py
    "CompilerFamily",
    "KIND_ALIASES",
    "ProbeKind",
    # probe.py
    "InvocationKey",
    "ProbeFragment",
    # result.py
    "IdentificationResult",
    "InvocationOutput",
    "VersionInfo",
]
