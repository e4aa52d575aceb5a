"""
Probe inputs — the fragment that is compiled and the key it is cached under.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field

from compiler_probe.core.models.family import ProbeKind


@dataclass(frozen=True)
class ProbeFragment:
    """Source text compiled solely to extract toolchain identity.

    ``delimiter`` marks where the machine-readable token starts in the
    compiler's otherwise free-form output.
    """

    kind: ProbeKind
    source: str
    delimiter: str
    suffix: str


@dataclass(frozen=True)
class InvocationKey:
    """Everything that can change what a compiler reports.

    Two invocations with equal keys are interchangeable. ``env`` holds
    only the variables that affect compilation, sorted by name.
    """

    compiler: str
    flags: tuple[str, ...]
    kind: ProbeKind
    env: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def fingerprint(self) -> str:
        """SHA-256 of a canonical JSON encoding of the key."""
        payload = json.dumps(
            {
                "compiler": self.compiler,
                "flags": list(self.flags),
                "kind": self.kind.value,
                "env": [list(pair) for pair in self.env],
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def short(self) -> str:
        return self.fingerprint[:12]
