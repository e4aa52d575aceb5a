"""
Result models — what a probe run hands back to callers.

``IdentificationResult`` is the load-bearing record: the cache stores
exactly one per invocation key and every caller shares that instance,
so it is frozen.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from compiler_probe.core.models.family import CompilerFamily, ProbeKind


class VersionInfo(BaseModel):
    """Output of the ``--version`` parse path."""

    model_config = ConfigDict(frozen=True)

    family: CompilerFamily
    raw: str                                  # the line the grammar matched
    parsed: tuple[int, ...]
    target: str | None = None                 # target arch, when printed


class InvocationOutput(BaseModel):
    """Captured result of one compiler process."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    artifact: bytes | None = None             # contents of the -o file, if any

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, in that order."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


class IdentificationResult(BaseModel):
    """Compiler identity as seen by one probe run.

    ``family`` is always present (UNKNOWN when the probe token was not
    recognised). Version, architecture and linker are best-effort.
    """

    model_config = ConfigDict(frozen=True)

    family: CompilerFamily = CompilerFamily.UNKNOWN
    raw_version: str | None = None
    parsed_version: tuple[int, ...] | None = None
    target_arch: str | None = None
    linker_id: str | None = None

    compiler: str = ""
    probe_kind: ProbeKind = ProbeKind.C
    flags: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def is_known(self) -> bool:
        return self.family != CompilerFamily.UNKNOWN

    @property
    def version_string(self) -> str | None:
        """Dotted version, e.g. ``"13.2.0"``."""
        if self.parsed_version is None:
            return None
        return ".".join(str(part) for part in self.parsed_version)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["version"] = self.version_string
        return data
