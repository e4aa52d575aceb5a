"""
Probe errors.

Every failure names the compiler it happened on so the build
orchestrator can surface "<path>: <kind>: <detail>" without assembling
context itself. An unrecognised compiler is not an error; it is
``CompilerFamily.UNKNOWN``.
"""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for all probing failures."""

    kind = "probe-error"

    def __init__(self, message: str, compiler: str | None = None):
        super().__init__(message)
        self.message = message
        self.compiler = compiler

    def __str__(self) -> str:
        if self.compiler:
            return f"{self.compiler}: {self.kind}: {self.message}"
        return f"{self.kind}: {self.message}"


class UnsupportedProbeKind(ProbeError):
    kind = "unsupported-probe-kind"


class ExecutableNotFound(ProbeError):
    kind = "executable-not-found"


class PermissionDenied(ProbeError):
    kind = "permission-denied"


class Timeout(ProbeError):
    """The compiler did not finish in time. Its process tree was killed."""

    kind = "timeout"

    def __init__(self, message: str, compiler: str | None = None, timeout: float = 0.0):
        super().__init__(message, compiler)
        self.timeout = timeout


class NonZeroExitWithNoUsableOutput(ProbeError):
    """The compiler failed and printed nothing the parser could use."""

    kind = "nonzero-exit"

    def __init__(
        self,
        message: str,
        compiler: str | None = None,
        returncode: int = 0,
        output: str = "",
    ):
        super().__init__(message, compiler)
        self.returncode = returncode
        self.output = output


class ParseError(ProbeError):
    kind = "parse-error"


class CapabilityError(ProbeError):
    """A capability marked ``required`` is not supported."""

    kind = "capability-missing"
