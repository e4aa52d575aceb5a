"""compiler-probe — compiler identification and capability probing.

Public entry points:

    from compiler_probe import resolve, Compiler

    result = resolve("cc", [], "c")
    result.family            # CompilerFamily.GCC
    Compiler("cc").has_argument("-Wall")
"""

__version__ = "0.1.0"

from compiler_probe.core.models import (  # noqa: E402
    CompilerFamily,
    IdentificationResult,
    ProbeKind,
)
from compiler_probe.core.services.probing import (  # noqa: E402
    CapabilityCache,
    Compiler,
    ProbeError,
    get_cache,
    reset_cache,
    resolve,
)

__all__ = [
    "CapabilityCache",
    "Compiler",
    "CompilerFamily",
    "IdentificationResult",
    "ProbeError",
    "ProbeKind",
    "__version__",
    "get_cache",
    "reset_cache",
    "resolve",
]
