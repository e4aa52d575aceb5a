"""
Probing — compiler identification and capability checks.

    generate_fragment   probe source for a language        (fragments)
    invoke              run the compiler on it             (invoker)
    parse_family        read the token after the delimiter (output_parser)
    identify            the three above, as one pipeline   (pipeline)
    CapabilityCache     single-flight memo of the pipeline (cache)
    Compiler            capability checks on top           (capabilities)
"""

from compiler_probe.core.services.probing.cache import (
    CapabilityCache,
    SingleFlight,
    get_cache,
    reset_cache,
    resolve,
)
from compiler_probe.core.services.probing.capabilities import Compiler
from compiler_probe.core.services.probing.errors import (
    CapabilityError,
    ExecutableNotFound,
    NonZeroExitWithNoUsableOutput,
    ParseError,
    PermissionDenied,
    ProbeError,
    Timeout,
    UnsupportedProbeKind,
)
from compiler_probe.core.services.probing.fragments import (
    ARCH_MARKER,
    DELIMITER,
    generate_fragment,
)
from compiler_probe.core.services.probing.output_parser import (
    find_token,
    parse_family,
    parse_linker,
    parse_version,
)

__all__ = [
    "ARCH_MARKER",
    "CapabilityCache",
    "CapabilityError",
    "Compiler",
    "DELIMITER",
    "ExecutableNotFound",
    "NonZeroExitWithNoUsableOutput",
    "ParseError",
    "PermissionDenied",
    "ProbeError",
    "SingleFlight",
    "Timeout",
    "UnsupportedProbeKind",
    "find_token",
    "generate_fragment",
    "get_cache",
    "parse_family",
    "parse_linker",
    "parse_version",
    "reset_cache",
    "resolve",
]
