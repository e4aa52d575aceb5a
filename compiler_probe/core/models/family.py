"""
Compiler family and probe kind enumerations.

``CompilerFamily`` values are the exact tokens the probe fragment emits
after the delimiter, so the token → family table is just the enum's
value lookup.
"""

from __future__ import annotations

from enum import StrEnum


class CompilerFamily(StrEnum):
    """Vendor/toolchain lineage of a compiler."""

    EMSCRIPTEN = "emscripten"
    CLANG = "clang"
    GCC = "gcc"
    MSVC = "msvc"
    UNKNOWN = "unknown"

    @classmethod
    def from_token(cls, token: str | None) -> CompilerFamily:
        """Exact-match a probe token. Anything unrecognised is UNKNOWN."""
        if not token:
            return cls.UNKNOWN
        try:
            family = cls(token)
        except ValueError:
            return cls.UNKNOWN
        return family


class ProbeKind(StrEnum):
    """Source language a probe fragment is written for."""

    C = "c"
    CPP = "cpp"
    OBJC = "objc"
    OBJCPP = "objcpp"

    @property
    def suffix(self) -> str:
        """Source file suffix the compiler uses to pick the language."""
        return _SUFFIXES[self]


_SUFFIXES: dict[ProbeKind, str] = {
    ProbeKind.C: ".c",
    ProbeKind.CPP: ".cpp",
    ProbeKind.OBJC: ".m",
    ProbeKind.OBJCPP: ".mm",
}

# Common aliases build files use for the same languages
KIND_ALIASES: dict[str, ProbeKind] = {
    "c++": ProbeKind.CPP,
    "cxx": ProbeKind.CPP,
    "objective-c": ProbeKind.OBJC,
    "objective-c++": ProbeKind.OBJCPP,
}
