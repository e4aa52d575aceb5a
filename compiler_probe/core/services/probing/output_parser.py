"""
Output parser — turns captured compiler text into structured fields.

Two independent paths:

    find_token / parse_family   delimiter-based, reads probe output
    parse_version               per-family grammars over --version output

plus ``parse_linker`` for ``-Wl,--version`` output.

Family parsing never fails: a missing delimiter or an unrecognised
token is UNKNOWN. Version parsing raises ``ParseError`` when no grammar
matches; callers treat the version as best-effort.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from compiler_probe.core.models import CompilerFamily, VersionInfo
from compiler_probe.core.services.probing.errors import ParseError

# Token runs to the next whitespace or quote
_TOKEN_RE = re.compile(r'[^\s"]*')


def find_token(text: str, delimiter: str) -> str | None:
    """Return the token right after the first ``delimiter`` in ``text``.

    Preprocessed output looks like ``"MESON_DELIMITER" gcc``: the
    closing quote and any spaces/tabs after the delimiter are skipped,
    but not a newline. An empty string means the delimiter was found
    with nothing after it on that line.

    Returns:
        The token, or None if the delimiter does not occur at all.
    """
    idx = text.find(delimiter)
    if idx < 0:
        return None
    rest = text[idx + len(delimiter):]
    rest = rest.lstrip('"').lstrip(" \t")
    match = _TOKEN_RE.match(rest)
    return match.group(0) if match else ""


def parse_family(text: str, delimiter: str) -> CompilerFamily:
    """Map probe output to a compiler family (UNKNOWN if unrecognised)."""
    return CompilerFamily.from_token(find_token(text, delimiter))


def parse_arch(text: str, marker: str) -> str | None:
    """CPU token from the architecture macro chain, if one matched."""
    token = find_token(text, marker)
    # Unmatched chain leaves the macro name itself in the output
    if not token or token.startswith("MESON_"):
        return None
    return token


# ── Version grammars ────────────────────────────────────────────


_VERSION = r"(\d+(?:\.\d+)+)"

# MSVC / clang triple spellings → the names the probe fragment uses
_ARCH_NAMES: dict[str, str] = {
    "x64": "x86_64",
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x86": "x86",
    "i386": "x86",
    "i686": "x86",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "arm": "arm",
    "armv7": "arm",
    "wasm32": "wasm32",
    "wasm64": "wasm64",
    "riscv64": "riscv64",
    "riscv32": "riscv32",
    "powerpc64": "ppc64",
    "powerpc64le": "ppc64",
    "powerpc": "ppc",
    "s390x": "s390x",
}


@dataclass(frozen=True)
class VersionGrammar:
    """How one family prints its version banner.

    ``pattern`` captures the version in group 1 and, when the banner
    names it, the target in group 2. ``requires`` is a marker string
    the output must contain before the pattern is tried.
    """

    family: CompilerFamily
    pattern: re.Pattern[str]
    requires: str | None = None
    target_pattern: re.Pattern[str] | None = None


# Tried in this order when the family is not known up front: emcc's
# banner mentions gcc and clang, so it must come first.
VERSION_GRAMMARS: tuple[VersionGrammar, ...] = (
    # emcc (Emscripten gcc/clang-like replacement + linker emulating GNU ld) 3.1.45 (ef3e4e3b)
    VersionGrammar(
        family=CompilerFamily.EMSCRIPTEN,
        pattern=re.compile(rf"^.*Emscripten[^\n]*?\)\s+{_VERSION}", re.MULTILINE),
    ),
    # Microsoft (R) C/C++ Optimizing Compiler Version 19.38.33130 for x64
    VersionGrammar(
        family=CompilerFamily.MSVC,
        pattern=re.compile(
            rf"^.*Microsoft \(R\) C/C\+\+ Optimizing Compiler Version {_VERSION}"
            r"(?: for (\S+))?",
            re.MULTILINE,
        ),
    ),
    # clang version 17.0.6 / Apple clang version 15.0.0 (clang-1500.1.0.2.5)
    VersionGrammar(
        family=CompilerFamily.CLANG,
        pattern=re.compile(rf"^.*\bclang version {_VERSION}", re.MULTILINE),
        target_pattern=re.compile(r"^Target:\s*(\S+)", re.MULTILINE),
    ),
    # gcc (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0
    VersionGrammar(
        family=CompilerFamily.GCC,
        pattern=re.compile(rf"^\S+ \(.*\) {_VERSION}", re.MULTILINE),
        requires="Free Software Foundation",
    ),
)

_GRAMMARS_BY_FAMILY: dict[CompilerFamily, VersionGrammar] = {
    g.family: g for g in VERSION_GRAMMARS
}


def normalize_arch(name: str | None) -> str | None:
    """Map a triple's first component or an MSVC target to a CPU name."""
    if not name:
        return None
    cpu = name.split("-", 1)[0].lower()
    return _ARCH_NAMES.get(cpu, cpu)


def parse_version_tuple(version: str) -> tuple[int, ...]:
    """``"11.4.0"`` → ``(11, 4, 0)``."""
    return tuple(int(part) for part in version.split("."))


def parse_version(text: str, family: CompilerFamily | None = None) -> VersionInfo:
    """Parse a ``--version`` style banner.

    Args:
        text: Combined stdout/stderr of the version invocation.
        family: If known, only that family's grammar is tried.

    Raises:
        ParseError: if no applicable grammar matches.
    """
    if family is not None and family in _GRAMMARS_BY_FAMILY:
        grammars: tuple[VersionGrammar, ...] = (_GRAMMARS_BY_FAMILY[family],)
    else:
        grammars = VERSION_GRAMMARS

    for grammar in grammars:
        if grammar.requires and grammar.requires not in text:
            continue
        match = grammar.pattern.search(text)
        if not match:
            continue

        version = match.group(1)
        target: str | None = None
        if match.lastindex and match.lastindex >= 2:
            target = match.group(2)
        if target is None and grammar.target_pattern is not None:
            tmatch = grammar.target_pattern.search(text)
            if tmatch:
                target = tmatch.group(1)

        # Patterns are ^-anchored, so the match starts the banner line
        line_end = text.find("\n", match.start())
        raw = text[match.start():line_end if line_end >= 0 else len(text)]

        return VersionInfo(
            family=grammar.family,
            raw=raw.strip(),
            parsed=parse_version_tuple(version),
            target=target,
        )

    expected = family.value if family is not None else "any known family"
    first_line = text.strip().split("\n", 1)[0][:120]
    raise ParseError(f"version output does not match {expected}: {first_line!r}")


# ── Linker identification ───────────────────────────────────────

# Order matters: mold and lld both describe themselves as
# "compatible with GNU ld".
_LINKER_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("mold", "ld.mold"),
    ("LLD", "ld.lld"),
    ("GNU gold", "ld.gold"),
    ("GNU ld", "ld.bfd"),
    ("PROGRAM:ld", "ld64"),
)

# Families whose linker is implied by the driver, no invocation needed
FIXED_LINKERS: dict[CompilerFamily, str] = {
    CompilerFamily.MSVC: "link",
    CompilerFamily.EMSCRIPTEN: "ld.wasm",
}


def parse_linker(text: str) -> str | None:
    """Identify the linker from ``-Wl,--version`` output."""
    for signature, linker_id in _LINKER_SIGNATURES:
        if signature in text:
            return linker_id
    return None
