"""
Probe source generator — compiler-conditional fragments.

Each fragment is preprocessed (never compiled to an object) by the
compiler under test. Whichever family's predefined macros are present
selects the token that ends up after the delimiter in the output.
Order matters: emcc defines ``__clang__`` and clang defines
``__GNUC__``, so the most specific family is tested first.

Pure generation: no filesystem or process access.
"""

from __future__ import annotations

from compiler_probe.core.models import KIND_ALIASES, ProbeFragment, ProbeKind
from compiler_probe.core.services.probing.errors import UnsupportedProbeKind

DELIMITER = "MESON_DELIMITER"
ARCH_MARKER = "MESON_ARCH_MARKER"

# (predefined macro test, token); first match wins
_FAMILY_CHAIN: tuple[tuple[str, str], ...] = (
    ("defined(__EMSCRIPTEN__)", "emscripten"),
    ("defined(__clang__)", "clang"),
    ("defined(__GNUC__)", "gcc"),
    ("defined(_MSC_VER)", "msvc"),
)

_ARCH_CHAIN: tuple[tuple[str, str], ...] = (
    ("defined(__wasm64__)", "wasm64"),
    ("defined(__wasm32__) || defined(__wasm__)", "wasm32"),
    ("defined(__x86_64__) || defined(_M_X64) || defined(_M_AMD64)", "x86_64"),
    ("defined(__i386__) || defined(_M_IX86)", "x86"),
    ("defined(__aarch64__) || defined(_M_ARM64)", "aarch64"),
    ("defined(__arm__) || defined(_M_ARM)", "arm"),
    ("defined(__riscv) && __riscv_xlen == 64", "riscv64"),
    ("defined(__riscv)", "riscv32"),
    ("defined(__powerpc64__) || defined(__ppc64__)", "ppc64"),
    ("defined(__powerpc__) || defined(__ppc__)", "ppc"),
    ("defined(__s390x__)", "s390x"),
    ("defined(__mips__)", "mips"),
)


def coerce_kind(kind: ProbeKind | str) -> ProbeKind:
    """Turn a language tag into a ProbeKind.

    Raises:
        UnsupportedProbeKind: for tags no fragment exists for.
    """
    if isinstance(kind, ProbeKind):
        return kind
    tag = str(kind).strip().lower()
    if tag in KIND_ALIASES:
        return KIND_ALIASES[tag]
    try:
        return ProbeKind(tag)
    except ValueError:
        supported = ", ".join(k.value for k in ProbeKind)
        raise UnsupportedProbeKind(
            f"no probe fragment for language {kind!r} (supported: {supported})"
        ) from None


def _macro_chain(macro: str, chain: tuple[tuple[str, str], ...]) -> list[str]:
    lines: list[str] = []
    for i, (test, token) in enumerate(chain):
        directive = "#if" if i == 0 else "#elif"
        lines.append(f"{directive} {test}")
        lines.append(f"#define {macro} {token}")
    lines.append("#endif")
    return lines


def generate_fragment(kind: ProbeKind | str) -> ProbeFragment:
    """Build the identification fragment for a language.

    When preprocessed, the output contains ``"MESON_DELIMITER" <family>``
    and ``"MESON_ARCH_MARKER" <cpu>``. A compiler outside the known
    families leaves the macro name itself after the delimiter, which
    the parser maps to UNKNOWN.
    """
    probe_kind = coerce_kind(kind)
    lines = _macro_chain("MESON_COMPILER_FAMILY", _FAMILY_CHAIN)
    lines += _macro_chain("MESON_CPU_FAMILY", _ARCH_CHAIN)
    lines.append(f'"{DELIMITER}" MESON_COMPILER_FAMILY')
    lines.append(f'"{ARCH_MARKER}" MESON_CPU_FAMILY')
    return ProbeFragment(
        kind=probe_kind,
        source="\n".join(lines) + "\n",
        delimiter=DELIMITER,
        suffix=probe_kind.suffix,
    )


def underscore_prefix_fragment(kind: ProbeKind | str) -> ProbeFragment:
    """Fragment exposing ``__USER_LABEL_PREFIX__`` after the delimiter.

    Preprocesses to ``"MESON_DELIMITER" _`` on targets that prefix C
    symbols (Darwin, 32-bit Windows) and ``"MESON_DELIMITER"`` elsewhere.
    """
    probe_kind = coerce_kind(kind)
    source = "\n".join([
        "#ifndef __USER_LABEL_PREFIX__",
        "#define __USER_LABEL_PREFIX__ MESON_UNDERSCORE_UNDEFINED",
        "#endif",
        f'"{DELIMITER}" __USER_LABEL_PREFIX__',
    ]) + "\n"
    return ProbeFragment(
        kind=probe_kind,
        source=source,
        delimiter=DELIMITER,
        suffix=probe_kind.suffix,
    )
