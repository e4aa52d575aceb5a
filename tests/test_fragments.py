"""
Tests for probe fragment generation.
"""

import pytest

from compiler_probe.core.models import ProbeKind
from compiler_probe.core.services.probing import UnsupportedProbeKind, generate_fragment
from compiler_probe.core.services.probing.fragments import (
    ARCH_MARKER,
    DELIMITER,
    coerce_kind,
    underscore_prefix_fragment,
)


class TestGenerateFragment:
    @pytest.mark.parametrize("kind", list(ProbeKind))
    def test_every_kind_has_a_fragment(self, kind: ProbeKind):
        fragment = generate_fragment(kind)
        assert fragment.kind == kind
        assert fragment.suffix == kind.suffix
        assert fragment.delimiter == DELIMITER
        assert DELIMITER in fragment.source

    def test_string_kind_accepted(self):
        assert generate_fragment("cpp").kind == ProbeKind.CPP

    def test_deterministic(self):
        assert generate_fragment("c") == generate_fragment("c")

    def test_names_every_family(self):
        source = generate_fragment("c").source
        for token in ("emscripten", "clang", "gcc", "msvc"):
            assert f"#define MESON_COMPILER_FAMILY {token}" in source

    def test_specific_families_tested_first(self):
        """emcc defines __clang__, clang defines __GNUC__."""
        source = generate_fragment("c").source
        emscripten = source.index("__EMSCRIPTEN__")
        clang = source.index("__clang__")
        gnuc = source.index("__GNUC__")
        msvc = source.index("_MSC_VER")
        assert emscripten < clang < gnuc < msvc

    def test_delimiter_line_is_quoted(self):
        source = generate_fragment("c").source
        assert f'"{DELIMITER}" MESON_COMPILER_FAMILY' in source
        assert f'"{ARCH_MARKER}" MESON_CPU_FAMILY' in source

    def test_conditionals_balanced(self):
        lines = generate_fragment("objcpp").source.splitlines()
        opened = sum(1 for line in lines if line.startswith("#if "))
        closed = sum(1 for line in lines if line == "#endif")
        assert opened == closed == 2


class TestProbeKinds:
    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("c", ProbeKind.C),
            ("C", ProbeKind.C),
            ("cpp", ProbeKind.CPP),
            ("c++", ProbeKind.CPP),
            ("cxx", ProbeKind.CPP),
            ("objc", ProbeKind.OBJC),
            ("objective-c++", ProbeKind.OBJCPP),
        ],
    )
    def test_aliases(self, tag: str, expected: ProbeKind):
        assert coerce_kind(tag) == expected

    def test_unsupported_kind(self):
        with pytest.raises(UnsupportedProbeKind) as exc:
            generate_fragment("fortran")
        assert "fortran" in str(exc.value)
        assert "objcpp" in str(exc.value)
        assert exc.value.kind == "unsupported-probe-kind"


class TestUnderscorePrefixFragment:
    def test_emits_user_label_prefix(self):
        fragment = underscore_prefix_fragment("c")
        assert f'"{DELIMITER}" __USER_LABEL_PREFIX__' in fragment.source
        assert "#ifndef __USER_LABEL_PREFIX__" in fragment.source

    def test_unsupported_kind(self):
        with pytest.raises(UnsupportedProbeKind):
            underscore_prefix_fragment("rust")
