"""
Tests for capability checks — argument support, compile/link checks,
symbol prefix detection and their memoization.
"""

import pytest
from conftest import posix_only, spawn_count

from compiler_probe.core.services.probing import CapabilityCache, CapabilityError, Compiler, ParseError

pytestmark = posix_only


@pytest.fixture
def cc(gnu_compiler, cache) -> Compiler:
    return Compiler(str(gnu_compiler()), ["-O2"], "c", cache=cache)


class TestIdentity:
    def test_get_id(self, cc: Compiler):
        assert cc.get_id() == "gcc"

    def test_get_linker_id_disabled(self, cc: Compiler):
        assert cc.get_linker_id() is None

    def test_get_linker_id(self, gnu_compiler, full_settings, metrics):
        cache = CapabilityCache(settings=full_settings, metrics=metrics, environ={})
        cc = Compiler(str(gnu_compiler()), cache=cache)
        assert cc.get_linker_id() == "ld.bfd"

    def test_cmd_array(self, cc: Compiler, gnu_compiler):
        assert cc.cmd_array() == [str(gnu_compiler()), "-O2"]

    def test_identify_shares_cache(self, cc: Compiler, spawn_log):
        cc.get_id()
        cc.identify()
        assert spawn_count(spawn_log) == 1

    def test_repr(self, cc: Compiler):
        assert "lang=c" in repr(cc)


class TestArguments:
    def test_supported(self, cc: Compiler):
        assert cc.has_argument("-Wall") is True

    def test_unsupported(self, cc: Compiler):
        assert cc.has_argument("-Wbogus-flag") is False

    def test_required_unsupported_raises(self, cc: Compiler):
        with pytest.raises(CapabilityError) as exc:
            cc.has_argument("-Wbogus-flag", required=True)
        assert "-Wbogus-flag" in str(exc.value)
        assert exc.value.kind == "capability-missing"

    def test_required_supported(self, cc: Compiler):
        assert cc.has_argument("-Wall", required=True) is True

    def test_memoized(self, cc: Compiler, spawn_log, metrics):
        cc.has_argument("-Wshadow")
        cc.has_argument("-Wshadow")
        assert spawn_count(spawn_log) == 1
        assert metrics.value("checks.hits") == 1

    def test_flags_precede_argument(self, cc: Compiler, spawn_log):
        cc.has_argument("-Wshadow")
        logged = spawn_log.read_text().split()
        assert logged[0] == "-O2"
        assert logged.index("-c") < logged.index("-Wshadow")

    def test_get_supported_arguments_keeps_order(self, cc: Compiler):
        args = ["-Wshadow", "-Wbogus-one", "-Wall", "-Wbogus-two", "-Wextra"]
        assert cc.get_supported_arguments(args) == ["-Wshadow", "-Wall", "-Wextra"]

    def test_link_argument(self, cc: Compiler):
        assert cc.has_link_argument("-Wl,--as-needed") is True
        assert cc.has_link_argument("-Wbogus-link") is False

    def test_multi_link_arguments(self, cc: Compiler):
        assert cc.has_multi_link_arguments(["-Wl,-z,now", "-Wl,-z,relro"]) is True
        assert cc.has_multi_link_arguments(["-Wl,-z,now", "-Wbogus"]) is False


class TestCodeChecks:
    def test_compiles(self, cc: Compiler):
        assert cc.compiles("int main(void) { return 0; }\n") is True

    def test_does_not_compile(self, cc: Compiler):
        assert cc.compiles('#error "nope"\n') is False

    def test_links(self, cc: Compiler):
        assert cc.links("int main(void) { return 0; }\n") is True

    def test_args_part_of_memo_key(self, cc: Compiler, spawn_log):
        code = "int x;\n"
        cc.compiles(code)
        cc.compiles(code, ["-DFOO"])
        cc.compiles(code)
        assert spawn_count(spawn_log) == 2

    def test_has_function(self, cc: Compiler):
        assert cc.has_function("strlen") is True
        assert cc.has_function("no_such_function") is False

    def test_check_sees_keyed_env(self, make_compiler, fast_settings, metrics):
        exe = make_compiler('[ "$CPATH" = /opt/inc ]\n')
        keyed = CapabilityCache(settings=fast_settings, metrics=metrics, environ={"CPATH": "/opt/inc"})
        unkeyed = CapabilityCache(settings=fast_settings, metrics=metrics, environ={})
        assert Compiler(str(exe), cache=keyed).compiles("int x;\n") is True
        assert Compiler(str(exe), cache=unkeyed).compiles("int x;\n") is False

    def test_has_function_rejects_non_identifiers(self, cc: Compiler):
        with pytest.raises(ValueError):
            cc.has_function("strlen); system(")


class TestUnderscorePrefix:
    def test_prefixed(self, gnu_compiler, cache):
        cc = Compiler(str(gnu_compiler(underscore="_")), cache=cache)
        assert cc.symbols_have_underscore_prefix() is True

    def test_not_prefixed(self, gnu_compiler, cache):
        cc = Compiler(str(gnu_compiler(underscore="")), cache=cache)
        assert cc.symbols_have_underscore_prefix() is False

    def test_macro_undefined_is_an_error(self, gnu_compiler, cache):
        cc = Compiler(str(gnu_compiler(underscore="MESON_UNDERSCORE_UNDEFINED")), cache=cache)
        with pytest.raises(ParseError):
            cc.symbols_have_underscore_prefix()

    def test_no_marker_is_an_error(self, make_compiler, cache):
        cc = Compiler(str(make_compiler("exit 0\n")), cache=cache)
        with pytest.raises(ParseError):
            cc.symbols_have_underscore_prefix()

    def test_memoized(self, gnu_compiler, cache, spawn_log):
        cc = Compiler(str(gnu_compiler(underscore="_")), cache=cache)
        cc.symbols_have_underscore_prefix()
        cc.symbols_have_underscore_prefix()
        assert spawn_count(spawn_log) == 1
