"""
Capability checks — what a compiler accepts, compiles and links.

``Compiler`` binds a compiler path, its flags and a language to a
capability cache, so build code can ask::

    cc = Compiler("cc", ["-O2"], "c")
    cc.get_id()                      # "gcc"
    cc.has_argument("-Wshadow")      # True
    cc.get_supported_arguments(["-Wall", "-Wnot-a-flag"])

Every answer is memoized under (invocation key, check, arguments).
Checks compile into a scratch directory through the invoker, so a
missing compiler or a timeout raises like ``resolve`` does.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from compiler_probe.core.models import IdentificationResult, InvocationKey, InvocationOutput, ProbeKind
from compiler_probe.core.services.probing.cache import CapabilityCache, get_cache
from compiler_probe.core.services.probing.errors import CapabilityError, ParseError
from compiler_probe.core.services.probing.fragments import coerce_kind, underscore_prefix_fragment
from compiler_probe.core.services.probing.invoker import (
    compile_only_args,
    invoke,
    is_msvc_style,
    link_args,
    preprocess_args,
)
from compiler_probe.core.services.probing.output_parser import find_token
from compiler_probe.core.services.probing.pipeline import child_environ

logger = logging.getLogger(__name__)

_TRIVIAL_MAIN = "int main(void) { return 0; }\n"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Compiler:
    """A compiler as configured for one language.

    Args:
        compiler: Executable name or path.
        flags: Flags every invocation carries (project arguments).
        kind: Source language.
        cache: Cache to memoize into (default: the shared one).
    """

    def __init__(
        self,
        compiler: str,
        flags: Sequence[str] = (),
        kind: ProbeKind | str = ProbeKind.C,
        cache: CapabilityCache | None = None,
    ):
        self.compiler = compiler
        self.flags = tuple(flags)
        self.kind = coerce_kind(kind)
        self._cache = cache

    @property
    def cache(self) -> CapabilityCache:
        return self._cache if self._cache is not None else get_cache()

    def __repr__(self) -> str:
        return f"<Compiler {self.compiler!r} lang={self.kind.value} flags={list(self.flags)!r}>"

    # ── Identity ────────────────────────────────────────────────

    def identify(self) -> IdentificationResult:
        return self.cache.resolve(self.compiler, self.flags, self.kind)

    def get_id(self) -> str:
        """Family token, e.g. ``"clang"``."""
        return self.identify().family.value

    def get_linker_id(self) -> str | None:
        return self.identify().linker_id

    def cmd_array(self) -> list[str]:
        """The resolved command line prefix: executable and flags."""
        key = self._key()
        return [key.compiler, *key.flags]

    # ── Argument support ────────────────────────────────────────

    def has_argument(self, argument: str, required: bool = False) -> bool:
        """Whether compiling a trivial source with ``argument`` succeeds.

        Raises:
            CapabilityError: if ``required`` and the argument is rejected.
        """
        supported = self._check(
            "has_argument", (argument,),
            lambda: self._try_compile(_TRIVIAL_MAIN, [argument], link=False).ok,
        )
        if required and not supported:
            raise CapabilityError(
                f"compiler does not support argument {argument!r}", self.compiler,
            )
        return supported

    def get_supported_arguments(self, arguments: Sequence[str]) -> list[str]:
        """The subset of ``arguments`` the compiler accepts, order kept."""
        return [arg for arg in arguments if self.has_argument(arg)]

    def has_link_argument(self, argument: str) -> bool:
        return self.has_multi_link_arguments([argument])

    def has_multi_link_arguments(self, arguments: Sequence[str]) -> bool:
        """Whether linking a trivial program with all ``arguments`` succeeds."""
        return self._check(
            "has_link_arguments", tuple(arguments),
            lambda: self._try_compile(_TRIVIAL_MAIN, arguments, link=True).ok,
        )

    # ── Code checks ─────────────────────────────────────────────

    def compiles(self, code: str, args: Sequence[str] = ()) -> bool:
        return self._check(
            "compiles", (code, *args),
            lambda: self._try_compile(code, args, link=False).ok,
        )

    def links(self, code: str, args: Sequence[str] = ()) -> bool:
        return self._check(
            "links", (code, *args),
            lambda: self._try_compile(code, args, link=True).ok,
        )

    def has_function(self, name: str, args: Sequence[str] = ()) -> bool:
        """Whether a program taking the address of ``name`` links.

        The function is declared with a dummy prototype, so this checks
        the symbol exists in the default libraries, not its signature.
        """
        if not _IDENTIFIER_RE.match(name):
            raise ValueError(f"not a C identifier: {name!r}")
        code = (
            "#ifdef __cplusplus\n"
            'extern "C"\n'
            "#endif\n"
            f"char {name}(void);\n"
            f"int main(void) {{ void *p = (void *)(&{name}); return p == 0; }}\n"
        )
        return self._check(
            "has_function", (name, *args),
            lambda: self._try_compile(code, args, link=True).ok,
        )

    def symbols_have_underscore_prefix(self) -> bool:
        """Whether C symbols get a leading underscore (Darwin, win32).

        Raises:
            ParseError: the preprocessor output has no usable marker.
        """
        return self._check("underscore_prefix", (), self._underscore_prefix)

    # ── Internals ───────────────────────────────────────────────

    def _key(self) -> InvocationKey:
        return self.cache.key_for(self.compiler, self.flags, self.kind)

    def _check(self, name: str, args: Sequence[str], compute) -> bool:
        key = self._key()
        result = self.cache.check(key, name, args, compute)
        logger.debug("%s %s(%s) → %s", key.compiler, name, ", ".join(args)[:80], result)
        return result

    def _try_compile(self, code: str, args: Sequence[str], *, link: bool) -> InvocationOutput:
        key = self._key()
        settings = self.cache.settings
        if link:
            output_name = "probe.exe" if is_msvc_style(key.compiler) else "probe.out"
            mode = link_args(key.compiler, output_name)
        else:
            output_name = "probe.obj" if is_msvc_style(key.compiler) else "probe.o"
            mode = compile_only_args(key.compiler, output_name)
        return invoke(
            key.compiler,
            code,
            self.kind.suffix,
            [*key.flags, *mode, *args],
            timeout=settings.timeout,
            output_name=output_name,
            temp_root=settings.temp_root,
            env=child_environ(key, settings.env_keys),
            metrics=self.cache.metrics,
        )

    def _underscore_prefix(self) -> bool:
        key = self._key()
        settings = self.cache.settings
        fragment = underscore_prefix_fragment(self.kind)
        out = invoke(
            key.compiler,
            fragment.source,
            fragment.suffix,
            [*key.flags, *preprocess_args(key.compiler)],
            timeout=settings.timeout,
            temp_root=settings.temp_root,
            env=child_environ(key, settings.env_keys),
            metrics=self.cache.metrics,
        )
        token = find_token(out.output, fragment.delimiter)
        if token is None:
            raise ParseError("no underscore prefix marker in preprocessor output", key.compiler)
        if token == "_":
            return True
        if token == "":
            return False
        raise ParseError(f"unexpected underscore prefix {token!r}", key.compiler)
