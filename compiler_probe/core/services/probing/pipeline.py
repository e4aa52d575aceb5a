"""
Identification pipeline — generate → invoke → parse.

Run by the capability cache on a miss, once per invocation key. The
family probe is load-bearing and its failures propagate; version and
linker detection are secondary invocations whose failures only leave
the corresponding fields empty.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence

from compiler_probe.core.config.settings import ProbeSettings
from compiler_probe.core.models import (
    CompilerFamily,
    IdentificationResult,
    InvocationKey,
    ProbeKind,
    VersionInfo,
)
from compiler_probe.core.observability.metrics import MetricsRegistry
from compiler_probe.core.services.probing.errors import (
    NonZeroExitWithNoUsableOutput,
    ProbeError,
)
from compiler_probe.core.services.probing.fragments import ARCH_MARKER, generate_fragment
from compiler_probe.core.services.probing.invoker import (
    invoke,
    is_msvc_style,
    link_args,
    preprocess_args,
)
from compiler_probe.core.services.probing.output_parser import (
    FIXED_LINKERS,
    find_token,
    normalize_arch,
    parse_arch,
    parse_linker,
    parse_version,
)

logger = logging.getLogger(__name__)

_LINK_SOURCE = "int main(void) { return 0; }\n"


def build_key(
    executable: str,
    flags: Sequence[str],
    kind: ProbeKind,
    env_keys: Sequence[str],
    environ: Mapping[str, str] | None = None,
) -> InvocationKey:
    """Fingerprint an invocation.

    Only the variables named in ``env_keys`` that are actually set
    take part, so an unrelated environment change does not force a
    re-probe.
    """
    env = os.environ if environ is None else environ
    relevant = tuple(sorted((k, env[k]) for k in set(env_keys) if k in env))
    return InvocationKey(
        compiler=executable,
        flags=tuple(flags),
        kind=kind,
        env=relevant,
    )


def child_environ(key: InvocationKey, env_keys: Sequence[str]) -> dict[str, str]:
    """Environment a compiler runs with for ``key``.

    The process environment, with every ``env_keys`` variable replaced
    by the value recorded in the key (or removed when the key has none),
    so that equal keys always run the compiler under equal conditions.
    """
    keyed = set(env_keys)
    env = {k: v for k, v in os.environ.items() if k not in keyed}
    env.update(key.env)
    return env


def identify(
    key: InvocationKey,
    settings: ProbeSettings,
    metrics: MetricsRegistry | None = None,
) -> IdentificationResult:
    """Run the full probe for one key.

    Raises:
        ExecutableNotFound, PermissionDenied, Timeout: from the invoker.
        NonZeroExitWithNoUsableOutput: the compiler failed and its
            output does not contain the delimiter.
    """
    env = child_environ(key, settings.env_keys)
    fragment = generate_fragment(key.kind)
    out = invoke(
        key.compiler,
        fragment.source,
        fragment.suffix,
        [*key.flags, *preprocess_args(key.compiler)],
        timeout=settings.timeout,
        temp_root=settings.temp_root,
        env=env,
        metrics=metrics,
    )

    text = out.output
    token = find_token(text, fragment.delimiter)
    if token is None and not out.ok:
        raise NonZeroExitWithNoUsableOutput(
            f"exit code {out.returncode} and no probe marker in output",
            key.compiler,
            returncode=out.returncode,
            output=text[-2000:],
        )

    family = CompilerFamily.from_token(token)
    if family == CompilerFamily.UNKNOWN:
        logger.info("Compiler %s did not identify itself (token=%r)", key.compiler, token)

    arch = parse_arch(text, ARCH_MARKER)

    version: VersionInfo | None = None
    if settings.detect_version:
        version = _detect_version(key, family, settings, env, metrics)

    linker: str | None = None
    if settings.detect_linker:
        linker = _detect_linker(key, family, settings, env, metrics)

    if arch is None and version is not None:
        arch = normalize_arch(version.target)

    result = IdentificationResult(
        family=family,
        raw_version=version.raw if version else None,
        parsed_version=version.parsed if version else None,
        target_arch=arch,
        linker_id=linker,
        compiler=key.compiler,
        probe_kind=key.kind,
        flags=key.flags,
    )
    logger.info(
        "Identified %s as %s %s (arch=%s, linker=%s)",
        key.compiler, family.value, result.version_string or "?", arch, linker,
    )
    return result


def version_args(executable: str, family: CompilerFamily) -> list[str]:
    """Arguments that make the compiler print its version banner.

    cl.exe has no --version; it prints the banner on stderr whenever
    /nologo is absent.
    """
    if family == CompilerFamily.MSVC or (
        is_msvc_style(executable) and family == CompilerFamily.UNKNOWN
    ):
        return ["/EP"]
    return ["--version"]


def _detect_version(
    key: InvocationKey,
    family: CompilerFamily,
    settings: ProbeSettings,
    env: dict[str, str],
    metrics: MetricsRegistry | None,
) -> VersionInfo | None:
    try:
        out = invoke(
            key.compiler,
            _LINK_SOURCE,
            key.kind.suffix,
            [*key.flags, *version_args(key.compiler, family)],
            timeout=settings.timeout,
            temp_root=settings.temp_root,
            env=env,
            metrics=metrics,
        )
        grammar_family = None if family == CompilerFamily.UNKNOWN else family
        return parse_version(out.output, grammar_family)
    except ProbeError as e:
        logger.debug("Version detection for %s failed: %s", key.compiler, e)
        return None


def _detect_linker(
    key: InvocationKey,
    family: CompilerFamily,
    settings: ProbeSettings,
    env: dict[str, str],
    metrics: MetricsRegistry | None,
) -> str | None:
    if family in FIXED_LINKERS:
        return FIXED_LINKERS[family]
    if is_msvc_style(key.compiler):
        return "lld-link" if family == CompilerFamily.CLANG else "link"
    if family == CompilerFamily.UNKNOWN:
        return None

    try:
        out = invoke(
            key.compiler,
            _LINK_SOURCE,
            key.kind.suffix,
            [*key.flags, "-Wl,--version", *link_args(key.compiler, "probe.out")],
            timeout=settings.timeout,
            output_name="probe.out",
            temp_root=settings.temp_root,
            env=env,
            metrics=metrics,
        )
    except ProbeError as e:
        logger.debug("Linker detection for %s failed: %s", key.compiler, e)
        return None

    linker = parse_linker(out.output)
    if linker is None:
        logger.debug("Unrecognised linker banner from %s", key.compiler)
    return linker
