"""
Shared test fixtures and configuration.

Compilers under test are small ``/bin/sh`` scripts that answer the
probe invocations the way a real driver would. Each script appends
its argument list to a log file, so tests can count spawns.
"""

import sys
import textwrap
from pathlib import Path

import pytest

from compiler_probe.core.config.settings import ProbeSettings
from compiler_probe.core.observability.metrics import MetricsRegistry
from compiler_probe.core.services.probing import CapabilityCache

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="fake compilers are shell scripts")

GCC_BANNER = """\
gcc (Ubuntu 11.4.0-1ubuntu1~22.04) 11.4.0
Copyright (C) 2021 Free Software Foundation, Inc.
This is free software; see the source for copying conditions.
"""

CLANG_BANNER = """\
Ubuntu clang version 14.0.0-1ubuntu1.1
Target: x86_64-pc-linux-gnu
Thread model: posix
"""

EMCC_BANNER = """\
emcc (Emscripten gcc/clang-like replacement + linker emulating GNU ld) 3.1.45 (ef3e4e3b)
Copyright (C) 2014 the Emscripten authors (see AUTHORS.txt)
"""

GNU_LD_BANNER = "GNU ld (GNU Binutils for Ubuntu) 2.38\n"


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    """Parent directory for probe temp dirs, so leaks are visible."""
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def spawn_log(tmp_path: Path) -> Path:
    """File each fake compiler appends its argv to."""
    return tmp_path / "spawns.log"


@pytest.fixture
def make_compiler(tmp_path: Path, spawn_log: Path):
    """Factory: write an executable shell script into ``tmp_path/bin``.

    The script logs ``"$@"`` to ``spawn_log``, then runs ``body``.
    ``$src`` holds the path of the probe source (the last argument).
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def _make(body: str, name: str = "fakecc") -> Path:
        path = bin_dir / name
        script = (
            "#!/bin/sh\n"
            f'echo "$@" >> "{spawn_log}"\n'
            'for arg in "$@"; do src="$arg"; done\n'
            + textwrap.dedent(body)
        )
        path.write_text(script)
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def gnu_compiler(make_compiler):
    """Factory for a GNU-driver-like compiler.

    Answers ``-E`` with the family/arch tokens, ``--version`` with a
    banner and ``-Wl,--version`` with a linker banner. Any ``-o``
    target is created. Arguments starting with ``-Wbogus`` and sources
    containing ``#error`` or ``no_such_function`` fail.
    """

    def _make(
        token: str = "gcc",
        arch: str = "x86_64",
        banner: str = GCC_BANNER,
        linker: str = GNU_LD_BANNER,
        underscore: str = "",
        delay: float = 0,
        name: str = "fakecc",
    ) -> Path:
        banner_block = textwrap.indent(banner, " " * 8).strip()
        body = f"""\
        sleep {delay}
        prev=""
        for arg in "$@"; do
          case "$arg" in
            -E)
              if grep -q __USER_LABEL_PREFIX__ "$src"; then
                echo '"MESON_DELIMITER" {underscore}'
              else
                echo '# 1 "probe.c"'
                echo '"MESON_DELIMITER" {token}'
                echo '"MESON_ARCH_MARKER" {arch}'
              fi
              exit 0
              ;;
            --version)
              cat <<'BANNER'
        {banner_block}
        BANNER
              exit 0
              ;;
            -Wl,--version)
              echo '{linker.strip()}'
              exit 0
              ;;
            -Wbogus*)
              echo "error: unknown warning option '$arg'" >&2
              exit 1
              ;;
          esac
          if [ "$prev" = "-o" ]; then out="$arg"; fi
          prev="$arg"
        done
        if grep -q -e '#error' -e no_such_function "$src"; then
          echo "probe: error" >&2
          exit 1
        fi
        if [ -n "$out" ]; then echo OBJ > "$out"; fi
        exit 0
        """
        return make_compiler(body, name=name)

    return _make


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def fast_settings(scratch_dir: Path) -> ProbeSettings:
    """Family probe only: one spawn per identification."""
    return ProbeSettings(
        timeout=10,
        detect_version=False,
        detect_linker=False,
        temp_root=str(scratch_dir),
    )


@pytest.fixture
def full_settings(scratch_dir: Path) -> ProbeSettings:
    return ProbeSettings(timeout=10, temp_root=str(scratch_dir))


@pytest.fixture
def cache(fast_settings: ProbeSettings, metrics: MetricsRegistry) -> CapabilityCache:
    return CapabilityCache(settings=fast_settings, metrics=metrics, environ={})


def spawn_count(log: Path) -> int:
    """Number of times any fake compiler was started."""
    if not log.exists():
        return 0
    return len(log.read_text().splitlines())
