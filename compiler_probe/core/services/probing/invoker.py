"""
Toolchain invoker — the SINGLE PLACE a compiler process is started.

Each call writes the probe source into its own temporary directory,
runs the compiler once, and removes the directory again whatever
happens. The compiler starts in its own process group (session on
POSIX). On timeout that group is killed, then any descendant psutil
still finds, and all are reaped before ``Timeout`` propagates.

Argument style is chosen from the executable name: ``cl`` and
``clang-cl`` take MSVC switches, everything else takes GNU switches.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import tempfile
from pathlib import Path

import psutil

from compiler_probe.core.models import InvocationOutput
from compiler_probe.core.observability.metrics import METRICS, MetricsRegistry
from compiler_probe.core.services.probing.errors import (
    ExecutableNotFound,
    PermissionDenied,
    Timeout,
)

logger = logging.getLogger(__name__)

_MSVC_STYLE_NAMES = frozenset({"cl", "cl.exe", "clang-cl", "clang-cl.exe"})

# Seconds to wait for a killed tree to be reaped
_REAP_TIMEOUT = 5.0

SOURCE_STEM = "probe"

# Grandchildren stay in the compiler's group even after it exits
if os.name == "posix":
    _GROUP_KWARGS: dict = {"start_new_session": True}
else:
    _GROUP_KWARGS = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}


def is_msvc_style(executable: str) -> bool:
    """Whether the compiler takes ``/switch`` style arguments."""
    return Path(executable).name.lower() in _MSVC_STYLE_NAMES


def preprocess_args(executable: str) -> list[str]:
    """Arguments that make the compiler print preprocessed source to stdout."""
    if is_msvc_style(executable):
        return ["/nologo", "/EP"]
    return ["-E"]


def compile_only_args(executable: str, output_name: str) -> list[str]:
    """Arguments that compile to an object without linking."""
    if is_msvc_style(executable):
        return ["/nologo", "/c", f"/Fo{output_name}"]
    return ["-c", "-o", output_name]


def link_args(executable: str, output_name: str) -> list[str]:
    """Arguments that compile and link an executable."""
    if is_msvc_style(executable):
        return ["/nologo", f"/Fe{output_name}"]
    return ["-o", output_name]


def locate_executable(compiler: str) -> str:
    """Resolve a compiler name or path to an absolute executable path.

    Bare names (``cc``) are looked up on PATH. The result keeps the
    name it was invoked by: ``clang++`` is not resolved through its
    symlink to ``clang``, since the driver behaves differently.

    Raises:
        ExecutableNotFound: nothing exists at the path / on PATH.
        PermissionDenied: the file exists but is not executable.
    """
    if not compiler:
        raise ExecutableNotFound("empty compiler path", compiler)

    has_dir = os.sep in compiler or (os.altsep is not None and os.altsep in compiler)
    if not has_dir:
        found = shutil.which(compiler)
        if found is None:
            raise ExecutableNotFound(f"{compiler!r} not found on PATH", compiler)
        return os.path.abspath(found)

    path = os.path.abspath(compiler)
    if not os.path.exists(path):
        raise ExecutableNotFound(f"no such file: {path}", compiler)
    if os.path.isdir(path):
        raise PermissionDenied(f"{path} is a directory", compiler)
    if not os.access(path, os.X_OK):
        raise PermissionDenied(f"{path} is not executable", compiler)
    return path


def kill_process_tree(pid: int) -> int:
    """Kill a process and all its children, then reap them.

    Returns:
        Number of processes signalled.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    # Children first so nothing gets re-parented mid-kill
    procs: list[psutil.Process] = list(reversed(children)) + [parent]
    killed = 0
    for proc in procs:
        try:
            proc.kill()
            killed += 1
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as e:
            logger.warning("Cannot kill process %s: %s", proc.pid, e)

    _gone, alive = psutil.wait_procs(procs, timeout=_REAP_TIMEOUT)
    for proc in alive:
        logger.warning("Process %s survived kill", proc.pid)
    return killed


def kill_process_group(pgid: int) -> bool:
    """SIGKILL every process in a group. POSIX only.

    Returns:
        True if the group existed and was signalled.
    """
    if os.name != "posix":
        return False
    try:
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        return False
    except PermissionError as e:
        logger.warning("Cannot kill process group %s: %s", pgid, e)
        return False
    return True


def _kill(proc: subprocess.Popen) -> int:
    """Kill a compiler's process group, then whatever psutil still sees."""
    grouped = kill_process_group(proc.pid)
    killed = kill_process_tree(proc.pid)
    _drain(proc)
    if grouped:
        logger.debug("Killed process group %s", proc.pid)
    return killed


def invoke(
    executable: str,
    source: str,
    suffix: str,
    args: list[str],
    *,
    timeout: float,
    output_name: str | None = None,
    temp_root: str | None = None,
    env: dict[str, str] | None = None,
    metrics: MetricsRegistry | None = None,
) -> InvocationOutput:
    """Compile ``source`` with ``executable`` and capture the result.

    The command is ``executable *args <tmpdir>/probe<suffix>``. If
    ``output_name`` is given, ``args`` should reference it (see
    ``compile_only_args``); the path is rewritten to live in the
    temporary directory and its contents are returned as ``artifact``.

    Args:
        executable: Absolute path from ``locate_executable``.
        source: Source text to write.
        suffix: Source file suffix selecting the language.
        args: Compiler arguments, placed before the source file.
        timeout: Seconds before the process tree is killed.
        output_name: Bare file name the compiler writes its output to.
        temp_root: Parent for the temporary directory (default: platform).
        env: Full environment for the child (default: inherit).
        metrics: Registry for spawn/timeout counters (default: global).

    Raises:
        ExecutableNotFound, PermissionDenied: the process could not start.
        Timeout: the process did not finish within ``timeout``.
    """
    registry = metrics or METRICS

    # mkdtemp creates the directory 0700, readable by this user only
    with tempfile.TemporaryDirectory(prefix="cprobe-", dir=temp_root) as tmp:
        workdir = Path(tmp)
        source_path = workdir / f"{SOURCE_STEM}{suffix}"
        source_path.write_text(source, encoding="utf-8")

        output_path: Path | None = None
        cmd_args = list(args)
        if output_name:
            output_path = workdir / output_name
            cmd_args = [_relocate(a, output_name, str(output_path)) for a in cmd_args]

        cmd = [executable, *cmd_args, str(source_path)]
        logger.debug("Probe: %s", " ".join(cmd))

        with registry.timer("probe.duration_ms") as timer:
            try:
                proc = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    cwd=workdir,
                    env=env,
                    **_GROUP_KWARGS,
                )
            except FileNotFoundError as e:
                raise ExecutableNotFound(str(e), executable) from e
            except PermissionError as e:
                raise PermissionDenied(str(e), executable) from e
            registry.counter("probe.spawns").inc()

            try:
                stdout_b, stderr_b = proc.communicate(timeout=timeout)
            except subprocess.TimeoutExpired as e:
                killed = _kill(proc)
                registry.counter("probe.timeouts").inc()
                logger.warning(
                    "Probe of %s timed out after %ss (killed %d processes)",
                    executable, timeout, killed,
                )
                raise Timeout(
                    f"no result after {timeout}s", executable, timeout=timeout,
                ) from e
            except BaseException:
                _kill(proc)
                raise

        elapsed_ms = int(timer.elapsed_ms)

        artifact: bytes | None = None
        if output_path is not None and output_path.is_file():
            artifact = output_path.read_bytes()

        result = InvocationOutput(
            command=cmd,
            returncode=proc.returncode,
            stdout=stdout_b.decode("utf-8", errors="replace"),
            stderr=stderr_b.decode("utf-8", errors="replace"),
            duration_ms=elapsed_ms,
            artifact=artifact,
        )
        logger.debug(
            "Probe exit=%d in %dms (%d bytes output)",
            result.returncode, elapsed_ms, len(result.output),
        )
        return result


def _drain(proc: subprocess.Popen) -> None:
    """Release a killed process's pipes and reap it."""
    try:
        proc.communicate(timeout=_REAP_TIMEOUT)
    except subprocess.TimeoutExpired:
        # A detached grandchild still holds the pipe open
        for pipe in (proc.stdout, proc.stderr):
            if pipe is not None:
                pipe.close()
        proc.wait(timeout=_REAP_TIMEOUT)


def _relocate(arg: str, output_name: str, output_path: str) -> str:
    """Point an output argument (``out.o``, ``/Foout.o``) into the temp dir."""
    if arg == output_name:
        return output_path
    for prefix in ("/Fo", "/Fe"):
        if arg == f"{prefix}{output_name}":
            return f"{prefix}{output_path}"
    return arg
