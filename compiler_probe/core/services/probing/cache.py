"""
Capability cache — memoized, single-flight probe results.

Cache semantics:

    hit       stored result returned, no process spawned
    miss      the caller runs the pipeline; concurrent callers for the
              same key block on that one run and share its result
    failure   the in-flight entry is dropped and current waiters get the
              same exception; the next call retries from scratch

Entries live for the cache's lifetime (one configuration run) and are
never evicted. Compiler identity is assumed stable within that time.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Mapping, Sequence
from concurrent.futures import Future
from typing import Any, Generic, TypeVar

from compiler_probe.core.config.loader import load_settings
from compiler_probe.core.config.settings import ProbeSettings
from compiler_probe.core.models import IdentificationResult, InvocationKey, ProbeKind
from compiler_probe.core.observability.metrics import METRICS, MetricsRegistry
from compiler_probe.core.services.probing.fragments import coerce_kind
from compiler_probe.core.services.probing.invoker import locate_executable
from compiler_probe.core.services.probing.pipeline import build_key, identify

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SingleFlight(Generic[K, V]):
    """Memo table with at most one in-flight computation per key."""

    def __init__(self, metrics: MetricsRegistry | None = None, name: str = "cache"):
        self._done: dict[K, V] = {}
        self._inflight: dict[K, Future[V]] = {}
        self._lock = threading.Lock()
        self._metrics = metrics or METRICS
        self._name = name

    def get_or_compute(self, key: K, compute: Callable[[], V]) -> V:
        with self._lock:
            if key in self._done:
                self._metrics.counter(f"{self._name}.hits").inc()
                return self._done[key]
            future = self._inflight.get(key)
            owner = future is None
            if future is None:
                future = Future()
                self._inflight[key] = future

        if not owner:
            self._metrics.counter(f"{self._name}.waits").inc()
            return future.result()

        self._metrics.counter(f"{self._name}.misses").inc()
        try:
            value = compute()
        except BaseException as e:
            with self._lock:
                self._inflight.pop(key, None)
            self._metrics.counter(f"{self._name}.failures").inc()
            future.set_exception(e)
            raise

        with self._lock:
            self._done[key] = value
            self._inflight.pop(key, None)
        future.set_result(value)
        return value

    def peek(self, key: K) -> V | None:
        with self._lock:
            return self._done.get(key)

    def clear(self) -> None:
        """Forget stored results. In-flight runs still complete for their waiters."""
        with self._lock:
            self._done.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._done)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._done


class CapabilityCache:
    """Process-wide store of compiler identities and capability answers.

    Args:
        settings: Probe settings (default: ``load_settings()``).
        metrics: Registry for cache and spawn counters (default: global).
        environ: Environment the invocation key is computed from
            (default: ``os.environ`` at call time). Its keyed variables
            are also the ones the compiler runs with.
    """

    def __init__(
        self,
        settings: ProbeSettings | None = None,
        metrics: MetricsRegistry | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.settings = settings if settings is not None else load_settings()
        self.metrics = metrics or METRICS
        self._environ = environ
        self._results: SingleFlight[InvocationKey, IdentificationResult] = SingleFlight(
            self.metrics, "cache",
        )
        self._checks: SingleFlight[tuple[InvocationKey, str, tuple[str, ...]], Any] = SingleFlight(
            self.metrics, "checks",
        )

    def key_for(
        self,
        compiler: str,
        flags: Sequence[str] = (),
        kind: ProbeKind | str = ProbeKind.C,
    ) -> InvocationKey:
        """Validate the inputs and compute their invocation key.

        Raises:
            ExecutableNotFound, PermissionDenied, UnsupportedProbeKind
        """
        probe_kind = coerce_kind(kind)
        executable = locate_executable(compiler)
        return build_key(executable, flags, probe_kind, self.settings.env_keys, self._environ)

    def resolve(
        self,
        compiler: str,
        flags: Sequence[str] = (),
        kind: ProbeKind | str = ProbeKind.C,
    ) -> IdentificationResult:
        """Identify a compiler, probing it only on the first request per key."""
        key = self.key_for(compiler, flags, kind)
        logger.debug("resolve %s [%s] key=%s", key.compiler, key.kind.value, key.short())
        return self._results.get_or_compute(
            key, lambda: identify(key, self.settings, self.metrics),
        )

    def check(
        self,
        key: InvocationKey,
        name: str,
        args: Sequence[str],
        compute: Callable[[], V],
    ) -> V:
        """Memoize a capability answer under (key, check name, args)."""
        return self._checks.get_or_compute((key, name, tuple(args)), compute)

    def cached(self, key: InvocationKey) -> IdentificationResult | None:
        return self._results.peek(key)

    def reset(self) -> None:
        """Drop every stored result."""
        self._results.clear()
        self._checks.clear()
        logger.debug("Capability cache reset")

    def __len__(self) -> int:
        return len(self._results) + len(self._checks)


# ── Process-wide default ────────────────────────────────────────

_default_cache: CapabilityCache | None = None
_default_lock = threading.Lock()


def get_cache() -> CapabilityCache:
    """The shared cache, created with ``load_settings()`` on first use."""
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            _default_cache = CapabilityCache()
        return _default_cache


def reset_cache() -> None:
    """Discard the shared cache; the next ``get_cache()`` starts empty."""
    global _default_cache
    with _default_lock:
        _default_cache = None


def resolve(
    compiler: str,
    flags: Sequence[str] = (),
    kind: ProbeKind | str = ProbeKind.C,
) -> IdentificationResult:
    """Identify a compiler through the shared cache."""
    return get_cache().resolve(compiler, flags, kind)
