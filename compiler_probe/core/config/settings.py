"""
ProbeSettings — knobs that control how compilers are probed.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

# Variables that change what a compiler sees or reports. Their values
# become part of the invocation key.
DEFAULT_ENV_KEYS: tuple[str, ...] = (
    "CPATH",
    "C_INCLUDE_PATH",
    "CPLUS_INCLUDE_PATH",
    "OBJC_INCLUDE_PATH",
    "LIBRARY_PATH",
    "COMPILER_PATH",
    "GCC_EXEC_PREFIX",
    "SDKROOT",
    "MACOSX_DEPLOYMENT_TARGET",
    "INCLUDE",
    "LIB",
    "EMSDK",
    "CCACHE_DISABLE",
)


class ProbeSettings(BaseModel):
    """Probe configuration.

    Loaded from compiler-probe.yml (see ``loader.load_settings``) or
    constructed directly by library callers.
    """

    timeout: float = 10.0                 # seconds per compiler process
    detect_version: bool = True           # run the --version parse path
    detect_linker: bool = True            # run -Wl,--version
    env_keys: list[str] = Field(default_factory=lambda: list(DEFAULT_ENV_KEYS))
    temp_root: str | None = None          # None = platform temp dir

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value
