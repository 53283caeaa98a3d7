"""GPIO Bridge — Platform detection.

Detects whether the process runs on a Raspberry Pi so that
``DirectConfig.controller = "auto"`` can pick the real controller on a Pi and
the in-memory one everywhere else.

Detection happens once per process and is cached on :class:`PlatformInfo`.
A Pi is recognised by the ``Raspberry Pi`` model string in ``/proc/cpuinfo``
or, on newer kernels, ``/proc/device-tree/model``.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar


@dataclass(frozen=True)
class PlatformInfo:
    """Immutable snapshot of the current platform.

    Use :meth:`detect` to create an instance; do not instantiate directly.
    """

    os_name: str          # e.g. "Linux", "Darwin"
    architecture: str     # e.g. "aarch64", "x86_64"
    is_raspberry_pi: bool
    model: str | None     # e.g. "Raspberry Pi 4 Model B Rev 1.4"

    _cache: ClassVar[PlatformInfo | None] = None

    @classmethod
    def detect(cls) -> "PlatformInfo":
        if cls._cache is not None:
            return cls._cache

        model = _read_pi_model()
        info = cls(
            os_name=platform.system(),
            architecture=platform.machine(),
            is_raspberry_pi=model is not None,
            model=model,
        )
        cls._cache = info
        return info

    @classmethod
    def reset_cache(cls) -> None:
        """Clear the cached platform info.  Useful in tests."""
        cls._cache = None


def _read_pi_model() -> str | None:
    """Return the Raspberry Pi model string, or None when not on a Pi."""
    model_file = Path("/proc/device-tree/model")
    if model_file.exists():
        try:
            content = model_file.read_text(errors="replace").strip("\x00\n ")
            if "Raspberry Pi" in content:
                return content
        except OSError:
            pass

    cpuinfo = Path("/proc/cpuinfo")
    if cpuinfo.exists():
        try:
            content = cpuinfo.read_text(errors="replace")
        except OSError:
            return None
        for line in content.splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "Model" and "Raspberry Pi" in value:
                return value.strip()
        if "Raspberry Pi" in content:
            return "Raspberry Pi"

    return None
