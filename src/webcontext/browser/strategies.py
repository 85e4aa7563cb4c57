"""Browser launch strategies.

Each strategy is plain data plus an applicability predicate. The pool walks the
applicable ones in order until a launch succeeds, so supporting a new platform is a
matter of adding an entry here.
"""

from __future__ import annotations

import platform as _platform
import sys
from dataclasses import dataclass
from typing import Callable, Sequence


@dataclass(frozen=True)
class EnvironmentInfo:
    """Host platform as seen by the launcher."""

    platform: str
    arch: str

    @property
    def is_mac(self) -> bool:
        return self.platform == "darwin"

    @property
    def is_linux(self) -> bool:
        return self.platform == "linux"

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    @property
    def is_arm64_mac(self) -> bool:
        return self.is_mac and self.arch == "arm64"

    def as_dict(self) -> dict[str, object]:
        return {
            "platform": self.platform,
            "arch": self.arch,
            "is_arm64_mac": self.is_arm64_mac,
            "is_linux": self.is_linux,
            "is_windows": self.is_windows,
            "is_mac": self.is_mac,
        }


_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}


def _normalize_platform(value: str) -> str:
    if value.startswith("linux"):
        return "linux"
    if value in ("win32", "cygwin"):
        return "win32"
    return value


def detect_environment() -> EnvironmentInfo:
    machine = _platform.machine().lower()
    return EnvironmentInfo(
        platform=_normalize_platform(sys.platform),
        arch=_ARCH_ALIASES.get(machine, machine or "unknown"),
    )


@dataclass(frozen=True)
class LaunchStrategy:
    """One way of starting a browser."""

    name: str
    applies: Callable[[EnvironmentInfo], bool]
    args: tuple[str, ...] = ()
    executable_path: str | None = None
    headless: bool = True


_COMMON_SANDBOX_ARGS = ("--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage")
_BACKGROUND_ARGS = (
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
)

DEFAULT_STRATEGIES: tuple[LaunchStrategy, ...] = (
    LaunchStrategy(
        name="ARM64 Mac - Basic Chromium",
        applies=lambda env: env.is_arm64_mac,
        args=(
            *_COMMON_SANDBOX_ARGS,
            "--disable-gpu",
            "--no-first-run",
            "--no-zygote",
            "--single-process",
            *_BACKGROUND_ARGS,
            "--disable-extensions",
            "--disable-default-apps",
            "--disable-web-security",
            "--disable-features=TranslateUI,VizDisplayCompositor",
            "--enable-logging",
            "--log-level=0",
        ),
    ),
    LaunchStrategy(
        name="ARM64 Mac - System Chrome",
        applies=lambda env: env.is_arm64_mac,
        args=("--no-sandbox", "--disable-setuid-sandbox", "--single-process"),
        executable_path="/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    ),
    LaunchStrategy(
        name="Linux - Basic Chromium",
        applies=lambda env: env.is_linux,
        args=(*_COMMON_SANDBOX_ARGS, "--disable-gpu", "--remote-debugging-port=0", *_BACKGROUND_ARGS),
    ),
    LaunchStrategy(
        name="Linux - System Chromium",
        applies=lambda env: env.is_linux,
        args=("--no-sandbox", "--disable-setuid-sandbox"),
        executable_path="/usr/bin/chromium-browser",
    ),
    LaunchStrategy(
        name="Windows - Basic Chromium",
        applies=lambda env: env.is_windows,
        args=_COMMON_SANDBOX_ARGS,
    ),
    LaunchStrategy(
        name="Intel Mac - Standard Chromium",
        applies=lambda env: env.is_mac and not env.is_arm64_mac,
        args=_COMMON_SANDBOX_ARGS,
    ),
    LaunchStrategy(
        name="Universal Fallback - Minimal Config",
        applies=lambda env: True,
        args=("--no-sandbox",),
    ),
)


def select_strategies(
    env: EnvironmentInfo, strategies: Sequence[LaunchStrategy] = DEFAULT_STRATEGIES
) -> list[LaunchStrategy]:
    """Applicable strategies for ``env``, in preference order."""

    return [s for s in strategies if s.applies(env)]
