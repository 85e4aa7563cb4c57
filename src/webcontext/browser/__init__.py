"""Browser acquisition: launch strategies, session pool and behavior simulation."""

from __future__ import annotations

from webcontext.browser.behavior import BehaviorSimulator
from webcontext.browser.pool import (
    AcquisitionPool,
    AcquisitionSession,
    BrowserConfig,
    BrowserLauncher,
    PlaywrightLauncher,
)
from webcontext.browser.strategies import (
    DEFAULT_STRATEGIES,
    EnvironmentInfo,
    LaunchStrategy,
    detect_environment,
    select_strategies,
)

__all__ = [
    "DEFAULT_STRATEGIES",
    "AcquisitionPool",
    "AcquisitionSession",
    "BehaviorSimulator",
    "BrowserConfig",
    "BrowserLauncher",
    "EnvironmentInfo",
    "LaunchStrategy",
    "PlaywrightLauncher",
    "detect_environment",
    "select_strategies",
]
