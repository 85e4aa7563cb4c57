"""Shared fixtures."""

from __future__ import annotations

import random

import pytest
from fakes import LINUX_X64, FakeLauncher, Recorder

from webcontext.browser.pool import AcquisitionPool


@pytest.fixture
def sleep() -> Recorder:
    return Recorder()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(7)


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def pool(launcher: FakeLauncher, rng: random.Random) -> AcquisitionPool:
    return AcquisitionPool(launcher, env=LINUX_X64, rng=rng)
