from __future__ import annotations

import pytest

from bazaar import config


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
