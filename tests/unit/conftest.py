"""Unit test fixtures for isolated, fast test execution.

All sensors here are fakes from tests/infrastructure/mocks/sensor_mocks.py;
frames are delivered synchronously in the test thread.
"""

from __future__ import annotations

from typing import Callable

import pytest

from kinect_helper.app import StreamManager
from kinect_helper.config import HelperSettings
from kinect_helper.domain import StreamSelection


@pytest.fixture
def full_selection() -> StreamSelection:
    """Color, depth and skeleton; audio off so no thread is started."""
    return StreamSelection(color=True, depth=True, skeleton=True)


@pytest.fixture
def make_manager(hub) -> Callable[..., StreamManager]:
    """Factory building a StreamManager on the shared hub.

    Managers are shut down at teardown so no audio thread outlives a test.
    """
    created: list[StreamManager] = []

    def _factory(selection: StreamSelection | None = None, **settings_overrides) -> StreamManager:
        settings = HelperSettings(**settings_overrides)
        manager = StreamManager(selection or StreamSelection(color=True, depth=True, skeleton=True), hub, settings=settings)
        created.append(manager)
        return manager

    yield _factory

    for manager in created:
        manager.shutdown()
