"""Integration test fixtures: real threads, the simulated sensor, no fakes.

These tests run the stream manager against ``SimulatedSensor`` so frames
arrive from the sensor's own pump thread and audio from a paced tone stream.
"""

from __future__ import annotations

import pytest

from kinect_helper.config import HelperSettings
from kinect_helper.device import SimulatedAudioSource, SimulatedRegistry, SimulatedSensor


@pytest.fixture
def fast_settings() -> HelperSettings:
    """All four streams at a high frame rate with a short duration."""
    return HelperSettings(audio=True, fps=60.0, duration=0.6)


@pytest.fixture
def simulated_registry() -> SimulatedRegistry:
    sensor = SimulatedSensor("sim-a", fps=60.0, audio_source=SimulatedAudioSource())
    return SimulatedRegistry([sensor])
