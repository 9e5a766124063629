"""Sensor backends and the protocols they implement."""

from .protocol import (
    AngleHandler,
    AudioSource,
    AudioStream,
    FrameHandler,
    RawColorFrame,
    RawDepthFrame,
    RawFrame,
    RawSkeletonFrame,
    SensorDevice,
    SensorRegistry,
    StatusChangedEvent,
    StatusHandler,
    first_connected,
)
from .simulated import SimulatedAudioSource, SimulatedRegistry, SimulatedSensor, project_to_depth

__all__ = [
    "AngleHandler",
    "AudioSource",
    "AudioStream",
    "FrameHandler",
    "RawColorFrame",
    "RawDepthFrame",
    "RawFrame",
    "RawSkeletonFrame",
    "SensorDevice",
    "SensorRegistry",
    "StatusChangedEvent",
    "StatusHandler",
    "first_connected",
    "SimulatedAudioSource",
    "SimulatedRegistry",
    "SimulatedSensor",
    "project_to_depth",
]
