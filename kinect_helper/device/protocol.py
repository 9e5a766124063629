"""Device boundary: what the helper needs from a depth sensor backend.

Backends (hardware bindings, the simulated sensor, test fakes) implement these
protocols structurally; nothing here imports a vendor SDK.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Protocol, Sequence

import numpy as np

from ..domain import DeviceStatus, Skeleton, SkeletonPoint, StreamFormat, StreamGeometry, StreamKind, TrackingMode


@dataclass(slots=True, frozen=True)
class RawColorFrame:
    pixels: np.ndarray  # flat uint8, width * height * bytes_per_pixel
    width: int
    height: int
    bytes_per_pixel: int


@dataclass(slots=True, frozen=True)
class RawDepthFrame:
    samples: np.ndarray  # flat DEPTH_PIXEL_DTYPE, width * height
    width: int
    height: int
    min_depth: int
    max_depth: int


@dataclass(slots=True, frozen=True)
class RawSkeletonFrame:
    skeletons: Sequence[Skeleton]


RawFrame = RawColorFrame | RawDepthFrame | RawSkeletonFrame

# Devices call handlers with None when a frame-ready event fired but the frame
# could no longer be opened.
FrameHandler = Callable[[Optional[RawFrame]], None]
AngleHandler = Callable[[float], None]


class AudioStream(Protocol):
    def readinto(self, buffer: bytearray) -> int:
        """Block until audio is available, fill ``buffer`` and return the byte count."""
        ...

    def close(self) -> None:
        """Abort the stream so a blocked ``readinto`` returns; later reads return 0."""
        ...


class AudioSource(Protocol):
    def start(self) -> AudioStream:
        ...

    def stop(self) -> None:
        ...

    def add_beam_angle_handler(self, handler: AngleHandler) -> None:
        ...

    def remove_beam_angle_handler(self, handler: AngleHandler) -> None:
        ...

    def add_source_angle_handler(self, handler: AngleHandler) -> None:
        ...

    def remove_source_angle_handler(self, handler: AngleHandler) -> None:
        ...


class SensorDevice(Protocol):
    device_id: str
    status: DeviceStatus
    min_elevation_angle: int
    max_elevation_angle: int
    elevation_angle: int
    tracking_mode: TrackingMode
    skeleton_array_length: int
    audio_source: AudioSource

    def enable_stream(self, kind: StreamKind, fmt: StreamFormat | None = None) -> StreamGeometry:
        ...

    def disable_stream(self, kind: StreamKind) -> None:
        ...

    def add_frame_handler(self, kind: StreamKind, handler: FrameHandler) -> None:
        ...

    def remove_frame_handler(self, kind: StreamKind, handler: FrameHandler) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def map_skeleton_point_to_depth(self, point: SkeletonPoint, fmt: StreamFormat) -> tuple[int, int]:
        ...


@dataclass(slots=True, frozen=True)
class StatusChangedEvent:
    device: SensorDevice
    status: DeviceStatus


StatusHandler = Callable[[StatusChangedEvent], None]


class SensorRegistry(Protocol):
    """Enumerates attached sensors and pushes status changes for any of them."""

    def sensors(self) -> Sequence[SensorDevice]:
        ...

    def add_status_handler(self, handler: StatusHandler) -> None:
        ...

    def remove_status_handler(self, handler: StatusHandler) -> None:
        ...


def first_connected(devices: Iterable[SensorDevice]) -> SensorDevice | None:
    for device in devices:
        if device.status is DeviceStatus.CONNECTED:
            return device
    return None


__all__ = [
    "RawColorFrame",
    "RawDepthFrame",
    "RawSkeletonFrame",
    "RawFrame",
    "FrameHandler",
    "AngleHandler",
    "AudioStream",
    "AudioSource",
    "SensorDevice",
    "StatusChangedEvent",
    "StatusHandler",
    "SensorRegistry",
    "first_connected",
]
