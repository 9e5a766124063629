"""Stream selection, formats and notification payloads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np

from .constants import DEFAULT_FPS


class StreamKind(Enum):
    COLOR = "color"
    DEPTH = "depth"
    SKELETON = "skeleton"
    AUDIO = "audio"


class ColorMode(Enum):
    RGB = "rgb"
    INFRARED = "infrared"


class TrackingMode(Enum):
    DEFAULT = "default"
    SEATED = "seated"


class DeviceStatus(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    NOT_POWERED = "not_powered"
    NOT_READY = "not_ready"
    ERROR = "error"


# One raw depth sample: distance in millimetres plus the player slot it belongs to.
DEPTH_PIXEL_DTYPE = np.dtype([("depth", "<i2"), ("player_index", "<i2")])


@dataclass(slots=True, frozen=True)
class StreamSelection:
    """Which device streams a session runs. Infrared replaces RGB color."""

    color: bool = False
    depth: bool = False
    skeleton: bool = False
    audio: bool = False
    infrared: bool = False

    def __post_init__(self) -> None:
        if self.infrared and self.color:
            object.__setattr__(self, "color", False)

    @property
    def color_mode(self) -> ColorMode:
        return ColorMode.INFRARED if self.infrared else ColorMode.RGB

    @property
    def uses_color_stream(self) -> bool:
        return self.color or self.infrared

    def enabled_kinds(self) -> tuple[StreamKind, ...]:
        """Selected streams in start order; audio is always last."""
        kinds = []
        if self.uses_color_stream:
            kinds.append(StreamKind.COLOR)
        if self.depth:
            kinds.append(StreamKind.DEPTH)
        if self.skeleton:
            kinds.append(StreamKind.SKELETON)
        if self.audio:
            kinds.append(StreamKind.AUDIO)
        return tuple(kinds)


@dataclass(slots=True, frozen=True)
class StreamFormat:
    name: str
    width: int
    height: int
    fps: int
    bytes_per_pixel: int


RGB_640x480 = StreamFormat("RgbResolution640x480Fps30", 640, 480, DEFAULT_FPS, 4)
INFRARED_640x480 = StreamFormat("InfraredResolution640x480Fps30", 640, 480, DEFAULT_FPS, 2)
DEPTH_640x480 = StreamFormat("Resolution640x480Fps30", 640, 480, DEFAULT_FPS, 2)


def color_format_for(mode: ColorMode) -> StreamFormat:
    return INFRARED_640x480 if mode is ColorMode.INFRARED else RGB_640x480


@dataclass(slots=True, frozen=True)
class StreamGeometry:
    """Frame dimensions reported by the device once a stream is enabled."""

    width: int
    height: int
    bytes_per_pixel: int

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def frame_length(self) -> int:
        return self.pixel_count * self.bytes_per_pixel


@dataclass(slots=True, frozen=True)
class SkeletonPoint:
    x: float
    y: float
    z: float


@dataclass(slots=True, frozen=True)
class DisplayPoint:
    x: float
    y: float


ORIGIN = DisplayPoint(0.0, 0.0)


@dataclass(slots=True, frozen=True)
class ColorFrameReady:
    pixels: np.ndarray
    width: int
    height: int
    bytes_per_pixel: int
    color_mode: ColorMode
    frame_number: int


@dataclass(slots=True, frozen=True)
class DepthFrameReady:
    samples: np.ndarray
    intensity: np.ndarray
    min_depth: int
    max_depth: int
    frame_number: int


@dataclass(slots=True, frozen=True)
class SkeletonFrameReady:
    skeletons: tuple
    frame_number: int


@dataclass(slots=True, frozen=True)
class AudioChunk:
    """One read from the audio source. ``buffer`` is reused by the next read."""

    buffer: bytearray
    read_count: int
    beam_angle: float
    source_angle: float
    chunk_number: int

    @property
    def data(self) -> bytes:
        return bytes(self.buffer[: self.read_count])


__all__ = [
    "StreamKind",
    "ColorMode",
    "TrackingMode",
    "DeviceStatus",
    "DEPTH_PIXEL_DTYPE",
    "StreamSelection",
    "StreamFormat",
    "RGB_640x480",
    "INFRARED_640x480",
    "DEPTH_640x480",
    "color_format_for",
    "StreamGeometry",
    "SkeletonPoint",
    "DisplayPoint",
    "ORIGIN",
    "ColorFrameReady",
    "DepthFrameReady",
    "SkeletonFrameReady",
    "AudioChunk",
]
