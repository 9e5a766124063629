"""Session lifecycle state and per-stream counters."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .entities import StreamKind, TrackingMode


class StreamState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(slots=True)
class DeviceSession:
    """The one live device plus the settings applied to it."""

    device: Any
    min_elevation: int
    max_elevation: int
    elevation_angle: int = 0
    tracking_mode: TrackingMode = TrackingMode.DEFAULT
    started_at: float = field(default_factory=time.monotonic)


@dataclass(slots=True)
class StreamStats:
    delivered: int = 0
    dropped: int = 0
    last_frame_time: float | None = None

    def record_delivery(self) -> int:
        self.delivered += 1
        self.last_frame_time = time.monotonic()
        return self.delivered

    def record_drop(self) -> int:
        self.dropped += 1
        return self.dropped


def empty_stats() -> dict[StreamKind, StreamStats]:
    return {kind: StreamStats() for kind in StreamKind}


__all__ = ["StreamState", "DeviceSession", "StreamStats", "empty_stats"]
