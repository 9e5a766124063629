"""In-process depth sensor used by the CLI and integration tests.

The sensor pumps synthetic color, depth and skeleton frames from its own
thread at a fixed rate, the way a vendor runtime raises frame-ready events
from a driver thread. Its audio source synthesizes a 16 kHz mono tone and
sweeps the beam and source angles.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Iterable, Sequence

import numpy as np

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..domain import (
    DEPTH_640x480,
    DEPTH_PIXEL_DTYPE,
    RGB_640x480,
    DeviceStatus,
    DeviceUnavailableError,
    FrameEdges,
    Joint,
    JointTrackingState,
    JointType,
    Skeleton,
    SkeletonPoint,
    SkeletonTrackingState,
    StreamFormat,
    StreamGeometry,
    StreamKind,
    TrackingMode,
)
from ..domain.constants import (
    AUDIO_BYTES_PER_SAMPLE,
    AUDIO_SAMPLE_RATE,
    DEFAULT_FPS,
    DEFAULT_MAX_ELEVATION,
    DEFAULT_MIN_ELEVATION,
    DEFAULT_SKELETON_SLOTS,
)
from .protocol import (
    AngleHandler,
    AudioSource,
    FrameHandler,
    RawColorFrame,
    RawDepthFrame,
    RawFrame,
    RawSkeletonFrame,
    StatusChangedEvent,
    StatusHandler,
)

# Skeleton-to-depth projection for a 640x480 depth image (pixels per unit at z = 1 m).
DEPTH_FOCAL_LENGTH_640 = 571.26
MIN_DEPTH_MM = 800
MAX_DEPTH_MM = 4000

# Standing pose relative to the hip center, metres.
_POSE: dict[JointType, tuple[float, float, float]] = {
    JointType.HIP_CENTER: (0.0, 0.0, 0.0),
    JointType.SPINE: (0.0, 0.1, 0.0),
    JointType.SHOULDER_CENTER: (0.0, 0.45, 0.0),
    JointType.HEAD: (0.0, 0.65, 0.0),
    JointType.SHOULDER_LEFT: (-0.18, 0.4, 0.0),
    JointType.ELBOW_LEFT: (-0.3, 0.15, 0.0),
    JointType.WRIST_LEFT: (-0.35, -0.05, 0.0),
    JointType.HAND_LEFT: (-0.37, -0.12, 0.0),
    JointType.SHOULDER_RIGHT: (0.18, 0.4, 0.0),
    JointType.ELBOW_RIGHT: (0.3, 0.15, 0.0),
    JointType.WRIST_RIGHT: (0.35, -0.05, 0.0),
    JointType.HAND_RIGHT: (0.37, -0.12, 0.0),
    JointType.HIP_LEFT: (-0.1, -0.05, 0.0),
    JointType.KNEE_LEFT: (-0.11, -0.45, 0.0),
    JointType.ANKLE_LEFT: (-0.11, -0.85, 0.0),
    JointType.FOOT_LEFT: (-0.11, -0.9, 0.08),
    JointType.HIP_RIGHT: (0.1, -0.05, 0.0),
    JointType.KNEE_RIGHT: (0.11, -0.45, 0.0),
    JointType.ANKLE_RIGHT: (0.11, -0.85, 0.0),
    JointType.FOOT_RIGHT: (0.11, -0.9, 0.08),
}

# Legs are estimated rather than seen in seated mode.
_SEATED_INFERRED = frozenset(
    {
        JointType.HIP_LEFT,
        JointType.KNEE_LEFT,
        JointType.ANKLE_LEFT,
        JointType.FOOT_LEFT,
        JointType.HIP_RIGHT,
        JointType.KNEE_RIGHT,
        JointType.ANKLE_RIGHT,
        JointType.FOOT_RIGHT,
    }
)


def project_to_depth(point: SkeletonPoint, fmt: StreamFormat) -> tuple[int, int]:
    """Pinhole projection of a skeleton-space point onto a depth image."""

    if point.z <= 0:
        raise ValueError(f"point behind the sensor: z={point.z}")
    focal = DEPTH_FOCAL_LENGTH_640 * fmt.width / 640.0
    x = fmt.width / 2.0 + point.x / point.z * focal
    y = fmt.height / 2.0 - point.y / point.z * focal
    return int(round(x)), int(round(y))


class _ToneStream:
    """Blocking reader that paces itself to the real-time sample rate."""

    def __init__(self, source: "SimulatedAudioSource") -> None:
        self._source = source
        self._phase = 0
        self._next_deadline = time.monotonic()
        self._closed = threading.Event()

    def readinto(self, buffer: bytearray) -> int:
        source = self._source
        if not source.active or self._closed.is_set():
            return 0
        samples = len(buffer) // AUDIO_BYTES_PER_SAMPLE
        self._next_deadline += samples / float(source.sample_rate)
        delay = self._next_deadline - time.monotonic()
        if delay > 0:
            self._closed.wait(delay)
        else:
            self._next_deadline = time.monotonic()
        if not source.active or self._closed.is_set():
            return 0

        t = (np.arange(samples) + self._phase) / float(source.sample_rate)
        pcm = (np.sin(2.0 * math.pi * source.tone_hz * t) * source.amplitude).astype("<i2")
        self._phase += samples
        count = samples * AUDIO_BYTES_PER_SAMPLE
        buffer[:count] = pcm.tobytes()
        source._advance_angles(samples)
        return count

    def close(self) -> None:
        self._closed.set()


class SimulatedAudioSource:
    """Synthetic microphone array: tone PCM plus slowly sweeping angles."""

    def __init__(
        self,
        *,
        sample_rate: int = AUDIO_SAMPLE_RATE,
        tone_hz: float = 440.0,
        amplitude: int = 8000,
        sweep_seconds: float = 4.0,
        logger: LoggerLike = None,
    ) -> None:
        self.sample_rate = max(1, int(sample_rate))
        self.tone_hz = tone_hz
        self.amplitude = amplitude
        self.sweep_seconds = max(0.1, sweep_seconds)
        self.logger = ensure_structured_logger(logger, fallback_name="SimulatedAudio")
        self.active = False
        self._samples_read = 0
        self._beam_handlers: list[AngleHandler] = []
        self._source_handlers: list[AngleHandler] = []

    def start(self) -> _ToneStream:
        self.active = True
        self._samples_read = 0
        self.logger.debug("Tone source started (%d Hz, %.0f Hz tone)", self.sample_rate, self.tone_hz)
        return _ToneStream(self)

    def stop(self) -> None:
        if self.active:
            self.logger.debug("Tone source stopped")
        self.active = False

    def add_beam_angle_handler(self, handler: AngleHandler) -> None:
        self._beam_handlers.append(handler)

    def remove_beam_angle_handler(self, handler: AngleHandler) -> None:
        if handler in self._beam_handlers:
            self._beam_handlers.remove(handler)

    def add_source_angle_handler(self, handler: AngleHandler) -> None:
        self._source_handlers.append(handler)

    def remove_source_angle_handler(self, handler: AngleHandler) -> None:
        if handler in self._source_handlers:
            self._source_handlers.remove(handler)

    def _advance_angles(self, samples: int) -> None:
        self._samples_read += samples
        seconds = self._samples_read / float(self.sample_rate)
        phase = 2.0 * math.pi * seconds / self.sweep_seconds
        # Beam steps in 10 degree increments like the hardware; the source estimate is continuous.
        beam = round(50.0 * math.sin(phase) / 10.0) * 10.0
        source = 50.0 * math.sin(phase + 0.3)
        for handler in tuple(self._beam_handlers):
            self._notify_angle(handler, beam)
        for handler in tuple(self._source_handlers):
            self._notify_angle(handler, source)

    def _notify_angle(self, handler: AngleHandler, angle: float) -> None:
        try:
            handler(angle)
        except Exception:
            self.logger.exception("Angle handler failed")


class SimulatedSensor:
    """Fake sensor with the elevation range and frame formats of the real device."""

    def __init__(
        self,
        device_id: str = "sim-0",
        *,
        fps: float = DEFAULT_FPS,
        audio_source: AudioSource | None = None,
        skeleton_slots: int = DEFAULT_SKELETON_SLOTS,
        drop_every: int = 0,
        status: DeviceStatus = DeviceStatus.CONNECTED,
        logger: LoggerLike = None,
    ) -> None:
        self.device_id = device_id
        self.status = status
        self.min_elevation_angle = DEFAULT_MIN_ELEVATION
        self.max_elevation_angle = DEFAULT_MAX_ELEVATION
        self.tracking_mode = TrackingMode.DEFAULT
        self.skeleton_array_length = max(1, int(skeleton_slots))
        self.fps = max(1.0, float(fps))
        self.drop_every = max(0, int(drop_every))
        self.logger = ensure_structured_logger(logger, fallback_name=f"SimulatedSensor.{device_id}")
        self.audio_source = audio_source or SimulatedAudioSource(logger=self.logger.getChild("Audio"))
        self._elevation = 0
        self._formats: dict[StreamKind, StreamFormat] = {}
        self._handlers: dict[StreamKind, list[FrameHandler]] = {kind: [] for kind in StreamKind}
        self._handler_lock = threading.Lock()
        self._running = False
        self._thread: threading.Thread | None = None
        self._frame_number = 0
        self._color_base: np.ndarray | None = None
        self._depth_base: np.ndarray | None = None

    # ------------------------------------------------------------------
    # Device properties

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def frame_number(self) -> int:
        return self._frame_number

    @property
    def elevation_angle(self) -> int:
        return self._elevation

    @elevation_angle.setter
    def elevation_angle(self, value: int) -> None:
        self._require_connected()
        if not self._running:
            raise RuntimeError("elevation can only be changed while the sensor is running")
        value = int(value)
        if not self.min_elevation_angle <= value <= self.max_elevation_angle:
            raise ValueError(
                f"elevation {value} outside [{self.min_elevation_angle}, {self.max_elevation_angle}]"
            )
        self._elevation = value
        self.logger.debug("Elevation set to %d", value)

    # ------------------------------------------------------------------
    # Streams

    def enable_stream(self, kind: StreamKind, fmt: StreamFormat | None = None) -> StreamGeometry:
        self._require_connected()
        if kind is StreamKind.COLOR:
            fmt = fmt or RGB_640x480
        elif kind is StreamKind.DEPTH:
            fmt = fmt or DEPTH_640x480
        else:
            self._formats[kind] = fmt or DEPTH_640x480
            return StreamGeometry(0, 0, 0)
        self._formats[kind] = fmt
        if kind is StreamKind.COLOR:
            self._color_base = _color_pattern(fmt)
        else:
            self._depth_base = _depth_pattern(fmt)
        self.logger.debug("%s stream enabled (%s)", kind.value, fmt.name)
        return StreamGeometry(fmt.width, fmt.height, fmt.bytes_per_pixel)

    def disable_stream(self, kind: StreamKind) -> None:
        if self._formats.pop(kind, None) is not None:
            self.logger.debug("%s stream disabled", kind.value)

    def is_stream_enabled(self, kind: StreamKind) -> bool:
        return kind in self._formats

    def add_frame_handler(self, kind: StreamKind, handler: FrameHandler) -> None:
        with self._handler_lock:
            self._handlers[kind].append(handler)

    def remove_frame_handler(self, kind: StreamKind, handler: FrameHandler) -> None:
        with self._handler_lock:
            if handler in self._handlers[kind]:
                self._handlers[kind].remove(handler)

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        self._require_connected()
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._pump, name=f"FramePump-{self.device_id}", daemon=True)
        self._thread.start()
        self.logger.info("Sensor started at %.0f fps", self.fps)

    def stop(self) -> None:
        self._running = False
        self.audio_source.stop()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None
        self.logger.info("Sensor stopped after %d frames", self._frame_number)

    def map_skeleton_point_to_depth(self, point: SkeletonPoint, fmt: StreamFormat) -> tuple[int, int]:
        self._require_connected()
        return project_to_depth(point, fmt)

    # ------------------------------------------------------------------
    # Frame pump

    def _pump(self) -> None:
        interval = 1.0 / self.fps
        next_tick = time.monotonic()
        while self._running:
            next_tick += interval
            self._frame_number += 1
            dropped = bool(self.drop_every) and self._frame_number % self.drop_every == 0
            for kind in (StreamKind.COLOR, StreamKind.DEPTH, StreamKind.SKELETON):
                if not self._running:
                    break
                if kind not in self._formats:
                    continue
                frame = None if dropped else self._build_frame(kind)
                self._dispatch(kind, frame)
            delay = next_tick - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            else:
                next_tick = time.monotonic()

    def _dispatch(self, kind: StreamKind, frame: RawFrame | None) -> None:
        with self._handler_lock:
            handlers = tuple(self._handlers[kind])
        for handler in handlers:
            try:
                handler(frame)
            except Exception:
                self.logger.exception("%s frame handler failed", kind.value)

    def _build_frame(self, kind: StreamKind) -> RawFrame:
        fmt = self._formats[kind]
        n = self._frame_number
        if kind is StreamKind.COLOR:
            base = self._color_base
            pixels = np.roll(base, (n * 4 * fmt.bytes_per_pixel) % base.size)
            return RawColorFrame(pixels, fmt.width, fmt.height, fmt.bytes_per_pixel)
        if kind is StreamKind.DEPTH:
            samples = self._depth_base.copy()
            samples["depth"] = np.clip(samples["depth"] + int(200 * math.sin(n / 15.0)), 0, 0x7FFF)
            return RawDepthFrame(samples, fmt.width, fmt.height, MIN_DEPTH_MM, MAX_DEPTH_MM)
        return RawSkeletonFrame(self._build_skeletons(n))

    def _build_skeletons(self, n: int) -> tuple[Skeleton, ...]:
        t = n / self.fps
        center = SkeletonPoint(1.2 * math.sin(t / 3.0), 0.0, 2.5 + 0.5 * math.cos(t / 3.0))
        slots: list[Skeleton] = [_posed_skeleton(center, t, self.tracking_mode, tracking_id=1)]
        if self.skeleton_array_length > 1:
            slots.append(
                Skeleton(SkeletonTrackingState.POSITION_ONLY, SkeletonPoint(-0.8, 0.1, 3.5), tracking_id=2)
            )
        while len(slots) < self.skeleton_array_length:
            slots.append(Skeleton.not_tracked())
        return tuple(slots[: self.skeleton_array_length])

    def _require_connected(self) -> None:
        if self.status is not DeviceStatus.CONNECTED:
            raise DeviceUnavailableError(f"sensor {self.device_id} is {self.status.value}")


def _posed_skeleton(center: SkeletonPoint, t: float, mode: TrackingMode, *, tracking_id: int) -> Skeleton:
    wave = 0.2 * math.sin(t * 2.0)
    joints: dict[JointType, Joint] = {}
    for joint_type, (dx, dy, dz) in _POSE.items():
        if joint_type in (JointType.WRIST_RIGHT, JointType.HAND_RIGHT):
            dy += wave
        state = JointTrackingState.TRACKED
        if mode is TrackingMode.SEATED and joint_type in _SEATED_INFERRED:
            state = JointTrackingState.INFERRED
        elif joint_type is JointType.HAND_LEFT and int(t) % 2:
            state = JointTrackingState.INFERRED
        position = SkeletonPoint(center.x + dx, center.y + dy, center.z + dz)
        joints[joint_type] = Joint(joint_type, position, state)

    edges = FrameEdges.NONE
    if center.x < -1.0:
        edges |= FrameEdges.LEFT
    elif center.x > 1.0:
        edges |= FrameEdges.RIGHT
    if mode is TrackingMode.DEFAULT and center.z < 2.1:
        edges |= FrameEdges.BOTTOM
    return Skeleton(
        SkeletonTrackingState.TRACKED,
        center,
        joints,
        tracking_id=tracking_id,
        clipped_edges=edges,
    )


def _color_pattern(fmt: StreamFormat) -> np.ndarray:
    ys, xs = np.mgrid[0 : fmt.height, 0 : fmt.width]
    if fmt.bytes_per_pixel == 2:
        # 16-bit infrared intensity, little endian
        ir = ((xs + ys) * 64).astype("<u2")
        return ir.view(np.uint8).reshape(-1).copy()
    image = np.zeros((fmt.height, fmt.width, fmt.bytes_per_pixel), dtype=np.uint8)
    image[..., 0] = (xs * 255 // max(1, fmt.width - 1)).astype(np.uint8)
    image[..., 1] = (ys * 255 // max(1, fmt.height - 1)).astype(np.uint8)
    image[..., 2] = 128
    return image.reshape(-1)


def _depth_pattern(fmt: StreamFormat) -> np.ndarray:
    ys, xs = np.mgrid[0 : fmt.height, 0 : fmt.width]
    cx, cy = fmt.width / 2.0, fmt.height / 2.0
    radius = np.hypot(xs - cx, ys - cy) / math.hypot(cx, cy)
    samples = np.zeros(fmt.width * fmt.height, dtype=DEPTH_PIXEL_DTYPE)
    # Near range fills the middle, the corners fall outside the reliable range.
    samples["depth"] = (600 + radius * 4000).astype(np.int16).reshape(-1)
    player = (radius < 0.2).reshape(-1)
    samples["player_index"][player] = 1
    return samples


class SimulatedRegistry:
    """Holds simulated sensors and raises status-change events for them."""

    def __init__(self, sensors: Iterable[SimulatedSensor] = (), logger: LoggerLike = None) -> None:
        self.logger = ensure_structured_logger(logger, fallback_name="SimulatedRegistry")
        self._sensors: list[SimulatedSensor] = list(sensors)
        self._handlers: list[StatusHandler] = []
        self._lock = threading.Lock()

    def sensors(self) -> Sequence[SimulatedSensor]:
        with self._lock:
            return tuple(self._sensors)

    def add_status_handler(self, handler: StatusHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def remove_status_handler(self, handler: StatusHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def plug(self, sensor: SimulatedSensor) -> None:
        with self._lock:
            if sensor not in self._sensors:
                self._sensors.append(sensor)
        self.set_status(sensor, DeviceStatus.CONNECTED)

    def unplug(self, sensor: SimulatedSensor) -> None:
        self.set_status(sensor, DeviceStatus.DISCONNECTED)
        with self._lock:
            if sensor in self._sensors:
                self._sensors.remove(sensor)

    def set_status(self, sensor: SimulatedSensor, status: DeviceStatus) -> None:
        if sensor.status is status:
            return
        sensor.status = status
        if status is not DeviceStatus.CONNECTED and sensor.is_running:
            # Hardware gone: the runtime stops pumping frames on its own.
            sensor._running = False
        self.logger.info("Sensor %s is now %s", sensor.device_id, status.value)
        event = StatusChangedEvent(sensor, status)
        with self._lock:
            handlers = tuple(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                self.logger.exception("Status handler failed for %s", sensor.device_id)


__all__ = [
    "DEPTH_FOCAL_LENGTH_640",
    "MIN_DEPTH_MM",
    "MAX_DEPTH_MM",
    "project_to_depth",
    "SimulatedAudioSource",
    "SimulatedSensor",
    "SimulatedRegistry",
]
