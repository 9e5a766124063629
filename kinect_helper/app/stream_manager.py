"""Stream lifecycle for the single live sensor session.

States run IDLE -> STARTING -> RUNNING -> STOPPING -> IDLE. Every lifecycle
change holds ``_lock`` across the whole stop + start sequence. Frame callbacks
from the device thread only try the lock: while a reconfiguration owns it the
frame is dropped and counted, so ``device.stop()`` can join the frame thread
without deadlocking on a callback that is waiting for the lock.
"""

from __future__ import annotations

import contextlib
import threading
from typing import Iterator, Mapping

import numpy as np

from ..config import HelperSettings, parse_color
from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..device.protocol import (
    AudioSource,
    RawColorFrame,
    RawDepthFrame,
    RawSkeletonFrame,
    SensorDevice,
)
from ..domain import (
    DEPTH_640x480,
    AudioChunk,
    ColorFrameReady,
    DepthFrameReady,
    DeviceSession,
    Skeleton,
    SkeletonFrameReady,
    StreamKind,
    StreamLifecycleError,
    StreamSelection,
    StreamState,
    StreamStats,
    TrackingMode,
    color_format_for,
    empty_stats,
)
from ..domain.constants import DROP_WARNING_INTERVAL
from ..services import (
    AudioCaptureLoop,
    CoordinateMapper,
    FrameConverter,
    NotificationHub,
    RenderScene,
    SkeletonRenderer,
)

_VIDEO_KINDS = (StreamKind.COLOR, StreamKind.DEPTH, StreamKind.SKELETON)


class StreamManager:
    """Owns the device handle and turns its frame events into notifications."""

    def __init__(
        self,
        selection: StreamSelection,
        hub: NotificationHub,
        *,
        settings: HelperSettings | None = None,
        logger: LoggerLike = None,
    ) -> None:
        self.settings = settings or HelperSettings()
        self.logger = ensure_structured_logger(logger, fallback_name="StreamManager")
        self._hub = hub
        self._selection = selection
        self._lock = threading.RLock()
        self._local = threading.local()
        self._state = StreamState.IDLE
        self._device: SensorDevice | None = None
        self._session: DeviceSession | None = None
        self._tracking_mode = self.settings.tracking_mode
        self._stats: dict[StreamKind, StreamStats] = empty_stats()

        self._converter = FrameConverter()
        self._mapper = CoordinateMapper(
            lambda: self._device,
            DEPTH_640x480,
            logger=self.logger.getChild("CoordinateMapper"),
        )
        self._renderer = SkeletonRenderer(self._mapper, background=self.settings.background_color())
        self._scene: RenderScene | None = None
        self._skeletons: tuple[Skeleton, ...] = ()

        self._audio_source: AudioSource | None = None
        self._audio_loop: AudioCaptureLoop | None = None

    # ------------------------------------------------------------------
    # Read-only views

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def device(self) -> SensorDevice | None:
        return self._device

    @property
    def selection(self) -> StreamSelection:
        return self._selection

    @property
    def session(self) -> DeviceSession | None:
        return self._session

    @property
    def point_mapper(self) -> CoordinateMapper:
        return self._mapper

    @property
    def stats(self) -> Mapping[StreamKind, StreamStats]:
        return self._stats

    @property
    def color_image(self) -> np.ndarray | None:
        return self._converter.color_image

    @property
    def depth_image(self) -> np.ndarray | None:
        return self._converter.depth_image

    @property
    def scene(self) -> RenderScene | None:
        return self._scene

    @property
    def background(self) -> tuple[int, int, int]:
        return self._renderer.background

    # ------------------------------------------------------------------
    # Lifecycle

    def reconfigure(self, device: SensorDevice | None) -> None:
        """Stop the current device (if any) and start ``device`` (if not None)."""

        self._guard_lifecycle_call("reconfigure")
        with self._lock:
            if device is not self._device:
                self._stop_current()
                if device is not None:
                    self._start(device)
            # Every reconfigure leaves a live device level.
            if self._session is not None and self.settings.reset_angle_on_startup:
                self.set_elevation(0)

    def update_selection(self, selection: StreamSelection) -> None:
        """Swap the stream selection; a live session is fully restarted."""

        self._guard_lifecycle_call("update_selection")
        with self._lock:
            if selection == self._selection:
                return
            device = self._device
            self._stop_current()
            self._selection = selection
            self.logger.info("Stream selection now %s", [kind.value for kind in selection.enabled_kinds()])
            if device is not None:
                self._start(device)

    def shutdown(self) -> None:
        self._guard_lifecycle_call("shutdown")
        self.reconfigure(None)

    # ------------------------------------------------------------------
    # Live controls

    def set_elevation(self, angle: int) -> int | None:
        """Clamp ``angle`` to the device range and apply it; failures are logged only."""

        session = self._session
        if session is None:
            self.logger.debug("Elevation %s ignored: no active device", angle)
            return None
        clamped = max(session.min_elevation, min(session.max_elevation, int(angle)))
        if clamped != angle:
            self.logger.debug("Elevation %s clamped to %d", angle, clamped)
        try:
            session.device.elevation_angle = clamped
        except Exception as exc:
            self.logger.warning("Could not apply elevation %d: %s", clamped, exc)
            return clamped
        session.elevation_angle = clamped
        self.logger.info("Elevation set to %d", clamped)
        return clamped

    def set_tracking_mode(self, seated: bool) -> None:
        session = self._session
        if session is None:
            return
        mode = TrackingMode.SEATED if seated else TrackingMode.DEFAULT
        try:
            session.device.tracking_mode = mode
        except Exception as exc:
            self.logger.warning("Could not switch tracking mode to %s: %s", mode.value, exc)
            return
        session.tracking_mode = mode
        self._tracking_mode = mode
        self.logger.info("Tracking mode set to %s", mode.value)

    def change_background(self, color) -> None:
        """Takes effect on the next skeleton frame."""
        self._renderer.background = parse_color(color)

    # ------------------------------------------------------------------
    # Start / stop sequences (caller holds _lock)

    def _start(self, device: SensorDevice) -> bool:
        kinds = self._selection.enabled_kinds()
        self._device = device
        self._set_state(StreamState.STARTING)
        self.logger.info(
            "Starting %s with %s",
            getattr(device, "device_id", device),
            [kind.value for kind in kinds] or "no streams",
        )
        try:
            if StreamKind.COLOR in kinds:
                fmt = color_format_for(self._selection.color_mode)
                self._converter.allocate_color(device.enable_stream(StreamKind.COLOR, fmt))
                device.add_frame_handler(StreamKind.COLOR, self._on_color_frame)
            if StreamKind.DEPTH in kinds:
                self._converter.allocate_depth(device.enable_stream(StreamKind.DEPTH, DEPTH_640x480))
                device.add_frame_handler(StreamKind.DEPTH, self._on_depth_frame)
            if StreamKind.SKELETON in kinds:
                device.enable_stream(StreamKind.SKELETON)
                device.tracking_mode = self._tracking_mode
                self._skeletons = tuple(Skeleton.not_tracked() for _ in range(device.skeleton_array_length))
                device.add_frame_handler(StreamKind.SKELETON, self._on_skeleton_frame)

            device.start()

            if StreamKind.AUDIO in kinds:
                self._start_audio(device)
        except Exception as exc:
            self.logger.error("Could not start %s: %s", getattr(device, "device_id", device), exc)
            self._stop_current()
            return False

        self._session = DeviceSession(
            device=device,
            min_elevation=device.min_elevation_angle,
            max_elevation=device.max_elevation_angle,
            elevation_angle=device.elevation_angle,
            tracking_mode=self._tracking_mode,
        )
        self._set_state(StreamState.RUNNING)
        return True

    def _stop_current(self) -> None:
        device = self._device
        if device is None:
            return
        self._set_state(StreamState.STOPPING)
        handlers = {
            StreamKind.COLOR: self._on_color_frame,
            StreamKind.DEPTH: self._on_depth_frame,
            StreamKind.SKELETON: self._on_skeleton_frame,
        }
        enabled = self._selection.enabled_kinds()
        for kind in _VIDEO_KINDS:
            if kind not in enabled:
                continue
            try:
                device.remove_frame_handler(kind, handlers[kind])
                device.disable_stream(kind)
            except Exception as exc:
                self.logger.warning("Could not disable %s stream: %s", kind.value, exc)

        self._stop_audio()

        try:
            device.stop()
        except Exception as exc:
            self.logger.warning("Device stop failed: %s", exc)

        self._converter.release()
        self._skeletons = ()
        self._scene = None
        self._session = None
        self._device = None
        self._set_state(StreamState.IDLE)
        self.logger.info("Device %s stopped", getattr(device, "device_id", device))

    def _start_audio(self, device: SensorDevice) -> None:
        source = device.audio_source
        stream = source.start()
        loop = AudioCaptureLoop(stream, self._on_audio_chunk, logger=self.logger.getChild("AudioCapture"))
        source.add_beam_angle_handler(loop.on_beam_angle_changed)
        source.add_source_angle_handler(loop.on_source_angle_changed)
        self._audio_source = source
        self._audio_loop = loop
        loop.start()

    def _stop_audio(self) -> None:
        loop, source = self._audio_loop, self._audio_source
        self._audio_loop = None
        self._audio_source = None
        if loop is None:
            return
        loop.request_stop()
        if source is not None:
            try:
                source.remove_beam_angle_handler(loop.on_beam_angle_changed)
                source.remove_source_angle_handler(loop.on_source_angle_changed)
                source.stop()
            except Exception as exc:
                self.logger.warning("Audio source stop failed: %s", exc)
        loop.stop(self.settings.audio_join_timeout)

    # ------------------------------------------------------------------
    # Frame handlers (device context)

    def _on_color_frame(self, frame: RawColorFrame | None) -> None:
        if not self._lock.acquire(blocking=False):
            self._record_drop(StreamKind.COLOR, "reconfiguration in progress")
            return
        try:
            if frame is None or self._state is not StreamState.RUNNING:
                self._record_drop(StreamKind.COLOR, "frame unavailable")
                return
            try:
                pixels = self._converter.convert_color(frame.pixels)
            except (RuntimeError, ValueError) as exc:
                self._record_drop(StreamKind.COLOR, str(exc))
                return
            number = self._stats[StreamKind.COLOR].record_delivery()
            payload = ColorFrameReady(
                pixels=pixels,
                width=frame.width,
                height=frame.height,
                bytes_per_pixel=frame.bytes_per_pixel,
                color_mode=self._selection.color_mode,
                frame_number=number,
            )
            with self._dispatching():
                self._hub.publish_color(payload)
        finally:
            self._lock.release()

    def _on_depth_frame(self, frame: RawDepthFrame | None) -> None:
        if not self._lock.acquire(blocking=False):
            self._record_drop(StreamKind.DEPTH, "reconfiguration in progress")
            return
        try:
            if frame is None or self._state is not StreamState.RUNNING:
                self._record_drop(StreamKind.DEPTH, "frame unavailable")
                return
            try:
                samples, intensity = self._converter.convert_depth(frame.samples, frame.min_depth, frame.max_depth)
            except (RuntimeError, ValueError) as exc:
                self._record_drop(StreamKind.DEPTH, str(exc))
                return
            number = self._stats[StreamKind.DEPTH].record_delivery()
            payload = DepthFrameReady(
                samples=samples,
                intensity=intensity,
                min_depth=frame.min_depth,
                max_depth=frame.max_depth,
                frame_number=number,
            )
            with self._dispatching():
                self._hub.publish_depth(payload)
        finally:
            self._lock.release()

    def _on_skeleton_frame(self, frame: RawSkeletonFrame | None) -> None:
        if not self._lock.acquire(blocking=False):
            self._record_drop(StreamKind.SKELETON, "reconfiguration in progress")
            return
        try:
            if frame is None or self._state is not StreamState.RUNNING:
                self._record_drop(StreamKind.SKELETON, "frame unavailable")
                return
            self._skeletons = tuple(frame.skeletons)
            scene = self._renderer.render(self._skeletons)
            self._scene = scene
            number = self._stats[StreamKind.SKELETON].record_delivery()
            with self._dispatching():
                self._hub.publish_skeleton(SkeletonFrameReady(self._skeletons, number))
                self._hub.publish_scene(scene)
        finally:
            self._lock.release()

    def _on_audio_chunk(self, chunk: AudioChunk) -> None:
        self._stats[StreamKind.AUDIO].record_delivery()
        with self._dispatching():
            self._hub.publish_audio(chunk)

    # ------------------------------------------------------------------
    # Helpers

    def _record_drop(self, kind: StreamKind, reason: str) -> None:
        dropped = self._stats[kind].record_drop()
        self.logger.debug("%s frame dropped: %s", kind.value, reason)
        if dropped % DROP_WARNING_INTERVAL == 0:
            self.logger.warning("%d %s frames dropped so far", dropped, kind.value)

    def _set_state(self, state: StreamState) -> None:
        if state is self._state:
            return
        self.logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        with self._dispatching():
            self._hub.publish_state(state)

    @contextlib.contextmanager
    def _dispatching(self) -> Iterator[None]:
        previous = getattr(self._local, "dispatching", False)
        self._local.dispatching = True
        try:
            yield
        finally:
            self._local.dispatching = previous

    def _guard_lifecycle_call(self, operation: str) -> None:
        if getattr(self._local, "dispatching", False):
            raise StreamLifecycleError(f"{operation}() cannot be called from inside a notification")


__all__ = ["StreamManager"]
