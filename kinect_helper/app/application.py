"""Top-level coordinator: settings, notification hub, stream manager, watcher."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import Optional

import numpy as np

from ..config import HelperSettings
from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..device.protocol import AudioSource, SensorRegistry
from ..device.simulated import SimulatedAudioSource, SimulatedRegistry, SimulatedSensor
from ..domain import AudioChunk, StreamKind, StreamState
from ..services import NotificationHub
from .device_watcher import DeviceWatcher
from .stream_manager import StreamManager


def build_audio_source(settings: HelperSettings, logger: LoggerLike = None) -> AudioSource:
    if settings.audio_backend == "sounddevice":
        from ..device.sounddevice_source import SoundDeviceAudioSource

        return SoundDeviceAudioSource(settings.audio_device, logger=logger)
    return SimulatedAudioSource(logger=logger)


def build_simulated_registry(settings: HelperSettings, logger: LoggerLike = None) -> SimulatedRegistry:
    base = ensure_structured_logger(logger, fallback_name="Simulated")
    sensor = SimulatedSensor(
        fps=settings.fps,
        audio_source=build_audio_source(settings, base.getChild("Audio")),
        logger=base.getChild("Sensor"),
    )
    return SimulatedRegistry([sensor], logger=base.getChild("Registry"))


class KinectHelperApp:
    """Runs one helper session until its duration elapses or shutdown is requested."""

    def __init__(
        self,
        settings: HelperSettings,
        *,
        registry: SensorRegistry | None = None,
        logger: LoggerLike = None,
    ) -> None:
        self.settings = settings
        self.logger = ensure_structured_logger(logger, fallback_name="KinectHelper").getChild("App")
        self.hub = NotificationHub(self.logger.getChild("Notifications"))
        self.registry = registry or build_simulated_registry(settings, self.logger)
        self.manager = StreamManager(
            settings.selection(),
            self.hub,
            settings=settings,
            logger=self.logger.getChild("StreamManager"),
        )
        self.watcher = DeviceWatcher(self.registry, self.manager, logger=self.logger.getChild("DeviceWatcher"))
        self.shutdown_event = asyncio.Event()
        self.audio_level: float = 0.0
        self._unsubscribe = [
            self.hub.subscribe_state(self._on_state),
            self.hub.subscribe_audio(self._on_audio),
        ]

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        self.watcher.start()
        if self.settings.elevation is not None:
            self.manager.set_elevation(self.settings.elevation)

    def stop(self) -> None:
        self.watcher.stop()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.log_summary()

    async def run(self, duration: Optional[float] = None) -> None:
        duration = self.settings.duration if duration is None else duration
        await asyncio.to_thread(self.start)
        # Polling backs up the registry's push notifications.
        watch_task = asyncio.create_task(self.watcher.watch(self.settings.watch_interval))
        try:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=duration or None)
        finally:
            watch_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watch_task
            await asyncio.to_thread(self.stop)

    async def shutdown(self) -> None:
        self.shutdown_event.set()

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        def signal_handler():
            if not self.shutdown_event.is_set():
                asyncio.create_task(self.shutdown())

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, signal_handler)

    # ------------------------------------------------------------------
    # Subscribers

    def _on_state(self, state: StreamState) -> None:
        self.logger.info("Stream state: %s", state.value)

    def _on_audio(self, chunk: AudioChunk) -> None:
        samples = np.frombuffer(chunk.buffer, dtype="<i2", count=chunk.read_count // 2)
        if samples.size:
            self.audio_level = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)) / 32768.0)

    def log_summary(self) -> None:
        for kind in StreamKind:
            stats = self.manager.stats[kind]
            if not stats.delivered and not stats.dropped:
                continue
            self.logger.info("%-8s delivered=%d dropped=%d", kind.value, stats.delivered, stats.dropped)
        if self.manager.stats[StreamKind.AUDIO].delivered:
            self.logger.info("Last audio level %.3f (RMS, full scale 1.0)", self.audio_level)


__all__ = ["KinectHelperApp", "build_audio_source", "build_simulated_registry"]
