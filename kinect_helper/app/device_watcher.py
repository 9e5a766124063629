"""Keeps the stream manager pointed at a connected sensor.

Registries that push status changes are handled through ``start()``. For ones
that cannot, ``watch()`` polls the sensor list and synthesizes the same events
whenever a sensor's status changes or it disappears.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..device.protocol import SensorDevice, SensorRegistry, StatusChangedEvent, first_connected
from ..domain import DeviceStatus
from .stream_manager import StreamManager


class DeviceWatcher:
    """Owns the single status subscription for the helper's lifetime.

    Usage:
        watcher = DeviceWatcher(registry, manager)
        watcher.start()
        # ... sensors come and go, the manager follows
        watcher.stop()
    """

    DEFAULT_CHECK_INTERVAL = 1.0

    def __init__(self, registry: SensorRegistry, manager: StreamManager, *, logger: LoggerLike = None) -> None:
        self.registry = registry
        self.manager = manager
        self.logger = ensure_structured_logger(logger, fallback_name="DeviceWatcher")
        self._subscribed = False
        self._watching = False
        self._last_status: dict[SensorDevice, DeviceStatus] = {}
        self._seeded = False

    @property
    def is_running(self) -> bool:
        return self._subscribed or self._watching

    def start(self) -> None:
        """Subscribe to status changes and adopt the first connected sensor."""
        if self._subscribed:
            return
        self.registry.add_status_handler(self.handle_status_change)
        self._subscribed = True
        self._adopt_first_connected()

    def stop(self) -> None:
        """Drop the subscription and shut the manager down."""
        if self._subscribed:
            self.registry.remove_status_handler(self.handle_status_change)
            self._subscribed = False
        self._watching = False
        self.manager.shutdown()
        self.logger.info("Device watcher stopped")

    def handle_status_change(self, event: StatusChangedEvent) -> None:
        current = self.manager.device
        device_id = getattr(event.device, "device_id", event.device)

        if event.status is DeviceStatus.CONNECTED:
            if event.device is not current:
                self.logger.info("Sensor %s connected; switching to it", device_id)
                self.manager.reconfigure(event.device)
            return

        if event.device is current:
            self.logger.warning("Active sensor %s is now %s", device_id, event.status.value)
            self.manager.reconfigure(None)
            self._adopt_first_connected()
        else:
            self.logger.debug("Inactive sensor %s is now %s", device_id, event.status.value)

    # ------------------------------------------------------------------
    # Polling fallback

    def poll(self) -> int:
        """Compare current sensor statuses with the last poll; returns events handled."""

        sensors = list(self.registry.sensors())
        if not self._seeded:
            self._seeded = True
            self._last_status = {device: device.status for device in sensors}
            if self.manager.device is None:
                self._adopt_first_connected()
            return 0

        events: list[StatusChangedEvent] = []
        for device in sensors:
            if self._last_status.get(device) is not device.status:
                events.append(StatusChangedEvent(device, device.status))
        for device in list(self._last_status):
            if device not in sensors:
                del self._last_status[device]
                if device is self.manager.device:
                    events.append(StatusChangedEvent(device, DeviceStatus.DISCONNECTED))

        for event in events:
            self.handle_status_change(event)
        for device in sensors:
            self._last_status[device] = device.status
        return len(events)

    async def watch(self, interval: float = DEFAULT_CHECK_INTERVAL) -> None:
        """Poll until cancelled or ``stop()``; blocking manager calls run in a worker thread."""

        self._watching = True
        self.logger.info("Polling sensors every %.2fs", interval)
        try:
            while self._watching:
                try:
                    await asyncio.to_thread(self.poll)
                except Exception as exc:
                    self.logger.error("Sensor poll failed: %s", exc)
                await asyncio.sleep(interval)
        finally:
            self._watching = False

    # ------------------------------------------------------------------
    # Helpers

    def _adopt_first_connected(self) -> Optional[SensorDevice]:
        device = first_connected(self.registry.sensors())
        if device is None:
            self.logger.info("No connected sensor; waiting for one")
            return None
        self.manager.reconfigure(device)
        return device


__all__ = ["DeviceWatcher"]
