"""Typed subscriber channels, one per notification kind.

Delivery is synchronous in the producing context (device callback thread or
audio thread), so each subscriber sees every notification of a kind exactly
once and in order. Ordering across kinds is not defined.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Generic, TypeVar

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..domain import AudioChunk, ColorFrameReady, DepthFrameReady, SkeletonFrameReady, StreamState

T = TypeVar("T")
Unsubscribe = Callable[[], None]


class Channel(Generic[T]):
    """Ordered list of callbacks for one payload type."""

    def __init__(self, name: str, logger: LoggerLike) -> None:
        self.name = name
        self.logger = ensure_structured_logger(logger)
        self._lock = threading.Lock()
        self._subscribers: tuple[Callable[[T], None], ...] = ()
        self._failures = 0

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers = self._subscribers + (callback,)
        self.logger.debug("%s subscriber added (total: %d)", self.name, len(self._subscribers))
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[[T], None]) -> None:
        with self._lock:
            self._subscribers = tuple(cb for cb in self._subscribers if cb != callback)

    def publish(self, payload: T) -> None:
        for callback in self._subscribers:
            try:
                callback(payload)
            except Exception:
                self._failures += 1
                self.logger.exception("%s subscriber %r failed", self.name, callback)

    def __len__(self) -> int:
        return len(self._subscribers)


class NotificationHub:
    """Subscriber boundary: frames, audio chunks, scenes and lifecycle state."""

    def __init__(self, logger: LoggerLike = None) -> None:
        self.logger = ensure_structured_logger(logger, fallback_name="Notifications")
        self.color: Channel[ColorFrameReady] = Channel("color", self.logger)
        self.depth: Channel[DepthFrameReady] = Channel("depth", self.logger)
        self.skeleton: Channel[SkeletonFrameReady] = Channel("skeleton", self.logger)
        self.audio: Channel[AudioChunk] = Channel("audio", self.logger)
        self.scene: Channel[Any] = Channel("scene", self.logger)
        self.state: Channel[StreamState] = Channel("state", self.logger)

    def subscribe_color(self, callback: Callable[[ColorFrameReady], None]) -> Unsubscribe:
        return self.color.subscribe(callback)

    def subscribe_depth(self, callback: Callable[[DepthFrameReady], None]) -> Unsubscribe:
        return self.depth.subscribe(callback)

    def subscribe_skeleton(self, callback: Callable[[SkeletonFrameReady], None]) -> Unsubscribe:
        return self.skeleton.subscribe(callback)

    def subscribe_audio(self, callback: Callable[[AudioChunk], None]) -> Unsubscribe:
        return self.audio.subscribe(callback)

    def subscribe_scene(self, callback: Callable[[Any], None]) -> Unsubscribe:
        return self.scene.subscribe(callback)

    def subscribe_state(self, callback: Callable[[StreamState], None]) -> Unsubscribe:
        return self.state.subscribe(callback)

    # ------------------------------------------------------------------
    # Producer side

    def publish_color(self, payload: ColorFrameReady) -> None:
        self.color.publish(payload)

    def publish_depth(self, payload: DepthFrameReady) -> None:
        self.depth.publish(payload)

    def publish_skeleton(self, payload: SkeletonFrameReady) -> None:
        self.skeleton.publish(payload)

    def publish_audio(self, payload: AudioChunk) -> None:
        self.audio.publish(payload)

    def publish_scene(self, scene: Any) -> None:
        self.scene.publish(scene)

    def publish_state(self, state: StreamState) -> None:
        self.state.publish(state)


__all__ = ["Channel", "NotificationHub", "Unsubscribe"]
