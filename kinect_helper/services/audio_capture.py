"""Dedicated audio reader thread.

The device's audio stream is read with blocking calls, so it runs on its own
thread and never shares the frame-callback context. Beam and source angles
arrive asynchronously from the device and are sampled at emit time without
synchronisation; a chunk may carry an angle that changed slightly before or
after it was captured.
"""

from __future__ import annotations

import threading
from typing import Callable

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..device.protocol import AudioStream
from ..domain import AudioChunk
from ..domain.constants import AUDIO_BUFFER_SIZE, AUDIO_POLLING_INTERVAL_MS

ChunkHandler = Callable[[AudioChunk], None]


class AudioCaptureLoop:
    """Read fixed-size chunks while running and hand each one to ``on_chunk``.

    Every non-empty read is emitted with the byte count actually read, which
    may be less than the buffer size. A zero-byte read is not emitted: the
    loop waits one polling interval and reads again.
    """

    def __init__(
        self,
        stream: AudioStream,
        on_chunk: ChunkHandler,
        *,
        buffer_size: int = AUDIO_BUFFER_SIZE,
        logger: LoggerLike = None,
        name: str = "AudioCapture",
    ) -> None:
        self._stream = stream
        self._on_chunk = on_chunk
        self._buffer = bytearray(max(1, int(buffer_size)))
        self._name = name
        self.logger = ensure_structured_logger(logger, fallback_name=name)
        # Held across the run-flag check and the emit so that stop() cannot
        # return while a chunk is being delivered.
        self._gate = threading.RLock()
        self._wake = threading.Event()
        self._running = False
        self._thread: threading.Thread | None = None
        self._beam_angle = 0.0
        self._source_angle = 0.0
        self._chunk_count = 0

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> None:
        with self._gate:
            if self._running:
                return
            self._running = True
            self._wake.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        self.logger.debug("Audio capture thread started (%d byte chunks)", len(self._buffer))

    def request_stop(self) -> None:
        """Clear the run flag without waiting; safe to call from a chunk handler."""
        self._running = False
        self._wake.set()

    def stop(self, timeout: float = 2.0) -> bool:
        """Clear the run flag, abort the stream and join the thread.

        Returns True once no further chunk can be emitted and the thread has
        exited (or, when called from a chunk handler, will exit as soon as the
        handler returns). False means the stream ignored the abort and the
        thread is still blocked in a read.
        """
        self.request_stop()
        thread = self._thread
        if thread is None:
            return True
        self._close_stream()
        if thread is threading.current_thread():
            self.logger.debug("Capture stopped from its own handler after %d chunks", self._chunk_count)
            return True

        if self._gate.acquire(timeout=timeout):
            self._gate.release()
        thread.join(timeout)
        if thread.is_alive():
            self.logger.warning("Audio capture thread still blocked in read after %.1fs", timeout)
            return False
        self._thread = None
        self.logger.debug("Audio capture thread joined after %d chunks", self._chunk_count)
        return True

    def _close_stream(self) -> None:
        try:
            self._stream.close()
        except Exception as exc:
            self.logger.warning("Audio stream close failed: %s", exc)

    # ------------------------------------------------------------------
    # Angle notifications (device context)

    def on_beam_angle_changed(self, angle: float) -> None:
        self._beam_angle = -angle

    def on_source_angle_changed(self, angle: float) -> None:
        self._source_angle = -angle

    # ------------------------------------------------------------------
    # Properties

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def beam_angle(self) -> float:
        return self._beam_angle

    @property
    def source_angle(self) -> float:
        return self._source_angle

    @property
    def chunk_count(self) -> int:
        return self._chunk_count

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    # ------------------------------------------------------------------
    # Thread body

    def _run(self) -> None:
        idle_sleep = AUDIO_POLLING_INTERVAL_MS / 1000.0
        while self._running:
            try:
                count = self._stream.readinto(self._buffer)
            except Exception as exc:
                if self._running:
                    self.logger.error("Audio read failed; capture loop exiting: %s", exc)
                break

            if not count:
                self._wake.wait(idle_sleep)
                continue

            with self._gate:
                if not self._running:
                    break
                self._chunk_count += 1
                chunk = AudioChunk(
                    buffer=self._buffer,
                    read_count=int(count),
                    beam_angle=self._beam_angle,
                    source_angle=self._source_angle,
                    chunk_number=self._chunk_count,
                )
                try:
                    self._on_chunk(chunk)
                except Exception:
                    self.logger.exception("Audio chunk handler failed")

        if self._thread is threading.current_thread():
            self._running = False


__all__ = ["AudioCaptureLoop", "ChunkHandler"]
