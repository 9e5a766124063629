"""Microphone audio source backed by sounddevice.

Opens a 16 kHz mono int16 input stream so chunks have the same layout as
the sensor's microphone array. A plain microphone has no beam forming, so the
angle handlers are accepted and never called.
"""

from __future__ import annotations

import sounddevice as sd

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..domain.constants import AUDIO_BYTES_PER_SAMPLE, AUDIO_SAMPLE_RATE
from .protocol import AngleHandler


class _RawStreamReader:
    def __init__(self, source: "SoundDeviceAudioSource", stream: sd.RawInputStream) -> None:
        self._source = source
        self._stream = stream
        self._closed = False

    def readinto(self, buffer: bytearray) -> int:
        if self._closed or self._source.stream is not self._stream:
            return 0
        frames = len(buffer) // AUDIO_BYTES_PER_SAMPLE
        data, overflowed = self._stream.read(frames)
        if overflowed:
            self._source.overflows += 1
            self._source.logger.debug("Input overflow (%d total)", self._source.overflows)
        count = len(data)
        buffer[:count] = data
        return count

    def close(self) -> None:
        """Abort the input stream so a pending ``read`` returns."""
        if self._closed:
            return
        self._closed = True
        if self._source.stream is not self._stream:
            return
        try:
            self._stream.abort()
        except sd.PortAudioError as exc:
            self._source.logger.debug("Stream abort error: %s", exc)


class SoundDeviceAudioSource:
    """Owns one sounddevice input stream."""

    def __init__(
        self,
        device: int | None = None,
        *,
        sample_rate: int = AUDIO_SAMPLE_RATE,
        logger: LoggerLike = None,
    ) -> None:
        self.device = device
        self.sample_rate = max(1, int(sample_rate))
        self.logger = ensure_structured_logger(logger, fallback_name="SoundDeviceAudio")
        self.stream: sd.RawInputStream | None = None
        self.overflows = 0

    def start(self) -> _RawStreamReader:
        if self.stream is not None:
            return _RawStreamReader(self, self.stream)
        try:
            stream = sd.RawInputStream(
                device=self.device,
                channels=1,
                samplerate=self.sample_rate,
                dtype="int16",
                blocksize=0,
            )
            stream.start()
        except Exception as exc:
            self.logger.error("Failed to open input device %s: %s", self.device, exc)
            raise
        self.stream = stream
        self.logger.info("Input stream started (%d Hz, device=%s)", self.sample_rate, self.device)
        return _RawStreamReader(self, stream)

    def stop(self) -> None:
        stream = self.stream
        if stream is None:
            return
        self.stream = None
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            self.logger.debug("Stream close error: %s", exc)
        self.logger.info("Input stream stopped")

    def add_beam_angle_handler(self, handler: AngleHandler) -> None:
        pass

    def remove_beam_angle_handler(self, handler: AngleHandler) -> None:
        pass

    def add_source_angle_handler(self, handler: AngleHandler) -> None:
        pass

    def remove_source_angle_handler(self, handler: AngleHandler) -> None:
        pass


__all__ = ["SoundDeviceAudioSource"]
