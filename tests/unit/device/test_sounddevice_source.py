"""Tests for the sounddevice microphone source with the stream class mocked."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

try:
    from kinect_helper.device import sounddevice_source
except OSError as exc:  # PortAudio shared library missing
    pytest.skip(f"sounddevice unavailable: {exc}", allow_module_level=True)

from kinect_helper.domain.constants import AUDIO_BUFFER_SIZE


@pytest.fixture
def raw_stream():
    stream = MagicMock()
    stream.read.return_value = (b"\x01\x02" * (AUDIO_BUFFER_SIZE // 2), False)
    with patch.object(sounddevice_source.sd, "RawInputStream", return_value=stream) as factory:
        yield factory, stream


class TestSoundDeviceAudioSource:
    """Opening, reading and closing the input stream."""

    def test_opens_16khz_mono_int16(self, raw_stream):
        factory, stream = raw_stream
        source = sounddevice_source.SoundDeviceAudioSource(device=3)
        source.start()
        kwargs = factory.call_args.kwargs
        assert kwargs["samplerate"] == 16000
        assert kwargs["channels"] == 1
        assert kwargs["dtype"] == "int16"
        assert kwargs["device"] == 3
        stream.start.assert_called_once()

    def test_readinto_fills_buffer(self, raw_stream):
        _, stream = raw_stream
        reader = sounddevice_source.SoundDeviceAudioSource().start()
        buffer = bytearray(AUDIO_BUFFER_SIZE)
        assert reader.readinto(buffer) == AUDIO_BUFFER_SIZE
        stream.read.assert_called_once_with(AUDIO_BUFFER_SIZE // 2)
        assert buffer[:2] == b"\x01\x02"

    def test_overflow_counted(self, raw_stream):
        _, stream = raw_stream
        stream.read.return_value = (b"\x00\x00", True)
        source = sounddevice_source.SoundDeviceAudioSource()
        source.start().readinto(bytearray(AUDIO_BUFFER_SIZE))
        assert source.overflows == 1

    def test_stop_closes_stream_and_ends_reads(self, raw_stream):
        _, stream = raw_stream
        source = sounddevice_source.SoundDeviceAudioSource()
        reader = source.start()
        source.stop()
        stream.stop.assert_called_once()
        stream.close.assert_called_once()
        assert reader.readinto(bytearray(AUDIO_BUFFER_SIZE)) == 0

    def test_close_aborts_pending_read(self, raw_stream):
        _, stream = raw_stream
        reader = sounddevice_source.SoundDeviceAudioSource().start()
        reader.close()
        reader.close()
        stream.abort.assert_called_once()
        assert reader.readinto(bytearray(AUDIO_BUFFER_SIZE)) == 0
        stream.read.assert_not_called()

    def test_close_after_source_stop_leaves_stream_alone(self, raw_stream):
        _, stream = raw_stream
        source = sounddevice_source.SoundDeviceAudioSource()
        reader = source.start()
        source.stop()
        reader.close()
        stream.abort.assert_not_called()

    def test_open_failure_propagates(self):
        with patch.object(sounddevice_source.sd, "RawInputStream", side_effect=RuntimeError("no device")):
            with pytest.raises(RuntimeError):
                sounddevice_source.SoundDeviceAudioSource().start()
