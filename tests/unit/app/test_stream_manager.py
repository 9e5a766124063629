"""Unit tests for the StreamManager lifecycle state machine.

Fake sensors deliver frames synchronously in the test thread; the shared
call log records the exact order of device calls across sensors A and B.
"""

from __future__ import annotations

import threading

import numpy as np
import pytest

from kinect_helper.device.protocol import RawColorFrame, RawDepthFrame, RawSkeletonFrame
from kinect_helper.domain import (
    DEPTH_PIXEL_DTYPE,
    INFRARED_640x480,
    RGB_640x480,
    ColorMode,
    Skeleton,
    SkeletonPoint,
    SkeletonTrackingState,
    StreamKind,
    StreamLifecycleError,
    StreamSelection,
    StreamState,
    TrackingMode,
    constants as c,
)
from kinect_helper.services import RenderScene

COLOR, DEPTH, SKELETON, AUDIO = StreamKind.COLOR, StreamKind.DEPTH, StreamKind.SKELETON, StreamKind.AUDIO


def _color_frame(sensor, value: int = 9) -> RawColorFrame:
    return RawColorFrame(np.full(sensor.width * sensor.height * 4, value, dtype=np.uint8), sensor.width, sensor.height, 4)


def _depth_frame(sensor, depth: int = 1000) -> RawDepthFrame:
    samples = np.zeros(sensor.width * sensor.height, dtype=DEPTH_PIXEL_DTYPE)
    samples["depth"] = depth
    return RawDepthFrame(samples, sensor.width, sensor.height, 800, 4000)


def _skeleton_frame() -> RawSkeletonFrame:
    center = Skeleton(SkeletonTrackingState.POSITION_ONLY, SkeletonPoint(1.0, 1.0, 2.0))
    return RawSkeletonFrame([center] + [Skeleton.not_tracked()] * 5)


# =============================================================================
# Start / stop sequences
# =============================================================================

class TestLifecycle:
    """reconfigure(), shutdown() and the state machine."""

    def test_initial_state(self, make_manager):
        manager = make_manager()
        assert manager.state is StreamState.IDLE
        assert manager.device is None
        assert manager.session is None
        assert manager.color_image is None

    def test_start_sequence_order(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(color=True, depth=True, skeleton=True, audio=True))
        manager.reconfigure(sensor_a)

        calls = sensor_a.log.for_device("A")
        names = [call for call, _ in calls]
        assert names.index("start") > max(i for i, (call, _) in enumerate(calls) if call == "enable")
        assert names.index("audio_start") > names.index("start")
        assert [arg for call, arg in calls if call == "enable"] == [COLOR, DEPTH, SKELETON]
        assert manager.state is StreamState.RUNNING
        assert manager.device is sensor_a

    def test_stop_sequence_order(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(color=True, depth=True, skeleton=True, audio=True))
        manager.reconfigure(sensor_a)
        sensor_a.log.calls.clear()

        manager.shutdown()

        names = [(call, arg) for call, arg in sensor_a.log.for_device("A")]
        assert names == [
            ("remove_handler", COLOR),
            ("disable", COLOR),
            ("remove_handler", DEPTH),
            ("disable", DEPTH),
            ("remove_handler", SKELETON),
            ("disable", SKELETON),
            ("audio_stop", None),
            ("stop", None),
        ]
        assert manager.state is StreamState.IDLE
        assert manager.device is None
        assert manager.color_image is None

    def test_only_selected_streams_enabled(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(depth=True))
        manager.reconfigure(sensor_a)
        assert set(sensor_a.formats) == {DEPTH}
        assert manager.color_image is None
        assert manager.depth_image.shape == (sensor_a.height, sensor_a.width, 4)

    def test_infrared_uses_infrared_format(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(color=True, infrared=True))
        manager.reconfigure(sensor_a)
        assert sensor_a.formats[COLOR] == INFRARED_640x480
        assert manager.color_image.shape == (sensor_a.height, sensor_a.width, 2)

    def test_rgb_format(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(color=True))
        manager.reconfigure(sensor_a)
        assert sensor_a.formats[COLOR] == RGB_640x480

    def test_reconfigure_same_device_keeps_session(self, make_manager, sensor_a):
        """Re-selecting the active sensor does not restart it but levels it again."""
        manager = make_manager()
        manager.reconfigure(sensor_a)
        manager.set_elevation(15)
        sensor_a.log.calls.clear()

        manager.reconfigure(sensor_a)

        assert sensor_a.log.for_device("A") == [("elevation", 0)]
        assert sensor_a.applied_elevations == [0, 15, 0]
        assert manager.session.elevation_angle == 0
        assert manager.state is StreamState.RUNNING

    def test_reconfigure_same_device_without_reset(self, make_manager, sensor_a):
        manager = make_manager(reset_angle_on_startup=False)
        manager.reconfigure(sensor_a)
        manager.set_elevation(15)
        manager.reconfigure(sensor_a)
        assert sensor_a.applied_elevations == [15]

    def test_startup_reset_runs_under_lifecycle_lock(self, make_manager, sensor_a):
        """The level-on-startup call cannot interleave with another reconfigure."""
        manager = make_manager()
        acquired_elsewhere: list[bool] = []

        def check_lock(value):
            def try_acquire():
                got = manager._lock.acquire(blocking=False)
                if got:
                    manager._lock.release()
                acquired_elsewhere.append(got)

            worker = threading.Thread(target=try_acquire)
            worker.start()
            worker.join(2.0)

        sensor_a.on_elevation = check_lock
        manager.reconfigure(sensor_a)
        assert acquired_elsewhere == [False]

    def test_reconfigure_disables_old_before_enabling_new(self, make_manager, sensor_a, sensor_b, call_log):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        manager.reconfigure(sensor_b)

        for kind in (COLOR, DEPTH, SKELETON):
            assert call_log.index("A", "remove_handler", kind) < call_log.index("B", "enable", kind)
            assert call_log.index("A", "disable", kind) < call_log.index("B", "enable", kind)
        assert call_log.index("A", "stop") < call_log.index("B", "enable", COLOR)
        assert sensor_a.handlers[COLOR] == []
        assert manager.device is sensor_b

    def test_old_device_frames_ignored_after_switch(self, make_manager, sensor_a, sensor_b, hub):
        manager = make_manager()
        frames = []
        hub.subscribe_color(frames.append)
        manager.reconfigure(sensor_a)
        manager.reconfigure(sensor_b)
        sensor_a.emit(COLOR, _color_frame(sensor_a))
        assert frames == []

    def test_states_published(self, make_manager, sensor_a, hub):
        states = []
        hub.subscribe_state(states.append)
        manager = make_manager()
        manager.reconfigure(sensor_a)
        manager.shutdown()
        assert states == [StreamState.STARTING, StreamState.RUNNING, StreamState.STOPPING, StreamState.IDLE]

    def test_start_failure_returns_to_idle(self, make_manager, sensor_a):
        sensor_a.fail_start = True
        manager = make_manager()
        manager.reconfigure(sensor_a)
        assert manager.state is StreamState.IDLE
        assert manager.device is None
        assert sensor_a.handlers[COLOR] == []

    def test_reset_angle_on_startup(self, make_manager, sensor_a):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        assert sensor_a.applied_elevations == [0]

    def test_reset_angle_disabled(self, make_manager, sensor_a):
        manager = make_manager(reset_angle_on_startup=False)
        manager.reconfigure(sensor_a)
        assert sensor_a.applied_elevations == []

    def test_update_selection_restarts(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(color=True))
        manager.reconfigure(sensor_a)
        sensor_a.log.calls.clear()

        manager.update_selection(StreamSelection(depth=True))

        names = [(call, arg) for call, arg in sensor_a.log.for_device("A")]
        assert names.index(("disable", COLOR)) < names.index(("enable", DEPTH))
        assert manager.selection == StreamSelection(depth=True)
        assert manager.state is StreamState.RUNNING
        assert set(sensor_a.formats) == {DEPTH}

    def test_update_selection_without_device(self, make_manager):
        manager = make_manager()
        manager.update_selection(StreamSelection(audio=True))
        assert manager.selection.audio is True
        assert manager.state is StreamState.IDLE


# =============================================================================
# Live controls
# =============================================================================

class TestControls:
    """Elevation, tracking mode and background."""

    @pytest.mark.parametrize("requested, applied", [(100, 27), (-50, -27), (10, 10), (27, 27), (-27, -27)])
    def test_elevation_clamped(self, make_manager, sensor_a, requested, applied):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        assert manager.set_elevation(requested) == applied
        assert sensor_a.elevation_angle == applied
        assert manager.session.elevation_angle == applied

    def test_elevation_without_device(self, make_manager):
        assert make_manager().set_elevation(5) is None

    def test_elevation_failure_is_absorbed(self, make_manager, sensor_a):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        manager.set_elevation(5)
        sensor_a.elevation_error = OSError("motor stalled")

        assert manager.set_elevation(12) == 12
        assert sensor_a.elevation_angle == 5
        assert manager.session.elevation_angle == 5

    def test_tracking_mode_noop_without_device(self, make_manager, sensor_a):
        manager = make_manager()
        manager.set_tracking_mode(True)
        manager.reconfigure(sensor_a)
        assert sensor_a.tracking_mode is TrackingMode.DEFAULT

    def test_tracking_mode_applied_to_live_device(self, make_manager, sensor_a):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        manager.set_tracking_mode(True)
        assert sensor_a.tracking_mode is TrackingMode.SEATED
        assert manager.session.tracking_mode is TrackingMode.SEATED
        manager.set_tracking_mode(False)
        assert sensor_a.tracking_mode is TrackingMode.DEFAULT

    def test_seated_setting_applied_on_start(self, make_manager, sensor_a):
        manager = make_manager(seated=True)
        manager.reconfigure(sensor_a)
        assert sensor_a.tracking_mode is TrackingMode.SEATED

    def test_change_background_used_by_next_scene(self, make_manager, sensor_a):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        sensor_a.emit(SKELETON, _skeleton_frame())
        before = manager.scene

        manager.change_background("black")
        assert manager.scene is before
        sensor_a.emit(SKELETON, _skeleton_frame())
        assert before.background == c.WHITE
        assert manager.scene.background == c.BLACK


# =============================================================================
# Frame handling
# =============================================================================

class TestFrames:
    """Per-frame conversion, publication and dropped-frame handling."""

    def test_color_frame_published(self, make_manager, sensor_a, hub):
        manager = make_manager()
        frames = []
        hub.subscribe_color(frames.append)
        manager.reconfigure(sensor_a)
        sensor_a.emit(COLOR, _color_frame(sensor_a, 9))
        sensor_a.emit(COLOR, _color_frame(sensor_a, 10))

        assert [f.frame_number for f in frames] == [1, 2]
        assert frames[0].color_mode is ColorMode.RGB
        assert (manager.color_image == 10).all()
        assert manager.stats[COLOR].delivered == 2

    def test_depth_frame_published(self, make_manager, sensor_a, hub):
        manager = make_manager()
        frames = []
        hub.subscribe_depth(frames.append)
        manager.reconfigure(sensor_a)
        sensor_a.emit(DEPTH, _depth_frame(sensor_a, 1000))

        assert len(frames) == 1
        assert (frames[0].intensity[..., :3] == 1000 & 0xFF).all()
        assert frames[0].samples["depth"][0] == 1000
        assert frames[0].intensity is manager.depth_image

    def test_skeleton_frame_renders_scene(self, make_manager, sensor_a, hub):
        manager = make_manager()
        skeletons, scenes = [], []
        hub.subscribe_skeleton(skeletons.append)
        hub.subscribe_scene(scenes.append)
        manager.reconfigure(sensor_a)
        sensor_a.emit(SKELETON, _skeleton_frame())

        assert len(skeletons[0].skeletons) == 6
        assert isinstance(scenes[0], RenderScene)
        assert scenes[0] is manager.scene
        # one center marker, mapped through the fake device (x * 100, y * 100)
        assert scenes[0].ellipses()[0].center.x == 100.0

    def test_none_frame_is_dropped(self, make_manager, sensor_a, hub):
        manager = make_manager()
        frames = []
        hub.subscribe_color(frames.append)
        manager.reconfigure(sensor_a)
        sensor_a.emit(COLOR, None)
        sensor_a.emit(COLOR, _color_frame(sensor_a))

        assert len(frames) == 1
        assert manager.stats[COLOR].dropped == 1
        assert manager.state is StreamState.RUNNING
        assert manager.stats[COLOR].delivered == 1

    def test_malformed_frame_is_dropped(self, make_manager, sensor_a):
        manager = make_manager()
        manager.reconfigure(sensor_a)
        bad = RawDepthFrame(np.zeros(2, dtype=DEPTH_PIXEL_DTYPE), 1, 2, 800, 4000)
        sensor_a.emit(DEPTH, bad)
        assert manager.stats[DEPTH].dropped == 1
        assert manager.state is StreamState.RUNNING

    def test_frame_dropped_while_lifecycle_lock_held(self, make_manager, sensor_a, hub):
        manager = make_manager()
        frames = []
        hub.subscribe_color(frames.append)
        manager.reconfigure(sensor_a)

        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with manager._lock:
                held.set()
                release.wait(2.0)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        try:
            assert held.wait(2.0)
            sensor_a.emit(COLOR, _color_frame(sensor_a))
        finally:
            release.set()
            holder.join(2.0)

        assert frames == []
        assert manager.stats[COLOR].dropped == 1

    def test_subscriber_error_does_not_stop_stream(self, make_manager, sensor_a, hub):
        manager = make_manager()
        good = []

        def broken(frame):
            raise RuntimeError("display surface gone")

        hub.subscribe_color(broken)
        hub.subscribe_color(good.append)
        manager.reconfigure(sensor_a)
        sensor_a.emit(COLOR, _color_frame(sensor_a))
        sensor_a.emit(COLOR, _color_frame(sensor_a))
        assert len(good) == 2
        assert manager.state is StreamState.RUNNING

    def test_lifecycle_call_from_notification_rejected(self, make_manager, sensor_a, sensor_b, hub):
        manager = make_manager()
        errors = []

        def reconfigure_from_callback(frame):
            try:
                manager.reconfigure(sensor_b)
            except StreamLifecycleError as exc:
                errors.append(exc)

        hub.subscribe_color(reconfigure_from_callback)
        manager.reconfigure(sensor_a)
        sensor_a.emit(COLOR, _color_frame(sensor_a))

        assert len(errors) == 1
        assert manager.device is sensor_a
        assert sensor_b.log.for_device("B") == []

    def test_elevation_allowed_from_notification(self, make_manager, sensor_a, hub):
        manager = make_manager()
        hub.subscribe_color(lambda frame: manager.set_elevation(15))
        manager.reconfigure(sensor_a)
        sensor_a.emit(COLOR, _color_frame(sensor_a))
        assert sensor_a.elevation_angle == 15


# =============================================================================
# Audio
# =============================================================================

class TestAudio:
    """Audio capture started after the device and joined on stop."""

    def test_audio_chunks_published(self, make_manager, call_log, hub):
        from tests.infrastructure.mocks.sensor_mocks import FakeSensor

        sensor = FakeSensor("M", call_log, audio_chunks=[b"\x01\x00" * 800])
        manager = make_manager(StreamSelection(audio=True))
        chunks = []
        received = threading.Event()

        def on_chunk(chunk):
            chunks.append(chunk.read_count)
            received.set()

        hub.subscribe_audio(on_chunk)
        manager.reconfigure(sensor)
        assert received.wait(2.0)
        sensor.audio_source.emit_beam(20.0)
        assert manager._audio_loop.beam_angle == -20.0
        manager.shutdown()

        assert len(chunks) == 1
        assert chunks[0] == 1600
        assert manager.stats[AUDIO].delivered == 1
        assert sensor.audio_source.beam_handlers == []
        assert sensor.audio_source.source_handlers == []

    def test_shutdown_joins_blocked_reader(self, make_manager, sensor_a):
        manager = make_manager(StreamSelection(audio=True))
        manager.reconfigure(sensor_a)
        manager.shutdown()
        assert not any(t.name == "AudioCapture" and t.is_alive() for t in threading.enumerate())
