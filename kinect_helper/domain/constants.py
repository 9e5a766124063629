"""Constants shared by the stream, render and audio layers."""

# Skeleton render canvas
RENDER_WIDTH = 640
RENDER_HEIGHT = 480
JOINT_THICKNESS = 3
BODY_CENTER_THICKNESS = 10
CLIP_BOUNDS_THICKNESS = 10

# RGB colors
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
CENTER_POINT_COLOR = (0, 0, 255)
TRACKED_JOINT_COLOR = (173, 216, 230)
INFERRED_JOINT_COLOR = (255, 255, 0)
TRACKED_BONE_COLOR = (0, 128, 0)
INFERRED_BONE_COLOR = (128, 128, 128)
CLIP_EDGE_COLOR = (255, 0, 0)
TRACKED_BONE_WIDTH = 6
INFERRED_BONE_WIDTH = 1

NAMED_COLORS: dict[str, tuple[int, int, int]] = {
    "white": WHITE,
    "black": BLACK,
    "gray": INFERRED_BONE_COLOR,
    "blue": CENTER_POINT_COLOR,
    "green": TRACKED_BONE_COLOR,
    "red": CLIP_EDGE_COLOR,
}

# Audio capture: 50 ms reads of 16 kHz, 16-bit mono PCM
AUDIO_POLLING_INTERVAL_MS = 50
AUDIO_SAMPLES_PER_MS = 16
AUDIO_BYTES_PER_SAMPLE = 2
AUDIO_SAMPLE_RATE = AUDIO_SAMPLES_PER_MS * 1000
AUDIO_BUFFER_SIZE = AUDIO_POLLING_INTERVAL_MS * AUDIO_SAMPLES_PER_MS * AUDIO_BYTES_PER_SAMPLE

# Device defaults
DEFAULT_FPS = 30
DEFAULT_SKELETON_SLOTS = 6
DEFAULT_MIN_ELEVATION = -27
DEFAULT_MAX_ELEVATION = 27
DROP_WARNING_INTERVAL = 30
