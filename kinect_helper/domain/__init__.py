"""Plain data types for the helper: selection, frames, skeletons, state."""

from . import constants
from .entities import (
    AudioChunk,
    ColorFrameReady,
    ColorMode,
    DEPTH_640x480,
    DEPTH_PIXEL_DTYPE,
    DepthFrameReady,
    DeviceStatus,
    DisplayPoint,
    INFRARED_640x480,
    ORIGIN,
    RGB_640x480,
    SkeletonFrameReady,
    SkeletonPoint,
    StreamFormat,
    StreamGeometry,
    StreamKind,
    StreamSelection,
    TrackingMode,
    color_format_for,
)
from .errors import DeviceUnavailableError, KinectHelperError, StreamLifecycleError
from .skeleton import (
    BONES,
    FrameEdges,
    Joint,
    JointTrackingState,
    JointType,
    Skeleton,
    SkeletonTrackingState,
)
from .state import DeviceSession, StreamState, StreamStats, empty_stats

__all__ = [
    "constants",
    "AudioChunk",
    "ColorFrameReady",
    "ColorMode",
    "DEPTH_640x480",
    "DEPTH_PIXEL_DTYPE",
    "DepthFrameReady",
    "DeviceStatus",
    "DisplayPoint",
    "INFRARED_640x480",
    "ORIGIN",
    "RGB_640x480",
    "SkeletonFrameReady",
    "SkeletonPoint",
    "StreamFormat",
    "StreamGeometry",
    "StreamKind",
    "StreamSelection",
    "TrackingMode",
    "color_format_for",
    "DeviceUnavailableError",
    "KinectHelperError",
    "StreamLifecycleError",
    "BONES",
    "FrameEdges",
    "Joint",
    "JointTrackingState",
    "JointType",
    "Skeleton",
    "SkeletonTrackingState",
    "DeviceSession",
    "StreamState",
    "StreamStats",
    "empty_stats",
]
