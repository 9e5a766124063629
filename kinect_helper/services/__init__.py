"""Frame transforms, skeleton rendering, audio capture and subscriber channels."""

from .audio_capture import AudioCaptureLoop
from .coordinate_mapper import CoordinateMapper
from .frame_converter import FrameConverter, copy_color, depth_to_intensity
from .notifications import Channel, NotificationHub
from .skeleton_renderer import BoneStyle, RenderScene, SkeletonRenderer, bone_draw_passes

__all__ = [
    "AudioCaptureLoop",
    "CoordinateMapper",
    "FrameConverter",
    "copy_color",
    "depth_to_intensity",
    "Channel",
    "NotificationHub",
    "BoneStyle",
    "RenderScene",
    "SkeletonRenderer",
    "bone_draw_passes",
]
