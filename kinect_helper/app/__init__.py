from .application import KinectHelperApp, build_audio_source, build_simulated_registry
from .device_watcher import DeviceWatcher
from .stream_manager import StreamManager

__all__ = [
    "DeviceWatcher",
    "KinectHelperApp",
    "StreamManager",
    "build_audio_source",
    "build_simulated_registry",
]
