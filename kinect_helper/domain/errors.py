"""Exceptions raised by the helper core."""


class KinectHelperError(Exception):
    """Base class for helper errors."""


class StreamLifecycleError(KinectHelperError):
    """A start/stop transition was requested from inside a stream notification."""


class DeviceUnavailableError(KinectHelperError):
    """The device handle was used after it stopped or was unplugged."""


__all__ = ["KinectHelperError", "StreamLifecycleError", "DeviceUnavailableError"]
