"""Stream lifecycle, frame conversion and skeleton rendering for depth sensors."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kinect-helper")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
