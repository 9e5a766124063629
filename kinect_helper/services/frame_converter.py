"""Per-frame pixel transforms for color and depth streams."""

from __future__ import annotations

import numpy as np

from ..domain import DEPTH_PIXEL_DTYPE, StreamGeometry

DISPLAY_CHANNELS = 4


def depth_to_intensity(
    samples: np.ndarray,
    min_depth: int,
    max_depth: int,
    out: np.ndarray | None = None,
) -> np.ndarray:
    """Convert raw depth samples to a 4-byte-per-pixel grayscale buffer.

    Each in-range depth (``min_depth <= d <= max_depth``) is truncated to its low
    byte; out-of-range samples become 0. The value is written to the first three
    channels of ``out``; the fourth channel is left untouched.

    Args:
        samples: Flat array of ``DEPTH_PIXEL_DTYPE`` records or plain depth values.
        min_depth: Smallest reliable depth reported by the device.
        max_depth: Largest reliable depth reported by the device.
        out: Optional reusable ``(n, 4)`` or ``(h, w, 4)`` uint8 buffer.

    Returns:
        ``out`` (or a new ``(n, 4)`` buffer) holding the converted pixels.
    """
    depth = samples["depth"] if samples.dtype.names else samples
    depth = depth.reshape(-1)
    if out is None:
        out = np.zeros((depth.size, DISPLAY_CHANNELS), dtype=np.uint8)
    pixels = out.reshape(-1, DISPLAY_CHANNELS)
    if pixels.shape[0] != depth.size:
        raise ValueError(f"output holds {pixels.shape[0]} pixels, frame has {depth.size}")

    in_range = (depth >= min_depth) & (depth <= max_depth)
    intensity = np.where(in_range, depth & 0xFF, 0).astype(np.uint8)
    pixels[:, :3] = intensity[:, np.newaxis]
    return out


def copy_color(pixels: np.ndarray, out: np.ndarray) -> np.ndarray:
    """Copy a raw color frame into the reusable display buffer as-is."""
    np.copyto(out.reshape(-1), np.asarray(pixels, dtype=np.uint8).reshape(-1))
    return out


class FrameConverter:
    """Owns the reusable color and depth buffers for one session."""

    def __init__(self) -> None:
        self.color_buffer: np.ndarray | None = None
        self.color_geometry: StreamGeometry | None = None
        self.depth_samples: np.ndarray | None = None
        self.depth_intensity: np.ndarray | None = None
        self.depth_geometry: StreamGeometry | None = None

    def allocate_color(self, geometry: StreamGeometry) -> None:
        self.color_geometry = geometry
        self.color_buffer = np.zeros(geometry.frame_length, dtype=np.uint8)

    def allocate_depth(self, geometry: StreamGeometry) -> None:
        self.depth_geometry = geometry
        self.depth_samples = np.zeros(geometry.pixel_count, dtype=DEPTH_PIXEL_DTYPE)
        self.depth_intensity = np.zeros((geometry.height, geometry.width, DISPLAY_CHANNELS), dtype=np.uint8)

    def release(self) -> None:
        self.color_buffer = None
        self.color_geometry = None
        self.depth_samples = None
        self.depth_intensity = None
        self.depth_geometry = None

    def convert_color(self, pixels: np.ndarray) -> np.ndarray:
        if self.color_buffer is None:
            raise RuntimeError("color buffer not allocated")
        return copy_color(pixels, self.color_buffer)

    def convert_depth(self, samples: np.ndarray, min_depth: int, max_depth: int) -> tuple[np.ndarray, np.ndarray]:
        if self.depth_samples is None or self.depth_intensity is None:
            raise RuntimeError("depth buffers not allocated")
        np.copyto(self.depth_samples, samples.reshape(-1))
        depth_to_intensity(self.depth_samples, min_depth, max_depth, out=self.depth_intensity)
        return self.depth_samples, self.depth_intensity

    @property
    def color_image(self) -> np.ndarray | None:
        """Color buffer viewed as ``(height, width, bytes_per_pixel)``."""
        if self.color_buffer is None or self.color_geometry is None:
            return None
        g = self.color_geometry
        return self.color_buffer.reshape(g.height, g.width, g.bytes_per_pixel)

    @property
    def depth_image(self) -> np.ndarray | None:
        return self.depth_intensity


__all__ = ["DISPLAY_CHANNELS", "depth_to_intensity", "copy_color", "FrameConverter"]
