"""Skeleton space (metres) to depth-image space (pixels)."""

from __future__ import annotations

from typing import Callable, Optional

from ..core.logging_utils import LoggerLike, ensure_structured_logger
from ..device.protocol import SensorDevice
from ..domain import DEPTH_640x480, ORIGIN, DisplayPoint, SkeletonPoint, StreamFormat


class CoordinateMapper:
    """Map skeleton points through the live device's native transform.

    Any failure, including having no device, yields the origin. Callers draw
    at (0, 0) rather than handling an error per joint.
    """

    def __init__(
        self,
        device_provider: Callable[[], Optional[SensorDevice]],
        fmt: StreamFormat = DEPTH_640x480,
        logger: LoggerLike = None,
    ) -> None:
        self._device_provider = device_provider
        self.format = fmt
        self.logger = ensure_structured_logger(logger, fallback_name="CoordinateMapper")
        self.failures = 0

    def map(self, point: SkeletonPoint) -> DisplayPoint:
        device = self._device_provider()
        if device is None:
            return ORIGIN
        try:
            x, y = device.map_skeleton_point_to_depth(point, self.format)
            return DisplayPoint(float(x), float(y))
        except Exception as exc:
            self.failures += 1
            if self.failures == 1:
                self.logger.warning("Coordinate mapping failed (suppressing further): %s", exc)
            else:
                self.logger.debug("Coordinate mapping failed for %s: %s", point, exc)
            return ORIGIN

    __call__ = map


__all__ = ["CoordinateMapper"]
