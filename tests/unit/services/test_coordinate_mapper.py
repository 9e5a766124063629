"""Unit tests for CoordinateMapper."""

from __future__ import annotations

import pytest

from kinect_helper.domain import ORIGIN, DisplayPoint, SkeletonPoint
from kinect_helper.services import CoordinateMapper


class TestCoordinateMapper:
    """Mapping delegates to the device and degrades to the origin."""

    @pytest.mark.parametrize(
        "point",
        [SkeletonPoint(0.0, 0.0, 0.0), SkeletonPoint(1.5, -2.0, 3.0), SkeletonPoint(-9e9, 9e9, -1.0)],
    )
    def test_origin_without_device(self, point: SkeletonPoint):
        mapper = CoordinateMapper(lambda: None)
        assert mapper.map(point) == ORIGIN

    @pytest.mark.parametrize(
        "error",
        [RuntimeError("transform unavailable"), ValueError("z <= 0"), ZeroDivisionError()],
    )
    def test_origin_when_transform_fails(self, sensor_a, error: Exception):
        sensor_a.map_error = error
        mapper = CoordinateMapper(lambda: sensor_a)

        assert mapper.map(SkeletonPoint(0.5, 0.5, 2.0)) == ORIGIN
        assert mapper.map(SkeletonPoint(-0.5, 0.1, 1.0)) == ORIGIN
        assert mapper.failures == 2

    def test_delegates_to_device(self, sensor_a):
        mapper = CoordinateMapper(lambda: sensor_a)
        assert mapper(SkeletonPoint(1.0, 2.0, 3.0)) == DisplayPoint(100.0, 200.0)
        assert mapper.failures == 0

    def test_follows_device_provider(self, sensor_a):
        current = {"device": None}
        mapper = CoordinateMapper(lambda: current["device"])
        assert mapper.map(SkeletonPoint(1.0, 1.0, 1.0)) == ORIGIN
        current["device"] = sensor_a
        assert mapper.map(SkeletonPoint(1.0, 1.0, 1.0)) == DisplayPoint(100.0, 100.0)
