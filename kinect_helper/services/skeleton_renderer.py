"""Build a drawable scene (background, bones, joints) from one skeleton frame."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Sequence, Union

import cv2
import numpy as np

from ..domain import (
    BONES,
    DisplayPoint,
    FrameEdges,
    Joint,
    JointTrackingState,
    Skeleton,
    SkeletonPoint,
    SkeletonTrackingState,
    constants as c,
)

Color = tuple[int, int, int]
PointMapper = Callable[[SkeletonPoint], DisplayPoint]


class BoneStyle(Enum):
    THIN = (c.INFERRED_BONE_COLOR, c.INFERRED_BONE_WIDTH)
    BOLD = (c.TRACKED_BONE_COLOR, c.TRACKED_BONE_WIDTH)

    @property
    def color(self) -> Color:
        return self.value[0]

    @property
    def width(self) -> int:
        return self.value[1]


def bone_draw_passes(start: JointTrackingState, end: JointTrackingState) -> tuple[BoneStyle, ...]:
    """Draw calls for one bone, in the order they are issued.

    The inferred check runs before the tracked check so a bold line always lands
    on top whenever both apply.
    """
    if JointTrackingState.NOT_TRACKED in (start, end):
        return ()
    passes = []
    if JointTrackingState.INFERRED in (start, end):
        passes.append(BoneStyle.THIN)
    if start is JointTrackingState.TRACKED and end is JointTrackingState.TRACKED:
        passes.append(BoneStyle.BOLD)
    return tuple(passes)


@dataclass(slots=True, frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    color: Color


@dataclass(slots=True, frozen=True)
class Line:
    start: DisplayPoint
    end: DisplayPoint
    color: Color
    width: int


@dataclass(slots=True, frozen=True)
class Ellipse:
    center: DisplayPoint
    radius: float
    color: Color


Primitive = Union[Rect, Line, Ellipse]


def _px(point: DisplayPoint) -> tuple[int, int]:
    return int(round(point.x)), int(round(point.y))


@dataclass(slots=True)
class RenderScene:
    """One frame's drawing, clipped to ``width`` x ``height``. Colors are RGB."""

    width: int
    height: int
    background: Color
    primitives: list[Primitive] = field(default_factory=list)
    _raster: np.ndarray | None = field(default=None, repr=False, compare=False)

    def lines(self) -> list[Line]:
        return [p for p in self.primitives if isinstance(p, Line)]

    def ellipses(self) -> list[Ellipse]:
        return [p for p in self.primitives if isinstance(p, Ellipse)]

    def rasterize(self) -> np.ndarray:
        """Render to an ``(height, width, 3)`` RGB image; cached after the first call."""
        if self._raster is not None:
            return self._raster
        image = np.empty((self.height, self.width, 3), dtype=np.uint8)
        image[:] = self.background
        for primitive in self.primitives:
            if isinstance(primitive, Line):
                cv2.line(image, _px(primitive.start), _px(primitive.end), primitive.color, primitive.width, cv2.LINE_AA)
            elif isinstance(primitive, Ellipse):
                radius = max(1, int(round(primitive.radius)))
                cv2.circle(image, _px(primitive.center), radius, primitive.color, -1, cv2.LINE_AA)
            else:
                top_left = (int(primitive.x), int(primitive.y))
                bottom_right = (int(primitive.x + primitive.width) - 1, int(primitive.y + primitive.height) - 1)
                cv2.rectangle(image, top_left, bottom_right, primitive.color, -1)
        self._raster = image
        return image


class SkeletonRenderer:
    """Turns a skeleton set into a RenderScene, one full rebuild per frame."""

    def __init__(
        self,
        mapper: PointMapper,
        *,
        width: int = c.RENDER_WIDTH,
        height: int = c.RENDER_HEIGHT,
        background: Color = c.WHITE,
    ) -> None:
        self.mapper = mapper
        self.width = width
        self.height = height
        self.background = background

    def render(self, skeletons: Iterable[Skeleton]) -> RenderScene:
        scene = RenderScene(self.width, self.height, self.background)
        scene.primitives.append(Rect(0, 0, self.width, self.height, self.background))
        for skeleton in skeletons:
            if skeleton.tracking_state is SkeletonTrackingState.TRACKED:
                self._draw_clipped_edges(scene, skeleton.clipped_edges)
                self._draw_bones_and_joints(scene, skeleton)
            elif skeleton.tracking_state is SkeletonTrackingState.POSITION_ONLY:
                scene.primitives.append(
                    Ellipse(self.mapper(skeleton.position), c.BODY_CENTER_THICKNESS, c.CENTER_POINT_COLOR)
                )
        return scene

    def _draw_bones_and_joints(self, scene: RenderScene, skeleton: Skeleton) -> None:
        joints = skeleton.joints
        for start_type, end_type in BONES:
            self._draw_bone(scene, joints[start_type], joints[end_type])
        for joint in joints.values():
            if joint.tracking_state is JointTrackingState.TRACKED:
                color = c.TRACKED_JOINT_COLOR
            elif joint.tracking_state is JointTrackingState.INFERRED:
                color = c.INFERRED_JOINT_COLOR
            else:
                continue
            scene.primitives.append(Ellipse(self.mapper(joint.position), c.JOINT_THICKNESS, color))

    def _draw_bone(self, scene: RenderScene, start: Joint, end: Joint) -> None:
        passes = bone_draw_passes(start.tracking_state, end.tracking_state)
        if not passes:
            return
        a = self.mapper(start.position)
        b = self.mapper(end.position)
        for style in passes:
            scene.primitives.append(Line(a, b, style.color, style.width))

    def _draw_clipped_edges(self, scene: RenderScene, edges: FrameEdges) -> None:
        band = c.CLIP_BOUNDS_THICKNESS
        w, h = self.width, self.height
        bands: Sequence[tuple[FrameEdges, Rect]] = (
            (FrameEdges.BOTTOM, Rect(0, h - band, w, band, c.CLIP_EDGE_COLOR)),
            (FrameEdges.TOP, Rect(0, 0, w, band, c.CLIP_EDGE_COLOR)),
            (FrameEdges.LEFT, Rect(0, 0, band, h, c.CLIP_EDGE_COLOR)),
            (FrameEdges.RIGHT, Rect(w - band, 0, band, h, c.CLIP_EDGE_COLOR)),
        )
        for edge, rect in bands:
            if edge in edges:
                scene.primitives.append(rect)


__all__ = [
    "BoneStyle",
    "bone_draw_passes",
    "Rect",
    "Line",
    "Ellipse",
    "Primitive",
    "RenderScene",
    "SkeletonRenderer",
]
