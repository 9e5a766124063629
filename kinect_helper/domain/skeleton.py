"""Skeletal tracking data: joints, skeletons and the fixed bone graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, Flag
from typing import Mapping

from .entities import SkeletonPoint


class JointType(Enum):
    HIP_CENTER = 0
    SPINE = 1
    SHOULDER_CENTER = 2
    HEAD = 3
    SHOULDER_LEFT = 4
    ELBOW_LEFT = 5
    WRIST_LEFT = 6
    HAND_LEFT = 7
    SHOULDER_RIGHT = 8
    ELBOW_RIGHT = 9
    WRIST_RIGHT = 10
    HAND_RIGHT = 11
    HIP_LEFT = 12
    KNEE_LEFT = 13
    ANKLE_LEFT = 14
    FOOT_LEFT = 15
    HIP_RIGHT = 16
    KNEE_RIGHT = 17
    ANKLE_RIGHT = 18
    FOOT_RIGHT = 19


class JointTrackingState(Enum):
    NOT_TRACKED = 0
    INFERRED = 1
    TRACKED = 2


class SkeletonTrackingState(Enum):
    NOT_TRACKED = 0
    POSITION_ONLY = 1
    TRACKED = 2


class FrameEdges(Flag):
    NONE = 0
    RIGHT = 1
    LEFT = 2
    TOP = 4
    BOTTOM = 8


J = JointType

# Drawn in this order: head and shoulders, left arm, right arm, body and hips, left leg, right leg.
BONES: tuple[tuple[JointType, JointType], ...] = (
    (J.HEAD, J.SHOULDER_CENTER),
    (J.SHOULDER_CENTER, J.SHOULDER_LEFT),
    (J.SHOULDER_CENTER, J.SHOULDER_RIGHT),
    (J.SHOULDER_LEFT, J.ELBOW_LEFT),
    (J.ELBOW_LEFT, J.WRIST_LEFT),
    (J.WRIST_LEFT, J.HAND_LEFT),
    (J.SHOULDER_RIGHT, J.ELBOW_RIGHT),
    (J.ELBOW_RIGHT, J.WRIST_RIGHT),
    (J.WRIST_RIGHT, J.HAND_RIGHT),
    (J.SHOULDER_CENTER, J.SPINE),
    (J.SPINE, J.HIP_CENTER),
    (J.HIP_CENTER, J.HIP_LEFT),
    (J.HIP_CENTER, J.HIP_RIGHT),
    (J.HIP_LEFT, J.KNEE_LEFT),
    (J.KNEE_LEFT, J.ANKLE_LEFT),
    (J.ANKLE_LEFT, J.FOOT_LEFT),
    (J.HIP_RIGHT, J.KNEE_RIGHT),
    (J.KNEE_RIGHT, J.ANKLE_RIGHT),
    (J.ANKLE_RIGHT, J.FOOT_RIGHT),
)


@dataclass(slots=True, frozen=True)
class Joint:
    joint_type: JointType
    position: SkeletonPoint
    tracking_state: JointTrackingState = JointTrackingState.NOT_TRACKED


@dataclass(slots=True, frozen=True)
class Skeleton:
    """One device skeleton slot.

    ``joints`` always holds all 20 joint types; missing entries are filled as
    NOT_TRACKED at the skeleton's center so lookups never fail.
    """

    tracking_state: SkeletonTrackingState
    position: SkeletonPoint
    joints: Mapping[JointType, Joint] = field(default_factory=dict)
    tracking_id: int = 0
    clipped_edges: FrameEdges = FrameEdges.NONE

    def __post_init__(self) -> None:
        if len(self.joints) == len(JointType):
            return
        filled = {
            joint_type: Joint(joint_type, self.position) for joint_type in JointType
        }
        filled.update(self.joints)
        object.__setattr__(self, "joints", filled)

    @classmethod
    def not_tracked(cls) -> "Skeleton":
        return cls(SkeletonTrackingState.NOT_TRACKED, SkeletonPoint(0.0, 0.0, 0.0))


__all__ = [
    "JointType",
    "JointTrackingState",
    "SkeletonTrackingState",
    "FrameEdges",
    "BONES",
    "Joint",
    "Skeleton",
]
