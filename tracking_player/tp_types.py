from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ObjectClass(Enum):
    CAR = "Car"
    PEDESTRIAN = "Pedestrian"
    CYCLIST = "Cyclist"
    OTHER = "Other"

    @classmethod
    def from_label(cls, name: str) -> "ObjectClass":
        """Map a dataset type string to a class; unknown types become OTHER."""
        key = (name or "").strip().lower()
        for member in (cls.CAR, cls.PEDESTRIAN, cls.CYCLIST):
            if member.value.lower() == key:
                return member
        return cls.OTHER


# BGR draw colors, OTHER is the fallback for anything unrecognized
CLASS_COLORS: dict[ObjectClass, tuple[int, int, int]] = {
    ObjectClass.CAR: (142, 0, 0),
    ObjectClass.PEDESTRIAN: (60, 20, 220),
    ObjectClass.CYCLIST: (32, 11, 119),
    ObjectClass.OTHER: (255, 255, 255),
}


def class_color(object_class: ObjectClass) -> tuple[int, int, int]:
    return CLASS_COLORS.get(object_class, CLASS_COLORS[ObjectClass.OTHER])


@dataclass(frozen=True)
class Quaternion:
    x: float
    y: float
    z: float
    w: float

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.z, self.w)


@dataclass(frozen=True)
class GeoPose:
    lat: float
    lon: float
    alt: float
    roll: float
    pitch: float
    yaw: float


@dataclass(frozen=True)
class ImuSample:
    accel: tuple[float, float, float]
    angular_rate: tuple[float, float, float]
    pos_accuracy: float


@dataclass(frozen=True)
class LocalPose:
    x: float
    y: float
    z: float
    orientation: Quaternion


@dataclass(frozen=True)
class TrackletPose:
    tx: float
    ty: float
    tz: float
    rx: float = 0.0
    ry: float = 0.0
    rz: float = 0.0
    state: int = 1
    occlusion: int = 0
    truncation: int = 0


@dataclass(frozen=True)
class Tracklet:
    object_type: str
    h: float
    w: float
    l: float
    first_frame: int
    poses: tuple[TrackletPose, ...]
    track_id: Optional[int] = None

    @property
    def object_class(self) -> ObjectClass:
        return ObjectClass.from_label(self.object_type)

    @property
    def last_frame(self) -> int:
        return self.first_frame + len(self.poses) - 1

    def covers(self, frame_index: int) -> bool:
        return self.first_frame <= frame_index <= self.last_frame


@dataclass(frozen=True)
class Box3D:
    object_class: ObjectClass
    object_type: str
    center: tuple[float, float, float]
    orientation: Quaternion
    dimensions: tuple[float, float, float]  # length, width, height
    heading: float


@dataclass(frozen=True)
class ActiveTrack:
    index: int
    tracklet: Tracklet
    pose: TrackletPose

    def box(self) -> Box3D:
        """Box in the velodyne frame; tracklet poses sit on the box bottom."""
        from .transforms import quaternion_from_yaw

        t = self.tracklet
        return Box3D(
            object_class=t.object_class,
            object_type=t.object_type,
            center=(self.pose.tx, self.pose.ty, self.pose.tz + t.h / 2.0),
            orientation=quaternion_from_yaw(self.pose.rz),
            dimensions=(t.l, t.w, t.h),
            heading=self.pose.rz,
        )


@dataclass(frozen=True)
class LabelBox:
    frame: int
    track_id: int
    object_type: str
    truncated: float
    occluded: int
    bbox: tuple[float, float, float, float]  # x1, y1, x2, y2
    dimensions: tuple[float, float, float]  # h, w, l
    location: tuple[float, float, float]  # camera rect frame
    rotation_y: float

    @property
    def object_class(self) -> ObjectClass:
        return ObjectClass.from_label(self.object_type)


@dataclass(frozen=True)
class ProjectionResult:
    valid: bool
    u: float = float("nan")
    v: float = float("nan")
    depth: float = float("nan")
    reason: Optional[str] = None

    @property
    def in_front(self) -> bool:
        return self.valid and self.depth > 0


@dataclass
class FrameEvent:
    frame_index: int
    pose: Optional[LocalPose]
    tracks: list[ActiveTrack] = field(default_factory=list)
    labels: list[LabelBox] = field(default_factory=list)
    gps: Optional[GeoPose] = None
    imu: Optional[ImuSample] = None
    image: Any = None  # raw BGR ndarray
    annotated: Any = None  # overlay BGR ndarray
    num_points: int = 0
