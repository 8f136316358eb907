from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional, Tuple

from .errors import UninitializedOriginError
from .geodesy import GeodeticConverter
from .tp_types import GeoPose, LocalPose, Quaternion
from .transforms import quaternion_from_rpy

log = logging.getLogger(__name__)


class PoseTracker:
    """Vehicle pose relative to a per-sequence origin.

    The origin is written once by init_origin and read by every
    resolve_pose call after it.
    """

    def __init__(self, converter: Optional[GeodeticConverter] = None):
        self.converter = converter or GeodeticConverter()
        self.initialized = False
        self._origin: Optional[Tuple[float, float, float]] = None
        self._origin_fix: Optional[GeoPose] = None

    @property
    def origin(self) -> Optional[Tuple[float, float, float]]:
        return self._origin

    @property
    def origin_fix(self) -> Optional[GeoPose]:
        """Reference GPS fix with altitude zeroed, as published for the local map."""
        return self._origin_fix

    def init_origin(self, geo_pose: GeoPose) -> None:
        if self.initialized:
            log.debug("origin already set to %s, ignoring %s", self._origin, geo_pose)
            return
        x, y = self.converter.to_local_xy(geo_pose.lat, geo_pose.lon)
        self._origin = (x, y, geo_pose.alt)
        self._origin_fix = replace(geo_pose, alt=0.0)
        self.initialized = True
        log.debug("origin set: easting=%.3f northing=%.3f alt=%.3f", x, y, geo_pose.alt)

    def resolve_pose(
        self, geo_pose: GeoPose, orientation: Optional[Quaternion] = None
    ) -> LocalPose:
        if not self.initialized or self._origin is None:
            raise UninitializedOriginError("resolve_pose called before init_origin")
        if orientation is None:
            orientation = quaternion_from_rpy(geo_pose.roll, geo_pose.pitch, geo_pose.yaw)
        x, y = self.converter.to_local_xy(geo_pose.lat, geo_pose.lon)
        ox, oy, oz = self._origin
        return LocalPose(x - ox, y - oy, geo_pose.alt - oz, orientation)
