"""Lidar-to-image projection and image annotation.

Projection follows p' = M @ [x, y, z, 1]^T followed by a divide by the
third component. The divide is not guarded: points at zero depth give inf
or nan pixels and points behind the camera land mirrored in the image.
Callers that care check ProjectionResult.depth.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence, Tuple

import cv2
import numpy as np

from .errors import CalibrationError
from .tp_types import ActiveTrack, LabelBox, ProjectionResult, class_color
from .transforms import box_corners

log = logging.getLogger(__name__)

# hue range 0..scale, near points low
DEFAULT_MIN_DISTANCE = 1.0
DEFAULT_MAX_DISTANCE = 70.0
DEFAULT_COLOR_SCALE = 120
POINT_RADIUS = 2

LABEL_TEXT_COLOR = (0, 255, 255)
_MAX_PIXEL = 1e6

# bottom face, top face, verticals
_BOX_EDGES = (
    (0, 1), (1, 2), (2, 3), (3, 0),
    (4, 5), (5, 6), (6, 7), (7, 4),
    (0, 4), (1, 5), (2, 6), (3, 7),
)


def _matrix_ok(matrix) -> bool:
    return np.shape(matrix) == (3, 4)


def project(point: Sequence[float], matrix) -> ProjectionResult:
    """Project one 3D point; rejects only a matrix that is not 3x4."""
    if not _matrix_ok(matrix):
        log.warning("project matrix size need be 3x4, got %s", np.shape(matrix))
        return ProjectionResult(False, reason=f"matrix shape {np.shape(matrix)}")
    M = np.asarray(matrix, dtype=np.float64)
    p = M @ np.array([point[0], point[1], point[2], 1.0], dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        u = p[0] / p[2]
        v = p[1] / p[2]
    return ProjectionResult(True, float(u), float(v), float(p[2]))


def project_points(points: np.ndarray, matrix) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorized project().

    Args:
        points: (N, >=3) array, extra columns (intensity) ignored
        matrix: 3x4 projection

    Returns:
        (uv, depth): (N, 2) pixel coordinates and (N,) depths
    """
    if not _matrix_ok(matrix):
        raise CalibrationError(f"projection matrix must be 3x4, got {np.shape(matrix)}")
    pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
    hom = np.hstack([pts[:, :3], np.ones((pts.shape[0], 1))])
    proj = hom @ np.asarray(matrix, dtype=np.float64).T
    with np.errstate(divide="ignore", invalid="ignore"):
        uv = proj[:, :2] / proj[:, 2:3]
    return uv, proj[:, 2]


def distance(point: Sequence[float]) -> float:
    return float(np.sqrt(point[0] * point[0] + point[1] * point[1] + point[2] * point[2]))


def color_by_distance(
    point: Sequence[float],
    min_dist: float = DEFAULT_MIN_DISTANCE,
    max_dist: float = DEFAULT_MAX_DISTANCE,
    scale: float = DEFAULT_COLOR_SCALE,
) -> int:
    """
    Linear distance-to-hue map, truncated toward zero.

    Not clamped: distances outside [min_dist, max_dist] extrapolate past
    [0, scale].
    """
    d = distance(point)
    return int((d - min_dist) / (max_dist - min_dist) * scale)


def render_overlay(
    cloud: np.ndarray,
    image: np.ndarray,
    matrix,
    min_dist: float = DEFAULT_MIN_DISTANCE,
    max_dist: float = DEFAULT_MAX_DISTANCE,
    scale: float = DEFAULT_COLOR_SCALE,
) -> np.ndarray:
    """
    Draw distance-colored lidar points on a copy of a BGR image.

    Points with a negative forward (x) coordinate are skipped. Pixels that
    are not finite, or whose marker would fall entirely off the image, are
    not drawn.
    """
    hsv = cv2.cvtColor(image, cv2.COLOR_BGR2HSV)
    h, w = hsv.shape[:2]
    pts = np.asarray(cloud, dtype=np.float64)
    if pts.size:
        pts = pts.reshape(-1, pts.shape[-1])
        pts = pts[pts[:, 0] >= 0]
        uv, _ = project_points(pts, matrix)
        for point, (u, v) in zip(pts, uv):
            if not (np.isfinite(u) and np.isfinite(v)):
                continue
            if not (-POINT_RADIUS <= u < w + POINT_RADIUS and -POINT_RADIUS <= v < h + POINT_RADIUS):
                continue
            hue = color_by_distance(point, min_dist, max_dist, scale)
            cv2.circle(hsv, (int(round(u)), int(round(v))), POINT_RADIUS, (hue, 255, 255), -1)
    return cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)


def draw_label_boxes(image: np.ndarray, boxes: Iterable[LabelBox]) -> np.ndarray:
    """2D annotation boxes in the class color with occlusion and type text."""
    draw = image.copy()
    for box in boxes:
        x1, y1, x2, y2 = (int(v) for v in box.bbox)
        cv2.rectangle(draw, (x1, y1), (x2, y2), class_color(box.object_class), 2)
        cv2.putText(
            draw, str(box.occluded), (x1, y1), cv2.FONT_HERSHEY_PLAIN, 0.8, LABEL_TEXT_COLOR
        )
        cv2.putText(
            draw, box.object_type, (x1 + 8, y1 - 2), cv2.FONT_HERSHEY_PLAIN, 0.8, LABEL_TEXT_COLOR
        )
    return draw


def draw_tracks(image: np.ndarray, tracks: Iterable[ActiveTrack], matrix) -> np.ndarray:
    """Wireframe of every active 3D box whose corners are all in front of the camera."""
    draw = image.copy()
    for track in tracks:
        corners = box_corners(track.box())
        uv, depth = project_points(corners, matrix)
        if np.any(depth <= 0) or not np.all(np.abs(uv) < _MAX_PIXEL):
            continue
        color = class_color(track.tracklet.object_class)
        pix = uv.astype(int)
        for a, b in _BOX_EDGES:
            cv2.line(draw, tuple(int(c) for c in pix[a]), tuple(int(c) for c in pix[b]), color, 1, cv2.LINE_AA)
    return draw


class Projector:
    """Projection settings bundled with the calibration matrix of a sequence."""

    def __init__(
        self,
        matrix,
        min_dist: float = DEFAULT_MIN_DISTANCE,
        max_dist: float = DEFAULT_MAX_DISTANCE,
        scale: float = DEFAULT_COLOR_SCALE,
    ):
        self.matrix = np.asarray(matrix, dtype=np.float64)
        self.min_dist = min_dist
        self.max_dist = max_dist
        self.scale = scale

    def project(self, point: Sequence[float]) -> ProjectionResult:
        return project(point, self.matrix)

    def color_by_distance(self, point: Sequence[float]) -> int:
        return color_by_distance(point, self.min_dist, self.max_dist, self.scale)

    def render_overlay(self, cloud: np.ndarray, image: np.ndarray) -> np.ndarray:
        return render_overlay(cloud, image, self.matrix, self.min_dist, self.max_dist, self.scale)
