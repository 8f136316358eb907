"""Per-sequence KITTI calibration.

Tracking calib files look like::

    P0: 7.215377e+02 0.000000e+00 ...      (12 values)
    ...
    P3: ...
    R_rect 9.999239e-01 ...                (9 values)
    Tr_velo_cam 7.533745e-03 ...           (12 values)
    Tr_imu_velo 9.999976e-01 ...           (12 values)

The object benchmark spells them R0_rect / Tr_velo_to_cam / Tr_imu_to_velo;
both spellings are accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from .errors import CalibrationError, DatasetIOError
from .transforms import to_homogeneous

_ALIASES = {
    "R0_rect": "R_rect",
    "Tr_velo_to_cam": "Tr_velo_cam",
    "Tr_imu_to_velo": "Tr_imu_velo",
}

_SHAPES = {
    "P0": (3, 4),
    "P1": (3, 4),
    "P2": (3, 4),
    "P3": (3, 4),
    "R_rect": (3, 3),
    "Tr_velo_cam": (3, 4),
    "Tr_imu_velo": (3, 4),
}

DEFAULT_IMAGE_SIZE = (1242, 375)


@dataclass(frozen=True, eq=False)
class Calibration:
    projection: np.ndarray
    image_size: Tuple[int, int] = DEFAULT_IMAGE_SIZE
    camera: int = 2
    matrices: dict[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        if np.shape(self.projection) != (3, 4):
            raise CalibrationError(
                f"projection matrix must be 3x4, got {np.shape(self.projection)}"
            )
        proj = np.array(self.projection, dtype=np.float64)
        proj.setflags(write=False)
        object.__setattr__(self, "projection", proj)

    @classmethod
    def from_matrix(cls, matrix, image_size: Tuple[int, int] = DEFAULT_IMAGE_SIZE) -> "Calibration":
        return cls(np.asarray(matrix, dtype=np.float64), tuple(image_size))

    def projection_matrix(self) -> np.ndarray:
        return self.projection.copy()

    def matrix(self, name: str) -> Optional[np.ndarray]:
        m = self.matrices.get(_ALIASES.get(name, name))
        return None if m is None else m.copy()


def parse_calibration_text(text: str, source: str = "<memory>") -> dict[str, np.ndarray]:
    matrices: dict[str, np.ndarray] = {}
    for line_no, line in enumerate(text.splitlines(), 1):
        parts = line.split()
        if not parts:
            continue
        key = parts[0].rstrip(":")
        key = _ALIASES.get(key, key)
        shape = _SHAPES.get(key)
        if shape is None:
            continue
        values = parts[1:]
        expected = shape[0] * shape[1]
        if len(values) != expected:
            raise CalibrationError(
                f"{source}:{line_no}: {key} needs {expected} values, got {len(values)}"
            )
        try:
            arr = np.array([float(v) for v in values], dtype=np.float64)
        except ValueError as exc:
            raise CalibrationError(f"{source}:{line_no}: {key}: {exc}") from exc
        matrices[key] = arr.reshape(shape)
    return matrices


class CalibrationStore:
    """Loads a sequence calibration once and serves the lidar-to-image matrix."""

    def __init__(self, calibration: Calibration):
        self.calibration = calibration

    @classmethod
    def load(
        cls,
        path: str | Path,
        camera: int = 2,
        image_size: Optional[Tuple[int, int]] = None,
    ) -> "CalibrationStore":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise DatasetIOError(f"Failed to read calibration: {p}") from exc
        except UnicodeDecodeError as exc:
            raise CalibrationError(f"{p}: calibration is not UTF-8 text") from exc
        return cls.from_text(text, camera=camera, image_size=image_size, source=str(p))

    @classmethod
    def from_text(
        cls,
        text: str,
        camera: int = 2,
        image_size: Optional[Tuple[int, int]] = None,
        source: str = "<memory>",
    ) -> "CalibrationStore":
        matrices = parse_calibration_text(text, source)
        p_key = f"P{camera}"
        for required in (p_key, "R_rect", "Tr_velo_cam"):
            if required not in matrices:
                raise CalibrationError(f"{source}: missing {required}")

        # image = P_cam @ R_rect @ Tr_velo_cam
        velo_to_image = (
            matrices[p_key]
            @ to_homogeneous(matrices["R_rect"])
            @ to_homogeneous(matrices["Tr_velo_cam"])
        )
        calib = Calibration(
            velo_to_image,
            tuple(image_size) if image_size else DEFAULT_IMAGE_SIZE,
            camera,
            matrices,
        )
        return cls(calib)

    def projection_matrix(self) -> np.ndarray:
        return self.calibration.projection_matrix()

    @property
    def image_size(self) -> Tuple[int, int]:
        return self.calibration.image_size
