"""File reader for the KITTI tracking directory layout.

    <root>/
    ├── calib/<seq>.txt
    ├── image_02/<seq>/000000.png ...
    ├── label_02/<seq>.txt
    ├── oxts/<seq>.txt
    └── velodyne/<seq>/000000.bin ...
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from .calibration import CalibrationStore
from .errors import DatasetIOError, ParseError
from .labels import TrackLabelStore
from .oxts import OxtsTrace

POINT_FIELDS = 4  # x, y, z, intensity


def read_velodyne(path: str | Path) -> np.ndarray:
    """Load a velodyne scan as an (N, 4) float32 array."""
    p = Path(path)
    try:
        raw = np.fromfile(str(p), dtype=np.float32)
    except OSError as exc:
        raise DatasetIOError(f"Could not read file: {p}") from exc
    if raw.size % POINT_FIELDS != 0:
        raise ParseError(f"{p}: {raw.size} floats is not a multiple of {POINT_FIELDS}")
    return raw.reshape(-1, POINT_FIELDS)


class KittiTrackingDataset:
    def __init__(self, root: str | Path, sequence: str, camera: int = 2):
        self.root = Path(root)
        self.sequence = sequence
        self.camera = camera

    @property
    def image_dir(self) -> Path:
        return self.root / f"image_{self.camera:02d}" / self.sequence

    @property
    def velodyne_dir(self) -> Path:
        return self.root / "velodyne" / self.sequence

    @property
    def oxts_path(self) -> Path:
        return self.root / "oxts" / f"{self.sequence}.txt"

    @property
    def calib_path(self) -> Path:
        return self.root / "calib" / f"{self.sequence}.txt"

    @property
    def label_path(self) -> Path:
        return self.root / f"label_{self.camera:02d}" / f"{self.sequence}.txt"

    def image_path(self, frame_index: int) -> Path:
        return self.image_dir / f"{frame_index:06d}.png"

    def velodyne_path(self, frame_index: int) -> Path:
        return self.velodyne_dir / f"{frame_index:06d}.bin"

    def check_layout(self, color: bool, velodyne: bool, oxts: bool) -> None:
        missing = []
        if color and not self.image_dir.is_dir():
            missing.append(self.image_dir)
        if velodyne and not self.velodyne_dir.is_dir():
            missing.append(self.velodyne_dir)
        if oxts and not self.oxts_path.is_file():
            missing.append(self.oxts_path)
        if not self.calib_path.is_file():
            missing.append(self.calib_path)
        if missing:
            raise DatasetIOError(
                "Incorrect tree directory, missing: " + ", ".join(str(m) for m in missing)
            )

    def count_entries(self, color: bool, velodyne: bool) -> int:
        """Number of frames, counted from the first enabled stream."""
        if color:
            return sum(1 for p in self.image_dir.iterdir() if p.is_file())
        if velodyne:
            return sum(1 for p in self.velodyne_dir.iterdir() if p.is_file())
        return len(self.read_trace())

    def read_calibration(self, image_size: Optional[Tuple[int, int]] = None) -> CalibrationStore:
        return CalibrationStore.load(self.calib_path, camera=self.camera, image_size=image_size)

    def read_trace(self) -> OxtsTrace:
        return OxtsTrace.load(self.oxts_path)

    def read_labels(self, image_size: Optional[Tuple[int, int]] = None) -> TrackLabelStore:
        return TrackLabelStore.load(self.label_path, image_size=image_size)

    def read_image(self, frame_index: int) -> np.ndarray:
        p = self.image_path(frame_index)
        img = cv2.imread(str(p), cv2.IMREAD_COLOR)
        if img is None:
            raise DatasetIOError(f"Error reading color image {p}")
        return img

    def read_cloud(self, frame_index: int) -> np.ndarray:
        return read_velodyne(self.velodyne_path(frame_index))
