from pathlib import Path

import cv2
import numpy as np
import pytest

SEQUENCE = "0000"
IMAGE_W, IMAGE_H = 200, 100

# fx = fy = 100, principal point at the image center
P_CAM = [100.0, 0.0, 100.0, 0.0, 0.0, 100.0, 50.0, 0.0, 0.0, 0.0, 1.0, 0.0]
# velodyne x forward, y left, z up -> camera x right, y down, z forward
TR_VELO_CAM = [0.0, -1.0, 0.0, 0.0, 0.0, 0.0, -1.0, 0.0, 1.0, 0.0, 0.0, 0.0]
R_RECT = [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0]
TR_IMU_VELO = [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0]


def _fmt(values):
    return " ".join(f"{v:.6e}" for v in values)


def make_oxts_line(lat, lon, alt=100.0, roll=0.0, pitch=0.0, yaw=0.0):
    """30-field trace line; every field after yaw holds its own index."""
    values = [lat, lon, alt, roll, pitch, yaw] + [float(i) for i in range(6, 30)]
    return " ".join(repr(v) for v in values)


def make_calib_text(p_cam=P_CAM):
    lines = [f"P{i}: {_fmt(p_cam)}" for i in range(4)]
    lines.append(f"R_rect {_fmt(R_RECT)}")
    lines.append(f"Tr_velo_cam {_fmt(TR_VELO_CAM)}")
    lines.append(f"Tr_imu_velo {_fmt(TR_IMU_VELO)}")
    return "\n".join(lines) + "\n"


# car 10 m ahead, track 0 visible in frames 1 and 2
LABEL_ROWS = [
    "0 -1 DontCare -1 -1 -10.000000 10.0 10.0 50.0 50.0 -1000 -1000 -1000 -10 -1 -1 -10",
    "1 0 Car 0 0 -1.570000 50.0 30.0 150.0 80.0 1.5 1.6 4.0 0.0 1.5 10.0 0.0",
    "2 0 Car 0 1 -1.570000 52.0 30.0 152.0 80.0 1.5 1.6 4.0 0.0 1.5 9.0 0.0",
]

TRACKLET_XML = """<?xml version="1.0" encoding="UTF-8" standalone="yes" ?>
<!DOCTYPE boost_serialization>
<boost_serialization signature="serialization::archive" version="9">
<tracklets class_id="0" tracking_level="0" version="0">
  <count>1</count>
  <item_version>1</item_version>
  <item class_id="1" tracking_level="0" version="1">
    <objectType>Pedestrian</objectType>
    <h>1.8</h>
    <w>0.6</w>
    <l>0.8</l>
    <first_frame>1</first_frame>
    <poses class_id="2" tracking_level="0" version="0">
      <count>2</count>
      <item_version>2</item_version>
      <item class_id="3" tracking_level="0" version="2">
        <tx>8.0</tx><ty>1.0</ty><tz>-1.7</tz>
        <rx>0.0</rx><ry>0.0</ry><rz>0.1</rz>
        <state>1</state><occlusion>0</occlusion><occlusion_kf>0</occlusion_kf>
        <truncation>0</truncation><amt_occlusion>-1</amt_occlusion>
        <amt_occlusion_kf>-1</amt_occlusion_kf><amt_border_l>-1</amt_border_l>
        <amt_border_r>-1</amt_border_r><amt_border_kf>-1</amt_border_kf>
      </item>
      <item>
        <tx>8.5</tx><ty>1.0</ty><tz>-1.7</tz>
        <rx>0.0</rx><ry>0.0</ry><rz>0.2</rz>
        <state>1</state><occlusion>1</occlusion><occlusion_kf>0</occlusion_kf>
        <truncation>0</truncation><amt_occlusion>-1</amt_occlusion>
        <amt_occlusion_kf>-1</amt_occlusion_kf><amt_border_l>-1</amt_border_l>
        <amt_border_r>-1</amt_border_r><amt_border_kf>-1</amt_border_kf>
      </item>
    </poses>
    <finished>1</finished>
  </item>
</tracklets>
</boost_serialization>
"""

CLOUD = np.array(
    [
        [10.0, 0.0, 0.0, 1.0],
        [5.0, 1.0, 0.5, 0.5],
        [-5.0, 0.0, 0.0, 1.0],
    ],
    dtype=np.float32,
)


def write_sequence(root: Path, frames: int = 3, labels: bool = True) -> Path:
    """Lay out a tiny KITTI tracking sequence under `root`."""
    image_dir = root / "image_02" / SEQUENCE
    velo_dir = root / "velodyne" / SEQUENCE
    for d in (image_dir, velo_dir, root / "oxts", root / "calib", root / "label_02"):
        d.mkdir(parents=True, exist_ok=True)

    for i in range(frames):
        img = np.full((IMAGE_H, IMAGE_W, 3), 40 * i, dtype=np.uint8)
        assert cv2.imwrite(str(image_dir / f"{i:06d}.png"), img)
        CLOUD.tofile(str(velo_dir / f"{i:06d}.bin"))

    oxts = [make_oxts_line(49.0 + 0.0001 * i, 8.4 + 0.0001 * i, 110.0 + i) for i in range(frames)]
    (root / "oxts" / f"{SEQUENCE}.txt").write_text("\n".join(oxts) + "\n", encoding="utf-8")
    (root / "calib" / f"{SEQUENCE}.txt").write_text(make_calib_text(), encoding="utf-8")
    if labels:
        (root / "label_02" / f"{SEQUENCE}.txt").write_text(
            "\n".join(LABEL_ROWS) + "\n", encoding="utf-8"
        )
    return root


@pytest.fixture
def dataset_root(tmp_path: Path) -> Path:
    return write_sequence(tmp_path / "training")


@pytest.fixture
def tracklet_xml(tmp_path: Path) -> Path:
    p = tmp_path / "tracklet_labels.xml"
    p.write_text(TRACKLET_XML, encoding="utf-8")
    return p


@pytest.fixture
def projection_matrix() -> np.ndarray:
    P = np.array(P_CAM).reshape(3, 4)
    Tr = np.vstack([np.array(TR_VELO_CAM).reshape(3, 4), [0.0, 0.0, 0.0, 1.0]])
    return P @ Tr
