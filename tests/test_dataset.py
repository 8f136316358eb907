import numpy as np
import pytest

from conftest import CLOUD, IMAGE_H, IMAGE_W
from tracking_player.dataset import KittiTrackingDataset, read_velodyne
from tracking_player.errors import DatasetIOError, ParseError


def test_paths_follow_tracking_layout(tmp_path):
    ds = KittiTrackingDataset(tmp_path, "0007", camera=3)
    assert ds.image_path(12) == tmp_path / "image_03" / "0007" / "000012.png"
    assert ds.velodyne_path(0) == tmp_path / "velodyne" / "0007" / "000000.bin"
    assert ds.oxts_path == tmp_path / "oxts" / "0007.txt"
    assert ds.calib_path == tmp_path / "calib" / "0007.txt"
    assert ds.label_path == tmp_path / "label_03" / "0007.txt"


def test_check_layout_lists_missing_parts(tmp_path):
    ds = KittiTrackingDataset(tmp_path, "0000")
    with pytest.raises(DatasetIOError, match="Incorrect tree directory") as exc_info:
        ds.check_layout(color=True, velodyne=False, oxts=True)
    message = str(exc_info.value)
    assert "image_02" in message
    assert "oxts" in message
    assert "velodyne" not in message


def test_check_layout_and_count(dataset_root):
    ds = KittiTrackingDataset(dataset_root, "0000")
    ds.check_layout(color=True, velodyne=True, oxts=True)
    assert ds.count_entries(color=True, velodyne=True) == 3
    assert ds.count_entries(color=False, velodyne=True) == 3
    assert ds.count_entries(color=False, velodyne=False) == 3


def test_read_frame_data(dataset_root):
    ds = KittiTrackingDataset(dataset_root, "0000")
    img = ds.read_image(1)
    assert img.shape == (IMAGE_H, IMAGE_W, 3)
    cloud = ds.read_cloud(2)
    assert cloud.dtype == np.float32
    assert np.array_equal(cloud, CLOUD)
    assert ds.read_calibration((IMAGE_W, IMAGE_H)).image_size == (IMAGE_W, IMAGE_H)
    assert len(ds.read_labels()) == 2
    assert len(ds.read_trace()) == 3


def test_missing_frame_files(dataset_root):
    ds = KittiTrackingDataset(dataset_root, "0000")
    with pytest.raises(DatasetIOError, match="color image"):
        ds.read_image(99)
    with pytest.raises(DatasetIOError):
        ds.read_cloud(99)


def test_truncated_scan(tmp_path):
    p = tmp_path / "000000.bin"
    np.arange(6, dtype=np.float32).tofile(str(p))
    with pytest.raises(ParseError):
        read_velodyne(p)
