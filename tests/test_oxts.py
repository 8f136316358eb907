import pytest

from conftest import make_oxts_line
from tracking_player.errors import DatasetIOError, ParseError
from tracking_player.oxts import OXTS_FIELDS, OxtsTrace, parse_geo_pose, parse_imu


def test_parse_geo_pose_reads_first_six_fields():
    pose = parse_geo_pose(make_oxts_line(49.01, 8.43, 112.5, 0.01, -0.02, 1.5))
    assert pose.lat == pytest.approx(49.01)
    assert pose.lon == pytest.approx(8.43)
    assert pose.alt == pytest.approx(112.5)
    assert (pose.roll, pose.pitch, pose.yaw) == pytest.approx((0.01, -0.02, 1.5))


def test_parse_imu_uses_accel_and_angular_rate_fields():
    imu = parse_imu(make_oxts_line(49.0, 8.4))
    assert imu.accel == (11.0, 12.0, 13.0)
    assert imu.angular_rate == (17.0, 18.0, 19.0)
    assert imu.pos_accuracy == 23.0


def test_wrong_field_count_is_rejected():
    line = " ".join(["1.0"] * (OXTS_FIELDS - 1))
    with pytest.raises(ParseError, match="expected 30 fields"):
        parse_geo_pose(line, 7)


def test_non_numeric_field_is_rejected():
    parts = make_oxts_line(49.0, 8.4).split()
    parts[4] = "abc"
    with pytest.raises(ParseError):
        parse_geo_pose(" ".join(parts))


def test_trace_indexes_by_frame_and_skips_blank_lines():
    trace = OxtsTrace([make_oxts_line(49.0, 8.4), "", make_oxts_line(49.1, 8.5)])
    assert len(trace) == 2
    assert trace.geo_pose(1).lat == pytest.approx(49.1)
    with pytest.raises(ParseError, match="no oxts entry for frame 2"):
        trace.geo_pose(2)
    with pytest.raises(ParseError):
        trace.imu(-1)


def test_load_missing_file(tmp_path):
    with pytest.raises(DatasetIOError):
        OxtsTrace.load(tmp_path / "missing.txt")


def test_load_from_disk(dataset_root):
    trace = OxtsTrace.load(dataset_root / "oxts" / "0000.txt")
    assert len(trace) == 3
    assert trace.geo_pose(2).alt == pytest.approx(112.0)


def test_load_non_utf8_file_is_a_parse_error(tmp_path):
    p = tmp_path / "0000.txt"
    p.write_bytes(b"\xff\xfe garbage\n")
    with pytest.raises(ParseError, match="not UTF-8"):
        OxtsTrace.load(p)
