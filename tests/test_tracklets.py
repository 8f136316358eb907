import math

import numpy as np
import pytest

from conftest import LABEL_ROWS, TRACKLET_XML, make_calib_text
from tracking_player.calibration import Calibration, CalibrationStore
from tracking_player.errors import CalibrationError, DatasetIOError, ParseError
from tracking_player.labels import TrackLabelStore, parse_label_row
from tracking_player.tp_types import ObjectClass, Tracklet, TrackletPose
from tracking_player.tracklets import TrackletIndex, parse_tracklet_xml, tracklets_from_labels


def _tracklet(first_frame, n, object_type="Car"):
    poses = tuple(TrackletPose(float(i), 0.0, 0.0) for i in range(n))
    return Tracklet(object_type, 1.5, 1.6, 4.0, first_frame, poses)


def test_parse_tracklet_xml():
    tracklets = parse_tracklet_xml(TRACKLET_XML)
    assert len(tracklets) == 1
    t = tracklets[0]
    assert t.object_class is ObjectClass.PEDESTRIAN
    assert (t.h, t.w, t.l) == (1.8, 0.6, 0.8)
    assert t.first_frame == 1
    assert t.last_frame == 2
    assert t.poses[1].tx == 8.5
    assert t.poses[1].rz == 0.2
    assert t.poses[1].occlusion == 1


def test_count_mismatch_is_rejected():
    text = TRACKLET_XML.replace("<count>2</count>", "<count>3</count>")
    with pytest.raises(ParseError, match="declares 3 items, found 2"):
        parse_tracklet_xml(text)


def test_missing_field_is_rejected():
    with pytest.raises(ParseError, match="<h>"):
        parse_tracklet_xml(TRACKLET_XML.replace("<h>1.8</h>", ""))


def test_non_numeric_field_is_rejected():
    with pytest.raises(ParseError, match="not numeric"):
        parse_tracklet_xml(TRACKLET_XML.replace("<tx>8.0</tx>", "<tx>eight</tx>"))


def test_invalid_xml():
    with pytest.raises(ParseError, match="invalid XML"):
        parse_tracklet_xml("<tracklets><item>")
    with pytest.raises(ParseError, match="no <tracklets>"):
        parse_tracklet_xml("<boost_serialization/>")


def test_active_at_covers_inclusive_range():
    index = TrackletIndex([_tracklet(10, 5)])
    assert index.active_at(9) == []
    assert index.active_at(15) == []
    for frame in range(10, 15):
        (active,) = index.active_at(frame)
        assert active.index == 0
        assert active.pose.tx == float(frame - 10)


def test_active_at_keeps_load_order():
    index = TrackletIndex([_tracklet(0, 3, "Cyclist"), _tracklet(1, 1), _tracklet(2, 4, "Van")])
    assert [a.index for a in index.active_at(1)] == [0, 1]
    assert [a.index for a in index.active_at(2)] == [0, 2]
    assert index[2].object_class is ObjectClass.OTHER
    assert len(index) == 3


def test_active_track_box_sits_on_pose():
    (active,) = TrackletIndex([_tracklet(0, 1)]).active_at(0)
    box = active.box()
    assert box.center == (0.0, 0.0, 0.75)
    assert box.dimensions == (4.0, 1.6, 1.5)


def test_load(tracklet_xml, tmp_path):
    assert len(TrackletIndex.load(tracklet_xml)) == 1
    with pytest.raises(DatasetIOError):
        TrackletIndex.load(tmp_path / "missing.xml")

    bad = tmp_path / "bad.xml"
    bad.write_bytes(b"<tracklets>\xff</tracklets>")
    with pytest.raises(ParseError, match="not UTF-8"):
        TrackletIndex.load(bad)


def test_tracklets_from_labels_maps_to_velodyne_frame():
    calib = CalibrationStore.from_text(make_calib_text()).calibration
    labels = TrackLabelStore.from_text("\n".join(LABEL_ROWS))
    index = TrackletIndex.from_track_labels(labels, calib)

    assert len(index) == 1
    t = index[0]
    assert t.track_id == 0
    assert t.first_frame == 1
    assert t.last_frame == 2
    assert (t.h, t.w, t.l) == (1.5, 1.6, 4.0)
    first, second = t.poses
    assert (first.tx, first.ty, first.tz) == pytest.approx((10.0, 0.0, -1.5))
    assert second.tx == pytest.approx(9.0)
    assert first.rz == pytest.approx(-math.pi / 2)
    assert second.occlusion == 1


def test_track_with_gap_is_split():
    calib = CalibrationStore.from_text(make_calib_text()).calibration
    rows = [
        parse_label_row(f"{frame} 5 Cyclist 0 0 0 1 1 2 2 1.7 0.6 1.8 0 1.6 {z} 0")
        for frame, z in ((0, 10.0), (1, 11.0), (3, 12.0))
    ]
    tracklets = tracklets_from_labels(rows, calib)
    assert [(t.first_frame, t.last_frame) for t in tracklets] == [(0, 1), (3, 3)]
    assert all(t.track_id == 5 for t in tracklets)
    assert TrackletIndex(tracklets).active_at(2) == []


def test_label_conversion_needs_extrinsics():
    with pytest.raises(CalibrationError):
        tracklets_from_labels([], Calibration.from_matrix(np.zeros((3, 4))))
