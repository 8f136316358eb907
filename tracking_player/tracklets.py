"""Annotated object tracks and the per-frame active-track lookup."""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Iterator

import numpy as np

from .calibration import Calibration
from .errors import CalibrationError, DatasetIOError, ParseError
from .labels import TrackLabelStore
from .tp_types import ActiveTrack, LabelBox, Tracklet, TrackletPose
from .transforms import camera_to_velo

log = logging.getLogger(__name__)


def _text(node: ET.Element, tag: str, source: str) -> str:
    child = node.find(tag)
    if child is None or child.text is None:
        raise ParseError(f"{source}: <{node.tag}> is missing <{tag}>")
    return child.text.strip()


def _number(node: ET.Element, tag: str, source: str, cast=float):
    raw = _text(node, tag, source)
    try:
        return cast(raw)
    except ValueError as exc:
        raise ParseError(f"{source}: <{tag}> is not numeric: {raw!r}") from exc


def _items(parent: ET.Element, source: str) -> list[ET.Element]:
    items = parent.findall("item")
    count_node = parent.find("count")
    if count_node is not None:
        try:
            count = int((count_node.text or "").strip())
        except ValueError as exc:
            raise ParseError(f"{source}: bad <count> in <{parent.tag}>") from exc
        if count != len(items):
            raise ParseError(
                f"{source}: <{parent.tag}> declares {count} items, found {len(items)}"
            )
    return items


def _parse_pose(node: ET.Element, source: str) -> TrackletPose:
    return TrackletPose(
        tx=_number(node, "tx", source),
        ty=_number(node, "ty", source),
        tz=_number(node, "tz", source),
        rx=_number(node, "rx", source),
        ry=_number(node, "ry", source),
        rz=_number(node, "rz", source),
        state=_number(node, "state", source, int),
        occlusion=_number(node, "occlusion", source, int),
        truncation=_number(node, "truncation", source, int),
    )


def parse_tracklet_xml(text: str, source: str = "<memory>") -> list[Tracklet]:
    """
    Parse a KITTI raw tracklet_labels.xml document.

    Layout (boost serialization)::

        <boost_serialization><tracklets>
          <count>N</count>
          <item>
            <objectType>Car</objectType> <h/> <w/> <l/> <first_frame/>
            <poses><count>M</count><item><tx/>...<rz/><state/>...</item></poses>
          </item>
        </tracklets></boost_serialization>
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ParseError(f"{source}: invalid XML: {exc}") from exc

    tracklets_node = root if root.tag == "tracklets" else root.find("tracklets")
    if tracklets_node is None:
        raise ParseError(f"{source}: no <tracklets> element")

    tracklets = []
    for item in _items(tracklets_node, source):
        poses_node = item.find("poses")
        if poses_node is None:
            raise ParseError(f"{source}: tracklet without <poses>")
        poses = tuple(_parse_pose(p, source) for p in _items(poses_node, source))
        if not poses:
            raise ParseError(f"{source}: tracklet with no poses")
        tracklets.append(
            Tracklet(
                object_type=_text(item, "objectType", source),
                h=_number(item, "h", source),
                w=_number(item, "w", source),
                l=_number(item, "l", source),
                first_frame=_number(item, "first_frame", source, int),
                poses=poses,
            )
        )
    return tracklets


def _label_to_pose(row: LabelBox, R_rect: np.ndarray, Tr_velo_cam: np.ndarray) -> TrackletPose:
    tx, ty, tz = camera_to_velo(row.location, R_rect, Tr_velo_cam)
    return TrackletPose(
        tx=float(tx),
        ty=float(ty),
        tz=float(tz),
        rz=-row.rotation_y - math.pi / 2.0,
        occlusion=row.occluded,
        truncation=int(row.truncated),
    )


def tracklets_from_labels(labels: Iterable[LabelBox], calibration: Calibration) -> list[Tracklet]:
    """
    Group label_02 rows into contiguous per-track tracklets in the velodyne frame.

    A track that disappears for some frames is split at the gap, so every
    tracklet covers [first_frame, last_frame] without holes.
    """
    R_rect = calibration.matrix("R_rect")
    Tr_velo_cam = calibration.matrix("Tr_velo_cam")
    if R_rect is None or Tr_velo_cam is None:
        raise CalibrationError("label conversion needs R_rect and Tr_velo_cam")

    runs: dict[int, list[LabelBox]] = {}
    order: list[list[LabelBox]] = []
    for row in sorted(labels, key=lambda r: r.frame):
        run = runs.get(row.track_id)
        if run is None or row.frame != run[-1].frame + 1:
            run = []
            runs[row.track_id] = run
            order.append(run)
        run.append(row)

    tracklets = []
    for run in order:
        head = run[0]
        h, w, l = head.dimensions
        tracklets.append(
            Tracklet(
                object_type=head.object_type,
                h=h,
                w=w,
                l=l,
                first_frame=head.frame,
                poses=tuple(_label_to_pose(r, R_rect, Tr_velo_cam) for r in run),
                track_id=head.track_id,
            )
        )
    return tracklets


class TrackletIndex:
    """All tracklets of a sequence in load order."""

    def __init__(self, tracklets: Iterable[Tracklet]):
        self._tracklets: tuple[Tracklet, ...] = tuple(tracklets)

    @classmethod
    def load(cls, path: str | Path) -> "TrackletIndex":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise DatasetIOError(f"Failed to read tracklets: {p}") from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"{p}: tracklet file is not UTF-8 text") from exc
        index = cls(parse_tracklet_xml(text, source=str(p)))
        log.debug("loaded %d tracklets from %s", len(index), p)
        return index

    @classmethod
    def from_track_labels(
        cls, labels: TrackLabelStore, calibration: Calibration
    ) -> "TrackletIndex":
        return cls(tracklets_from_labels(labels, calibration))

    def active_at(self, frame_index: int) -> list[ActiveTrack]:
        active = []
        for i, t in enumerate(self._tracklets):
            if t.covers(frame_index):
                active.append(ActiveTrack(i, t, t.poses[frame_index - t.first_frame]))
        return active

    def __getitem__(self, i: int) -> Tracklet:
        return self._tracklets[i]

    def __iter__(self) -> Iterator[Tracklet]:
        return iter(self._tracklets)

    def __len__(self) -> int:
        return len(self._tracklets)
