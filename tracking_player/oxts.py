"""OXTS GPS/IMU trace parsing.

One line per frame, 30 space separated fields:

    lat lon alt roll pitch yaw vn ve vf vl vu ax ay az af al au
    wx wy wz wf wl wu pos_accuracy vel_accuracy navstat numsats
    posmode velmode orimode
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from .errors import DatasetIOError, ParseError
from .tp_types import GeoPose, ImuSample

OXTS_FIELDS = 30

# field offsets
LAT, LON, ALT, ROLL, PITCH, YAW = range(6)
AX, AY, AZ = 11, 12, 13
WX, WY, WZ = 17, 18, 19
POS_ACCURACY = 23


def _tokens(line: str, line_no: int) -> list[float]:
    parts = line.split()
    if len(parts) != OXTS_FIELDS:
        raise ParseError(
            f"oxts line {line_no}: expected {OXTS_FIELDS} fields, got {len(parts)}"
        )
    try:
        return [float(p) for p in parts]
    except ValueError as exc:
        raise ParseError(f"oxts line {line_no}: {exc}") from exc


def parse_geo_pose(line: str, line_no: int = 0) -> GeoPose:
    v = _tokens(line, line_no)
    return GeoPose(v[LAT], v[LON], v[ALT], v[ROLL], v[PITCH], v[YAW])


def parse_imu(line: str, line_no: int = 0) -> ImuSample:
    v = _tokens(line, line_no)
    return ImuSample(
        accel=(v[AX], v[AY], v[AZ]),
        angular_rate=(v[WX], v[WY], v[WZ]),
        pos_accuracy=v[POS_ACCURACY],
    )


class OxtsTrace:
    """All trace lines of a sequence, parsed lazily per frame."""

    def __init__(self, lines: Sequence[str], source: str = "<memory>"):
        self.lines = [ln for ln in lines if ln.strip()]
        self.source = source

    @classmethod
    def load(cls, path: str | Path) -> "OxtsTrace":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise DatasetIOError(f"Failed to read oxts trace: {p}") from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"{p}: oxts trace is not UTF-8 text") from exc
        return cls(text.splitlines(), source=str(p))

    def __len__(self) -> int:
        return len(self.lines)

    def _line(self, frame_index: int) -> str:
        if not 0 <= frame_index < len(self.lines):
            raise ParseError(
                f"{self.source}: no oxts entry for frame {frame_index} "
                f"({len(self.lines)} lines)"
            )
        return self.lines[frame_index]

    def geo_pose(self, frame_index: int) -> GeoPose:
        return parse_geo_pose(self._line(frame_index), frame_index)

    def imu(self, frame_index: int) -> ImuSample:
        return parse_imu(self._line(frame_index), frame_index)
