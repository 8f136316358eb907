"""KITTI tracking label_02 annotations.

One row per object per frame::

    frame track_id type truncated occluded alpha x1 y1 x2 y2 h w l x y z ry [score]

Rows of type DontCare mark ignored image regions and are dropped.
"""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Iterator, Optional, Tuple

from .errors import DatasetIOError, ParseError
from .tp_types import LabelBox

LABEL_FIELDS = 17
DONT_CARE = "DontCare"


def _clip(value: float, upper: Optional[int]) -> float:
    if upper is None:
        return value
    return min(max(value, 0.0), float(upper - 1))


def parse_label_row(
    line: str, line_no: int = 0, image_size: Optional[Tuple[int, int]] = None
) -> LabelBox:
    parts = line.split()
    if len(parts) not in (LABEL_FIELDS, LABEL_FIELDS + 1):
        raise ParseError(
            f"label line {line_no}: expected {LABEL_FIELDS} fields, got {len(parts)}"
        )
    try:
        frame = int(parts[0])
        track_id = int(parts[1])
        truncated = float(parts[3])
        occluded = int(float(parts[4]))
        x1, y1, x2, y2 = (float(v) for v in parts[6:10])
        h, w, l = (float(v) for v in parts[10:13])
        x, y, z = (float(v) for v in parts[13:16])
        ry = float(parts[16])
    except ValueError as exc:
        raise ParseError(f"label line {line_no}: {exc}") from exc

    width, height = image_size if image_size else (None, None)
    bbox = (_clip(x1, width), _clip(y1, height), _clip(x2, width), _clip(y2, height))
    return LabelBox(
        frame=frame,
        track_id=track_id,
        object_type=parts[2],
        truncated=truncated,
        occluded=occluded,
        bbox=bbox,
        dimensions=(h, w, l),
        location=(x, y, z),
        rotation_y=ry,
    )


class TrackLabelStore:
    """Per-frame 2D/3D label rows of one sequence, in file order."""

    def __init__(self, rows: list[LabelBox]):
        self.rows = rows
        self._by_frame: dict[int, list[LabelBox]] = defaultdict(list)
        for row in rows:
            self._by_frame[row.frame].append(row)

    @classmethod
    def from_text(
        cls,
        text: str,
        image_size: Optional[Tuple[int, int]] = None,
        source: str = "<memory>",
    ) -> "TrackLabelStore":
        rows = []
        for line_no, line in enumerate(text.splitlines(), 1):
            if not line.strip():
                continue
            try:
                row = parse_label_row(line, line_no, image_size)
            except ParseError as exc:
                raise ParseError(f"{source}: {exc}") from exc
            if row.object_type == DONT_CARE:
                continue
            rows.append(row)
        return cls(rows)

    @classmethod
    def load(
        cls, path: str | Path, image_size: Optional[Tuple[int, int]] = None
    ) -> "TrackLabelStore":
        p = Path(path)
        try:
            text = p.read_text(encoding="utf-8")
        except OSError as exc:
            raise DatasetIOError(f"Failed to read labels: {p}") from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"{p}: label file is not UTF-8 text") from exc
        return cls.from_text(text, image_size=image_size, source=str(p))

    def objects_at(self, frame_index: int) -> list[LabelBox]:
        return list(self._by_frame.get(frame_index, ()))

    def __iter__(self) -> Iterator[LabelBox]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)
