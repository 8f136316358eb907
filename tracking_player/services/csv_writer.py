import csv
import io


class CsvWriter:
    POSE_HEADER = [
        "frame_idx",
        "x", "y", "z",
        "qx", "qy", "qz", "qw",
        "lat", "lon", "alt",
    ]
    OBJECT_HEADER = [
        "frame_idx", "object_idx", "track_id",
        "type", "class",
        "cx", "cy", "cz",
        "length", "width", "height",
        "heading",
    ]

    def __init__(self, csv_path: str, header: list):
        self.csv_path = csv_path
        self.header = header
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.header)
        self._opened = True

    def append(self, row):
        if len(row) != len(self.header):
            raise ValueError(f"row has {len(row)} columns, header has {len(self.header)}")
        self._w.writerow([self._fmt(v) for v in row])

    @staticmethod
    def _fmt(value):
        if isinstance(value, float):
            return f"{value:.6f}"
        if value is None:
            return ""
        return value

    @classmethod
    def to_csv_line(cls, row):
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow([cls._fmt(v) for v in row])
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
