from pathlib import Path
from time import strftime
import json, cv2

from ..errors import DatasetIOError


class SessionStorage:
    """One directory per replay run.

        <root>/<name>_<YYYYmmdd_HHMMSS>/
            config.json     effective PlayerConfig
            summary.json    written once playback ends
            annotated/      overlay images, <frame>_<suffix>.png
            logs/           session.log

    Every filesystem failure surfaces as DatasetIOError.
    """

    def __init__(self, root: str, name: str = "session"):
        self.root = Path(root)
        self.name = name
        self.session_dir = None
        self.annotated_dir = None
        self.logs_dir = None
        self.last_path = None

    @property
    def log_path(self) -> Path:
        return self.logs_dir / "session.log"

    def begin(self) -> str:
        self.session_dir = self.root / f"{self.name}_{strftime('%Y%m%d_%H%M%S')}"
        self.annotated_dir = self.session_dir / "annotated"
        self.logs_dir = self.session_dir / "logs"
        try:
            for d in (self.annotated_dir, self.logs_dir):
                d.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DatasetIOError(f"Cannot create session directory {self.session_dir}") from exc
        return str(self.session_dir)

    def save_annotated(self, frame_index: int, image, suffix: str = "overlay") -> str:
        """Write one annotated frame; raw dataset images are never copied."""
        p = self.annotated_dir / f"{frame_index:06d}_{suffix}.png"
        if not cv2.imwrite(str(p), image):
            raise DatasetIOError(f"Failed to write {p}")
        self.last_path = str(p)
        return str(p)

    def _write_json(self, filename: str, data: dict) -> Path:
        p = self.session_dir / filename
        try:
            with open(p, "w") as fp:
                json.dump(data, fp, indent=2, default=str)
        except OSError as exc:
            raise DatasetIOError(f"Failed to write {p}") from exc
        return p

    def write_manifest(self, meta: dict) -> Path:
        return self._write_json("config.json", meta)

    def write_summary(self, summary: dict) -> Path:
        return self._write_json("summary.json", summary)
