from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

from .errors import ConfigError


@dataclass
class MqttConfig:
    """Broker settings shared by the MQTT sink and the synch source."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 1883
    topic_prefix: str = "kitti_player"
    synch_topic: str = "kitti_player/synch"
    client_id: str = ""
    keepalive: int = 60

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PlayerConfig:
    dataset_root: str = "data/kitti/tracking/training"
    sequence: str = "0000"
    camera: int = 2
    start_frame: int = 0
    origin_frame: int = 1  # pinned reference for the local world frame
    frequency_hz: float = 10.0  # <= 0 plays as fast as possible
    synch_mode: bool = False
    poll_interval_sec: float = 0.01
    use_color: bool = True
    use_velodyne: bool = True
    use_oxts: bool = True
    render_overlay: bool = True
    draw_labels: bool = False
    draw_tracklets: bool = False
    tracklets_path: Optional[str] = None  # tracklet_labels.xml; label_02 is used if unset
    image_width: int = 1242
    image_height: int = 375
    session_root: str = "data/sessions"
    save_csv: bool = True
    save_annotated: bool = False
    max_frames: Optional[int] = None
    min_distance: float = 1.0
    max_distance: float = 70.0
    color_scale: float = 120.0
    mqtt: Optional[MqttConfig] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "PlayerConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "PlayerConfig":
        if not (self.use_color or self.use_velodyne or self.use_oxts):
            raise ConfigError("No data stream enabled (color, velodyne, oxts); nothing to play")
        if self.render_overlay and not (self.use_color and self.use_velodyne):
            raise ConfigError("render_overlay needs both color and velodyne streams")
        if (self.draw_labels or self.draw_tracklets) and not self.use_color:
            raise ConfigError("drawing labels or tracklets needs the color stream")
        if self.start_frame < 0:
            raise ConfigError(f"start_frame must be >= 0, got {self.start_frame}")
        if self.origin_frame < 0:
            raise ConfigError(f"origin_frame must be >= 0, got {self.origin_frame}")
        if self.max_distance <= self.min_distance:
            raise ConfigError("max_distance must be greater than min_distance")
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ConfigError("YAML config root must be a mapping")
    return data


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def load_config(path: str | Path) -> PlayerConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON/YAML object")

    cfg = PlayerConfig()
    try:
        cfg.dataset_root = str(raw.get("dataset_root", cfg.dataset_root))
        cfg.sequence = str(raw.get("sequence", cfg.sequence)).zfill(4)
        cfg.camera = int(raw.get("camera", cfg.camera))
        cfg.start_frame = int(raw.get("start_frame", cfg.start_frame))
        cfg.origin_frame = int(raw.get("origin_frame", cfg.origin_frame))
        cfg.frequency_hz = float(raw.get("frequency_hz", cfg.frequency_hz))
        cfg.synch_mode = bool(raw.get("synch_mode", cfg.synch_mode))
        cfg.poll_interval_sec = float(raw.get("poll_interval_sec", cfg.poll_interval_sec))
        cfg.use_color = bool(raw.get("use_color", cfg.use_color))
        cfg.use_velodyne = bool(raw.get("use_velodyne", cfg.use_velodyne))
        cfg.use_oxts = bool(raw.get("use_oxts", cfg.use_oxts))
        cfg.render_overlay = bool(raw.get("render_overlay", cfg.render_overlay))
        cfg.draw_labels = bool(raw.get("draw_labels", cfg.draw_labels))
        cfg.draw_tracklets = bool(raw.get("draw_tracklets", cfg.draw_tracklets))
        tracklets = raw.get("tracklets_path", cfg.tracklets_path)
        cfg.tracklets_path = None if tracklets is None else str(tracklets)
        cfg.image_width = int(raw.get("image_width", cfg.image_width))
        cfg.image_height = int(raw.get("image_height", cfg.image_height))
        cfg.session_root = str(raw.get("session_root", cfg.session_root))
        cfg.save_csv = bool(raw.get("save_csv", cfg.save_csv))
        cfg.save_annotated = bool(raw.get("save_annotated", cfg.save_annotated))
        cfg.max_frames = _optional_int(raw.get("max_frames", cfg.max_frames))
        cfg.min_distance = float(raw.get("min_distance", cfg.min_distance))
        cfg.max_distance = float(raw.get("max_distance", cfg.max_distance))
        cfg.color_scale = float(raw.get("color_scale", cfg.color_scale))

        mq_raw = raw.get("mqtt")
        if mq_raw is not None:
            if not isinstance(mq_raw, dict):
                raise ConfigError("mqtt must be a mapping")
            mq = MqttConfig()
            mq.enabled = bool(mq_raw.get("enabled", mq.enabled))
            mq.host = str(mq_raw.get("host", mq.host))
            mq.port = int(mq_raw.get("port", mq.port))
            mq.topic_prefix = str(mq_raw.get("topic_prefix", mq.topic_prefix))
            mq.synch_topic = str(mq_raw.get("synch_topic", mq.synch_topic))
            mq.client_id = str(mq_raw.get("client_id", mq.client_id))
            mq.keepalive = int(mq_raw.get("keepalive", mq.keepalive))
            cfg.mqtt = mq
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{p}: {exc}") from exc

    return cfg
