from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from .calibration import Calibration
from .config import PlayerConfig
from .dataset import KittiTrackingDataset
from .errors import ConfigError, PlayerError
from .labels import TrackLabelStore
from .logging_utils import session_log, setup_logger
from .output import CsvOutput, ImageOutput, MqttOutput, NullOutput, PublishSink
from .services.storage import SessionStorage
from .synch import MqttSignalSource, SignalSource, SynchGate
from .synchronizer import FrameSynchronizer
from .tracklets import TrackletIndex


@dataclass
class PlaybackSummary:
    session_path: str
    frames_published: int
    first_frame: int
    last_frame: Optional[int]
    total_entries: int
    log_path: str
    avg_fps: float


class TrackingPlayer:
    """Builds the replay pipeline for one sequence from a PlayerConfig and runs it."""

    def __init__(
        self,
        config: PlayerConfig,
        logger=None,
        outputs: Optional[list[PublishSink]] = None,
        signal_source: Optional[SignalSource] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.sequence)
        self.outputs = outputs
        self.signal_source = signal_source
        self.synchronizer: Optional[FrameSynchronizer] = None
        self.avg_fps = 0.0
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_outputs(self, storage: SessionStorage) -> list[PublishSink]:
        if self.outputs is not None:
            return self.outputs
        outputs: list[PublishSink] = []
        if self.config.save_csv:
            outputs.append(CsvOutput())
        if self.config.save_annotated:
            outputs.append(ImageOutput(storage))
        mq = self.config.mqtt
        if mq is not None and mq.enabled:
            outputs.append(
                MqttOutput(mq.host, mq.port, mq.topic_prefix, mq.client_id, mq.keepalive)
            )
        if not outputs:
            self.logger.info("no outputs enabled, frames are replayed without publishing")
            outputs.append(NullOutput())
        return outputs

    def _build_signal_source(self) -> Optional[SignalSource]:
        if not self.config.synch_mode:
            return None
        if self.signal_source is not None:
            return self.signal_source
        mq = self.config.mqtt
        if mq is None or not mq.enabled:
            raise ConfigError("synch_mode needs mqtt.enabled to receive advance signals")
        return MqttSignalSource(
            mq.host, mq.port, mq.synch_topic, client_id=f"{mq.client_id}-synch" if mq.client_id else "",
            keepalive=mq.keepalive,
        )

    def _load_tracklets(
        self,
        dataset: KittiTrackingDataset,
        calibration: Calibration,
        labels: Optional[TrackLabelStore],
    ) -> TrackletIndex:
        if self.config.tracklets_path:
            return TrackletIndex.load(self.config.tracklets_path)
        if labels is not None:
            return TrackletIndex.from_track_labels(labels, calibration)
        self.logger.warning("no tracklets or labels for sequence %s", dataset.sequence)
        return TrackletIndex([])

    def run(self) -> PlaybackSummary:
        try:
            cfg = self.config.validate()
        except ConfigError as exc:
            self.logger.error("invalid config: %s", exc)
            raise

        storage = SessionStorage(cfg.session_root, name=f"{cfg.sequence}_replay")
        try:
            session_path = storage.begin()
            storage.write_manifest(cfg.as_dict())
        except PlayerError as exc:
            self.logger.error("cannot create session: %s", exc)
            raise

        log_file = str(storage.log_path)
        with session_log(self.logger, cfg.sequence, log_file):
            self.logger.info("session started: %s", session_path)
            self.logger.info("config: %s", cfg.as_dict())
            try:
                published, total = self._play(cfg, storage)
            except PlayerError as exc:
                self.logger.error("playback aborted: %s", exc)
                raise

        summary = PlaybackSummary(
            str(session_path),
            published,
            cfg.start_frame,
            cfg.start_frame + published - 1 if published else None,
            total,
            log_file,
            self.avg_fps,
        )
        storage.write_summary(asdict(summary))
        return summary

    def _play(self, cfg: PlayerConfig, storage: SessionStorage) -> tuple[int, int]:
        dataset = KittiTrackingDataset(cfg.dataset_root, cfg.sequence, cfg.camera)
        dataset.check_layout(cfg.use_color, cfg.use_velodyne, cfg.use_oxts)
        total = dataset.count_entries(cfg.use_color, cfg.use_velodyne)

        image_size = (cfg.image_width, cfg.image_height)
        if cfg.use_color and 0 <= cfg.start_frame < total:
            h, w = dataset.read_image(cfg.start_frame).shape[:2]
            image_size = (w, h)

        calibration = dataset.read_calibration(image_size).calibration
        labels = None
        if dataset.label_path.is_file() or cfg.draw_labels:
            labels = dataset.read_labels(image_size)
        tracklets = self._load_tracklets(dataset, calibration, labels)
        trace = dataset.read_trace() if cfg.use_oxts else None

        outputs = self._build_outputs(storage)
        source = self._build_signal_source()
        gate = SynchGate(source) if source is not None else None

        self.synchronizer = FrameSynchronizer(
            cfg,
            calibration,
            tracklets,
            total,
            outputs,
            reader=dataset,
            trace=trace,
            labels=labels,
            gate=gate,
            logger=self.logger,
            stop_event=self._stop_event,
        )

        t0 = time.time()
        try:
            for out in outputs:
                out.open(Path(storage.session_dir))
            published = self.synchronizer.run()
        finally:
            for out in outputs:
                try:
                    out.close()
                except Exception as exc:
                    self.logger.warning("closing %s failed: %s", type(out).__name__, exc)
            if source is not None:
                try:
                    source.close()
                except Exception as exc:
                    self.logger.warning("closing synch source failed: %s", exc)

        self.avg_fps = published / max(1e-6, (time.time() - t0))
        self.logger.info("summary frames=%d avg_fps=%.2f", published, self.avg_fps)
        return published, total
