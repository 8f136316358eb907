"""Per-frame replay loop.

    IDLE -> WAITING_FOR_FRAME -> PUBLISHING -> ADVANCING -> WAITING_FOR_FRAME ...
                     |                              |
                     +---------> DONE <-------------+

Frames are processed one at a time in strictly increasing index order.
Any read or parse error propagates out of step()/run() and ends the run.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Iterable, Optional

import numpy as np

from .calibration import Calibration
from .config import PlayerConfig
from .errors import ConfigError, ParseError
from .labels import TrackLabelStore
from .output import PublishSink
from .oxts import OxtsTrace
from .pose import PoseTracker
from .projection import Projector, draw_label_boxes, draw_tracks
from .synch import SynchGate
from .tp_types import FrameEvent
from .tracklets import TrackletIndex


class SyncState(Enum):
    IDLE = "idle"
    WAITING_FOR_FRAME = "waiting_for_frame"
    PUBLISHING = "publishing"
    ADVANCING = "advancing"
    DONE = "done"


class FrameSynchronizer:
    def __init__(
        self,
        config: PlayerConfig,
        calibration: Calibration,
        tracklets: TrackletIndex,
        total_entries: int,
        sinks: Iterable[PublishSink],
        reader=None,
        trace: Optional[OxtsTrace] = None,
        labels: Optional[TrackLabelStore] = None,
        gate: Optional[SynchGate] = None,
        pose_tracker: Optional[PoseTracker] = None,
        logger: Optional[logging.Logger] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.calibration = calibration
        self.tracklets = tracklets
        self.total_entries = total_entries
        self.sinks = list(sinks)
        self.reader = reader
        self.trace = trace
        self.labels = labels
        self.gate = gate
        self.pose_tracker = pose_tracker or PoseTracker()
        self.logger = logger or logging.getLogger(__name__)
        self.projector = Projector(
            calibration.projection_matrix(),
            config.min_distance,
            config.max_distance,
            config.color_scale,
        )

        self.state = SyncState.IDLE
        self.frame_index = config.start_frame
        self.published = 0
        self.history: list[SyncState] = [SyncState.IDLE]
        self._stop_event = stop_event or threading.Event()
        self.sleep: Callable[[float], None] = time.sleep
        self.clock: Callable[[], float] = time.monotonic

    def stop(self) -> None:
        self._stop_event.set()

    def _transition(self, state: SyncState) -> None:
        self.state = state
        self.history.append(state)

    def load(self) -> None:
        if self.state is not SyncState.IDLE:
            return
        cfg = self.config
        if self.total_entries <= 0:
            raise ConfigError("sequence has no frames")
        if cfg.start_frame >= self.total_entries:
            raise ConfigError(
                f"start frame {cfg.start_frame} >= total entries {self.total_entries}"
            )
        if (cfg.use_color or cfg.use_velodyne) and self.reader is None:
            raise ConfigError("color/velodyne playback needs a dataset reader")
        if cfg.synch_mode and self.gate is None:
            raise ConfigError("synch mode needs a synch signal source")
        if self.trace is not None:
            try:
                reference = self.trace.geo_pose(cfg.origin_frame)
            except ParseError as exc:
                raise ConfigError(f"cannot set origin from frame {cfg.origin_frame}: {exc}") from exc
            self.pose_tracker.init_origin(reference)
            self.logger.info(
                "origin fixed at frame %d (lat=%.7f lon=%.7f alt=%.3f)",
                cfg.origin_frame, reference.lat, reference.lon, reference.alt,
            )
        self.logger.info(
            "entry frame %d, total frames %d, %d tracklets",
            self.frame_index, self.total_entries, len(self.tracklets),
        )
        self._transition(SyncState.WAITING_FOR_FRAME)

    def build_event(self, frame_index: int) -> FrameEvent:
        cfg = self.config
        event = FrameEvent(frame_index, None)

        if self.trace is not None:
            event.gps = self.trace.geo_pose(frame_index)
            event.imu = self.trace.imu(frame_index)
            event.pose = self.pose_tracker.resolve_pose(event.gps)

        event.tracks = self.tracklets.active_at(frame_index)
        if self.labels is not None:
            event.labels = self.labels.objects_at(frame_index)

        cloud = None
        if cfg.use_color:
            event.image = self.reader.read_image(frame_index)
        if cfg.use_velodyne:
            cloud = self.reader.read_cloud(frame_index)
            event.num_points = int(np.shape(cloud)[0])

        if event.image is not None and (cfg.render_overlay or cfg.draw_labels or cfg.draw_tracklets):
            annotated = event.image
            if cfg.render_overlay and cloud is not None:
                annotated = self.projector.render_overlay(cloud, annotated)
            if cfg.draw_labels:
                annotated = draw_label_boxes(annotated, event.labels)
            if cfg.draw_tracklets:
                annotated = draw_tracks(annotated, event.tracks, self.projector.matrix)
            event.annotated = annotated
        return event

    def step(self) -> SyncState:
        """Run exactly one state transition and return the new state."""
        state = self.state
        if state is SyncState.IDLE:
            self.load()
        elif state is SyncState.WAITING_FOR_FRAME:
            if self._stop_event.is_set():
                self._transition(SyncState.DONE)
            elif self.config.max_frames and self.published >= self.config.max_frames:
                self._transition(SyncState.DONE)
            elif self.config.synch_mode and not self.gate.try_pass():
                pass
            else:
                self._transition(SyncState.PUBLISHING)
        elif state is SyncState.PUBLISHING:
            event = self.build_event(self.frame_index)
            for sink in self.sinks:
                sink.publish(event)
            self.published += 1
            self.logger.info(
                "frame=%d tracks=%d points=%d",
                event.frame_index, len(event.tracks), event.num_points,
            )
            self._transition(SyncState.ADVANCING)
        elif state is SyncState.ADVANCING:
            self.frame_index += 1
            if self.frame_index > self.total_entries - 1:
                self._transition(SyncState.DONE)
            else:
                self._transition(SyncState.WAITING_FOR_FRAME)
        return self.state

    def run(self) -> int:
        """Play until DONE or stop(); returns the number of published frames."""
        period = 1.0 / self.config.frequency_hz if self.config.frequency_hz > 0 else 0.0
        last_tick = self.clock()
        while self.state is not SyncState.DONE:
            if self._stop_event.is_set():
                self.logger.info("stop requested at frame %d", self.frame_index)
                self._transition(SyncState.DONE)
                break
            before = self.state
            after = self.step()
            if before is SyncState.WAITING_FOR_FRAME and after is SyncState.WAITING_FOR_FRAME:
                self.sleep(self.config.poll_interval_sec)
            elif before is SyncState.PUBLISHING and not self.config.synch_mode and period:
                now = self.clock()
                wait = period - (now - last_tick)
                if wait > 0:
                    self.sleep(wait)
                last_tick = self.clock()
        self.logger.info("Done! published %d frames", self.published)
        return self.published
