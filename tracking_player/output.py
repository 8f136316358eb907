from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import paho.mqtt.client as mqtt

from .errors import DatasetIOError
from .services.csv_writer import CsvWriter
from .services.storage import SessionStorage
from .tp_types import FrameEvent

log = logging.getLogger(__name__)


def pose_row(event: FrameEvent) -> list:
    pose = event.pose
    gps = event.gps
    row: list[Any] = [event.frame_index]
    if pose is None:
        row += [None] * 7
    else:
        row += [pose.x, pose.y, pose.z, *pose.orientation.as_tuple()]
    if gps is None:
        row += [None] * 3
    else:
        row += [gps.lat, gps.lon, gps.alt]
    return row


def object_rows(event: FrameEvent) -> list[list]:
    rows = []
    for track in event.tracks:
        box = track.box()
        rows.append([
            event.frame_index,
            track.index,
            track.tracklet.track_id,
            box.object_type,
            box.object_class.value,
            *box.center,
            *box.dimensions,
            box.heading,
        ])
    return rows


class PublishSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def publish(self, event: FrameEvent) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(PublishSink):
    def __init__(self, poses_name: str = "poses.csv", objects_name: str = "objects.csv"):
        self.poses_name = poses_name
        self.objects_name = objects_name
        self._poses: Optional[CsvWriter] = None
        self._objects: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self._poses = CsvWriter(str(session_dir / self.poses_name), CsvWriter.POSE_HEADER)
        self._objects = CsvWriter(str(session_dir / self.objects_name), CsvWriter.OBJECT_HEADER)
        self._poses.open()
        self._objects.open()

    def publish(self, event: FrameEvent) -> None:
        if self._poses is None or self._objects is None:
            return
        self._poses.append(pose_row(event))
        for row in object_rows(event):
            self._objects.append(row)

    def close(self) -> None:
        for writer in (self._poses, self._objects):
            if writer is not None:
                writer.close()
        self._poses = None
        self._objects = None


class ImageOutput(PublishSink):
    """Writes the annotated image of every frame that has one."""

    def __init__(self, storage: SessionStorage):
        self.storage = storage
        self.paths: list[str] = []

    def open(self, session_dir: Path) -> None:
        return None

    def publish(self, event: FrameEvent) -> None:
        if event.annotated is None:
            return
        self.paths.append(self.storage.save_annotated(event.frame_index, event.annotated))

    def close(self) -> None:
        return None


class MqttOutput(PublishSink):
    """
    Publishes CSV lines per frame: one pose line on <prefix>/pose and one
    line per active object on <prefix>/objects. The header of each topic is
    sent once per session, before its first record.
    """

    def __init__(
        self,
        host: str,
        port: int = 1883,
        topic_prefix: str = "kitti_player",
        client_id: str = "",
        keepalive: int = 60,
        client: Any = None,
    ):
        self.host = host
        self.port = port
        self.topic_prefix = topic_prefix.rstrip("/")
        self.keepalive = keepalive
        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=client_id
        )
        self._headers_sent: set[str] = set()

    def _topic(self, name: str) -> str:
        return f"{self.topic_prefix}/{name}"

    def _send(self, name: str, header: list, line: str) -> None:
        topic = self._topic(name)
        if topic not in self._headers_sent:
            self.client.publish(topic, ",".join(header))
            self._headers_sent.add(topic)
        self.client.publish(topic, line)

    def open(self, session_dir: Path) -> None:
        log.info("publishing to %s:%d under %s/", self.host, self.port, self.topic_prefix)
        try:
            self.client.connect(self.host, self.port, self.keepalive)
        except OSError as exc:
            raise DatasetIOError(f"Cannot reach MQTT broker {self.host}:{self.port}") from exc
        self.client.loop_start()

    def publish(self, event: FrameEvent) -> None:
        self._send("pose", CsvWriter.POSE_HEADER, CsvWriter.to_csv_line(pose_row(event)))
        for row in object_rows(event):
            self._send("objects", CsvWriter.OBJECT_HEADER, CsvWriter.to_csv_line(row))

    def close(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()


class NullOutput(PublishSink):
    def open(self, session_dir: Path) -> None:
        return None

    def publish(self, event: FrameEvent) -> None:
        return None

    def close(self) -> None:
        return None
