"""Synch-mode signal sources.

In synch mode the player publishes a frame only after an external "advance"
event. Sources never block; the frame loop polls them once per iteration
and checks for a stop request in between.
"""

from __future__ import annotations

import logging
import queue
from abc import ABC, abstractmethod
from typing import Any, Optional

import paho.mqtt.client as mqtt

from .errors import DatasetIOError

log = logging.getLogger(__name__)

_TRUE_PAYLOADS = {"1", "true", "yes", "on"}


class SignalSource(ABC):
    @abstractmethod
    def poll(self) -> Optional[Any]:
        """Return the next pending event, or None if nothing arrived."""
        ...

    def close(self) -> None:
        return None


class QueueSignalSource(SignalSource):
    """Thread-safe in-process source; any thread may deliver()."""

    def __init__(self):
        self._events: "queue.Queue[Any]" = queue.Queue()

    def deliver(self, value: Any) -> None:
        self._events.put(value)

    def poll(self) -> Optional[Any]:
        try:
            return self._events.get_nowait()
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._events.qsize()


def parse_payload(payload: bytes) -> bool:
    text = payload.decode("utf-8", errors="replace").strip().lower()
    return text in _TRUE_PAYLOADS


class MqttSignalSource(QueueSignalSource):
    """Receives advance events on an MQTT topic (payload "true" or "1")."""

    def __init__(
        self,
        host: str,
        port: int = 1883,
        topic: str = "kitti_player/synch",
        client_id: str = "",
        keepalive: int = 60,
        client: Any = None,
    ):
        super().__init__()
        self.topic = topic
        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=client_id
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        try:
            self.client.connect(host, port, keepalive)
        except OSError as exc:
            raise DatasetIOError(f"Cannot reach MQTT broker {host}:{port}") from exc
        self.client.loop_start()

    def _on_connect(self, client, _userdata, _flags, reason_code, _properties=None):
        log.info("synch source connected (%s), subscribing to %s", reason_code, self.topic)
        client.subscribe(self.topic)

    def _on_message(self, _client, _userdata, msg):
        value = parse_payload(msg.payload)
        log.info("Synch received: %s", value)
        self.deliver(value)

    def close(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()


class SynchGate:
    """Lets one frame through per true event; other values are ignored."""

    def __init__(self, source: SignalSource):
        self.source = source

    def try_pass(self) -> bool:
        while True:
            event = self.source.poll()
            if event is None:
                return False
            if event is True:
                return True
            log.debug("ignoring synch event %r", event)
