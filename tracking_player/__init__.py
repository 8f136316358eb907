"""KITTI tracking sequence replay: frames, point clouds, OXTS poses and tracklets."""

from .config import MqttConfig, PlayerConfig
from .player import PlaybackSummary, TrackingPlayer
from .synchronizer import FrameSynchronizer, SyncState

__all__ = [
    "MqttConfig",
    "PlayerConfig",
    "PlaybackSummary",
    "TrackingPlayer",
    "FrameSynchronizer",
    "SyncState",
]
