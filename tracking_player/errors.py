"""Error taxonomy for the tracking player.

Every error is fatal for a playback run: loaders and the frame loop raise,
``run.main`` reports and exits non-zero.
"""


class PlayerError(Exception):
    """Base class for all playback failures."""


class ConfigError(PlayerError):
    """Invalid configuration or calibration, detected before any frame plays."""


class ParseError(PlayerError):
    """Malformed record in a dataset file (trace line, label row, XML)."""


class DatasetIOError(PlayerError, OSError):
    """A file cannot be read or written, or the MQTT broker cannot be reached."""


class UninitializedOriginError(PlayerError, RuntimeError):
    """A local pose was requested before the sequence origin was set."""


class CalibrationError(ConfigError, ParseError):
    """Calibration file is missing a matrix or has a malformed one."""
