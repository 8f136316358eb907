import logging
from contextlib import contextmanager
from typing import Iterator


LOG_FORMAT = "%(asctime)s %(levelname)s [%(sequence)s] %(message)s"


class SequenceNameFilter(logging.Filter):
    def __init__(self, sequence: str):
        super().__init__()
        self.sequence = sequence

    def filter(self, record: logging.LogRecord) -> bool:
        record.sequence = self.sequence
        return True


def _attach(logger: logging.Logger, handler: logging.Handler, sequence: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(SequenceNameFilter(sequence))
    logger.addHandler(handler)
    return handler


def setup_logger(sequence: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(f"tracking_player.{sequence}")
    logger.setLevel(level)

    if not logger.handlers:
        _attach(logger, logging.StreamHandler(), sequence)

    return logger


@contextmanager
def session_log(logger: logging.Logger, sequence: str, log_path: str) -> Iterator[logging.Handler]:
    """Mirror `logger` into the session log file while the block runs.

    The handler is detached and closed on exit, so a player reused for a
    second run never writes into the first session's log.
    """
    handler = _attach(logger, logging.FileHandler(log_path, encoding="utf-8"), sequence)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        handler.close()
