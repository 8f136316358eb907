import logging

import pytest

from tracking_player.logging_utils import session_log, setup_logger


def test_session_log_detaches_after_block(tmp_path):
    logger = setup_logger("0042")
    log_path = tmp_path / "session.log"
    handlers_before = list(logger.handlers)

    with pytest.raises(RuntimeError):
        with session_log(logger, "0042", str(log_path)) as handler:
            assert handler in logger.handlers
            logger.info("frame published")
            raise RuntimeError("stop")

    assert logger.handlers == handlers_before
    logger.info("after the session")
    text = log_path.read_text(encoding="utf-8")
    assert "INFO [0042] frame published" in text
    assert "after the session" not in text


def test_setup_logger_adds_console_handler_once():
    logger = setup_logger("0043", level=logging.DEBUG)
    assert setup_logger("0043") is logger
    assert len(logger.handlers) == 1
