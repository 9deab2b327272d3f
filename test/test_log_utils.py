import logging

import pytest

from libvcursor import log_utils


@pytest.fixture
def scratch_logger():
    logger = logging.getLogger("libvcursor.scratch")
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def test_init_log_to_file(tmp_path, scratch_logger):
    path = tmp_path / "state" / "libvcursor.log"
    log_utils.init_log(logging.DEBUG, log_path=path, logger=scratch_logger)
    scratch_logger.warning("hello %s", "there")
    for handler in scratch_logger.handlers:
        handler.flush()
    text = path.read_text()
    assert "WARNING" in text
    assert "hello there" in text


def test_init_log_replaces_handlers(scratch_logger):
    log_utils.init_log(logging.INFO, logger=scratch_logger)
    log_utils.init_log(logging.INFO, logger=scratch_logger)
    assert len(scratch_logger.handlers) == 1
    assert isinstance(scratch_logger.handlers[0].formatter, log_utils.ColorFormatter)
    assert scratch_logger.level == logging.INFO


def test_color_formatter():
    formatter = log_utils.ColorFormatter("$RED%(message)s$RESET")
    record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
    message = formatter.format(record)
    assert message.startswith("\033[31m")
    assert "boom" in message
    assert message.endswith("\033[0m")


def test_default_log(monkeypatch):
    monkeypatch.setenv("XDG_STATE_HOME", "/tmp/state")
    assert str(log_utils.get_default_log()) == "/tmp/state/libvcursor/libvcursor.log"
