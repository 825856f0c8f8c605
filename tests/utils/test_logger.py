import logging
from logging.handlers import RotatingFileHandler

from modcase.util import logger as logger_module
from modcase.util.logger import (
    ColorFormatter,
    NOISY_LOGGERS,
    PromptToolkitHandler,
    get_log_filepath,
    get_logger,
    handle_exception,
    should_use_color,
)


class DummyStream:
    def write(self, msg):
        pass

    def isatty(self):
        return True


def test_get_logger_attaches_console_and_file_handlers():
    logger = get_logger("modcase_test_handlers")

    assert logger.propagate is False
    assert any(isinstance(h, PromptToolkitHandler) for h in logger.handlers)
    file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    assert file_handlers and file_handlers[0].baseFilename == str(get_log_filepath())


def test_get_logger_is_idempotent():
    first = get_logger("modcase_test_idem")
    second = get_logger("modcase_test_idem")

    assert first is second
    assert len(first.handlers) == 2


def test_color_formatter_wraps_warning_in_yellow():
    formatter = ColorFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("test", logging.WARNING, "", 0, "no log channel", None, None)

    formatted = formatter.format(record)

    assert formatted.startswith("\033[33m")
    assert formatted.endswith(logger_module.RESET_COLOR)


def test_should_use_color_on_tty(monkeypatch):
    monkeypatch.setattr("sys.stderr", DummyStream())
    assert should_use_color() is True


def test_log_file_lives_in_configured_directory():
    path = get_log_filepath()

    assert path.parent == logger_module.LOGS_DIR
    assert path.parent.exists()


def test_noisy_libraries_are_clamped():
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.ERROR


def test_handle_exception_logs_error(caplog):
    class DummyException(Exception):
        pass

    with caplog.at_level(logging.ERROR):
        try:
            raise DummyException("fail")
        except DummyException as exc:
            handle_exception(DummyException, exc, exc.__traceback__)

    assert any("Uncaught exception" in r.message for r in caplog.records)
