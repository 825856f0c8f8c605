"""
Logging setup shared by every modcase module.

Each named logger writes to the console through prompt_toolkit (coloured
when stderr is a terminal) and to one rotating log file per session under
``LOGS_DIR``. The console level defaults to INFO and can be changed with
``MODCASE_CONSOLE_LOG_LEVEL``; the file always receives DEBUG.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = Path(os.getenv("MODCASE_LOG_DIR", Path(__file__).parents[3] / "logs")).resolve()
CONSOLE_LEVEL: str = os.getenv("MODCASE_CONSOLE_LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H-%M-%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5
REUSE_WINDOW_SECONDS = 60

LOG_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[38;5;88m",
}
RESET_COLOR = "\033[0m"

LOG_FILEPATH: Path | None = None


class ColorFormatter(logging.Formatter):
    """Formatter that wraps each record in the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LOG_COLORS.get(record.levelname)
        if not color:
            return text
        return f"{color}{text}{RESET_COLOR}"


class PromptToolkitHandler(logging.Handler):
    """Console handler printing through ``print_formatted_text`` so prompts stay intact."""

    def __init__(self, formatter: logging.Formatter | None = None):
        super().__init__()
        if formatter is not None:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    """True when stderr is a TTY."""
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


plain_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
console_formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain_formatter


def get_log_filepath() -> Path:
    """
    Log file shared by every logger of this process.

    Resolved once per process. A file from today modified within
    ``REUSE_WINDOW_SECONDS`` is appended to, so a quick restart keeps one
    file; otherwise a new timestamped file is started.
    """
    global LOG_FILEPATH

    if LOG_FILEPATH is not None:
        return LOG_FILEPATH

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    now = datetime.now()
    todays_logs = sorted(
        LOGS_DIR.glob(f"{now:%Y-%m-%d}*.log"),
        key=lambda path: path.stat().st_mtime,
        reverse=True,
    )
    if todays_logs and now.timestamp() - todays_logs[0].stat().st_mtime < REUSE_WINDOW_SECONDS:
        LOG_FILEPATH = todays_logs[0]
    else:
        LOG_FILEPATH = LOGS_DIR / f"{now.strftime(DATE_FORMAT)}.log"
    return LOG_FILEPATH


def _console_handler() -> logging.Handler:
    handler = PromptToolkitHandler(formatter=console_formatter)
    handler.setLevel(logging.getLevelName(CONSOLE_LEVEL) if CONSOLE_LEVEL in LOG_COLORS else logging.INFO)
    return handler


def _file_handler() -> logging.Handler:
    handler = RotatingFileHandler(
        get_log_filepath(),
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(plain_formatter)
    return handler


def setup_logger(logger_name: str) -> logging.Logger:
    """Attach the console and file handlers to ``logger_name`` once."""
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(_console_handler())
    logger.addHandler(_file_handler())
    return logger


def get_logger(logger_name: str) -> logging.Logger:
    """Return the configured logger for ``logger_name``."""
    return setup_logger(logger_name)


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` replacement; Ctrl+C still goes to the default hook."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.error("Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback))


# Third-party loggers only report errors
NOISY_LOGGERS = [
    "discord", "discord.gateway", "discord.client", "discord.http",
    "websockets", "aiohttp", "aiosqlite", "asyncio",
]

for noisy_name in NOISY_LOGGERS:
    noisy = logging.getLogger(noisy_name)
    noisy.setLevel(logging.ERROR)
    noisy.propagate = False
    noisy.handlers = []
