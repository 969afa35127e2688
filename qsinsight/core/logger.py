"""
Logging for QS Insight

Every module logs through a child of the "QSInsight" logger. setup_logging()
attaches a console handler and, when a log directory is given, a file handler
rotated at midnight. Both handlers mask ODBC passwords.
"""

import re
import sys
import logging
from pathlib import Path
from typing import Optional
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime

from qsinsight.core.constants import APP_NAME, LOG_FILE

ROOT_LOGGER_NAME = APP_NAME.replace(' ', '')

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"

# PWD={...} with "}}" escapes, or a bare PWD=... up to the next ';'
_PASSWORD_PATTERN = re.compile(r"(PWD=)(\{(?:[^}]|\}\})*\}|[^;]*)", re.IGNORECASE)


def mask_passwords(text: str) -> str:
    """Replace ODBC PWD values with ***"""
    return _PASSWORD_PATTERN.sub(r"\1{***}", text)


class PasswordMaskFilter(logging.Filter):
    """Rewrites records so no connection-string password reaches a handler"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = mask_passwords(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class ColoredFormatter(logging.Formatter):
    """Level names coloured with ANSI codes when stdout is a terminal"""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',
        logging.INFO: '\033[32m',
        logging.WARNING: '\033[33m',
        logging.ERROR: '\033[31m',
        logging.CRITICAL: '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None,
                 use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and (
            sys.platform == 'win32' or getattr(sys.stdout, 'isatty', lambda: False)()
        )

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        # Colour a copy; the file handler formats the same record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class QSInsightLogger:
    """Owns the application logger and its handlers (one instance per process)"""

    _instance: Optional['QSInsightLogger'] = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.logger = logging.getLogger(ROOT_LOGGER_NAME)
            instance.logger.setLevel(logging.INFO)
            cls._instance = instance
        return cls._instance

    def _reset_handlers(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def setup(
        self,
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        file_enabled: bool = True,
        retention_days: int = 7,
    ) -> logging.Logger:
        """
        (Re)configure handlers

        Args:
            level: Console and logger level name; unknown names mean INFO
            log_dir: Directory for the rotating log file
            file_enabled: Write the log file when log_dir is given
            retention_days: Rotated files to keep, one per day
        """
        self._reset_handlers()
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
        self.logger.setLevel(log_level)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(log_level)
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT, "%H:%M:%S"))
        console.addFilter(PasswordMaskFilter())
        self.logger.addHandler(console)

        if file_enabled and log_dir:
            log_dir = Path(log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                log_dir / LOG_FILE,
                when='midnight',
                backupCount=max(1, int(retention_days)),
                encoding='utf-8',
            )
            file_handler.suffix = "%Y-%m-%d"
            # The logger level still gates what reaches the file
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, "%Y-%m-%d %H:%M:%S"))
            file_handler.addFilter(PasswordMaskFilter())
            self.logger.addHandler(file_handler)

        return self.logger

    def child(self, name: Optional[str] = None) -> logging.Logger:
        return self.logger.getChild(name) if name else self.logger


_app_logger: Optional[QSInsightLogger] = None


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    file_enabled: bool = True,
    retention_days: int = 7,
) -> logging.Logger:
    """Configure application logging; called once at start-up"""
    global _app_logger
    _app_logger = QSInsightLogger()
    return _app_logger.setup(
        level=level,
        log_dir=log_dir,
        file_enabled=file_enabled,
        retention_days=retention_days,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Child of the application logger, e.g. get_logger('database.connection')

    Console-only INFO logging is set up on first use if setup_logging() has
    not run yet.
    """
    global _app_logger
    if _app_logger is None:
        _app_logger = QSInsightLogger()
        _app_logger.setup(file_enabled=False)
    return _app_logger.child(name)


class LogContext:
    """
    Logs start, duration and failure of a block; exceptions propagate

    Example:
        >>> with LogContext(logger, "Checking Query Store on 12 database(s)"):
        ...     ...
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.INFO):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.start_time: Optional[datetime] = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.log(self.level, f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = (datetime.now() - self.start_time).total_seconds()
        if exc_type is None:
            self.logger.log(self.level, f"{self.operation}... completed in {elapsed:.2f}s")
        else:
            self.logger.error(f"{self.operation}... failed after {elapsed:.2f}s: {exc_val}")
        return False
