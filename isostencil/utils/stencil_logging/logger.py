"""
Logging infrastructure for isostencil.

Provides a thread-safe logger registry with configurable level, a colored
console formatter and an optional log file.
"""

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar

import colorlog

if TYPE_CHECKING:
    from collections.abc import Mapping

_FORMAT = "%(asctime)s - %(name)-28s - %(levelname)-8s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class StencilFormatter(logging.Formatter):
    """Formatter with optional colors and source location."""

    def __init__(self, use_colors: bool = False, include_location: bool = False):
        self.use_colors = use_colors
        self.include_location = include_location

        format_str = _FORMAT
        if self.include_location:
            format_str += " [%(filename)s:%(lineno)d]"

        if self.use_colors:
            self.colored_formatter = colorlog.ColoredFormatter(
                "%(log_color)s" + format_str,
                datefmt=_DATEFMT,
                log_colors={
                    "DEBUG": "cyan",
                    "INFO": "green",
                    "WARNING": "yellow",
                    "ERROR": "red",
                    "CRITICAL": "red,bg_white",
                },
            )

        super().__init__(format_str, datefmt=_DATEFMT)

    def format(self, record):
        if self.use_colors:
            return self.colored_formatter.format(record)
        return super().format(record)


class StencilLogger:
    """
    Central logging manager holding the global configuration.

    Logger creation uses double-check locking so verification threads can call
    get_logger() concurrently without installing duplicate handlers.
    """

    _lock: ClassVar[threading.Lock] = threading.Lock()
    _loggers: ClassVar[dict[str, logging.Logger]] = {}
    _log_level = logging.INFO
    _log_to_file = False
    _log_file_path: Path | None = None
    _use_colors = True
    _include_location = False

    @classmethod
    def configure(
        cls,
        level: str | int = "INFO",
        log_to_file: bool = False,
        log_file_path: str | Path | None = None,
        use_colors: bool = True,
        include_location: bool = False,
    ):
        """
        Configure global logging settings.

        Args:
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_to_file: Whether to log to file
            log_file_path: Path to log file; defaults to ./logs/isostencil_<timestamp>.log
            use_colors: Use colored terminal output
            include_location: Include file location in log messages
        """
        with cls._lock:
            if isinstance(level, str):
                cls._log_level = getattr(logging, level.upper())
            else:
                cls._log_level = level

            cls._log_to_file = log_to_file
            cls._use_colors = use_colors
            cls._include_location = include_location

            if log_to_file:
                if log_file_path is None:
                    log_dir = Path.cwd() / "logs"
                    log_dir.mkdir(exist_ok=True)
                    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                    cls._log_file_path = log_dir / f"isostencil_{timestamp}.log"
                else:
                    cls._log_file_path = Path(log_file_path)
                    cls._log_file_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                cls._log_file_path = None

            for logger in cls._loggers.values():
                cls._setup_logger(logger)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get or create a logger for the specified module.

        Args:
            name: Logger name (typically __name__ from calling module)

        Returns:
            Configured logger instance
        """
        if name in cls._loggers:
            return cls._loggers[name]

        with cls._lock:
            if name not in cls._loggers:
                logger = logging.getLogger(name)
                if not logger.handlers:
                    cls._setup_logger(logger)
                cls._loggers[name] = logger

        return cls._loggers[name]

    @classmethod
    def log_file_path(cls) -> Path | None:
        return cls._log_file_path

    @classmethod
    def _setup_logger(cls, logger: logging.Logger):
        """Configure individual logger with current settings."""
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(cls._log_level)

        console_handler = logging.StreamHandler(sys.stderr)
        formatter = StencilFormatter(use_colors=cls._use_colors, include_location=cls._include_location)
        console_handler.setFormatter(formatter)
        console_handler.setLevel(cls._log_level)
        logger.addHandler(console_handler)

        if cls._log_to_file and cls._log_file_path:
            # File logs are never colored
            file_handler = logging.FileHandler(cls._log_file_path)
            file_handler.setFormatter(StencilFormatter(use_colors=False, include_location=cls._include_location))
            file_handler.setLevel(cls._log_level)
            logger.addHandler(file_handler)

        logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger for the current module.

    Args:
        name: Logger name (if None, uses calling module name)

    Returns:
        Configured logger instance
    """
    if name is None:
        import inspect

        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "isostencil")
        else:
            name = "isostencil"

    return StencilLogger.get_logger(name)


def configure_logging(**kwargs):
    """
    Configure global logging settings.

    Keyword Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to file
        log_file_path: Path to log file
        use_colors: Use colored terminal output
        include_location: Include file location in messages
    """
    StencilLogger.configure(**kwargs)


def log_run_configuration(logger: logging.Logger, n_checks: int, settings: Mapping[str, Any]):
    """Log the verification run setup."""
    logger.info(f"=== Verifying {n_checks} checks ===")
    for key, value in settings.items():
        logger.info(f"  {key}: {value}")


def log_check_failure(logger: logging.Logger, check_id: str, detail: str):
    """Log a failed check."""
    logger.warning(f"FAIL {check_id}: {detail}")


def log_run_summary(logger: logging.Logger, counts: Mapping[str, int], execution_time: float):
    """Log the final tally of a verification run."""
    tally = ", ".join(f"{status}: {count}" for status, count in counts.items())
    logger.info(f"Verification completed in {execution_time:.2f}s - {tally}")
