"""
Logging utilities for isostencil.

Usage:
    >>> from isostencil.utils.stencil_logging import get_logger, configure_logging
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("Loading catalog...")
"""

from __future__ import annotations

from .logger import (
    StencilFormatter,
    StencilLogger,
    configure_logging,
    get_logger,
    log_check_failure,
    log_run_configuration,
    log_run_summary,
)

__all__ = [
    "StencilFormatter",
    "StencilLogger",
    "configure_logging",
    "get_logger",
    "log_check_failure",
    "log_run_configuration",
    "log_run_summary",
]
