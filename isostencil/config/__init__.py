"""
Configuration management for verification runs.

Quick Start
-----------
>>> from isostencil.config import VerificationConfig, ExecutionConfig
>>> config = VerificationConfig(execution=ExecutionConfig(max_workers=4, timeout_per_check=300))

>>> # Or load from YAML
>>> from isostencil.config import load_verification_config
>>> config = load_verification_config("verify.yaml")
"""

from .core import (
    CategoryName,
    ExecutionConfig,
    ExecutionMode,
    FilterConfig,
    LoggingConfig,
    PolynomialConfig,
    VerificationConfig,
)
from .io import load_verification_config, save_verification_config

__all__ = [
    "CategoryName",
    "ExecutionConfig",
    "ExecutionMode",
    "FilterConfig",
    "LoggingConfig",
    "PolynomialConfig",
    "VerificationConfig",
    "load_verification_config",
    "save_verification_config",
]
