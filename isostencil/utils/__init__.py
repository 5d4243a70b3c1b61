"""Shared utilities: exceptions and logging."""

from __future__ import annotations

from .exceptions import (
    CheckTimeoutError,
    ErrorKind,
    MissingCompanionOperatorError,
    NonVanishingResidualError,
    RegistryError,
    StencilVerificationError,
    UnresolvedSymbolError,
)
from .stencil_logging import configure_logging, get_logger

__all__ = [
    "CheckTimeoutError",
    "ErrorKind",
    "MissingCompanionOperatorError",
    "NonVanishingResidualError",
    "RegistryError",
    "StencilVerificationError",
    "UnresolvedSymbolError",
    "configure_logging",
    "get_logger",
]
