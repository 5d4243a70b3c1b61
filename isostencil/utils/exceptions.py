"""
Exception classes for isostencil with helpful error messages.

Every verification error is scoped to a single stencil check. The error kind
decides how the runner reports the check: residuals, unresolved symbols and
missing companion operators are failures, timeouts are inconclusive.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Classification of a failed or inconclusive check."""

    UNRESOLVED_SYMBOL = "UnresolvedSymbol"
    NON_VANISHING_RESIDUAL = "NonVanishingResidual"
    TIMEOUT = "Timeout"
    MISSING_COMPANION_OPERATOR = "MissingCompanionOperator"
    INTERNAL_ERROR = "InternalError"


class StencilVerificationError(Exception):
    """
    Base exception for stencil verification errors.

    Carries structured context:
    - the identifier of the stencil or check that raised it
    - a suggested action for the catalog maintainer
    - an error code and optional diagnostic data
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        stencil_id: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.message = message
        self.stencil_id = stencil_id or "Unknown Stencil"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.stencil_id}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class UnresolvedSymbolError(StencilVerificationError):
    """Raised when coefficients stay symbolic where a concrete stencil was required."""

    kind = ErrorKind.UNRESOLVED_SYMBOL

    def __init__(self, symbols: list[str], stencil_id: str | None = None):
        self.symbols = sorted(symbols, key=_symbol_sort_key)

        super().__init__(
            message=f"Coefficients left unresolved after substitution: {', '.join(self.symbols)}",
            stencil_id=stencil_id,
            suggested_action="Give every coefficient of the general form a value in the coefficient set",
            error_code="UNRESOLVED_SYMBOL",
            diagnostic_data={"unresolved": ", ".join(self.symbols)},
        )


class NonVanishingResidualError(StencilVerificationError):
    """Raised when a residual that must vanish has a non-zero term."""

    kind = ErrorKind.NON_VANISHING_RESIDUAL

    def __init__(
        self,
        residual: Any,
        order: int | None = None,
        stencil_id: str | None = None,
        check: str | None = None,
    ):
        self.residual = residual
        self.order = order

        if order is None:
            message = "Residual does not simplify to zero"
        else:
            message = f"Residual does not vanish at order h^{order}"
        if check:
            message = f"{check}: {message}"

        diagnostic_data: dict[str, Any] = {"residual": _shorten(str(residual))}
        if order is not None:
            diagnostic_data["order"] = order

        super().__init__(
            message=message,
            stencil_id=stencil_id,
            suggested_action="Correct the stencil weights or the coefficient set in the catalog",
            error_code="NON_VANISHING_RESIDUAL",
            diagnostic_data=diagnostic_data,
        )


class CheckTimeoutError(StencilVerificationError):
    """Raised when a check exceeds its time budget. The check is inconclusive, not failed."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout: float, elapsed: float, stencil_id: str | None = None, stage: str | None = None):
        self.timeout = timeout
        self.elapsed = elapsed
        self.stage = stage

        diagnostic_data: dict[str, Any] = {"timeout": f"{timeout:.1f}s", "elapsed": f"{elapsed:.1f}s"}
        if stage:
            diagnostic_data["stage"] = stage

        super().__init__(
            message=f"Check exceeded its time budget of {timeout:.1f}s",
            stencil_id=stencil_id,
            suggested_action="Raise timeout_per_check or run the check on its own",
            error_code="TIMEOUT",
            diagnostic_data=diagnostic_data,
        )


class MissingCompanionOperatorError(StencilVerificationError):
    """Raised when the error operator for an isotropic stencil is not defined."""

    kind = ErrorKind.MISSING_COMPANION_OPERATOR

    def __init__(self, operator: str, order: int, stencil_id: str | None = None):
        self.operator = operator
        self.order = order

        super().__init__(
            message=f"No companion error operator for {operator} at O(h^{order})",
            stencil_id=stencil_id,
            suggested_action="Add the companion operator to the operator reference table",
            error_code="MISSING_COMPANION_OPERATOR",
            diagnostic_data={"operator": operator, "order": order},
        )


class RegistryError(StencilVerificationError):
    """Raised when the stencil catalog cannot be parsed or validated."""

    def __init__(self, message: str, source: str | None = None, details: str | None = None):
        diagnostic_data = {}
        if source:
            diagnostic_data["source"] = source
        if details:
            diagnostic_data["details"] = details

        super().__init__(
            message=message,
            stencil_id="catalog",
            suggested_action="Fix the catalog entry named above",
            error_code="INVALID_CATALOG",
            diagnostic_data=diagnostic_data,
        )


def _symbol_sort_key(name: str) -> tuple[str, int]:
    prefix = name.rstrip("0123456789")
    suffix = name[len(prefix) :]
    return prefix, int(suffix) if suffix else -1


def _shorten(text: str, limit: int = 300) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
