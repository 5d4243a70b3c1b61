"""
Differential operators targeted by the stencil catalog.

Usage:
    >>> from isostencil.operators import reference_operator, companion_operator
    >>> lap = reference_operator("Laplacian")
    >>> lap.apply(x**4, (x, y))
    12*x**2
"""

from __future__ import annotations

from .differential import (
    BILAPLACIAN,
    COMPANION_OPERATORS,
    GRADIENT_OF_LAPLACIAN,
    LAPLACIAN,
    REFERENCE_OPERATORS,
    DifferentialOperator,
    OperatorKind,
    companion_operator,
    reference_operator,
)

__all__ = [
    "BILAPLACIAN",
    "COMPANION_OPERATORS",
    "GRADIENT_OF_LAPLACIAN",
    "LAPLACIAN",
    "REFERENCE_OPERATORS",
    "DifferentialOperator",
    "OperatorKind",
    "companion_operator",
    "reference_operator",
]
