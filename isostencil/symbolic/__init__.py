"""
Symbolic evaluation engine: stencil application, coefficient substitution and
truncated series in the grid spacing h.
"""

from __future__ import annotations

from .evaluator import (
    apply_stencil,
    apply_to_polynomial,
    multi_indices,
    stencil_moments,
    substitute_coefficients,
)
from .polynomial import GRID_SPACING, GenericPolynomial, coordinate_symbols
from .series import TruncatedSeries, is_zero, series_expand

__all__ = [
    "GRID_SPACING",
    "GenericPolynomial",
    "TruncatedSeries",
    "apply_stencil",
    "apply_to_polynomial",
    "coordinate_symbols",
    "is_zero",
    "multi_indices",
    "series_expand",
    "stencil_moments",
    "substitute_coefficients",
]
