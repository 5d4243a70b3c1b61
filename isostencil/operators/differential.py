"""
Reference differential operators.

Exact symbolic versions of the target operators of the stencil catalog and of
the companion operators that describe the leading discretization error of the
isotropic stencils. Every operator is a power of the Laplacian optionally
followed by x derivatives, so an operator is fully described by
``laplacian_power`` and ``x_derivatives``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import sympy

from isostencil.utils.exceptions import MissingCompanionOperatorError

if TYPE_CHECKING:
    from collections.abc import Sequence


class OperatorKind(str, Enum):
    """Target operators of the stencil catalog."""

    LAPLACIAN = "Laplacian"
    BILAPLACIAN = "Bilaplacian"
    GRADLAP = "GradLap"


@dataclass(frozen=True)
class DifferentialOperator:
    """Laplacian raised to ``laplacian_power`` followed by ``x_derivatives`` x derivatives."""

    name: str
    laplacian_power: int
    x_derivatives: int = 0

    @property
    def differential_order(self) -> int:
        return 2 * self.laplacian_power + self.x_derivatives

    def apply(self, expr: sympy.Expr, coordinates: Sequence[sympy.Symbol]) -> sympy.Expr:
        """
        Apply the operator exactly.

        Args:
            expr: Expression in ``coordinates``
            coordinates: Spatial coordinates, x first

        Returns:
            Expanded result of the differentiation
        """
        result = sympy.sympify(expr)
        for _ in range(self.laplacian_power):
            result = sympy.Add(*[sympy.diff(result, coordinate, 2) for coordinate in coordinates])
        if self.x_derivatives:
            result = sympy.diff(result, coordinates[0], self.x_derivatives)
        return sympy.expand(result)


LAPLACIAN = DifferentialOperator("Laplacian", laplacian_power=1)
BILAPLACIAN = DifferentialOperator("Bilaplacian", laplacian_power=2)
GRADIENT_OF_LAPLACIAN = DifferentialOperator("GradLap", laplacian_power=1, x_derivatives=1)

REFERENCE_OPERATORS: dict[OperatorKind, DifferentialOperator] = {
    OperatorKind.LAPLACIAN: LAPLACIAN,
    OperatorKind.BILAPLACIAN: BILAPLACIAN,
    OperatorKind.GRADLAP: GRADIENT_OF_LAPLACIAN,
}

# Error operator L' with S(f) - L(f) = e h^p L'(f) + O(h^(p+2)), keyed by (operator, p)
COMPANION_OPERATORS: dict[tuple[OperatorKind, int], DifferentialOperator] = {
    (OperatorKind.LAPLACIAN, 2): DifferentialOperator("Bilaplacian", laplacian_power=2),
    (OperatorKind.LAPLACIAN, 4): DifferentialOperator("TripleLaplacian", laplacian_power=3),
    (OperatorKind.BILAPLACIAN, 2): DifferentialOperator("TripleLaplacian", laplacian_power=3),
    (OperatorKind.BILAPLACIAN, 4): DifferentialOperator("QuadrupleLaplacian", laplacian_power=4),
    (OperatorKind.GRADLAP, 2): DifferentialOperator("GradBilaplacian", laplacian_power=2, x_derivatives=1),
    (OperatorKind.GRADLAP, 4): DifferentialOperator("GradTripleLaplacian", laplacian_power=3, x_derivatives=1),
}


def reference_operator(kind: OperatorKind | str) -> DifferentialOperator:
    """Exact operator a stencil of the given kind approximates."""
    return REFERENCE_OPERATORS[OperatorKind(kind)]


def companion_operator(kind: OperatorKind | str, order: int, stencil_id: str | None = None) -> DifferentialOperator:
    """
    Error operator for isotropic stencils of the given kind and accuracy order.

    Raises:
        MissingCompanionOperatorError: If no companion is tabulated
    """
    kind = OperatorKind(kind)
    try:
        return COMPANION_OPERATORS[(kind, order)]
    except KeyError:
        raise MissingCompanionOperatorError(kind.value, order, stencil_id=stencil_id) from None
