"""
Stencil value types.

A ``Stencil`` is an ordered list of ``StencilTerm`` objects, each a coefficient
multiplying the signed orbit of one generator offset, divided by h**scale_power.
Coefficients are sympy expressions: literal rationals for concrete stencils,
symbols ``c1, c2, ...`` (or affine expressions in them) for general forms.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import sympy

from .symmetry import Offset, SignedOffset, Symmetry, orbit

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping


@dataclass(frozen=True)
class StencilTerm:
    """One coefficient applied to the orbit of one generator offset."""

    coefficient: sympy.Expr
    generator: Offset
    symmetry: Symmetry = Symmetry.FULL
    points: tuple[SignedOffset, ...] = field(default=(), compare=False)

    def __post_init__(self):
        object.__setattr__(self, "coefficient", sympy.sympify(self.coefficient))
        object.__setattr__(self, "generator", tuple(self.generator))
        if not self.points:
            object.__setattr__(self, "points", orbit(self.generator, self.symmetry))

    def with_coefficient(self, coefficient: sympy.Expr) -> StencilTerm:
        return StencilTerm(coefficient, self.generator, self.symmetry, self.points)


@dataclass(frozen=True)
class Stencil:
    """
    Finite-difference stencil in ``dimension`` space dimensions.

    Attributes:
        terms: Ordered stencil terms
        dimension: Number of coordinates of every offset (2 or 3)
        scale_power: Power k of the grid spacing dividing the weighted sum
        label: Identifier used in messages
    """

    terms: tuple[StencilTerm, ...]
    dimension: int
    scale_power: int
    label: str = ""

    def __post_init__(self):
        object.__setattr__(self, "terms", tuple(self.terms))
        for term in self.terms:
            if len(term.generator) != self.dimension:
                raise ValueError(
                    f"Offset {term.generator} does not match dimension {self.dimension} of stencil {self.label!r}"
                )

    def __iter__(self) -> Iterator[StencilTerm]:
        return iter(self.terms)

    @property
    def free_symbols(self) -> set[sympy.Symbol]:
        symbols: set[sympy.Symbol] = set()
        for term in self.terms:
            symbols |= term.coefficient.free_symbols
        return symbols

    @property
    def is_concrete(self) -> bool:
        return not self.free_symbols

    def weights(self) -> dict[Offset, sympy.Expr]:
        """Aggregate the signed coefficients per grid offset."""
        combined: dict[Offset, sympy.Expr] = defaultdict(lambda: sympy.Integer(0))
        for term in self.terms:
            for offset, sign in term.points:
                combined[offset] += sign * term.coefficient
        return dict(combined)

    @property
    def points(self) -> int:
        """Number of grid points carrying a non-zero weight."""
        return sum(1 for weight in self.weights().values() if sympy.expand(weight) != 0)

    def substitute(self, values: Mapping[sympy.Symbol, sympy.Expr], label: str | None = None) -> Stencil:
        """Replace coefficient symbols simultaneously."""
        terms = tuple(term.with_coefficient(term.coefficient.xreplace(dict(values))) for term in self.terms)
        return Stencil(terms, self.dimension, self.scale_power, self.label if label is None else label)
