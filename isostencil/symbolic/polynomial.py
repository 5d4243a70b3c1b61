"""
Coordinates, grid spacing and generic test polynomials.
"""

from __future__ import annotations

import itertools
from functools import cached_property

import sympy

GRID_SPACING = sympy.Symbol("h")

_COORDINATE_NAMES = ("x", "y", "z")


def coordinate_symbols(dimension: int) -> tuple[sympy.Symbol, ...]:
    """Spatial coordinates ``x, y[, z]`` for the given dimension."""
    if dimension not in (1, 2, 3):
        raise ValueError(f"dimension must be 1, 2 or 3, got {dimension}")
    return sympy.symbols(_COORDINATE_NAMES[:dimension])


class GenericPolynomial:
    """
    Polynomial of total degree ``degree`` with an independent symbolic
    coefficient ``a_i_j[_k]`` for every monomial ``x**i * y**j [* z**k]``.

    A stencil reproduces an operator through a given power of h on every
    polynomial exactly when it does so on the generic one, so a residual that
    vanishes identically in the ``a`` coefficients proves the claim.

    Example:
        >>> p = GenericPolynomial(2, 2)
        >>> len(p.coefficients)
        6
    """

    def __init__(self, dimension: int, degree: int, prefix: str = "a"):
        if degree < 0:
            raise ValueError(f"degree must be non-negative, got {degree}")
        self.dimension = dimension
        self.degree = degree
        self.prefix = prefix
        self.coordinates = coordinate_symbols(dimension)

    def __repr__(self) -> str:
        return f"GenericPolynomial(dimension={self.dimension}, degree={self.degree})"

    def exponents(self) -> list[tuple[int, ...]]:
        """All exponent tuples with total degree <= degree, lowest degree first."""
        exponents = [
            powers
            for powers in itertools.product(range(self.degree + 1), repeat=self.dimension)
            if sum(powers) <= self.degree
        ]
        return sorted(exponents, key=lambda powers: (sum(powers), tuple(-p for p in powers)))

    @cached_property
    def coefficients(self) -> dict[tuple[int, ...], sympy.Symbol]:
        return {
            powers: sympy.Symbol(f"{self.prefix}_" + "_".join(str(p) for p in powers)) for powers in self.exponents()
        }

    @cached_property
    def expr(self) -> sympy.Expr:
        return sympy.Add(
            *[
                coefficient * sympy.Mul(*[c**p for c, p in zip(self.coordinates, powers, strict=True)])
                for powers, coefficient in self.coefficients.items()
            ]
        )
