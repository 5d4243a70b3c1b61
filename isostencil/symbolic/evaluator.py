"""
Symbolic stencil evaluation.

Two ways to apply a stencil are provided:

- ``apply_stencil`` builds the literal weighted sum of samples
  ``f(origin + offset*h)`` for any callable ``f``; applied to an undefined
  ``sympy.Function`` it gives the exact identity used for equivalence checks.
- ``apply_to_polynomial`` evaluates the action on a polynomial through stencil
  moments. For a polynomial every shifted sample is a finite Taylor sum, so

      S(f) = sum_alpha M_alpha / alpha! * d^alpha f * h^(|alpha| - k),
      M_alpha = sum_offsets w_offset * offset^alpha,

  which is exact and yields the Laurent expansion in h directly.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Mapping, Sequence
from math import factorial, prod

import sympy

from isostencil.catalog.stencil import Stencil
from isostencil.catalog.symmetry import Offset, SignedOffset
from isostencil.utils.exceptions import UnresolvedSymbolError

from .polynomial import GRID_SPACING, coordinate_symbols
from .series import TruncatedSeries

Origin = Sequence[sympy.Expr] | Mapping[sympy.Symbol, sympy.Expr]


def substitute_coefficients(
    stencil: Stencil,
    coefficient_set: Mapping[sympy.Symbol | str, sympy.Expr | int | str],
    require_concrete: bool = False,
) -> Stencil:
    """
    Resolve the coefficient symbols of a stencil.

    Substitution is simultaneous, so applying an idempotent constraint set
    twice gives the same stencil as applying it once.

    Args:
        stencil: Stencil with symbolic coefficients
        coefficient_set: Values or affine expressions keyed by symbol or name
        require_concrete: Raise if any coefficient stays symbolic

    Returns:
        The resolved stencil

    Raises:
        UnresolvedSymbolError: If ``require_concrete`` is set and free symbols remain
    """
    values = {
        (sympy.Symbol(key) if isinstance(key, str) else key): sympy.sympify(value)
        for key, value in coefficient_set.items()
    }
    resolved = stencil.substitute(values)
    if require_concrete:
        free = resolved.free_symbols
        if free:
            raise UnresolvedSymbolError([str(symbol) for symbol in free], stencil_id=stencil.label or None)
    return resolved


def _origin_point(dimension: int, origin: Origin | None) -> tuple[sympy.Expr, ...]:
    coordinates = coordinate_symbols(dimension)
    if origin is None:
        return coordinates
    if isinstance(origin, Mapping):
        return tuple(sympy.sympify(origin.get(c, c)) for c in coordinates)
    point = tuple(sympy.sympify(value) for value in origin)
    if len(point) != dimension:
        raise ValueError(f"Origin {point} does not match dimension {dimension}")
    return point


def apply_stencil(
    stencil: Stencil,
    f: Callable[..., sympy.Expr],
    origin: Origin | None = None,
    h: sympy.Symbol = GRID_SPACING,
) -> sympy.Expr:
    """
    Literal stencil action ``sum_i c_i * sum_orbit sign * f(origin + offset*h) / h**k``.

    Args:
        stencil: Stencil with literal or symbolic coefficients
        f: Callable taking one expression per coordinate, e.g. ``sympy.Function("f")``
        origin: Evaluation point; defaults to the symbolic point ``(x, y[, z])``
        h: Grid spacing symbol

    Returns:
        Unexpanded sympy expression
    """
    point = _origin_point(stencil.dimension, origin)
    total = sympy.Add(
        *[
            term.coefficient
            * sympy.Add(
                *[
                    sign * f(*[c + o * h for c, o in zip(point, offset, strict=True)])
                    for offset, sign in term.points
                ]
            )
            for term in stencil.terms
        ]
    )
    return total / h**stencil.scale_power


def multi_indices(dimension: int, max_order: int) -> list[tuple[int, ...]]:
    """All multi-indices with ``|alpha| <= max_order``, ordered by total order."""
    indices = [alpha for alpha in itertools.product(range(max_order + 1), repeat=dimension) if sum(alpha) <= max_order]
    return sorted(indices, key=lambda alpha: (sum(alpha), tuple(-a for a in alpha)))


def _orbit_moment(points: tuple[SignedOffset, ...], alpha: tuple[int, ...]) -> int:
    return sum(sign * prod(o**a for o, a in zip(offset, alpha, strict=True)) for offset, sign in points)


def stencil_moments(
    stencil: Stencil,
    max_order: int,
    checkpoint: Callable[[str], None] | None = None,
) -> dict[tuple[int, ...], sympy.Expr]:
    """
    Moments ``M_alpha = sum_offsets w * offset**alpha`` up to total order ``max_order``.

    Moments that vanish identically are omitted. ``checkpoint`` is called
    before each moment.
    """
    moments: dict[tuple[int, ...], sympy.Expr] = {}
    for alpha in multi_indices(stencil.dimension, max_order):
        if checkpoint is not None:
            checkpoint(f"moments of order {sum(alpha)}")
        moment = sympy.Add(
            *[
                term.coefficient * value
                for term in stencil.terms
                if (value := _orbit_moment(term.points, alpha)) != 0
            ]
        )
        moment = sympy.expand(moment)
        if moment != 0:
            moments[alpha] = moment
    return moments


def _derivative(expr: sympy.Expr, coordinates: tuple[sympy.Symbol, ...], alpha: tuple[int, ...]) -> sympy.Expr:
    variables = [(c, a) for c, a in zip(coordinates, alpha, strict=True) if a]
    if not variables:
        return expr
    return sympy.diff(expr, *variables)


def apply_to_polynomial(
    stencil: Stencil,
    test_function: sympy.Expr,
    origin: Origin | None = None,
    through: int | None = None,
    checkpoint: Callable[[str], None] | None = None,
) -> TruncatedSeries:
    """
    Exact Laurent expansion in h of a stencil applied to a polynomial.

    Args:
        stencil: Stencil with literal or symbolic coefficients
        test_function: Polynomial in the coordinates ``x, y[, z]``
        origin: Evaluation point; defaults to the symbolic point
        through: Highest power of h to compute; None computes all
        checkpoint: Called before each moment and each derivative

    Returns:
        TruncatedSeries with powers from ``-k`` upwards

    Raises:
        ValueError: If the test function is not a polynomial in the coordinates
    """
    coordinates = coordinate_symbols(stencil.dimension)
    test_function = sympy.sympify(test_function)
    try:
        degree = sympy.Poly(test_function, *coordinates).total_degree()
    except sympy.PolynomialError as e:
        raise ValueError(f"Test function is not a polynomial in {coordinates}: {e}") from e

    k = stencil.scale_power
    max_order = degree if through is None else min(degree, through + k)

    terms: dict[int, sympy.Expr] = {}
    for alpha, moment in stencil_moments(stencil, max_order, checkpoint).items():
        if checkpoint is not None:
            checkpoint(f"derivatives of order {sum(alpha)}")
        derivative = _derivative(test_function, coordinates, alpha)
        if derivative == 0:
            continue
        scale = sympy.Rational(1, prod(factorial(a) for a in alpha))
        power = sum(alpha) - k
        terms[power] = terms.get(power, sympy.Integer(0)) + moment * scale * derivative

    if origin is not None:
        point = dict(zip(coordinates, _origin_point(stencil.dimension, origin), strict=True))
        terms = {power: coefficient.subs(point, simultaneous=True) for power, coefficient in terms.items()}

    return TruncatedSeries(terms, through)
