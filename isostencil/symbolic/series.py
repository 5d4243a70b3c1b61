"""
Truncated Laurent series in the grid spacing h.

The stencil residuals handled here are Laurent polynomials in h whose
coefficients are polynomials in the coordinates and the free symbols. A
``TruncatedSeries`` keeps one coefficient per power of h, optionally with a
truncation order above which no information is kept.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType

import sympy


def is_zero(expr: sympy.Expr) -> bool:
    """Exact zero test: expand first, fall back to simplify for non-polynomial terms."""
    expanded = sympy.expand(expr)
    if expanded == 0:
        return True
    return sympy.simplify(expanded) == 0


class TruncatedSeries:
    """
    Immutable mapping ``power of h -> coefficient``.

    Args:
        terms: Coefficients keyed by integer power of h
        order: Highest power that is known; terms above it are discarded.
            ``None`` means the series is exact.

    Example:
        >>> s = TruncatedSeries({-2: a, 0: b, 2: c}, order=1)
        >>> s.powers()
        [-2, 0]
    """

    __slots__ = ("_order", "_terms")

    def __init__(self, terms: Mapping[int, sympy.Expr] | None = None, order: int | None = None):
        cleaned: dict[int, sympy.Expr] = {}
        for power, coefficient in (terms or {}).items():
            power = int(power)
            if order is not None and power > order:
                continue
            coefficient = sympy.sympify(coefficient)
            if coefficient == 0:
                continue
            cleaned[power] = cleaned.get(power, sympy.Integer(0)) + coefficient
        self._terms = MappingProxyType(dict(sorted(cleaned.items())))
        self._order = order

    @property
    def terms(self) -> Mapping[int, sympy.Expr]:
        return self._terms

    @property
    def order(self) -> int | None:
        return self._order

    def __repr__(self) -> str:
        suffix = "" if self._order is None else f", order={self._order}"
        return f"TruncatedSeries({dict(self._terms)!r}{suffix})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TruncatedSeries):
            return NotImplemented
        if self._order != other._order:
            return False
        return all(is_zero(self[p] - other[p]) for p in set(self._terms) | set(other._terms))

    __hash__ = None  # type: ignore[assignment]

    def __getitem__(self, power: int) -> sympy.Expr:
        return self._terms.get(power, sympy.Integer(0))

    def __len__(self) -> int:
        return len(self._terms)

    def __bool__(self) -> bool:
        return bool(self._terms)

    def _combined_order(self, other: TruncatedSeries) -> int | None:
        orders = [o for o in (self._order, other._order) if o is not None]
        return min(orders) if orders else None

    def __add__(self, other: TruncatedSeries) -> TruncatedSeries:
        if not isinstance(other, TruncatedSeries):
            return NotImplemented
        terms = dict(self._terms)
        for power, coefficient in other._terms.items():
            terms[power] = terms.get(power, sympy.Integer(0)) + coefficient
        return TruncatedSeries(terms, self._combined_order(other))

    def __neg__(self) -> TruncatedSeries:
        return TruncatedSeries({p: -c for p, c in self._terms.items()}, self._order)

    def __sub__(self, other: TruncatedSeries) -> TruncatedSeries:
        if not isinstance(other, TruncatedSeries):
            return NotImplemented
        return self + (-other)

    def powers(self) -> list[int]:
        return list(self._terms)

    def scaled(self, factor: sympy.Expr, power: int = 0) -> TruncatedSeries:
        """Multiply by ``factor * h**power``."""
        factor = sympy.sympify(factor)
        order = None if self._order is None else self._order + power
        return TruncatedSeries({p + power: factor * c for p, c in self._terms.items()}, order)

    def truncate(self, order: int) -> TruncatedSeries:
        """Discard every power above ``order``."""
        if self._order is not None:
            order = min(order, self._order)
        return TruncatedSeries(self._terms, order)

    def lowest_nonvanishing(
        self,
        through: int | None = None,
        checkpoint: Callable[[str], None] | None = None,
    ) -> tuple[int, sympy.Expr] | None:
        """
        Find the lowest power whose coefficient is not identically zero.

        Args:
            through: Only inspect powers up to and including this one
            checkpoint: Called before each coefficient is simplified

        Returns:
            ``(power, simplified coefficient)`` or None if every inspected
            coefficient vanishes
        """
        for power, coefficient in self._terms.items():
            if through is not None and power > through:
                break
            stage = f"simplify h^{power}"
            if checkpoint is not None:
                checkpoint(stage)
            expanded = _expand(coefficient, checkpoint, stage)
            if expanded == 0:
                continue
            # An expanded polynomial is canonical: non-zero here means non-zero
            if expanded.is_polynomial():
                return power, expanded
            simplified = sympy.simplify(expanded)
            if simplified != 0:
                return power, simplified
        return None

    def vanishes_through(self, order: int) -> bool:
        return self.lowest_nonvanishing(through=order) is None

    def as_expr(self, h: sympy.Symbol) -> sympy.Expr:
        return sympy.Add(*[coefficient * h**power for power, coefficient in self._terms.items()])


_EXPAND_CHUNK = 32


def _expand(
    expr: sympy.Expr,
    checkpoint: Callable[[str], None] | None = None,
    stage: str = "expand",
) -> sympy.Expr:
    """``sympy.expand`` one summand at a time, calling ``checkpoint`` every few summands."""
    if checkpoint is None:
        return sympy.expand(expr)
    pieces = []
    for i, summand in enumerate(sympy.Add.make_args(expr)):
        if i and i % _EXPAND_CHUNK == 0:
            checkpoint(stage)
        pieces.append(sympy.expand(summand))
    return sympy.Add(*pieces)


def _collect_powers(expr: sympy.Expr, h: sympy.Symbol) -> dict[int, sympy.Expr]:
    terms: dict[int, sympy.Expr] = {}
    for term in sympy.Add.make_args(sympy.expand(expr)):
        coefficient, exponent = term.as_coeff_exponent(h)
        if not exponent.is_Integer:
            raise ValueError(f"Non-integer power of {h} in series term {term}")
        power = int(exponent)
        terms[power] = terms.get(power, sympy.Integer(0)) + coefficient
    return terms


def series_expand(expr: sympy.Expr, h: sympy.Symbol, order: int) -> TruncatedSeries:
    """
    Expand a rational expression in ``h`` through ``h**order``.

    The expression is first brought over a common denominator so that
    removable ``1/h**k`` singularities cancel before expanding. When the
    denominator is a monomial in ``h`` the numerator is expanded as a
    polynomial; any other expression goes through ``sympy.series``.

    Args:
        expr: Expression in h
        h: Expansion variable
        order: Highest power of h to keep

    Returns:
        TruncatedSeries truncated at ``order``
    """
    combined = sympy.together(sympy.sympify(expr))
    numerator, denominator = sympy.fraction(combined)

    try:
        denominator_poly = sympy.Poly(denominator, h)
        numerator_poly = sympy.Poly(sympy.expand(numerator), h)
    except sympy.PolynomialError:
        denominator_poly = numerator_poly = None

    if denominator_poly is not None and len(denominator_poly.terms()) == 1:
        ((shift,), scale) = denominator_poly.terms()[0]
        terms = {power - shift: coefficient / scale for (power,), coefficient in numerator_poly.terms()}
        return TruncatedSeries(terms, order)

    expansion = sympy.series(combined, h, 0, order + 1).removeO()
    return TruncatedSeries(_collect_powers(expansion, h), order)
