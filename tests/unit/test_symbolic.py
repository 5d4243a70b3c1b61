#!/usr/bin/env python3
"""
Unit tests for isostencil/symbolic

Tests the symbolic evaluation engine including:
- Literal stencil application to arbitrary callables
- Exact moment-based application to polynomials
- Coefficient substitution and its idempotence
- Generic test polynomials
- Truncated Laurent series in h
"""

import pytest

import sympy

from isostencil.symbolic import (
    GRID_SPACING,
    GenericPolynomial,
    TruncatedSeries,
    apply_stencil,
    apply_to_polynomial,
    coordinate_symbols,
    is_zero,
    multi_indices,
    series_expand,
    stencil_moments,
    substitute_coefficients,
)
from isostencil.utils.exceptions import ErrorKind, UnresolvedSymbolError

x, y = sympy.symbols("x y")
h = GRID_SPACING
c1, c2, c3 = sympy.symbols("c1 c2 c3")


@pytest.fixture
def iso9p(catalog):
    return catalog.get("Laplacian2D2hIso9p").literal


@pytest.fixture
def aniso5p(catalog):
    return catalog.get("Laplacian2D2hAniso5p").literal


# =============================================================================
# Stencil Application
# =============================================================================


class TestApplyToPolynomial:
    """Exact action of stencils on polynomials."""

    def test_iso9p_on_quartic(self, iso9p):
        """9-point isotropic Laplacian on x^4 gives 12x^2 + 2h^2 and no lower powers."""
        result = apply_to_polynomial(iso9p, x**4)
        assert result == TruncatedSeries({0: 12 * x**2, 2: 2})
        assert min(result.powers()) == 0

    def test_iso9p_error_matches_prefactor(self, iso9p):
        """The h^2 term is exactly (1/12) h^2 times the Bilaplacian of x^4."""
        result = apply_to_polynomial(iso9p, x**4)
        residual = result - TruncatedSeries({0: 12 * x**2, 2: sympy.Rational(1, 12) * 24})
        assert residual.lowest_nonvanishing() is None

    def test_aniso5p_exact_on_cubic(self, aniso5p):
        assert apply_to_polynomial(aniso5p, x**3) == TruncatedSeries({0: 6 * x})

    def test_aniso5p_error_on_quartic(self, aniso5p):
        residual = apply_to_polynomial(aniso5p, x**4) - TruncatedSeries({0: 12 * x**2})
        assert residual.lowest_nonvanishing() == (2, 2)

    def test_gradient_of_laplacian(self, catalog):
        """Odd orbits: the 8-point gradient of the Laplacian reproduces d/dx(Lap x^3) = 6."""
        stencil = catalog.get("GradLap2D2hAniso8p").literal
        assert apply_to_polynomial(stencil, x**3) == TruncatedSeries({0: 6})

    def test_through_truncates(self, iso9p):
        result = apply_to_polynomial(iso9p, x**4, through=0)
        assert result.order == 0
        assert result.terms == {0: 12 * x**2}

    def test_numeric_origin(self, iso9p):
        assert apply_to_polynomial(iso9p, x**4, origin=(1, 0)) == TruncatedSeries({0: 12, 2: 2})

    def test_mapping_origin(self, iso9p):
        assert apply_to_polynomial(iso9p, x**4 * y, origin={x: 2}) == apply_to_polynomial(
            iso9p, (x + 2) ** 4 * y, origin=(0, y)
        )

    def test_checkpoint_called(self, iso9p):
        stages = []
        apply_to_polynomial(iso9p, x**4, checkpoint=stages.append)
        assert stages
        assert "moments of order 0" in stages
        assert "derivatives of order 4" in stages
        assert all(stage.startswith(("moments of order", "derivatives of order")) for stage in stages)

    def test_non_polynomial_rejected(self, iso9p):
        with pytest.raises(ValueError, match="not a polynomial"):
            apply_to_polynomial(iso9p, sympy.sin(x))


class TestApplyStencil:
    """Literal weighted sum of samples."""

    def test_matches_moment_expansion(self, iso9p):
        literal = apply_stencil(iso9p, lambda X, Y: X**4)
        assert sympy.expand(literal) == 12 * x**2 + 2 * h**2

    def test_undefined_function(self, aniso5p):
        f = sympy.Function("f")
        expr = apply_stencil(aniso5p, f)
        expected = (f(x + h, y) + f(x - h, y) + f(x, y + h) + f(x, y - h) - 4 * f(x, y)) / h**2
        assert sympy.expand(expr - expected) == 0

    def test_origin_and_spacing(self, aniso5p):
        dx = sympy.Symbol("dx")
        value = apply_stencil(aniso5p, lambda X, Y: X**2 + Y**2, origin=(0, 0), h=dx)
        assert sympy.simplify(value) == 4

    def test_origin_dimension_checked(self, aniso5p):
        with pytest.raises(ValueError, match="does not match dimension"):
            apply_stencil(aniso5p, lambda X, Y: X, origin=(0, 0, 0))


class TestMoments:
    def test_iso9p_moments(self, iso9p):
        moments = stencil_moments(iso9p, 4)

        assert (0, 0) not in moments
        assert (1, 0) not in moments
        assert moments[(2, 0)] == 2
        assert moments[(0, 2)] == 2
        assert moments[(4, 0)] == 2
        assert moments[(2, 2)] == sympy.Rational(2, 3)

    def test_symbolic_moments(self, catalog):
        general = catalog.get("Laplacian2D2hGeneral").general
        moments = stencil_moments(general, 2)
        assert sympy.expand(moments[(0, 0)] - (4 * c1 + 4 * c2 + c3)) == 0
        assert sympy.expand(moments[(2, 0)] - (4 * c1 + 2 * c2)) == 0

    def test_multi_indices_order(self):
        assert multi_indices(2, 2) == [(0, 0), (1, 0), (0, 1), (2, 0), (1, 1), (0, 2)]
        assert len(multi_indices(3, 2)) == 10


# =============================================================================
# Coefficient Substitution
# =============================================================================


class TestSubstitution:
    def test_concrete_set_reproduces_literal(self, catalog, aniso5p):
        general = catalog.get("Laplacian2D2hGeneral").general
        resolved = substitute_coefficients(general, {"c1": 0, "c2": 1, "c3": -4}, require_concrete=True)
        nonzero = {offset: weight for offset, weight in resolved.weights().items() if weight != 0}
        assert nonzero == aniso5p.weights()

    def test_idempotent(self, catalog):
        entry = catalog.get("Laplacian2D2hAnisotropic")
        once = substitute_coefficients(entry.general, entry.coefficients)
        twice = substitute_coefficients(once, entry.coefficients)
        assert once == twice

    def test_free_parameter_survives(self, catalog):
        entry = catalog.get("Laplacian2D2hAnisotropic")
        resolved = substitute_coefficients(entry.general, entry.coefficients)
        assert resolved.free_symbols == {c1}

    def test_require_concrete(self, catalog):
        entry = catalog.get("Laplacian2D2hAnisotropic")
        with pytest.raises(UnresolvedSymbolError) as exc_info:
            substitute_coefficients(entry.general, entry.coefficients, require_concrete=True)

        assert exc_info.value.symbols == ["c1"]
        assert exc_info.value.kind is ErrorKind.UNRESOLVED_SYMBOL
        assert "Laplacian2D2hGeneral" in str(exc_info.value)


# =============================================================================
# Generic Polynomial
# =============================================================================


class TestGenericPolynomial:
    def test_coefficient_count(self):
        assert len(GenericPolynomial(2, 2).coefficients) == 6
        assert len(GenericPolynomial(3, 2).coefficients) == 10

    def test_degree(self):
        poly = GenericPolynomial(2, 5)
        assert sympy.Poly(poly.expr, x, y).total_degree() == 5

    def test_coefficient_names(self):
        poly = GenericPolynomial(3, 1)
        assert {str(symbol) for symbol in poly.coefficients.values()} == {"a_0_0_0", "a_1_0_0", "a_0_1_0", "a_0_0_1"}

    def test_coordinates(self):
        assert GenericPolynomial(2, 1).coordinates == coordinate_symbols(2)

    def test_negative_degree_rejected(self):
        with pytest.raises(ValueError):
            GenericPolynomial(2, -1)


# =============================================================================
# Truncated Series
# =============================================================================


class TestTruncatedSeries:
    def test_truncation_on_construction(self):
        series = TruncatedSeries({0: x, 3: y}, order=2)
        assert series.terms == {0: x}
        assert series.order == 2

    def test_zero_terms_dropped(self):
        assert not TruncatedSeries({0: 0, 1: x - x})
        assert len(TruncatedSeries({0: 1, 2: 0})) == 1

    def test_arithmetic(self):
        a = TruncatedSeries({0: x, 2: 1}, order=4)
        b = TruncatedSeries({0: x, 1: y}, order=2)

        difference = a - b
        assert difference.order == 2
        assert difference.lowest_nonvanishing() == (1, -y)
        assert (a + b)[0] == 2 * x

    def test_scaled(self):
        series = TruncatedSeries({0: x}, order=2).scaled(2, power=1)
        assert series.terms == {1: 2 * x}
        assert series.order == 3

    def test_truncate(self):
        series = TruncatedSeries({-2: 1, 0: x, 2: y})
        assert series.truncate(0).terms == {-2: 1, 0: x}
        assert series.truncate(0).truncate(5).order == 0

    def test_lowest_nonvanishing_simplifies(self):
        series = TruncatedSeries({0: (x + 1) ** 2 - x**2 - 2 * x - 1, 2: 5})
        assert series.lowest_nonvanishing() == (2, 5)
        assert series.lowest_nonvanishing(through=1) is None
        assert series.vanishes_through(1)
        assert not series.vanishes_through(2)

    def test_lowest_nonvanishing_checkpoints_long_coefficients(self):
        coefficient = sympy.Add(*[(x + i) ** 2 for i in range(100)])
        stages = []

        power, expanded = TruncatedSeries({0: coefficient}).lowest_nonvanishing(checkpoint=stages.append)

        assert power == 0
        assert expanded == sympy.expand(coefficient)
        assert len(stages) > 1
        assert set(stages) == {"simplify h^0"}

    def test_equality_is_symbolic(self):
        assert TruncatedSeries({0: (x + 1) ** 2}) == TruncatedSeries({0: x**2 + 2 * x + 1})
        assert TruncatedSeries({0: x}, order=1) != TruncatedSeries({0: x})

    def test_as_expr(self):
        assert TruncatedSeries({-1: x, 1: 2}).as_expr(h) == x / h + 2 * h


class TestSeriesExpand:
    def test_removable_singularity(self):
        series = series_expand(((x + h) ** 2 - x**2) / h, h, 1)
        assert series == TruncatedSeries({0: 2 * x, 1: 1}, 1)

    def test_laurent_terms(self):
        assert series_expand((h**2 + x) / h**2, h, 0) == TruncatedSeries({-2: x, 0: 1}, 0)

    def test_non_monomial_denominator(self):
        assert series_expand(1 / (1 - h), h, 2) == TruncatedSeries({0: 1, 1: 1, 2: 1}, 2)

    def test_stencil_residual(self, iso9p):
        expr = apply_stencil(iso9p, lambda X, Y: X**4) - 12 * x**2
        assert series_expand(expr, h, 3) == TruncatedSeries({2: 2}, 3)


def test_is_zero():
    assert is_zero((x + 1) ** 2 - x**2 - 2 * x - 1)
    assert is_zero(sympy.sin(x) ** 2 + sympy.cos(x) ** 2 - 1)
    assert not is_zero(x)
