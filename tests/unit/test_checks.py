#!/usr/bin/env python3
"""
Unit tests for isostencil/verification/checks.py

Tests check enumeration and the individual checks including:
- Which checks are built for which catalog entries
- Equivalence of general and literal forms
- Anisotropic order and isotropic error checks
- Free parameters of constrained general forms
- Failure, timeout and internal-error reporting
"""

import dataclasses
import pickle
from collections import Counter

import pytest

import sympy

from isostencil.catalog import Stencil, StencilTerm
from isostencil.config import ExecutionConfig, FilterConfig, PolynomialConfig, VerificationConfig
from isostencil.utils.exceptions import CheckTimeoutError, ErrorKind
from isostencil.verification import checks as checks_module
from isostencil.verification.checks import CheckSpec, Deadline, build_checks, checks_from_filters, run_check
from isostencil.verification.report import CheckCategory, Status

c1, c2, c3 = sympy.symbols("c1 c2 c3")


@pytest.fixture
def laplacian_checks(catalog):
    return build_checks(catalog.select(operators=["Laplacian"], dimensions=[2], orders=[2]))


def spec_for(catalog, identifier, category):
    return CheckSpec(CheckCategory(category), catalog.get(identifier))


# =============================================================================
# Check Enumeration
# =============================================================================


class TestBuildChecks:
    def test_full_catalog(self, catalog):
        counts = Counter(check.category for check in build_checks(catalog))

        assert counts[CheckCategory.EQUIVALENCE] == 35
        assert counts[CheckCategory.ANISOTROPIC_ORDER] == 14
        assert counts[CheckCategory.ISOTROPIC_ERROR] == 21
        assert counts[CheckCategory.GENERAL_ANISOTROPIC] == 9
        assert counts[CheckCategory.GENERAL_ISOTROPIC] == 9

    def test_single_family(self, laplacian_checks):
        assert [check.check_id for check in laplacian_checks] == [
            "general_anisotropic:Laplacian2D2hAnisotropic",
            "general_isotropic:Laplacian2D2hIsotropic",
            "equivalence:Laplacian2D2hAniso5p",
            "anisotropic_order:Laplacian2D2hAniso5p",
            "equivalence:Laplacian2D2hIso9p",
            "isotropic_error:Laplacian2D2hIso9p",
        ]

    def test_category_filter(self, catalog):
        checks = build_checks(catalog, categories=["equivalence"])
        assert {check.category for check in checks} == {CheckCategory.EQUIVALENCE}

    def test_stencil_filter(self, catalog):
        checks = build_checks(catalog, stencils=["Laplacian2D2hIso9p"])
        assert {check.stencil_id for check in checks} == {"Laplacian2D2hIso9p"}
        assert len(checks) == 2

    def test_general_selects_both_constraint_sets(self, catalog):
        checks = build_checks(catalog, stencils=["GradLap2D4hGeneral"])
        assert {check.check_id for check in checks} == {
            "general_anisotropic:GradLap2D4hAnisotropic",
            "general_isotropic:GradLap2D4hIsotropic",
        }

    def test_unknown_stencil(self, catalog):
        with pytest.raises(KeyError):
            build_checks(catalog, stencils=["Laplacian2D2hIso10p"])

    def test_from_filters(self, catalog):
        filters = FilterConfig(operators=["Laplacian"], dimensions=[2], orders=[2], categories=["isotropic_error"])
        checks = checks_from_filters(catalog, filters)
        assert [check.check_id for check in checks] == ["isotropic_error:Laplacian2D2hIso9p"]

    def test_stencil_outside_selection_selects_nothing(self, catalog):
        filters = FilterConfig(operators=["Laplacian"], stencils=["Bilaplacian2D2hIso17p"])
        assert checks_from_filters(catalog, filters) == []

    def test_stencil_inside_selection(self, catalog):
        filters = FilterConfig(operators=["Bilaplacian"], dimensions=[2], stencils=["Bilaplacian2D2hIso17p"])
        checks = checks_from_filters(catalog, filters)
        assert [check.check_id for check in checks] == [
            "equivalence:Bilaplacian2D2hIso17p",
            "isotropic_error:Bilaplacian2D2hIso17p",
        ]

    def test_unknown_stencil_with_filters(self, catalog):
        filters = FilterConfig(operators=["Laplacian"], stencils=["Laplacian2D2hIso10p"])
        with pytest.raises(KeyError):
            checks_from_filters(catalog, filters)

    def test_empty_filters_select_everything(self, catalog):
        assert len(checks_from_filters(catalog, FilterConfig())) == 88

    def test_specs_are_picklable(self, laplacian_checks):
        """Process pools send check specs to workers."""
        restored = pickle.loads(pickle.dumps(laplacian_checks))
        assert [check.check_id for check in restored] == [check.check_id for check in laplacian_checks]


# =============================================================================
# Passing Checks
# =============================================================================


class TestPassingChecks:
    def test_laplacian_family_passes(self, laplacian_checks, sequential_config):
        results = [run_check(check, sequential_config) for check in laplacian_checks]

        assert [result.status for result in results] == [Status.PASS] * 6
        assert all(result.error_kind is None for result in results)

    def test_equivalence_detail(self, catalog):
        result = run_check(spec_for(catalog, "Laplacian2D2hIso9p", "equivalence"))
        assert result.status is Status.PASS
        assert "reproduces the literal stencil" in result.detail

    def test_isotropic_detail_names_companion(self, catalog):
        result = run_check(spec_for(catalog, "Laplacian2D2hIso9p", "isotropic_error"))
        assert result.status is Status.PASS
        assert "Bilaplacian" in result.detail
        assert "h^3" in result.detail

    @pytest.mark.parametrize(
        ("identifier", "category", "leading"),
        [
            ("Laplacian2D2hAniso5p", "anisotropic_order", "h^2"),
            ("Laplacian2D2hIso9p", "isotropic_error", "h^4"),
            ("Laplacian2D4hIso17p", "isotropic_error", "h^6"),
        ],
    )
    def test_detail_names_leading_term(self, catalog, identifier, category, leading):
        result = run_check(spec_for(catalog, identifier, category))
        assert result.status is Status.PASS
        assert f"leading term {leading}" in result.detail

    def test_gradient_of_laplacian_order(self, catalog):
        result = run_check(spec_for(catalog, "GradLap2D2hAniso8p", "anisotropic_order"))
        assert result.status is Status.PASS

    def test_free_parameter_kept_symbolic(self, catalog):
        """The anisotropic Laplacian family holds for every value of c1."""
        entry = catalog.get("Laplacian2D2hAnisotropic")
        assert c1 not in entry.coefficients

        result = run_check(CheckSpec(CheckCategory.GENERAL_ANISOTROPIC, entry))
        assert result.status is Status.PASS

    def test_elapsed_recorded(self, catalog):
        result = run_check(spec_for(catalog, "Laplacian2D2hAniso5p", "equivalence"))
        assert result.elapsed >= 0


# =============================================================================
# Failing Checks
# =============================================================================


class TestFailingChecks:
    def test_perturbed_coefficient_set_fails_equivalence(self, catalog):
        entry = catalog.get("Laplacian2D2hIso9p")
        perturbed = dict(entry.coefficients)
        perturbed[c3] = sympy.Integer(-3)
        spec = CheckSpec(CheckCategory.EQUIVALENCE, dataclasses.replace(entry, coefficients=perturbed))

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.NON_VANISHING_RESIDUAL
        assert result.failing_order is None
        assert "f(x, y)" in result.residual

    def test_incomplete_coefficient_set(self, catalog):
        entry = catalog.get("Laplacian2D2hAniso5p")
        spec = CheckSpec(CheckCategory.EQUIVALENCE, dataclasses.replace(entry, coefficients={c1: 0, c2: 1}))

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.UNRESOLVED_SYMBOL
        assert "c3" in result.detail

    def test_inconsistent_stencil_fails_at_lowest_power(self, catalog):
        entry = catalog.get("Laplacian2D2hAniso5p")
        broken = Stencil((StencilTerm(1, (1, 0)), StencilTerm(-3, (0, 0))), dimension=2, scale_power=2)
        spec = CheckSpec(CheckCategory.ANISOTROPIC_ORDER, dataclasses.replace(entry, literal=broken))

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.NON_VANISHING_RESIDUAL
        assert result.failing_order == -2
        assert "a_0_0" in result.residual

    def test_perturbed_constraint_fails_with_free_parameter(self, catalog):
        entry = catalog.get("Laplacian2D4hIsotropic")
        perturbed = dict(entry.coefficients)
        perturbed[c2] = perturbed[c2] + sympy.Rational(1, 1000)
        assert c1 not in perturbed
        spec = CheckSpec(CheckCategory.GENERAL_ISOTROPIC, dataclasses.replace(entry, coefficients=perturbed))

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.NON_VANISHING_RESIDUAL
        assert result.failing_order == -2

    def test_wrong_prefactor_fails_at_error_order(self, catalog):
        entry = catalog.get("Laplacian2D2hIso9p")
        spec = CheckSpec(
            CheckCategory.ISOTROPIC_ERROR, dataclasses.replace(entry, error_prefactor=sympy.Rational(1, 6))
        )

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.failing_order == 2
        assert "h^2" in result.detail

    def test_anisotropic_stencil_is_not_isotropic(self, catalog):
        entry = catalog.get("Laplacian2D2hAniso5p")
        spec = CheckSpec(
            CheckCategory.ISOTROPIC_ERROR, dataclasses.replace(entry, error_prefactor=sympy.Rational(1, 12))
        )
        assert run_check(spec).failing_order == 2

    def test_missing_companion_operator(self, catalog):
        entry = catalog.get("Laplacian2D2hIso9p")
        family = dataclasses.replace(entry.family, order=6)
        spec = CheckSpec(CheckCategory.ISOTROPIC_ERROR, dataclasses.replace(entry, family=family))

        result = run_check(spec)

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.MISSING_COMPANION_OPERATOR

    def test_unexpected_exception_is_internal_error(self, catalog, monkeypatch):
        def broken_check(spec, polynomial, deadline):
            raise RuntimeError("boom")

        monkeypatch.setitem(checks_module.CHECKS, CheckCategory.EQUIVALENCE, broken_check)
        result = run_check(spec_for(catalog, "Laplacian2D2hIso9p", "equivalence"))

        assert result.status is Status.FAIL
        assert result.error_kind is ErrorKind.INTERNAL_ERROR
        assert "RuntimeError: boom" in result.detail


# =============================================================================
# Timeouts
# =============================================================================


class TestDeadline:
    def test_no_timeout_never_expires(self):
        deadline = Deadline(None)
        deadline.start -= 1e6
        deadline.check("anything")

    def test_expired_deadline_raises(self):
        deadline = Deadline(1.0, stencil_id="Laplacian2D2hIso9p")
        deadline.start -= 5.0

        with pytest.raises(CheckTimeoutError) as exc_info:
            deadline.check("simplify h^2")

        error = exc_info.value
        assert error.kind is ErrorKind.TIMEOUT
        assert error.stage == "simplify h^2"
        assert error.elapsed >= 5.0

    def test_timed_out_check_is_inconclusive(self, catalog):
        config = VerificationConfig(execution=ExecutionConfig(timeout_per_check=1e-9))
        result = run_check(spec_for(catalog, "Laplacian2D2hIso9p", "isotropic_error"), config)

        assert result.status is Status.INCONCLUSIVE
        assert result.error_kind is ErrorKind.TIMEOUT
        assert "timed out" in result.detail

    def test_heavy_check_stops_near_budget(self, catalog):
        """A 3D general check with a broken prefactor stops soon after its budget."""
        entry = catalog.get("Bilaplacian3D2hIsotropic")
        spec = CheckSpec(
            CheckCategory.GENERAL_ISOTROPIC, dataclasses.replace(entry, error_prefactor=sympy.Rational(1, 7))
        )
        config = VerificationConfig(
            execution=ExecutionConfig(timeout_per_check=0.5),
            polynomial=PolynomialConfig(extra_degree=2),
        )

        result = run_check(spec, config)

        assert result.status in (Status.INCONCLUSIVE, Status.FAIL)
        if result.status is Status.INCONCLUSIVE:
            assert result.error_kind is ErrorKind.TIMEOUT
        assert result.elapsed < 2.5
