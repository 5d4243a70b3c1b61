"""
Verification checks for the stencil catalog.

Each check proves one claim about one catalog entry:

- ``equivalence``: the general form resolved with a stencil's coefficient set
  is the literal stencil, as an identity on an undefined function f.
- ``anisotropic_order``: S(f) - L(f) has no term below h^p on a generic
  polynomial.
- ``isotropic_error``: S(f) - L(f) - e h^p L'(f) has no term through h^(p+1),
  where L' is the companion error operator and e the declared prefactor.
- ``general_anisotropic`` / ``general_isotropic``: the same order checks on
  the general form restricted by the family's constraint set. Free parameters
  stay symbolic, so the claim holds for every value of them.

The order checks expand two powers past the checked ones and report the
leading surviving power of h, e.g. h^4 for the 9-point isotropic Laplacian.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import sympy

from isostencil.catalog.registry import GENERAL, StencilCatalog, StencilEntry
from isostencil.config import FilterConfig, PolynomialConfig, VerificationConfig
from isostencil.operators.differential import companion_operator, reference_operator
from isostencil.symbolic import (
    GenericPolynomial,
    TruncatedSeries,
    apply_stencil,
    apply_to_polynomial,
    coordinate_symbols,
    substitute_coefficients,
)
from isostencil.utils.exceptions import (
    CheckTimeoutError,
    ErrorKind,
    NonVanishingResidualError,
    StencilVerificationError,
)
from isostencil.utils.stencil_logging import get_logger

from .report import CheckCategory, CheckResult, Status

if TYPE_CHECKING:
    from collections.abc import Iterable

    from isostencil.catalog.stencil import Stencil

logger = get_logger(__name__)


class Deadline:
    """
    Cooperative time budget for one check.

    The symbolic pipeline calls ``check`` between steps; once the budget is
    spent the next call raises ``CheckTimeoutError``. A step that is already
    running is not interrupted.
    """

    def __init__(self, timeout: float | None = None, stencil_id: str | None = None):
        self.timeout = timeout
        self.stencil_id = stencil_id
        self.start = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start

    def check(self, stage: str | None = None) -> None:
        if self.timeout is None:
            return
        elapsed = self.elapsed
        if elapsed > self.timeout:
            raise CheckTimeoutError(self.timeout, elapsed, stencil_id=self.stencil_id, stage=stage)


@dataclass(frozen=True)
class CheckSpec:
    """One check to run: a category applied to a catalog entry."""

    category: CheckCategory
    entry: StencilEntry

    @property
    def stencil_id(self) -> str:
        return self.entry.identifier

    @property
    def check_id(self) -> str:
        return f"{self.category.value}:{self.entry.identifier}"


def _categories_for(entry: StencilEntry) -> list[CheckCategory]:
    if entry.is_general:
        return [CheckCategory.GENERAL_ISOTROPIC if entry.isotropic else CheckCategory.GENERAL_ANISOTROPIC]
    order_check = CheckCategory.ISOTROPIC_ERROR if entry.isotropic else CheckCategory.ANISOTROPIC_ORDER
    return [CheckCategory.EQUIVALENCE, order_check]


def _wanted_identifiers(catalog: StencilCatalog, stencils: Iterable[str]) -> set[str]:
    wanted = set()
    for identifier in stencils:
        entry = catalog.get(identifier)
        if entry.name == GENERAL:
            wanted.update(general.identifier for general in entry.family.entries() if general.is_general)
        else:
            wanted.add(entry.identifier)
    return wanted


def build_checks(
    catalog: StencilCatalog,
    categories: Iterable[CheckCategory | str] | None = None,
    stencils: Iterable[str] | None = None,
    resolve_in: StencilCatalog | None = None,
) -> list[CheckSpec]:
    """
    Enumerate the checks for a catalog.

    Args:
        catalog: Catalog (or sub-catalog from ``StencilCatalog.select``)
        categories: Categories to include; None or empty includes all
        stencils: Identifiers to include; ``...General`` selects both
            constrained general forms of a family. None or empty includes all.
        resolve_in: Catalog the identifiers are looked up in, typically the
            full catalog ``catalog`` was selected from. Identifiers that
            resolve there but not in ``catalog`` select nothing.

    Returns:
        Checks in catalog order

    Raises:
        KeyError: If a stencil identifier is not in ``resolve_in`` (or ``catalog``)
    """
    wanted_categories = {CheckCategory(c) for c in categories} if categories else None
    wanted_stencils = None
    if stencils:
        wanted_stencils = _wanted_identifiers(resolve_in or catalog, stencils)
        available = {entry.identifier for entry in catalog.entries()}
        for identifier in sorted(wanted_stencils - available):
            logger.warning(f"{identifier} is excluded by the operator/dimension/order filters")

    checks = []
    for entry in catalog.entries():
        if wanted_stencils is not None and entry.identifier not in wanted_stencils:
            continue
        for category in _categories_for(entry):
            if wanted_categories is None or category in wanted_categories:
                checks.append(CheckSpec(category, entry))
    return checks


def checks_from_filters(catalog: StencilCatalog, filters: FilterConfig) -> list[CheckSpec]:
    """
    Apply a ``FilterConfig`` to a catalog and enumerate the matching checks.

    Stencil identifiers are resolved against the whole of ``catalog`` and then
    intersected with the operator, dimension and order selection.
    """
    selected = catalog.select(
        operators=filters.operators or None,
        dimensions=filters.dimensions or None,
        orders=filters.orders or None,
    )
    return build_checks(selected, categories=filters.categories, stencils=filters.stencils, resolve_in=catalog)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def _checked_stencil(entry: StencilEntry) -> Stencil:
    """Literal stencil for named entries, constrained general form otherwise."""
    if entry.literal is not None:
        return entry.literal
    return substitute_coefficients(entry.general, entry.coefficients)


def check_equivalence(spec: CheckSpec, polynomial: PolynomialConfig, deadline: Deadline) -> str:
    entry = spec.entry
    resolved = substitute_coefficients(entry.general, entry.coefficients, require_concrete=True)
    deadline.check("substitution")

    f = sympy.Function("f")
    difference = apply_stencil(resolved, f) - apply_stencil(entry.literal, f)
    deadline.check("stencil application")

    residual = sympy.simplify(sympy.expand(difference))
    if residual != 0:
        raise NonVanishingResidualError(residual, stencil_id=spec.stencil_id, check=spec.category.value)
    return f"general form with {len(entry.coefficients)} coefficients reproduces the literal stencil"


# Powers of h computed past the checked ones to locate the leading error term
LOOKAHEAD = 2


def _residual(
    stencil: Stencil,
    target: Callable[[sympy.Expr, tuple[sympy.Symbol, ...]], dict[int, sympy.Expr]],
    through: int,
    differential_order: int,
    polynomial: PolynomialConfig,
    order: int,
    deadline: Deadline,
) -> tuple[TruncatedSeries, int]:
    expansion_order = through + LOOKAHEAD
    degree = polynomial.degree_for(order, expansion_order, differential_order)
    test_function = GenericPolynomial(stencil.dimension, degree)
    deadline.check("test polynomial")

    approximation = apply_to_polynomial(stencil, test_function.expr, through=expansion_order, checkpoint=deadline.check)
    expected = target(test_function.expr, coordinate_symbols(stencil.dimension))
    return approximation - TruncatedSeries(expected, expansion_order), degree


def _leading_term(spec: CheckSpec, residual: TruncatedSeries, through: int, deadline: Deadline) -> str:
    """
    Verify that the residual vanishes through ``h^through`` and describe its leading term.

    Raises:
        NonVanishingResidualError: At the lowest power ``<= through`` that survives
    """
    found = residual.lowest_nonvanishing(checkpoint=deadline.check)
    if found is None:
        return f"no error term through h^{residual.order}"
    power, coefficient = found
    if power <= through:
        raise NonVanishingResidualError(coefficient, order=power, stencil_id=spec.stencil_id, check=spec.category.value)
    return f"leading term h^{power}"


def check_anisotropic_order(spec: CheckSpec, polynomial: PolynomialConfig, deadline: Deadline) -> str:
    entry = spec.entry
    operator = reference_operator(entry.operator)
    through = entry.order - 1

    residual, degree = _residual(
        _checked_stencil(entry),
        lambda expr, coordinates: {0: operator.apply(expr, coordinates)},
        through,
        operator.differential_order,
        polynomial,
        entry.order,
        deadline,
    )

    leading = _leading_term(spec, residual, through, deadline)
    return f"S(f) - L(f) vanishes through h^{through}, {leading} (degree {degree} test polynomial)"


def check_isotropic_error(spec: CheckSpec, polynomial: PolynomialConfig, deadline: Deadline) -> str:
    entry = spec.entry
    operator = reference_operator(entry.operator)
    companion = companion_operator(entry.operator, entry.order, stencil_id=spec.stencil_id)
    prefactor = entry.error_prefactor
    through = entry.order + 1

    def target(expr: sympy.Expr, coordinates: tuple[sympy.Symbol, ...]) -> dict[int, sympy.Expr]:
        return {0: operator.apply(expr, coordinates), entry.order: prefactor * companion.apply(expr, coordinates)}

    residual, degree = _residual(
        _checked_stencil(entry),
        target,
        through,
        operator.differential_order,
        polynomial,
        entry.order,
        deadline,
    )

    leading = _leading_term(spec, residual, through, deadline)
    return (
        f"S(f) - L(f) - ({prefactor}) h^{entry.order} {companion.name}(f) vanishes through h^{through}, "
        f"{leading} (degree {degree} test polynomial)"
    )


CHECKS: dict[CheckCategory, Callable[[CheckSpec, PolynomialConfig, Deadline], str]] = {
    CheckCategory.EQUIVALENCE: check_equivalence,
    CheckCategory.ANISOTROPIC_ORDER: check_anisotropic_order,
    CheckCategory.ISOTROPIC_ERROR: check_isotropic_error,
    CheckCategory.GENERAL_ANISOTROPIC: check_anisotropic_order,
    CheckCategory.GENERAL_ISOTROPIC: check_isotropic_error,
}


def run_check(spec: CheckSpec, config: VerificationConfig | None = None) -> CheckResult:
    """
    Run one check and report its outcome.

    Never raises: residuals, unresolved symbols and missing companion
    operators give FAIL, timeouts give INCONCLUSIVE and unexpected exceptions
    are logged with their traceback and reported as FAIL with kind
    ``InternalError``.

    Args:
        spec: Check to run
        config: Run configuration; defaults are used when None

    Returns:
        CheckResult for the check
    """
    config = config or VerificationConfig()
    deadline = Deadline(config.execution.timeout_per_check, spec.stencil_id)
    logger.debug(f"Starting {spec.check_id}")

    try:
        detail = CHECKS[spec.category](spec, config.polynomial, deadline)
        result = CheckResult(spec.stencil_id, spec.category, Status.PASS, detail, elapsed=deadline.elapsed)
    except CheckTimeoutError as e:
        stage = f" during {e.stage}" if e.stage else ""
        result = CheckResult(
            spec.stencil_id,
            spec.category,
            Status.INCONCLUSIVE,
            f"timed out after {e.elapsed:.1f}s{stage}",
            error_kind=e.kind,
            elapsed=deadline.elapsed,
        )
    except NonVanishingResidualError as e:
        result = CheckResult(
            spec.stencil_id,
            spec.category,
            Status.FAIL,
            e.message,
            error_kind=e.kind,
            failing_order=e.order,
            residual=str(e.residual),
            elapsed=deadline.elapsed,
        )
    except StencilVerificationError as e:
        result = CheckResult(
            spec.stencil_id, spec.category, Status.FAIL, e.message, error_kind=e.kind, elapsed=deadline.elapsed
        )
    except Exception as e:
        logger.exception(f"Unexpected error in {spec.check_id}")
        result = CheckResult(
            spec.stencil_id,
            spec.category,
            Status.FAIL,
            f"{type(e).__name__}: {e}",
            error_kind=ErrorKind.INTERNAL_ERROR,
            elapsed=deadline.elapsed,
        )

    logger.debug(f"Finished {spec.check_id}: {result.status.value} in {result.elapsed:.2f}s")
    return result
