"""
Pydantic schema of the stencil catalog document.

The catalog is a YAML document with one entry per (operator, dimension, order)
family. Coefficient values are exact rationals written as integers or strings
(``"-1/12"``, ``"1 - 2*c1"``); floats are rejected so no binary rounding can
enter the tables.

Example
-------
.. code-block:: yaml

    families:
      - operator: Laplacian
        dimension: 2
        order: 2
        symmetry: full
        general: {c1: [1, 1], c2: [1, 0], c3: [0, 0]}
        anisotropic: {c2: 1 - 2*c1, c3: -4 + 4*c1}
        isotropic: {c1: 1/6, c2: 2/3, c3: -10/3}
        error_prefactor: 1/12
        stencils:
          - name: Aniso5p
            isotropic: false
            denominator: 1
            weights:
              - {offset: [1, 0], weight: 1}
              - {offset: [0, 0], weight: -4}
            coefficients: {c1: 0, c2: 1, c3: -4}
"""

from __future__ import annotations

import re
from tokenize import TokenError
from typing import Literal

import sympy
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, model_validator
from sympy.parsing.sympy_parser import parse_expr

from isostencil.operators.differential import OperatorKind

from .symmetry import Symmetry

RationalValue = StrictInt | StrictStr

COEFFICIENT_NAME_PATTERN = r"^c[1-9][0-9]*$"


def parse_rational_expression(value: int | str, allowed_symbols: set[str] | frozenset[str] = frozenset()) -> sympy.Expr:
    """
    Parse an exact rational value or affine expression.

    Parameters
    ----------
    value : int | str
        Integer literal or expression text such as ``"1/6"`` or ``"-1/12 - 2*c1"``
    allowed_symbols : set[str]
        Coefficient names the expression may reference

    Returns
    -------
    sympy.Expr
        Parsed expression with rational coefficients

    Raises
    ------
    ValueError
        If the value is a float, cannot be parsed, references unknown names,
        contains floating-point numbers or is not affine in its symbols
    """
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise ValueError(f"Expected an integer or an exact expression string, got {value!r}")
    if isinstance(value, int):
        return sympy.Integer(value)

    local_dict = {name: sympy.Symbol(name) for name in allowed_symbols}
    try:
        expr = parse_expr(value, local_dict=local_dict)
    except (SyntaxError, TypeError, TokenError, sympy.SympifyError) as e:
        raise ValueError(f"Cannot parse coefficient expression {value!r}: {e}") from e

    if not isinstance(expr, sympy.Expr):
        raise ValueError(f"Coefficient expression {value!r} is not an algebraic expression")
    if expr.atoms(sympy.Float):
        raise ValueError(f"Coefficient expression {value!r} contains floating-point numbers; use exact fractions")

    unknown = {str(symbol) for symbol in expr.free_symbols} - set(allowed_symbols)
    if unknown:
        raise ValueError(f"Coefficient expression {value!r} references unknown names: {', '.join(sorted(unknown))}")

    if expr.free_symbols and sympy.Poly(expr, *sorted(expr.free_symbols, key=str)).total_degree() > 1:
        raise ValueError(f"Coefficient expression {value!r} is not affine")
    return expr


class TermSchema(BaseModel):
    """Integer weight of one generator orbit in a concrete stencil."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    offset: tuple[StrictInt, ...] = Field(min_length=2, max_length=3)
    weight: StrictInt


class ConcreteStencilSchema(BaseModel):
    """
    Named concrete stencil.

    Attributes
    ----------
    name : str
        Short name such as ``Iso9p``
    isotropic : bool
        Whether the stencil has an isotropic leading error
    denominator : int
        Common denominator of the integer weights (excluding h**k)
    weights : list[TermSchema]
        Integer weights per generator orbit
    coefficients : dict[str, int | str]
        Coefficient set resolving the family's general form to this stencil
    error_prefactor : int | str | None
        Leading-error prefactor, required for isotropic stencils
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(pattern=r"^[A-Za-z][A-Za-z0-9]*$")
    isotropic: bool
    denominator: StrictInt = Field(gt=0)
    weights: list[TermSchema] = Field(min_length=1)
    coefficients: dict[str, RationalValue]
    error_prefactor: RationalValue | None = None

    @model_validator(mode="after")
    def validate_prefactor(self) -> ConcreteStencilSchema:
        if self.isotropic and self.error_prefactor is None:
            raise ValueError(f"Isotropic stencil {self.name} needs an error_prefactor")
        if not self.isotropic and self.error_prefactor is not None:
            raise ValueError(f"Anisotropic stencil {self.name} must not declare an error_prefactor")
        return self


class FamilySchema(BaseModel):
    """
    Stencil family for one (operator, dimension, order).

    Attributes
    ----------
    operator : OperatorKind
        Target operator
    dimension : Literal[2, 3]
        Space dimension
    order : int
        Accuracy order p of the family
    symmetry : Symmetry
        Symmetry class generating the orbits
    general : dict[str, tuple[int, ...]]
        Ordered mapping from coefficient name to generator offset
    anisotropic : dict[str, int | str]
        Constraint set for O(h^p) accuracy
    isotropic : dict[str, int | str]
        Constraint set for O(h^p) accuracy with isotropic leading error
    error_prefactor : int | str
        Leading-error prefactor shared by the isotropic members
    stencils : list[ConcreteStencilSchema]
        Named concrete stencils
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    operator: OperatorKind
    dimension: Literal[2, 3]
    order: StrictInt = Field(gt=0)
    symmetry: Symmetry = Symmetry.FULL
    general: dict[str, tuple[StrictInt, ...]] = Field(min_length=1)
    anisotropic: dict[str, RationalValue]
    isotropic: dict[str, RationalValue]
    error_prefactor: RationalValue
    stencils: list[ConcreteStencilSchema] = Field(default_factory=list)

    @property
    def prefix(self) -> str:
        return f"{self.operator.value}{self.dimension}D{self.order}h"

    @model_validator(mode="after")
    def validate_general_form(self) -> FamilySchema:
        """Check coefficient names and generator offsets of the general form."""
        for name, generator in self.general.items():
            if not re.match(COEFFICIENT_NAME_PATTERN, name):
                raise ValueError(f"{self.prefix}: invalid coefficient name {name!r}")
            if len(generator) != self.dimension:
                raise ValueError(f"{self.prefix}: generator {name} {generator} is not {self.dimension}-dimensional")
            if self.symmetry is Symmetry.ODD_FIRST_AXIS and generator[0] <= 0:
                raise ValueError(f"{self.prefix}: odd_first_axis generator {name} needs a positive first coordinate")
        return self

    @model_validator(mode="after")
    def validate_constraint_sets(self) -> FamilySchema:
        """Constraint sets must be affine, reference only known coefficients and be idempotent."""
        names = set(self.general)
        for label, constraints in (("anisotropic", self.anisotropic), ("isotropic", self.isotropic)):
            unknown = set(constraints) - names
            if unknown:
                raise ValueError(f"{self.prefix} {label}: unknown coefficients {', '.join(sorted(unknown))}")
            for key, value in constraints.items():
                expr = parse_rational_expression(value, names)
                referenced = {str(symbol) for symbol in expr.free_symbols} & set(constraints)
                if referenced:
                    raise ValueError(
                        f"{self.prefix} {label}: {key} references constrained coefficients "
                        f"{', '.join(sorted(referenced))}; the constraint set is not idempotent"
                    )
        parse_rational_expression(self.error_prefactor)
        return self

    @model_validator(mode="after")
    def validate_stencils(self) -> FamilySchema:
        """Concrete stencils need unique names, matching offsets and literal coefficient sets."""
        names = set(self.general)
        seen: set[str] = set()
        for stencil in self.stencils:
            if stencil.name in seen:
                raise ValueError(f"{self.prefix}: duplicate stencil name {stencil.name}")
            seen.add(stencil.name)

            for term in stencil.weights:
                if len(term.offset) != self.dimension:
                    raise ValueError(f"{self.prefix}{stencil.name}: offset {term.offset} has wrong dimension")
                if self.symmetry is Symmetry.ODD_FIRST_AXIS and term.offset[0] <= 0:
                    raise ValueError(f"{self.prefix}{stencil.name}: odd_first_axis offset {term.offset} not allowed")

            unknown = set(stencil.coefficients) - names
            if unknown:
                raise ValueError(f"{self.prefix}{stencil.name}: unknown coefficients {', '.join(sorted(unknown))}")
            for value in stencil.coefficients.values():
                if parse_rational_expression(value).free_symbols:
                    raise ValueError(f"{self.prefix}{stencil.name}: coefficient values must be literal rationals")
            if stencil.error_prefactor is not None:
                parse_rational_expression(stencil.error_prefactor)
        return self


class CatalogSchema(BaseModel):
    """Top-level catalog document."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: StrictInt = 1
    families: list[FamilySchema] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_families(self) -> CatalogSchema:
        seen: set[str] = set()
        for family in self.families:
            if family.prefix in seen:
                raise ValueError(f"Duplicate stencil family {family.prefix}")
            seen.add(family.prefix)
        return self
