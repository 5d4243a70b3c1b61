"""
Stencil catalog registry.

Loads the YAML catalog, validates it against the pydantic schema and exposes
the families, their general forms, constraint sets and named concrete stencils
as immutable objects.

Identifiers follow ``<Operator><dim>D<order>h<name>``, for example
``Laplacian2D2hIso9p``. The general form of a family is ``...General``; the
general form restricted by the anisotropic or isotropic constraint set is
``...Anisotropic`` / ``...Isotropic``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING

import sympy
import yaml
from pydantic import ValidationError

from isostencil.operators.differential import OperatorKind, reference_operator
from isostencil.utils.exceptions import RegistryError
from isostencil.utils.stencil_logging import get_logger

from .schema import CatalogSchema, FamilySchema, parse_rational_expression
from .stencil import Stencil, StencilTerm
from .symmetry import Offset, Symmetry

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

logger = get_logger(__name__)

GENERAL = "General"
ANISOTROPIC = "Anisotropic"
ISOTROPIC = "Isotropic"

_IDENTIFIER_PATTERN = re.compile(r"^(?P<operator>[A-Za-z]+?)(?P<dimension>\d)D(?P<order>\d+)h(?P<name>[A-Za-z0-9]+)$")

CoefficientSet = dict[sympy.Symbol, sympy.Expr]


def format_identifier(operator: OperatorKind | str, dimension: int, order: int, name: str) -> str:
    return f"{OperatorKind(operator).value}{dimension}D{order}h{name}"


def parse_identifier(identifier: str) -> tuple[OperatorKind, int, int, str]:
    """
    Split a stencil identifier into its parts.

    Raises:
        KeyError: If the identifier is malformed or names an unknown operator
    """
    match = _IDENTIFIER_PATTERN.match(identifier)
    if match is None:
        raise KeyError(f"Malformed stencil identifier: {identifier!r}")
    try:
        operator = OperatorKind(match["operator"])
    except ValueError:
        raise KeyError(f"Unknown operator in stencil identifier: {identifier!r}") from None
    return operator, int(match["dimension"]), int(match["order"]), match["name"]


@dataclass(frozen=True)
class ConcreteStencil:
    """
    Named stencil with literal integer weights over a common denominator.

    Attributes:
        name: Short name such as ``Iso9p``
        isotropic: Whether the leading error is isotropic
        denominator: Common denominator of the weights (h**k excluded)
        weights: Integer weight per generator offset
        coefficients: Coefficient set resolving the general form to this stencil
        error_prefactor: Leading-error prefactor (isotropic stencils only)
        stencil: The literal stencil built from the weights
    """

    name: str
    isotropic: bool
    denominator: int
    weights: tuple[tuple[Offset, int], ...]
    coefficients: CoefficientSet
    error_prefactor: sympy.Expr | None
    stencil: Stencil


@dataclass(frozen=True)
class StencilFamily:
    """All stencils for one (operator, dimension, order)."""

    operator: OperatorKind
    dimension: int
    order: int
    symmetry: Symmetry
    general: Stencil
    anisotropic: CoefficientSet
    isotropic: CoefficientSet
    error_prefactor: sympy.Expr
    stencils: tuple[ConcreteStencil, ...] = field(default=())

    @property
    def prefix(self) -> str:
        return format_identifier(self.operator, self.dimension, self.order, "")

    @property
    def differential_order(self) -> int:
        return reference_operator(self.operator).differential_order

    @property
    def coefficient_symbols(self) -> tuple[sympy.Symbol, ...]:
        return tuple(term.coefficient for term in self.general.terms)

    def concrete(self, name: str) -> ConcreteStencil:
        for stencil in self.stencils:
            if stencil.name == name:
                return stencil
        raise KeyError(f"No stencil named {self.prefix}{name}")

    def entry(self, name: str) -> StencilEntry:
        """
        Build the lookup result for a name within the family.

        ``name`` may be a concrete stencil name, ``"General"``, ``"Anisotropic"``
        or ``"Isotropic"``.
        """
        identifier = self.prefix + name
        if name == GENERAL:
            return StencilEntry(identifier, self, name, {}, None, None, False)
        if name == ANISOTROPIC:
            return StencilEntry(identifier, self, name, self.anisotropic, None, None, False)
        if name == ISOTROPIC:
            return StencilEntry(identifier, self, name, self.isotropic, self.error_prefactor, None, True)

        concrete = self.concrete(name)
        return StencilEntry(
            identifier,
            self,
            name,
            concrete.coefficients,
            concrete.error_prefactor,
            concrete.stencil,
            concrete.isotropic,
        )

    def entries(self) -> Iterator[StencilEntry]:
        """Constrained general forms first, then the named stencils in catalog order."""
        yield self.entry(ANISOTROPIC)
        yield self.entry(ISOTROPIC)
        for stencil in self.stencils:
            yield self.entry(stencil.name)


@dataclass(frozen=True)
class StencilEntry:
    """
    Result of a catalog lookup.

    Attributes:
        identifier: Full identifier, e.g. ``Laplacian2D2hIso9p``
        family: Owning family, giving access to the general form
        name: Name within the family
        coefficients: Coefficient set (literal for named stencils, affine for constraint sets)
        error_prefactor: Leading-error prefactor if the entry is isotropic
        literal: Literal stencil for named entries, None for general forms
        isotropic: Whether the entry claims an isotropic leading error
    """

    identifier: str
    family: StencilFamily
    name: str
    coefficients: Mapping[sympy.Symbol, sympy.Expr]
    error_prefactor: sympy.Expr | None
    literal: Stencil | None
    isotropic: bool

    @property
    def general(self) -> Stencil:
        return self.family.general

    @property
    def is_general(self) -> bool:
        return self.literal is None

    @property
    def operator(self) -> OperatorKind:
        return self.family.operator

    @property
    def dimension(self) -> int:
        return self.family.dimension

    @property
    def order(self) -> int:
        return self.family.order


class StencilCatalog:
    """
    Immutable collection of stencil families.

    Example:
        >>> catalog = load_catalog()
        >>> entry = catalog.lookup("Laplacian", 2, 2, "Iso9p")
        >>> entry.error_prefactor
        1/12
    """

    def __init__(self, families: Iterable[StencilFamily], source: str | None = None):
        self._families: dict[tuple[OperatorKind, int, int], StencilFamily] = {}
        for family in families:
            key = (family.operator, family.dimension, family.order)
            if key in self._families:
                raise RegistryError(f"Duplicate stencil family {family.prefix}", source=source)
            self._families[key] = family
        self.source = source

    def __iter__(self) -> Iterator[StencilFamily]:
        return iter(self._families.values())

    def __len__(self) -> int:
        return len(self._families)

    def __repr__(self) -> str:
        return f"StencilCatalog({len(self)} families, source={self.source!r})"

    def family(self, operator: OperatorKind | str, dimension: int, order: int) -> StencilFamily:
        key = (OperatorKind(operator), int(dimension), int(order))
        try:
            return self._families[key]
        except KeyError:
            raise KeyError(f"No stencil family {format_identifier(*key, '')}") from None

    def lookup(self, operator: OperatorKind | str, dimension: int, order: int, name: str) -> StencilEntry:
        """
        Look up a stencil by its parts.

        Raises:
            KeyError: If the family or the name within it does not exist
        """
        return self.family(operator, dimension, order).entry(name)

    def get(self, identifier: str) -> StencilEntry:
        """Look up a stencil by its full identifier."""
        operator, dimension, order, name = parse_identifier(identifier)
        return self.lookup(operator, dimension, order, name)

    def entries(self) -> Iterator[StencilEntry]:
        for family in self:
            yield from family.entries()

    def identifiers(self) -> list[str]:
        return [entry.identifier for entry in self.entries()]

    def select(
        self,
        operators: Iterable[OperatorKind | str] | None = None,
        dimensions: Iterable[int] | None = None,
        orders: Iterable[int] | None = None,
    ) -> StencilCatalog:
        """Return the sub-catalog matching all given filters (None means no filter)."""
        wanted_operators = None if operators is None else {OperatorKind(op) for op in operators}
        wanted_dimensions = None if dimensions is None else {int(d) for d in dimensions}
        wanted_orders = None if orders is None else {int(p) for p in orders}

        selected = [
            family
            for family in self
            if (wanted_operators is None or family.operator in wanted_operators)
            and (wanted_dimensions is None or family.dimension in wanted_dimensions)
            and (wanted_orders is None or family.order in wanted_orders)
        ]
        return StencilCatalog(selected, source=self.source)


def _coefficient_set(values: Mapping[str, int | str], allowed: set[str]) -> CoefficientSet:
    return {sympy.Symbol(name): parse_rational_expression(value, allowed) for name, value in values.items()}


def _build_family(schema: FamilySchema) -> StencilFamily:
    operator = reference_operator(schema.operator)
    names = set(schema.general)
    prefix = schema.prefix

    general = Stencil(
        tuple(StencilTerm(sympy.Symbol(name), offset, schema.symmetry) for name, offset in schema.general.items()),
        dimension=schema.dimension,
        scale_power=operator.differential_order,
        label=prefix + GENERAL,
    )

    stencils = []
    for item in schema.stencils:
        terms = tuple(
            StencilTerm(sympy.Rational(term.weight, item.denominator), term.offset, schema.symmetry)
            for term in item.weights
        )
        literal = Stencil(terms, schema.dimension, operator.differential_order, label=prefix + item.name)
        stencils.append(
            ConcreteStencil(
                name=item.name,
                isotropic=item.isotropic,
                denominator=item.denominator,
                weights=tuple((tuple(term.offset), term.weight) for term in item.weights),
                coefficients=_coefficient_set(item.coefficients, set()),
                error_prefactor=None
                if item.error_prefactor is None
                else parse_rational_expression(item.error_prefactor),
                stencil=literal,
            )
        )

    return StencilFamily(
        operator=schema.operator,
        dimension=schema.dimension,
        order=schema.order,
        symmetry=schema.symmetry,
        general=general,
        anisotropic=_coefficient_set(schema.anisotropic, names),
        isotropic=_coefficient_set(schema.isotropic, names),
        error_prefactor=parse_rational_expression(schema.error_prefactor),
        stencils=tuple(stencils),
    )


def default_catalog_path() -> Path:
    """Location of the catalog shipped with the package."""
    return Path(str(resources.files("isostencil.catalog") / "data" / "stencils.yaml"))


def parse_catalog(data: object, source: str | None = None) -> StencilCatalog:
    """
    Validate an already-parsed catalog document.

    Raises:
        RegistryError: If the document does not match the catalog schema
    """
    try:
        schema = CatalogSchema.model_validate(data)
    except ValidationError as e:
        raise RegistryError("Stencil catalog failed validation", source=source, details=str(e)) from e
    return StencilCatalog((_build_family(family) for family in schema.families), source=source)


def load_catalog(path: str | Path | None = None) -> StencilCatalog:
    """
    Load and validate the stencil catalog.

    Args:
        path: YAML catalog file; defaults to the catalog shipped with the package

    Returns:
        Validated StencilCatalog

    Raises:
        RegistryError: If the file is missing, is not valid YAML or fails validation
    """
    path = default_catalog_path() if path is None else Path(path)
    if not path.exists():
        raise RegistryError(f"Catalog file not found: {path}", source=str(path))

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RegistryError("Catalog is not valid YAML", source=str(path), details=str(e)) from e

    catalog = parse_catalog(data, source=str(path))
    logger.debug(f"Loaded {len(catalog)} stencil families from {path}")
    return catalog
