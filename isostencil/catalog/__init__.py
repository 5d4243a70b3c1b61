"""
Stencil catalog: families, general forms, constraint sets and named stencils.

Usage:
    >>> from isostencil.catalog import load_catalog
    >>> catalog = load_catalog()
    >>> catalog.get("Laplacian2D2hIso9p").literal.points
    9
"""

from __future__ import annotations

from .registry import (
    ANISOTROPIC,
    GENERAL,
    ISOTROPIC,
    ConcreteStencil,
    StencilCatalog,
    StencilEntry,
    StencilFamily,
    default_catalog_path,
    format_identifier,
    load_catalog,
    parse_catalog,
    parse_identifier,
)
from .schema import CatalogSchema, FamilySchema, parse_rational_expression
from .stencil import Stencil, StencilTerm
from .symmetry import Symmetry, orbit, orbit_size

__all__ = [
    "ANISOTROPIC",
    "GENERAL",
    "ISOTROPIC",
    "CatalogSchema",
    "ConcreteStencil",
    "FamilySchema",
    "Stencil",
    "StencilCatalog",
    "StencilEntry",
    "StencilFamily",
    "StencilTerm",
    "Symmetry",
    "default_catalog_path",
    "format_identifier",
    "load_catalog",
    "orbit",
    "orbit_size",
    "parse_catalog",
    "parse_identifier",
    "parse_rational_expression",
]
