"""
Command-line interface for isostencil.

Provides the verification suite, a listing of the stencil catalog and the
explicit formula of a single stencil.
"""

from __future__ import annotations

import sys

import click
from pydantic import ValidationError

from isostencil import __version__
from isostencil.catalog import GENERAL, StencilEntry, Symmetry, load_catalog, orbit_size
from isostencil.config import VerificationConfig, load_verification_config
from isostencil.operators import OperatorKind
from isostencil.utils.exceptions import RegistryError
from isostencil.utils.stencil_logging import configure_logging
from isostencil.verification import CheckCategory, VerificationRunner, checks_from_filters

OPERATOR_CHOICES = [kind.value for kind in OperatorKind]
CATEGORY_CHOICES = [category.value for category in CheckCategory]
MODE_CHOICES = ["sequential", "parallel_threads", "parallel_processes"]


def _format_offset(offset: tuple[int, ...]) -> str:
    return "(" + ",".join(str(o) for o in offset) + ")"


def format_formula(entry: StencilEntry) -> str:
    """
    Render a stencil as a weighted sum of orbit sums.

    ``f(0,0)`` is a single sample, ``S(1,0)`` the sum of f over the orbit of
    (1,0) and ``A(1,0,0)`` the antisymmetric sum (images mirrored in x carry
    a minus sign).
    """
    family = entry.family
    k = family.differential_order
    orbit_label = "A" if family.symmetry is Symmetry.ODD_FIRST_AXIS else "S"

    if entry.is_general:
        denominator = 1
        stencil = entry.general.substitute(entry.coefficients)
        rows = [(str(term.coefficient), term.generator) for term in stencil.terms]
    else:
        concrete = family.concrete(entry.name)
        denominator = concrete.denominator
        rows = [(f"{weight:+d}", offset) for offset, weight in concrete.weights]

    scale = f"1/h^{k}" if denominator == 1 else f"1/({denominator} h^{k})"
    width = max(len(coefficient) for coefficient, _ in rows)

    lines = [f"{entry.identifier} = {scale} * ["]
    for coefficient, offset in rows:
        size = orbit_size(offset, family.symmetry)
        if size == 1 and family.symmetry is Symmetry.FULL:
            lines.append(f"    {coefficient:>{width}} * f{_format_offset(offset)}")
        else:
            lines.append(f"    {coefficient:>{width}} * {orbit_label}{_format_offset(offset)}    {size} points")
    lines.append("]")
    return "\n".join(lines)


def _describe(entry: StencilEntry) -> str:
    parts = []
    if entry.literal is not None:
        parts.append(f"{entry.literal.points} points")
    if entry.name == GENERAL:
        parts.append("general form")
    elif entry.is_general:
        parts.append(f"general form with {entry.name.lower()} constraints")
    else:
        parts.append("isotropic" if entry.isotropic else "anisotropic")
    if entry.error_prefactor is not None:
        parts.append(f"error prefactor {entry.error_prefactor}")
    return ", ".join(parts)


def _load_config(config_path: str | None) -> VerificationConfig:
    if config_path is None:
        return VerificationConfig()
    try:
        return load_verification_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.UsageError(str(e)) from e


def _load_catalog(path: str | None):
    try:
        return load_catalog(path)
    except RegistryError as e:
        raise click.UsageError(str(e)) from e


@click.group()
@click.version_option(version=__version__, prog_name="isostencil")
def main():
    """
    isostencil: finite-difference stencils with isotropic discretisation error

    A catalog of Laplacian, Bilaplacian and gradient-of-Laplacian stencils in
    two and three dimensions, with symbolic proofs of their order and leading
    error term.
    """


@main.command()
@click.option("--operator", "operators", multiple=True, type=click.Choice(OPERATOR_CHOICES), help="Operator family")
@click.option("--dimension", "dimensions", multiple=True, type=click.IntRange(2, 3), help="Space dimension")
@click.option("--order", "orders", multiple=True, type=int, help="Accuracy order")
@click.option("--category", "categories", multiple=True, type=click.Choice(CATEGORY_CHOICES), help="Check category")
@click.option("--stencil", "stencils", multiple=True, type=str, help="Stencil identifier, e.g. Laplacian2D2hIso9p")
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Maximum number of workers")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None, help="Execution mode")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Seconds per check")
@click.option("--json", "json_path", type=click.Path(dir_okay=False), default=None, help="Write records as JSON")
@click.option("--csv", "csv_path", type=click.Path(dir_okay=False), default=None, help="Write records as CSV")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML run configuration")
@click.option("--catalog", "catalog_path", type=click.Path(dir_okay=False), default=None, help="YAML stencil catalog")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write the log to this file")
@click.option("--verbose", "-v", is_flag=True, help="Log every check")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
def verify(
    operators,
    dimensions,
    orders,
    categories,
    stencils,
    workers,
    mode,
    timeout,
    json_path,
    csv_path,
    config_path,
    catalog_path,
    log_file,
    verbose,
    quiet,
):
    """
    Verify stencils symbolically.

    Exits with 0 if every check passed, 1 if any check failed and 3 if some
    checks were inconclusive (timed out) but none failed.

    Examples:
        isostencil verify
        isostencil verify --operator Laplacian --dimension 2 --category equivalence
        isostencil verify --stencil Bilaplacian2D2hIso25p --timeout 600 --json report.json
    """
    config = _load_config(config_path)

    data = config.model_dump()
    filters = {"operators": operators, "dimensions": dimensions, "orders": orders}
    filters.update({"categories": categories, "stencils": stencils})
    for key, values in filters.items():
        if values:
            data["filters"][key] = list(values)
    execution = {"max_workers": workers, "mode": mode, "timeout_per_check": timeout}
    data["execution"].update({key: value for key, value in execution.items() if value is not None})
    if catalog_path is not None:
        data["catalog_path"] = catalog_path
    if log_file is not None:
        data["logging"]["log_file"] = log_file
    if verbose:
        data["logging"]["level"] = "DEBUG"
    elif quiet:
        data["logging"]["level"] = "WARNING"

    try:
        config = VerificationConfig.model_validate(data)
    except ValidationError as e:
        raise click.UsageError(str(e)) from e

    configure_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_file is not None,
        log_file_path=config.logging.log_file,
        use_colors=config.logging.use_colors,
    )

    catalog = _load_catalog(config.catalog_path)
    try:
        checks = checks_from_filters(catalog, config.filters)
    except KeyError as e:
        raise click.UsageError(str(e.args[0]) if e.args else str(e)) from e

    report = VerificationRunner(config).run(checks)

    click.echo(report.to_text())
    if json_path:
        click.echo(f"Saved records to {report.to_json(json_path)}")
    if csv_path:
        click.echo(f"Saved table to {report.to_csv(csv_path)}")

    sys.exit(report.exit_code())


@main.command(name="list")
@click.option("--operator", "operators", multiple=True, type=click.Choice(OPERATOR_CHOICES), help="Operator family")
@click.option("--dimension", "dimensions", multiple=True, type=click.IntRange(2, 3), help="Space dimension")
@click.option("--order", "orders", multiple=True, type=int, help="Accuracy order")
@click.option("--catalog", "catalog_path", type=click.Path(dir_okay=False), default=None, help="YAML stencil catalog")
def list_stencils(operators, dimensions, orders, catalog_path):
    """
    List the named stencils of the catalog.

    Examples:
        isostencil list
        isostencil list --operator GradLap --dimension 3
    """
    catalog = _load_catalog(catalog_path).select(
        operators=operators or None,
        dimensions=dimensions or None,
        orders=orders or None,
    )

    rows = [entry for entry in catalog.entries() if not entry.is_general]
    width = max((len(entry.identifier) for entry in rows), default=len("identifier"))

    click.echo(f"{'identifier':<{width}}  {'points':>6}  {'isotropic':<9}  error prefactor")
    click.echo(f"{'-' * width}  {'-' * 6}  {'-' * 9}  {'-' * 15}")
    for entry in rows:
        prefactor = "" if entry.error_prefactor is None else str(entry.error_prefactor)
        isotropic = "yes" if entry.isotropic else "no"
        click.echo(f"{entry.identifier:<{width}}  {entry.literal.points:>6}  {isotropic:<9}  {prefactor}".rstrip())


@main.command()
@click.argument("identifier")
@click.option("--catalog", "catalog_path", type=click.Path(dir_okay=False), default=None, help="YAML stencil catalog")
def show(identifier, catalog_path):
    """
    Print the explicit formula of a stencil.

    IDENTIFIER is a named stencil such as Laplacian2D2hIso9p, or a general
    form such as Laplacian2D2hGeneral, Laplacian2D2hAnisotropic or
    Laplacian2D2hIsotropic.

    Examples:
        isostencil show Laplacian2D2hIso9p
        isostencil show GradLap3D2hIsotropic
    """
    catalog = _load_catalog(catalog_path)
    try:
        entry = catalog.get(identifier)
    except KeyError as e:
        click.echo(f"Error: {e.args[0] if e.args else e}", err=True)
        sys.exit(1)

    click.echo(f"{entry.identifier}: {_describe(entry)}")
    click.echo(format_formula(entry))


if __name__ == "__main__":
    main()
