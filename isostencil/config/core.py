"""
Verification run configuration.

Configurations specify HOW a verification run executes (which checks, how many
workers, how long each check may take), never WHAT the stencils are; the
stencil data lives in the catalog.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, model_validator

from isostencil.operators.differential import OperatorKind

if TYPE_CHECKING:
    from pathlib import Path

CategoryName = Literal[
    "equivalence",
    "anisotropic_order",
    "isotropic_error",
    "general_anisotropic",
    "general_isotropic",
]
ExecutionMode = Literal["sequential", "parallel_threads", "parallel_processes"]


class ExecutionConfig(BaseModel):
    """
    Configuration for executing checks.

    Attributes
    ----------
    mode : Literal["sequential", "parallel_threads", "parallel_processes"]
        How checks are scheduled (default: parallel_processes; sympy work is CPU bound)
    max_workers : int | None
        Worker cap (default: CPU count, never more than the number of checks)
    timeout_per_check : float | None
        Seconds a check may run before it is reported inconclusive (default: no limit)
    """

    mode: ExecutionMode = "parallel_processes"
    max_workers: int | None = Field(default=None, ge=1)
    timeout_per_check: float | None = Field(default=None, gt=0)

    def resolved_workers(self, n_checks: int) -> int:
        """Number of workers actually started for ``n_checks`` checks."""
        cap = self.max_workers or os.cpu_count() or 1
        return max(1, min(cap, n_checks))


class FilterConfig(BaseModel):
    """
    Selection of the checks to run. Empty lists select everything.

    Attributes
    ----------
    operators : list[OperatorKind]
        Operator families to include
    dimensions : list[int]
        Space dimensions to include (2, 3)
    orders : list[int]
        Accuracy orders to include (2, 4)
    categories : list[str]
        Check categories to include
    stencils : list[str]
        Stencil identifiers to include, e.g. ``Laplacian2D2hIso9p``
    """

    operators: list[OperatorKind] = Field(default_factory=list)
    dimensions: list[Literal[2, 3]] = Field(default_factory=list)
    orders: list[int] = Field(default_factory=list)
    categories: list[CategoryName] = Field(default_factory=list)
    stencils: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_orders(self) -> FilterConfig:
        """Accuracy orders are positive and even."""
        for order in self.orders:
            if order <= 0 or order % 2:
                raise ValueError(f"Accuracy orders must be positive and even, got {order}")
        return self


class PolynomialConfig(BaseModel):
    """
    Degree of the generic test polynomial.

    The degree used for a check is
    ``max(min_degree, order + 2, highest checked power + k + 1 + extra_degree)``
    where k is the differential order of the operator.

    Attributes
    ----------
    min_degree : int
        Lower bound on the degree (default: 0)
    extra_degree : int
        Additional degree on top of the minimum that detects every coefficient (default: 0)
    """

    min_degree: int = Field(default=0, ge=0)
    extra_degree: int = Field(default=0, ge=0)

    def degree_for(self, order: int, highest_power: int, differential_order: int) -> int:
        return max(self.min_degree, order + 2, highest_power + differential_order + 1 + self.extra_degree)


class LoggingConfig(BaseModel):
    """
    Configuration for logging.

    Attributes
    ----------
    level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
        Logging level (default: INFO)
    log_file : str | None
        Also write the log to this file (default: None)
    use_colors : bool
        Colored console output (default: True)
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: str | None = None
    use_colors: bool = True


class VerificationConfig(BaseModel):
    """
    Complete configuration of a verification run.

    Attributes
    ----------
    execution : ExecutionConfig
        Scheduling, worker cap and timeout
    filters : FilterConfig
        Check selection
    polynomial : PolynomialConfig
        Test polynomial degree
    logging : LoggingConfig
        Logging configuration
    catalog_path : str | None
        Catalog file; None uses the catalog shipped with the package

    Examples
    --------
    >>> config = VerificationConfig.from_yaml("verify.yaml")

    >>> config = VerificationConfig(
    ...     execution=ExecutionConfig(mode="parallel_threads", max_workers=4),
    ...     filters=FilterConfig(operators=["Laplacian"], dimensions=[2]),
    ... )
    """

    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    filters: FilterConfig = Field(default_factory=FilterConfig)
    polynomial: PolynomialConfig = Field(default_factory=PolynomialConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    catalog_path: str | None = None

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        from .io import save_verification_config

        save_verification_config(self, path)

    @classmethod
    def from_yaml(cls, path: str | Path) -> VerificationConfig:
        """Load configuration from a YAML file."""
        from .io import load_verification_config

        return load_verification_config(path)
