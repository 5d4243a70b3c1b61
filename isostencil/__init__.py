from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("isostencil")  # Matches the name in pyproject.toml
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .catalog import StencilCatalog, StencilEntry, load_catalog  # noqa: E402
from .config import VerificationConfig, load_verification_config  # noqa: E402
from .operators import companion_operator, reference_operator  # noqa: E402
from .symbolic import apply_stencil, apply_to_polynomial, series_expand, substitute_coefficients  # noqa: E402
from .verification import (  # noqa: E402
    CheckCategory,
    Status,
    VerificationReport,
    VerificationRunner,
    build_checks,
    run_check,
)

__all__ = [
    "CheckCategory",
    "Status",
    "StencilCatalog",
    "StencilEntry",
    "VerificationConfig",
    "VerificationReport",
    "VerificationRunner",
    "__version__",
    "apply_stencil",
    "apply_to_polynomial",
    "build_checks",
    "companion_operator",
    "load_catalog",
    "load_verification_config",
    "reference_operator",
    "run_check",
    "series_expand",
    "substitute_coefficients",
]
