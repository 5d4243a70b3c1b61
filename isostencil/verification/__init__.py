"""
Verification harness: check enumeration, execution and reporting.

Quick Start
-----------
>>> from isostencil.catalog import load_catalog
>>> from isostencil.verification import VerificationRunner, build_checks
>>> report = VerificationRunner().run(build_checks(load_catalog(), stencils=["Laplacian2D2hIso9p"]))
>>> print(report.to_text())
"""

from __future__ import annotations

from .checks import (
    CHECKS,
    CheckSpec,
    Deadline,
    build_checks,
    check_anisotropic_order,
    check_equivalence,
    check_isotropic_error,
    checks_from_filters,
    run_check,
)
from .report import CheckCategory, CheckResult, ResultCollector, Status, VerificationReport
from .runner import VerificationRunner, run_verification

__all__ = [
    "CHECKS",
    "CheckCategory",
    "CheckResult",
    "CheckSpec",
    "Deadline",
    "ResultCollector",
    "Status",
    "VerificationReport",
    "VerificationRunner",
    "build_checks",
    "check_anisotropic_order",
    "check_equivalence",
    "check_isotropic_error",
    "checks_from_filters",
    "run_check",
    "run_verification",
]
