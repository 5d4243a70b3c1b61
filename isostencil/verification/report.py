"""
Verification results and report rendering.

Results are gathered from worker threads or processes into a lock-protected
``ResultCollector`` and frozen into a ``VerificationReport``, which renders a
human-readable summary for the terminal and machine-readable records for
JSON and CSV output.
"""

from __future__ import annotations

import json
import threading
from collections import Counter
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

from isostencil.utils.exceptions import ErrorKind

if TYPE_CHECKING:
    from collections.abc import Iterable


class Status(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    INCONCLUSIVE = "INCONCLUSIVE"


class CheckCategory(str, Enum):
    """Kinds of verification check, in report order."""

    EQUIVALENCE = "equivalence"
    ANISOTROPIC_ORDER = "anisotropic_order"
    ISOTROPIC_ERROR = "isotropic_error"
    GENERAL_ANISOTROPIC = "general_anisotropic"
    GENERAL_ISOTROPIC = "general_isotropic"

    @property
    def is_general(self) -> bool:
        return self in (CheckCategory.GENERAL_ANISOTROPIC, CheckCategory.GENERAL_ISOTROPIC)


_CATEGORY_ORDER = {category: i for i, category in enumerate(CheckCategory)}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INCONCLUSIVE = 3

RECORD_COLUMNS = ["id", "category", "status", "detail", "error_kind", "failing_order", "residual", "elapsed"]


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of one check.

    Attributes:
        id: Stencil identifier the check ran on
        category: Check category
        status: PASS, FAIL or INCONCLUSIVE
        detail: One-line description of the outcome
        error_kind: Why the check did not pass (None on PASS)
        failing_order: Lowest power of h whose residual coefficient survives
        residual: The surviving residual coefficient, as text
        elapsed: Wall time of the check in seconds
    """

    id: str
    category: CheckCategory
    status: Status
    detail: str = ""
    error_kind: ErrorKind | None = None
    failing_order: int | None = None
    residual: str | None = None
    elapsed: float = 0.0

    @property
    def key(self) -> tuple[int, str]:
        return _CATEGORY_ORDER[self.category], self.id

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["category"] = self.category.value
        record["status"] = self.status.value
        record["error_kind"] = None if self.error_kind is None else self.error_kind.value
        record["elapsed"] = round(self.elapsed, 3)
        return record


class ResultCollector:
    """Append-only, thread-safe accumulator of check results."""

    def __init__(self):
        self._lock = threading.Lock()
        self._results: list[CheckResult] = []

    def add(self, result: CheckResult) -> None:
        with self._lock:
            self._results.append(result)

    def results(self) -> tuple[CheckResult, ...]:
        with self._lock:
            return tuple(self._results)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)


@dataclass(frozen=True)
class VerificationReport:
    """
    Immutable outcome of a verification run.

    Results are kept in report order: by category, then by stencil identifier
    within the order the checks were built.
    """

    results: tuple[CheckResult, ...] = field(default=())
    execution_time: float = 0.0

    @classmethod
    def from_results(cls, results: Iterable[CheckResult], execution_time: float = 0.0) -> VerificationReport:
        ordered = sorted(results, key=lambda result: _CATEGORY_ORDER[result.category])
        return cls(tuple(ordered), execution_time)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    def by_status(self, status: Status) -> list[CheckResult]:
        return [result for result in self.results if result.status is status]

    def summary(self) -> dict[str, int]:
        """Number of checks per status, plus the total."""
        counts = Counter(result.status for result in self.results)
        tally = {status.value: counts.get(status, 0) for status in Status}
        tally["total"] = len(self.results)
        return tally

    def exit_code(self) -> int:
        """0 if every check passed, 1 if any failed, 3 if some were inconclusive and none failed."""
        statuses = {result.status for result in self.results}
        if Status.FAIL in statuses:
            return EXIT_FAILURE
        if Status.INCONCLUSIVE in statuses:
            return EXIT_INCONCLUSIVE
        return EXIT_OK

    def to_text(self) -> str:
        lines = ["Stencil verification report", "=" * 27]
        width = max((len(result.id) for result in self.results), default=0)

        for category in CheckCategory:
            group = [result for result in self.results if result.category is category]
            if not group:
                continue
            lines.append("")
            lines.append(f"{category.value} ({len(group)} checks)")
            for result in group:
                line = f"  {result.status.value:<12} {result.id:<{width}}"
                if result.status is Status.PASS:
                    line += f"  {result.detail}"
                else:
                    line += f"  [{result.error_kind.value if result.error_kind else 'Unknown'}] {result.detail}"
                lines.append(line.rstrip())
                if result.status is Status.FAIL and result.residual is not None:
                    order = "" if result.failing_order is None else f" at h^{result.failing_order}"
                    lines.append(f"  {'':<12} {'':<{width}}  residual{order}: {result.residual}")

        summary = self.summary()
        lines.append("")
        lines.append(
            f"Summary: {summary['PASS']} passed, {summary['FAIL']} failed, "
            f"{summary['INCONCLUSIVE']} inconclusive of {summary['total']} checks "
            f"({self.execution_time:.2f}s)"
        )
        return "\n".join(lines)

    def to_records(self) -> list[dict[str, Any]]:
        return [result.to_record() for result in self.results]

    def to_json(self, path: str | Path) -> Path:
        """Write summary, exit code and per-check records to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "summary": self.summary(),
            "exit_code": self.exit_code(),
            "execution_time": round(self.execution_time, 3),
            "results": self.to_records(),
        }
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        return path

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.to_records(), columns=RECORD_COLUMNS)

    def to_csv(self, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path, index=False)
        return path
