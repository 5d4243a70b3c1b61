"""
Concurrent execution of verification checks.

Checks are independent and share no mutable state, so they can run in a
thread or process pool. Each check is isolated: its failure, timeout or crash
is recorded for that check only and the run continues.
"""

from __future__ import annotations

import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from isostencil.config import VerificationConfig
from isostencil.utils.exceptions import ErrorKind
from isostencil.utils.stencil_logging import get_logger, log_check_failure, log_run_configuration, log_run_summary

from .checks import CheckSpec, run_check
from .report import CheckResult, ResultCollector, Status, VerificationReport

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)


class VerificationRunner:
    """
    Run a list of checks and collect them into a report.

    Example:
        >>> catalog = load_catalog()
        >>> runner = VerificationRunner(VerificationConfig())
        >>> report = runner.run(build_checks(catalog, categories=["equivalence"]))
        >>> report.exit_code()
        0
    """

    def __init__(self, config: VerificationConfig | None = None):
        self.config = config or VerificationConfig()

    def run(self, checks: Sequence[CheckSpec]) -> VerificationReport:
        execution = self.config.execution
        n_workers = execution.resolved_workers(len(checks))
        timeout = execution.timeout_per_check
        log_run_configuration(
            logger,
            len(checks),
            {
                "mode": execution.mode,
                "workers": n_workers if execution.mode != "sequential" else 1,
                "timeout per check": "none" if timeout is None else f"{timeout}s",
            },
        )

        start_time = time.time()
        collector = ResultCollector()

        if execution.mode == "sequential":
            self._run_sequential(checks, collector)
        elif execution.mode == "parallel_threads":
            self._run_pool(ThreadPoolExecutor(max_workers=n_workers), checks, collector)
        elif execution.mode == "parallel_processes":
            self._run_pool(ProcessPoolExecutor(max_workers=n_workers), checks, collector)
        else:
            raise ValueError(f"Unknown execution mode: {execution.mode}")

        position = {check.check_id: i for i, check in enumerate(checks)}
        results = sorted(collector.results(), key=lambda result: position[f"{result.category.value}:{result.id}"])
        report = VerificationReport.from_results(results, execution_time=time.time() - start_time)

        log_run_summary(logger, report.summary(), report.execution_time)
        return report

    def _record(self, check: CheckSpec, result: CheckResult, collector: ResultCollector, completed: int, total: int):
        collector.add(result)
        logger.debug(f"Completed {completed}/{total}: {check.check_id} {result.status.value}")
        if result.status is Status.FAIL:
            log_check_failure(logger, check.check_id, result.detail)
        elif result.status is Status.INCONCLUSIVE:
            logger.warning(f"INCONCLUSIVE {check.check_id}: {result.detail}")

    def _run_sequential(self, checks: Sequence[CheckSpec], collector: ResultCollector):
        for i, check in enumerate(checks):
            self._record(check, run_check(check, self.config), collector, i + 1, len(checks))

    def _run_pool(self, executor: Executor, checks: Sequence[CheckSpec], collector: ResultCollector):
        with executor:
            future_to_check: dict[Future, CheckSpec] = {
                executor.submit(run_check, check, self.config): check for check in checks
            }

            for completed, future in enumerate(as_completed(future_to_check), start=1):
                check = future_to_check[future]
                try:
                    result = future.result()
                except Exception as e:
                    # The worker itself died; only this check is affected
                    logger.error(f"Worker failed for {check.check_id}: {e}")
                    result = CheckResult(
                        check.stencil_id,
                        check.category,
                        Status.FAIL,
                        f"worker failed: {type(e).__name__}: {e}",
                        error_kind=ErrorKind.INTERNAL_ERROR,
                    )
                self._record(check, result, collector, completed, len(checks))


def run_verification(checks: Sequence[CheckSpec], config: VerificationConfig | None = None) -> VerificationReport:
    """Convenience wrapper around ``VerificationRunner(config).run(checks)``."""
    return VerificationRunner(config).run(checks)
