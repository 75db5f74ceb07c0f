"""Provisioning runner - strict-abort execution of a step sequence.

State machine per run: RUNNING -> DONE | ABORTED.

1. Privilege precondition, checked before anything else.
2. Exclusive lock around the whole sequence.
3. Steps in their fixed order. The first fatal step aborts the run;
   later steps never execute and nothing is rolled back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from stack_provisioner.connector.base import Connector, null_lock
from stack_provisioner.engine.steps import StepContext
from stack_provisioner.errors import LockError, PreconditionError, ProvisionError
from stack_provisioner.model.step import RunReport, RunState, StepResult, StepStatus

if TYPE_CHECKING:
    from stack_provisioner.provisioners.base import Provisioner

logger = logging.getLogger(__name__)

DEFAULT_LOCK_PATH = "/run/lock/stack-provisioner.lock"


class ProvisionRunner:
    """Execute provisioners against one connector."""

    def __init__(
        self,
        connector: Connector,
        *,
        dry_run: bool = False,
        lock_path: str = DEFAULT_LOCK_PATH,
        backup_suffix: str = ".backup",
        log_fn: Callable[[str, str], None] | None = None,
    ) -> None:
        self.connector = connector
        self.dry_run = dry_run
        self.lock_path = lock_path
        self.backup_suffix = backup_suffix
        self.log_fn = log_fn

    def run(self, provisioner: Provisioner) -> RunReport:
        """Run every step of ``provisioner`` and return the report."""
        report = RunReport(
            component=provisioner.name,
            target=self.connector.target,
            dry_run=self.dry_run,
            log_fn=self.log_fn,
        )
        report.log_info(f"Starting {provisioner.title} on {self.connector.target}" + (" (dry run)" if self.dry_run else ""))

        try:
            self._check_privilege()
        except PreconditionError as e:
            report.log_error(str(e))
            report.finish(RunState.ABORTED)
            return report

        lock = null_lock() if self.dry_run else self.connector.lock(self.lock_path)
        try:
            with lock:
                self._run_steps(provisioner, report)
        except LockError as e:
            report.log_error(str(e))
            report.finish(RunState.ABORTED)
            return report

        if report.state == RunState.DONE:
            report.summary = provisioner.summary()
            report.log_success(f"{provisioner.title} completed")
        return report

    def run_many(self, provisioners: list[Provisioner]) -> list[RunReport]:
        """Run provisioners in order, stopping after the first aborted run."""
        reports = []
        for provisioner in provisioners:
            report = self.run(provisioner)
            reports.append(report)
            if report.state == RunState.ABORTED:
                break
        return reports

    def _check_privilege(self) -> None:
        if not self.connector.is_root():
            raise PreconditionError("This command must be run as root (use sudo)")

    def _run_steps(self, provisioner: Provisioner, report: RunReport) -> None:
        ctx = StepContext(
            connector=self.connector,
            dry_run=self.dry_run,
            backup_suffix=self.backup_suffix,
        )

        for step in provisioner.steps():
            report.log_info(step.description)
            try:
                result = step.execute(ctx)
            except (ProvisionError, OSError) as e:
                logger.debug("step %r raised", step, exc_info=True)
                result = step.result(status=StepStatus.FATAL, error=str(e))

            report.results.append(result)
            self._log_result(report, result)

            if result.status == StepStatus.FATAL:
                report.log_error(f"Aborting {provisioner.title}: remaining steps were not run")
                report.finish(RunState.ABORTED)
                return

        report.finish(RunState.DONE)

    @staticmethod
    def _log_result(report: RunReport, result: StepResult) -> None:
        if result.status == StepStatus.FATAL:
            report.log_error(f"{result.description}: {result.error}")
        elif result.status == StepStatus.SKIPPED:
            report.log_warn(f"{result.description}: {result.message}")
        else:
            logger.debug("%s: %s", result.description, result.message or "ok")
