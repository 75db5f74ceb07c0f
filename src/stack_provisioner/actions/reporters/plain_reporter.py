"""Plain Text Reporter Implementation."""

from stack_provisioner.actions.reporters.base import BaseReporter, exit_code, level_label
from stack_provisioner.model.step import RunReport, RunState, StepStatus
from stack_provisioner.provisioners.base import Provisioner


class PlainReporter(BaseReporter):
    """Clean, text-only output for logs and pipes."""

    def _print(self, text: str = "") -> None:
        self.console.print(text, markup=False, highlight=False)

    def log_line(self, level: str, message: str) -> None:
        self._print(f"[{level_label(level)}] {message}")

    def report_runs(self, reports: list[RunReport]) -> int:
        for report in reports:
            self._print()
            header = f"RUN: {report.component} on {report.target}"
            if report.dry_run:
                header += " (dry run)"
            self._print(header)

            for index, result in enumerate(report.results, start=1):
                changed = " changed" if result.changed else ""
                self._print(f"{index:>3}. [{result.status.value.upper()}{changed}] {result.description}")
                if result.status == StepStatus.FATAL:
                    self._print(f"     Error: {result.error}")
                elif result.message:
                    self._print(f"     {result.message}")
                if self.show_diff and result.diff:
                    for line in result.diff.splitlines():
                        self._print(f"     {line}")

            self._print(f"STATE: {report.state.value} (exit {report.exit_code})")
            if report.state == RunState.DONE:
                self._print(f"Changed: {report.changed_count}, Skipped: {report.skipped_count}")
                for line in report.summary:
                    self._print(f"- {line}")
        return exit_code(reports)

    def report_components(self, provisioners: list[Provisioner]) -> None:
        for provisioner in provisioners:
            self._print(f"{provisioner.name:<18} {provisioner.description}")
