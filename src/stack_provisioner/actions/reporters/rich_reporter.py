"""Rich Reporter Implementation."""

from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from stack_provisioner.actions.reporters.base import LEVELS, BaseReporter, exit_code
from stack_provisioner.model.step import RunReport, RunState, StepResult, StepStatus
from stack_provisioner.provisioners.base import Provisioner

STATUS_STYLES = {
    StepStatus.SUCCESS: "green",
    StepStatus.SKIPPED: "yellow",
    StepStatus.FATAL: "red",
}


class RichReporter(BaseReporter):
    """Colored terminal output using Rich."""

    def log_line(self, level: str, message: str) -> None:
        label, style = LEVELS.get(level, (level, "white"))
        self.console.print(f"[{style}]\\[{label}][/] {escape(message)}")

    def report_runs(self, reports: list[RunReport]) -> int:
        for report in reports:
            self._print_report(report)
        return exit_code(reports)

    def _print_report(self, report: RunReport) -> None:
        self.console.print()
        if self.show_diff:
            for result in report.results:
                if result.diff:
                    self._print_diff(result)

        title = f"{report.component} on {report.target}" + (" (dry run)" if report.dry_run else "")
        table = Table(title=title, show_header=True, header_style="bold white", expand=True)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Step")
        table.add_column("Status", justify="center")
        table.add_column("Changed", justify="center")
        table.add_column("Detail")

        for index, result in enumerate(report.results, start=1):
            style = STATUS_STYLES[result.status]
            detail = result.error if result.status == StepStatus.FATAL else result.message
            table.add_row(
                str(index),
                escape(result.description),
                f"[{style}]{result.status.value}[/]",
                "[cyan]yes[/]" if result.changed else "[dim]no[/]",
                escape(detail or ""),
            )
        self.console.print(table)

        if report.state == RunState.DONE:
            verb = "would change" if report.dry_run else "changed"
            footer = f"{len(report.results)} steps, {report.changed_count} {verb}, {report.skipped_count} skipped"
            body = "\n".join(escape(line) for line in report.summary)
            self.console.print(
                Panel(
                    body or footer,
                    title=f"[bold green]{escape(report.component)}: done[/]",
                    subtitle=footer if body else None,
                    border_style="green",
                )
            )
        else:
            failed = report.failed_step
            reason = f"{failed.description}: {failed.error}" if failed else (report.logs[-1].message if report.logs else "")
            self.console.print(
                Panel(
                    escape(reason),
                    title=f"[bold red]{escape(report.component)}: aborted[/]",
                    border_style="red",
                )
            )

    def _print_diff(self, result: StepResult) -> None:
        self.console.print(
            Panel(
                Syntax(result.diff, "diff", theme="ansi_dark", background_color="default"),
                title=f"[bold white]{escape(result.description)}[/]",
                title_align="left",
                border_style="blue",
            )
        )

    def report_components(self, provisioners: list[Provisioner]) -> None:
        table = Table(show_header=True, header_style="bold white")
        table.add_column("Component", style="bold cyan")
        table.add_column("Installs")
        table.add_column("Description")
        for provisioner in provisioners:
            table.add_row(provisioner.name, provisioner.title, provisioner.description)
        self.console.print(table)
