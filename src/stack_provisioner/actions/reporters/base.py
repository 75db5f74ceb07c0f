"""Base Reporter Interface."""

from abc import ABC, abstractmethod

from rich.console import Console

from stack_provisioner.model.step import RunReport
from stack_provisioner.provisioners.base import Provisioner

# Run log level -> (label shown to the operator, rich style)
LEVELS = {
    "INFO": ("INFO", "green"),
    "WARN": ("WARNING", "yellow"),
    "ERROR": ("ERROR", "red"),
    "SUCCESS": ("SUCCESS", "bold green"),
}


def level_label(level: str) -> str:
    return LEVELS.get(level, (level, ""))[0]


def exit_code(reports: list[RunReport]) -> int:
    """0 only when every run reached DONE."""
    if not reports:
        return 1
    return max(report.exit_code for report in reports)


class BaseReporter(ABC):
    """Abstract base class for run reporters."""

    def __init__(self, console: Console, show_diff: bool = False) -> None:
        self.console = console
        self.show_diff = show_diff

    @abstractmethod
    def log_line(self, level: str, message: str) -> None:
        """Stream one progress line while a run executes."""

    @abstractmethod
    def report_runs(self, reports: list[RunReport]) -> int:
        """Print the outcome of every run and return the process exit code."""

    @abstractmethod
    def report_components(self, provisioners: list[Provisioner]) -> None:
        """List the available components."""
