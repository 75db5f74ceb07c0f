"""Step and run result types.

A provisioning run is a fixed sequence of steps. Every step reports one
StepResult; the run itself moves RUNNING -> DONE or RUNNING -> ABORTED.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable


class StepKind(str, Enum):
    """What a step touches."""

    PACKAGE = "package"
    FILE = "file"
    SERVICE = "service"
    COMMAND = "command"
    CHECK = "check"


class StepStatus(str, Enum):
    """Uniform outcome of a step."""

    SUCCESS = "success"
    SKIPPED = "skipped"  # Recoverable: logged as a warning, run continues
    FATAL = "fatal"  # Aborts the remaining sequence


class RunState(str, Enum):
    """Run state machine."""

    RUNNING = "running"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class StepResult:
    """Outcome of one step.

    Attributes:
        description: What the step does, as shown to the operator.
        kind: Step category.
        status: success / skipped / fatal.
        changed: Whether the target was (or in a dry run, would be) mutated.
        message: Short detail line.
        diff: Unified diff for file steps.
        error: Failure reason for fatal results.
    """

    description: str
    kind: StepKind
    status: StepStatus = StepStatus.SUCCESS
    changed: bool = False
    message: str = ""
    diff: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != StepStatus.FATAL

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "kind": self.kind.value,
            "status": self.status.value,
            "changed": self.changed,
            "message": self.message,
            "diff": self.diff,
            "error": self.error,
        }


@dataclass
class RunLog:
    """Single log entry."""

    timestamp: datetime
    level: str  # INFO, WARN, ERROR, SUCCESS
    message: str


@dataclass
class RunReport:
    """Everything a provisioning run did, in order."""

    component: str
    target: str = "localhost"
    dry_run: bool = False
    state: RunState = RunState.RUNNING
    results: list[StepResult] = field(default_factory=list)
    logs: list[RunLog] = field(default_factory=list)
    summary: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    log_fn: Callable[[str, str], None] | None = field(default=None, repr=False, compare=False)

    def log(self, message: str, level: str = "INFO") -> None:
        """Add a log entry and stream it to the attached callback."""
        self.logs.append(RunLog(timestamp=datetime.now(), level=level, message=message))
        if self.log_fn:
            self.log_fn(level, message)

    def log_info(self, message: str) -> None:
        self.log(message, "INFO")

    def log_warn(self, message: str) -> None:
        self.log(message, "WARN")

    def log_error(self, message: str) -> None:
        self.log(message, "ERROR")

    def log_success(self, message: str) -> None:
        self.log(message, "SUCCESS")

    def finish(self, state: RunState) -> None:
        self.state = state
        self.completed_at = datetime.now()

    @property
    def exit_code(self) -> int:
        return 0 if self.state == RunState.DONE else 1

    @property
    def changed_count(self) -> int:
        return sum(1 for r in self.results if r.changed)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.status == StepStatus.SKIPPED)

    @property
    def failed_step(self) -> StepResult | None:
        return next((r for r in self.results if r.status == StepStatus.FATAL), None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            "component": self.component,
            "target": self.target,
            "dry_run": self.dry_run,
            "state": self.state.value,
            "exit_code": self.exit_code,
            "results": [r.to_dict() for r in self.results],
            "logs": [
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "level": entry.level,
                    "message": entry.message,
                }
                for entry in self.logs
            ],
            "summary": self.summary,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
