"""Model package - Core data structures for stack-provisioner."""

from stack_provisioner.model.step import (
    RunLog,
    RunReport,
    RunState,
    StepKind,
    StepResult,
    StepStatus,
)

__all__ = [
    "RunLog",
    "RunReport",
    "RunState",
    "StepKind",
    "StepResult",
    "StepStatus",
]
