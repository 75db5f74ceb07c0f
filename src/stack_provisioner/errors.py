"""Exception taxonomy for provisioning runs.

Every error raised by a step or by the runner derives from ProvisionError,
so the runner can turn it into a fatal StepResult and abort the sequence.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stack_provisioner.connector.base import CommandResult


class ProvisionError(Exception):
    """Base class for all provisioning failures."""


class PreconditionError(ProvisionError):
    """The run lacks elevated privilege."""


class DependencyMissingError(ProvisionError):
    """A runtime another component installs is not present."""

    def __init__(self, command: str, hint: str = "") -> None:
        self.command = command
        self.hint = hint
        message = f"'{command}' is not installed."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class CommandFailedError(ProvisionError):
    """An external command returned a nonzero exit code."""

    def __init__(self, result: CommandResult, description: str | None = None) -> None:
        self.result = result
        label = description or result.display
        detail = (result.stderr or result.stdout).strip()
        message = f"{label} failed with exit code {result.exit_code}"
        if detail:
            message = f"{message}: {detail.splitlines()[-1]}"
        super().__init__(message)


class LockError(ProvisionError):
    """Another provisioning run holds the lock."""


class TemplateError(ProvisionError):
    """A template is missing or failed to render."""


class ConfigError(ProvisionError):
    """Invalid settings, override, or component name."""
