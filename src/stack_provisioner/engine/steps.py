"""Provisioning steps.

Each step observes the target through the connector, compares it with
the desired state, and mutates only what differs. Steps never decide
whether the run continues; they return a StepResult (or raise a
ProvisionError) and the runner applies strict-abort semantics.

In a dry run every step reports what it would change without touching
the target.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from stack_provisioner.connector.base import CommandResult, Connector, quote
from stack_provisioner.engine.diff import apply_block, compute_change
from stack_provisioner.errors import CommandFailedError, DependencyMissingError
from stack_provisioner.model.step import StepKind, StepResult, StepStatus

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


@dataclass
class StepContext:
    """What a step may use while executing."""

    connector: Connector
    dry_run: bool = False
    backup_suffix: str = ".backup"


class Step(ABC):
    """One unit of provisioning work."""

    kind: StepKind = StepKind.COMMAND

    def __init__(self, description: str) -> None:
        self.description = description

    @abstractmethod
    def execute(self, ctx: StepContext) -> StepResult:
        """Converge the target and report the outcome."""

    def result(self, **kwargs) -> StepResult:
        return StepResult(description=self.description, kind=self.kind, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"


def _check(result: CommandResult, description: str) -> CommandResult:
    if not result.success:
        raise CommandFailedError(result, description)
    return result


# =========================================================================
# PACKAGES
# =========================================================================


class AptUpdateStep(Step):
    """Refresh the package index, optionally upgrading installed packages."""

    kind = StepKind.PACKAGE

    def __init__(self, upgrade: bool = True, description: str | None = None) -> None:
        super().__init__(description or ("Updating system packages" if upgrade else "Updating package index"))
        self.upgrade = upgrade

    def execute(self, ctx: StepContext) -> StepResult:
        command = "apt-get update"
        if self.upgrade:
            command += " && apt-get upgrade -y"
        if ctx.dry_run:
            return self.result(changed=True, message=f"would run: {command}")
        _check(ctx.connector.run(command, env=APT_ENV), self.description)
        return self.result(changed=self.upgrade, message=command)


class PackageStep(Step):
    """Ensure packages are installed. Installed ones are left alone."""

    kind = StepKind.PACKAGE

    def __init__(self, packages: list[str], description: str | None = None) -> None:
        super().__init__(description or f"Installing {', '.join(packages)}")
        self.packages = list(packages)

    def _missing(self, connector: Connector) -> list[str]:
        missing = []
        for package in self.packages:
            result = connector.run(f"dpkg-query -W -f='${{Status}}' {quote(package)}")
            if not (result.success and "install ok installed" in result.stdout):
                missing.append(package)
        return missing

    def execute(self, ctx: StepContext) -> StepResult:
        missing = self._missing(ctx.connector)
        if not missing:
            return self.result(message="already installed")

        command = "apt-get install -y " + " ".join(quote(p) for p in missing)
        if ctx.dry_run:
            return self.result(changed=True, message=f"would install: {' '.join(missing)}")
        _check(ctx.connector.run(command, env=APT_ENV), self.description)
        return self.result(changed=True, message=f"installed: {' '.join(missing)}")


# =========================================================================
# FILES
# =========================================================================


class FileStep(Step):
    """Converge a file to fully rendered desired content."""

    kind = StepKind.FILE

    def __init__(
        self,
        path: str,
        content: str | Callable[[], str],
        *,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
        backup: bool = False,
        description: str | None = None,
    ) -> None:
        super().__init__(description or f"Writing {path}")
        self.path = path
        self._content = content
        self.mode = mode
        self.owner = owner
        self.group = group
        self.backup = backup

    def desired(self, current: str | None) -> str:
        """Content the file should hold. ``current`` is None when absent."""
        return self._content() if callable(self._content) else self._content

    def execute(self, ctx: StepContext) -> StepResult:
        connector = ctx.connector
        current = connector.read_file(self.path)
        change = compute_change(self.path, current, self.desired(current))

        if not change.changed:
            if not ctx.dry_run:
                # Content matches; still converge permissions
                connector.set_attributes(self.path, mode=self.mode, owner=self.owner, group=self.group)
            return self.result(message="unchanged")

        diff = change.unified_diff()
        if ctx.dry_run:
            return self.result(changed=True, diff=diff, message="would update" if change.exists else "would create")

        if self.backup and change.exists:
            backup_path = f"{self.path}{ctx.backup_suffix}"
            _check(connector.copy_file(self.path, backup_path), f"backup {self.path}")
            logger.debug("backed up %s to %s", self.path, backup_path)

        connector.write_file(self.path, change.desired, mode=self.mode, owner=self.owner, group=self.group)
        return self.result(changed=True, diff=diff, message="updated" if change.exists else "created")


class BlockStep(FileStep):
    """Converge a marker-delimited block inside a shared file."""

    def __init__(
        self,
        path: str,
        name: str,
        body: str | Callable[[], str],
        *,
        mode: int = 0o644,
        description: str | None = None,
    ) -> None:
        super().__init__(path, body, mode=mode, description=description or f"Updating {name} block in {path}")
        self.name = name

    def desired(self, current: str | None) -> str:
        return apply_block(current, self.name, super().desired(current))


class DirectoryStep(Step):
    """Ensure a directory exists with the given ownership."""

    kind = StepKind.FILE

    def __init__(
        self,
        path: str,
        *,
        owner: str | None = None,
        group: str | None = None,
        mode: int | None = None,
        recursive_owner: bool = False,
        description: str | None = None,
    ) -> None:
        super().__init__(description or f"Creating directory {path}")
        self.path = path
        self.owner = owner
        self.group = group
        self.mode = mode
        self.recursive_owner = recursive_owner

    def execute(self, ctx: StepContext) -> StepResult:
        connector = ctx.connector
        exists = connector.dir_exists(self.path)
        if ctx.dry_run:
            return self.result(changed=not exists, message="exists" if exists else "would create")

        if not exists:
            _check(connector.run(f"mkdir -p {quote(self.path)}"), self.description)
        if self.owner or self.group:
            spec = f"{self.owner or ''}:{self.group or ''}" if self.group else self.owner
            flag = "-R " if self.recursive_owner else ""
            _check(connector.run(f"chown {flag}{spec} {quote(self.path)}"), self.description)
        if self.mode is not None:
            connector.set_attributes(self.path, mode=self.mode)
        return self.result(changed=not exists, message="exists" if exists else "created")


# =========================================================================
# COMMANDS AND SERVICES
# =========================================================================


class CommandStep(Step):
    """Run a command, unless a guard command says it is already done."""

    def __init__(
        self,
        command: str,
        description: str,
        *,
        unless: str | None = None,
        user: str | None = None,
        cwd: str | None = None,
        input: str | None = None,
        env: dict[str, str] | None = None,
        sensitive: bool = False,
        kind: StepKind = StepKind.COMMAND,
    ) -> None:
        super().__init__(description)
        self.command = command
        self.unless = unless
        self.user = user
        self.cwd = cwd
        self.input = input
        self.env = env
        self.sensitive = sensitive
        self.kind = kind

    def execute(self, ctx: StepContext) -> StepResult:
        connector = ctx.connector
        if self.unless and connector.run(self.unless).success:
            return self.result(message="already done")

        if ctx.dry_run:
            shown = "<redacted command>" if self.sensitive else self.command
            return self.result(changed=True, message=f"would run: {shown}")

        result = connector.run(
            self.command,
            input=self.input,
            cwd=self.cwd,
            user=self.user,
            env=self.env,
            sensitive=self.sensitive,
        )
        _check(result, self.description)
        return self.result(changed=True, message=result.stdout.strip().splitlines()[-1] if result.stdout.strip() else "")


class ServiceStep(Step):
    """Drive a systemd unit through systemctl."""

    kind = StepKind.SERVICE

    ACTIONS = ("daemon-reload", "enable", "start", "restart", "reload", "enable --now", "stop")

    def __init__(self, action: str, unit: str | None = None, description: str | None = None) -> None:
        if action not in self.ACTIONS:
            raise ValueError(f"Unsupported systemctl action: {action}")
        if action != "daemon-reload" and not unit:
            raise ValueError(f"systemctl {action} needs a unit")
        label = f"systemctl {action}" + (f" {unit}" if unit else "")
        super().__init__(description or label)
        self.action = action
        self.unit = unit

    @property
    def command(self) -> str:
        if self.unit:
            return f"systemctl {self.action} {quote(self.unit)}"
        return f"systemctl {self.action}"

    def execute(self, ctx: StepContext) -> StepResult:
        if ctx.dry_run:
            return self.result(changed=True, message=f"would run: {self.command}")
        _check(ctx.connector.run(self.command), self.description)
        return self.result(changed=True, message=self.command)


# =========================================================================
# CHECKS AND CUSTOM LOGIC
# =========================================================================


class RequireCommandStep(Step):
    """Fail fast when a runtime another component installs is missing."""

    kind = StepKind.CHECK

    def __init__(self, command: str, hint: str = "") -> None:
        super().__init__(f"Checking that {command} is installed")
        self.command = command
        self.hint = hint

    def execute(self, ctx: StepContext) -> StepResult:
        if not ctx.connector.which(self.command):
            raise DependencyMissingError(self.command, self.hint)
        return self.result(message="found")


class CallableStep(Step):
    """Step whose logic is a function of the context."""

    def __init__(
        self,
        description: str,
        func: Callable[[StepContext, "CallableStep"], StepResult],
        kind: StepKind = StepKind.COMMAND,
    ) -> None:
        super().__init__(description)
        self.func = func
        self.kind = kind

    def execute(self, ctx: StepContext) -> StepResult:
        return self.func(ctx, self)


def skipped(step: Step, message: str) -> StepResult:
    """Recoverable no-op the operator should notice."""
    return step.result(status=StepStatus.SKIPPED, message=message)
