"""Connector interface shared by the local and SSH backends.

A connector is the only thing that touches the target machine. Steps
describe desired state and call into the connector to observe and
mutate it, so the same provisioner runs locally or over SSH.
"""

import shlex
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import ContextManager, Iterator

from stack_provisioner.errors import CommandFailedError


@dataclass
class CommandResult:
    """Result of a command execution."""

    command: str
    stdout: str
    stderr: str
    exit_code: int
    sensitive: bool = False
    success: bool = field(init=False)

    def __post_init__(self) -> None:
        self.success = self.exit_code == 0

    @property
    def display(self) -> str:
        """Command text safe to print."""
        return "<redacted command>" if self.sensitive else self.command


class Connector(ABC):
    """Abstract access to a provisioning target."""

    #: Human readable name of the target, e.g. "localhost" or "deploy@10.0.0.5".
    target: str = "localhost"

    @abstractmethod
    def run(
        self,
        command: str,
        *,
        input: str | None = None,
        cwd: str | None = None,
        user: str | None = None,
        env: dict[str, str] | None = None,
        sensitive: bool = False,
    ) -> CommandResult:
        """Execute a shell command on the target.

        Args:
            command: Shell command line.
            input: Text fed to the command's stdin.
            cwd: Working directory.
            user: Run as this account instead of the connector's identity.
            env: Extra environment variables.
            sensitive: Never log the command text.
        """

    @abstractmethod
    def is_root(self) -> bool:
        """Whether commands run with elevated privilege."""

    @abstractmethod
    def read_file(self, path: str) -> str | None:
        """Return file contents, or None when the file does not exist."""

    @abstractmethod
    def write_file(
        self,
        path: str,
        content: str,
        *,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
    ) -> None:
        """Atomically replace ``path`` with ``content``.

        Content goes to a temporary file in the same directory which gets
        its final mode (and owner) before being renamed over the target.
        Readers see either the old or the new file, never a partial one.
        """

    @abstractmethod
    def lock(self, path: str) -> ContextManager[None]:
        """Context manager holding the exclusive provisioning lock."""

    # Shell-backed helpers shared by both connectors

    def file_exists(self, path: str) -> bool:
        return self.run(f"test -f {quote(path)}").success

    def dir_exists(self, path: str) -> bool:
        return self.run(f"test -d {quote(path)}").success

    def which(self, command: str) -> bool:
        """Whether ``command`` resolves on the target PATH."""
        return self.run(f"command -v {quote(command)}").success

    def copy_file(self, src: str, dst: str) -> CommandResult:
        return self.run(f"cp -p {quote(src)} {quote(dst)}")

    def set_attributes(
        self,
        path: str,
        *,
        mode: int | None = None,
        owner: str | None = None,
        group: str | None = None,
    ) -> None:
        """Apply mode/ownership to an existing path."""
        if mode is not None:
            result = self.run(f"chmod {mode:o} {quote(path)}")
            if not result.success:
                raise CommandFailedError(result)
        if owner or group:
            spec = f"{owner or ''}:{group or ''}" if group else owner
            result = self.run(f"chown {spec} {quote(path)}")
            if not result.success:
                raise CommandFailedError(result)


def quote(value: str) -> str:
    """Shell-quote a single argument."""
    return shlex.quote(value)


@contextmanager
def null_lock() -> Iterator[None]:
    """Lock stand-in for dry runs, which never mutate the target."""
    yield
