"""Local Connector - provisions the machine the CLI runs on."""

import contextlib
import fcntl
import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from stack_provisioner.connector.base import CommandResult, Connector, quote
from stack_provisioner.errors import LockError

logger = logging.getLogger(__name__)


class LocalConnector(Connector):
    """Run commands through ``/bin/sh`` and write files with the os module.

    Example:
        >>> local = LocalConnector()
        >>> local.run("nginx -v").success
        True
    """

    target = "localhost"

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

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
        if user:
            command = f"sudo -H -u {quote(user)} sh -c {quote(command)}"

        if not sensitive:
            logger.debug("run: %s", command)

        proc_env = None
        if env:
            proc_env = {**os.environ, **env}

        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=input,
                cwd=cwd,
                env=proc_env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(
                command=command,
                stdout="",
                stderr=f"Timed out after {e.timeout}s",
                exit_code=124,
                sensitive=sensitive,
            )

        return CommandResult(
            command=command,
            stdout=proc.stdout,
            stderr=proc.stderr,
            exit_code=proc.returncode,
            sensitive=sensitive,
        )

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def read_file(self, path: str) -> str | None:
        try:
            # Undecodable bytes survive a read-modify-write round trip
            return Path(path).read_text(encoding="utf-8", errors="surrogateescape")
        except FileNotFoundError:
            return None

    def file_exists(self, path: str) -> bool:
        return Path(path).is_file()

    def dir_exists(self, path: str) -> bool:
        return Path(path).is_dir()

    def which(self, command: str) -> bool:
        return shutil.which(command) is not None

    def write_file(
        self,
        path: str,
        content: str,
        *,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
    ) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("write: %s (mode %o)", path, mode)

        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as f:
                os.fchmod(f.fileno(), mode)
                if owner or group:
                    shutil.chown(tmp_path, user=owner, group=group)
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise

    @contextmanager
    def lock(self, path: str) -> Iterator[None]:
        lock_path = Path(path)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "w") as f:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as e:
                raise LockError(f"Another provisioning run holds {path}") from e
            f.write(f"{os.getpid()}\n")
            f.flush()
            try:
                yield
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
