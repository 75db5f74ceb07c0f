"""SSH Connector - provisions a remote server.

Commands run through paramiko's exec channel, prefixed with sudo when
the login user is not root. Files are uploaded over SFTP to a private
temporary path and then installed next to the target and renamed over
it, so the replacement is atomic on the remote filesystem.
"""

import logging
import os
import secrets
import socket
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import paramiko
from paramiko.ssh_exception import AuthenticationException, SSHException

from stack_provisioner.connector.base import CommandResult, Connector, quote
from stack_provisioner.errors import CommandFailedError, LockError

logger = logging.getLogger(__name__)


@dataclass
class SSHConfig:
    """SSH connection configuration."""

    host: str
    user: str = "root"
    port: int = 22
    key_path: str | None = None
    password: str | None = None  # Fallback, prefer keys
    use_sudo: bool = True
    timeout: int = 30


class SSHConnector(Connector):
    """SSH connection manager for remote provisioning.

    Example:
        >>> config = SSHConfig(host="192.168.1.100", user="ubuntu")
        >>> with SSHConnector(config) as ssh:
        ...     result = ssh.run("nginx -v")
        ...     print(result.stderr)
    """

    def __init__(self, config: SSHConfig, command_timeout: float | None = None) -> None:
        """Initialize SSH connector with configuration."""
        self.config = config
        self.command_timeout = command_timeout
        self.target = f"{config.user}@{config.host}"
        self._client: paramiko.SSHClient | None = None

    def connect(self) -> None:
        """Establish SSH connection."""
        self._client = paramiko.SSHClient()
        self._client.load_system_host_keys()
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs: dict = {
            "hostname": self.config.host,
            "port": self.config.port,
            "username": self.config.user,
            "timeout": self.config.timeout,
        }

        # Prefer key-based authentication
        if self.config.key_path:
            key_path = Path(self.config.key_path).expanduser()
            if key_path.exists():
                connect_kwargs["key_filename"] = str(key_path)
        elif self.config.password:
            connect_kwargs["password"] = self.config.password

        try:
            self._client.connect(**connect_kwargs)
        except AuthenticationException as e:
            raise ConnectionError(f"Authentication failed: {e}") from e
        except SSHException as e:
            raise ConnectionError(f"SSH error: {e}") from e

    def disconnect(self) -> None:
        """Close SSH connection."""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self) -> "SSHConnector":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.disconnect()

    @property
    def _needs_sudo(self) -> bool:
        return self.config.use_sudo and self.config.user != "root"

    def _wrap(self, command: str, cwd: str | None, user: str | None, env: dict[str, str] | None) -> str:
        """Build the remote command line for the requested identity and environment."""
        if env:
            exports = " ".join(f"{key}={quote(value)}" for key, value in env.items())
            command = f"env {exports} sh -c {quote(command)}"
        if cwd:
            command = f"cd {quote(cwd)} && {command}"

        if user:
            return f"sudo -n -H -u {quote(user)} sh -c {quote(command)}"
        if self._needs_sudo:
            return f"sudo -n sh -c {quote(command)}"
        return command

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
        if not self._client:
            raise RuntimeError("Not connected. Use 'with SSHConnector(config):' context.")

        full_command = self._wrap(command, cwd, user, env)
        if not sensitive:
            logger.debug("ssh %s: %s", self.target, full_command)

        try:
            stdin, stdout, stderr = self._client.exec_command(full_command, timeout=self.command_timeout)
            if input is not None:
                stdin.write(input)
                stdin.channel.shutdown_write()
            exit_code = stdout.channel.recv_exit_status()

            return CommandResult(
                command=full_command,
                stdout=stdout.read().decode("utf-8", errors="replace"),
                stderr=stderr.read().decode("utf-8", errors="replace"),
                exit_code=exit_code,
                sensitive=sensitive,
            )
        except (SSHException, OSError) as e:
            # Channel errors and timeouts surface as a failed command
            return CommandResult(
                command=full_command,
                stdout="",
                stderr=f"SSH Execution Error: {e}",
                exit_code=255,
                sensitive=sensitive,
            )

    def is_root(self) -> bool:
        result = self.run("id -u")
        return result.success and result.stdout.strip() == "0"

    def read_file(self, path: str) -> str | None:
        result = self.run(f"cat {quote(path)}")
        if result.success:
            return result.stdout
        return None

    def write_file(
        self,
        path: str,
        content: str,
        *,
        mode: int = 0o644,
        owner: str | None = None,
        group: str | None = None,
    ) -> None:
        if not self._client:
            raise RuntimeError("Not connected. Use 'with SSHConnector(config):' context.")

        token = secrets.token_hex(6)
        upload_path = f"/tmp/.stack-provisioner-{token}"
        staged_path = f"{path}.stack-provisioner-{token}"
        logger.debug("ssh %s: write %s (mode %o)", self.target, path, mode)

        sftp = self._client.open_sftp()
        try:
            with sftp.open(upload_path, "w") as remote_file:
                remote_file.chmod(0o600)
                remote_file.write(content.encode("utf-8"))
        finally:
            sftp.close()

        install = f"install -D -m {mode:o}"
        if owner:
            install += f" -o {quote(owner)}"
        if group:
            install += f" -g {quote(group)}"

        result = self.run(
            f"{install} {quote(upload_path)} {quote(staged_path)} "
            f"&& mv -f {quote(staged_path)} {quote(path)}; "
            f"rc=$?; rm -f {quote(upload_path)}; exit $rc"
        )
        if not result.success:
            raise CommandFailedError(result, f"write {path}")

    @contextmanager
    def lock(self, path: str) -> Iterator[None]:
        """Hold the provisioning lock as an atomic lock directory on the remote host.

        The directory records who took it. A run killed before release
        leaves it behind; remove it by hand once no run is active.
        """
        lock_dir = f"{path}.d"
        owner_file = f"{lock_dir}/owner"
        owner = f"{socket.gethostname()} pid {os.getpid()}"
        result = self.run(
            f"mkdir -p $(dirname {quote(lock_dir)}) && mkdir {quote(lock_dir)} "
            f"&& echo {quote(owner)} > {quote(owner_file)}"
        )
        if not result.success:
            holder = self.run(f"cat {quote(owner_file)}")
            held_by = holder.stdout.strip() if holder.success else "unknown"
            raise LockError(
                f"Another provisioning run holds {lock_dir} on {self.target} (taken by {held_by}). "
                f"If no run is active, remove it with: sudo rm -rf {lock_dir}"
            )
        try:
            yield
        finally:
            self.run(f"rm -f {quote(owner_file)} && rmdir {quote(lock_dir)}")
