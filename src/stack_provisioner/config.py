"""SSH target profiles for stack-provisioner.

Profiles live in ``~/.stack-provisioner/profiles.yaml`` (or the directory
named by ``STACK_PROVISIONER_CONFIG``). Passwords go to the OS keyring
when one is available.
"""

import logging
import os
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any

import keyring
import yaml
from keyring.errors import KeyringError

from stack_provisioner.connector.ssh import SSHConfig
from stack_provisioner.errors import ConfigError

logger = logging.getLogger(__name__)

KEYRING_MARKER = "__keyring__"
SERVICE_ID = "stack-provisioner"


def default_config_dir() -> Path:
    env_config = os.getenv("STACK_PROVISIONER_CONFIG")
    if env_config:
        return Path(env_config).expanduser().resolve()
    return Path.home() / ".stack-provisioner"


class ConfigManager:
    """Named SSH targets stored in YAML, with passwords in the keyring."""

    def __init__(self, config_dir: Path | None = None) -> None:
        self.config_dir = config_dir or default_config_dir()
        self.profiles_file = self.config_dir / "profiles.yaml"
        self.service_id = SERVICE_ID

        self.config_dir.mkdir(parents=True, exist_ok=True)
        if not self.profiles_file.exists():
            self._write({})

    def _read(self) -> dict[str, Any]:
        try:
            data = yaml.safe_load(self.profiles_file.read_text()) or {}
        except FileNotFoundError:
            return {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.profiles_file}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{self.profiles_file} must contain a mapping of profiles")
        return data

    def _write(self, profiles: dict[str, Any]) -> None:
        # Created 0600 before the first write; may hold plaintext passwords
        self.profiles_file.touch(mode=0o600)
        self.profiles_file.write_text(yaml.safe_dump(profiles, sort_keys=True))

    def _store_password(self, name: str, password: str) -> str:
        """Return what goes in the YAML ``password`` field."""
        try:
            keyring.set_password(self.service_id, name, password)
        except KeyringError as e:
            # Headless hosts often have no keyring backend
            logger.warning("Keyring unavailable (%s), storing password for '%s' in %s", e, name, self.profiles_file)
            return password
        return KEYRING_MARKER

    def add_profile(self, name: str, config: SSHConfig) -> None:
        """Add or replace a target profile."""
        profiles = self._read()
        entry = asdict(config)
        if config.password:
            entry["password"] = self._store_password(name, config.password)
        profiles[name] = entry
        self._write(profiles)

    def get_profile(self, name: str) -> SSHConfig | None:
        """Profile ``name`` as an SSHConfig, or None when it does not exist."""
        entry = self._read().get(name)
        if not entry:
            return None

        known = {f.name for f in fields(SSHConfig)}
        values = {key: value for key, value in entry.items() if key in known}
        if values.get("password") == KEYRING_MARKER:
            try:
                values["password"] = keyring.get_password(self.service_id, name)
            except KeyringError as e:
                logger.warning("Cannot read password for '%s' from keyring: %s", name, e)
                values["password"] = None
        return SSHConfig(**values)

    def list_profiles(self) -> dict[str, Any]:
        return self._read()

    def remove_profile(self, name: str) -> bool:
        """Remove a target profile. Returns False when it does not exist."""
        profiles = self._read()
        entry = profiles.pop(name, None)
        if entry is None:
            return False

        if entry.get("password") == KEYRING_MARKER:
            try:
                keyring.delete_password(self.service_id, name)
            except KeyringError as e:
                logger.warning("Cannot delete keyring entry for '%s': %s", name, e)

        self._write(profiles)
        return True
