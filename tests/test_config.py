"""Tests for SSH target profiles."""

from unittest.mock import patch

import pytest
from keyring.errors import KeyringError

from stack_provisioner.config import ConfigManager
from stack_provisioner.connector.ssh import SSHConfig
from stack_provisioner.errors import ConfigError


@pytest.fixture
def manager(tmp_path):
    return ConfigManager(tmp_path / "profiles")


def test_profiles_file_created_private(manager):
    assert manager.profiles_file.exists()
    assert manager.profiles_file.stat().st_mode & 0o777 == 0o600


def test_env_var_selects_directory(tmp_path, monkeypatch):
    monkeypatch.setenv("STACK_PROVISIONER_CONFIG", str(tmp_path / "from-env"))
    assert ConfigManager().config_dir == (tmp_path / "from-env").resolve()


def test_add_and_get_key_profile(manager):
    manager.add_profile("web", SSHConfig(host="10.0.0.5", user="deploy", port=2222, key_path="~/.ssh/id_ed25519"))

    cfg = manager.get_profile("web")

    assert cfg == SSHConfig(host="10.0.0.5", user="deploy", port=2222, key_path="~/.ssh/id_ed25519")
    assert manager.list_profiles()["web"]["password"] is None


@patch("stack_provisioner.config.keyring")
def test_password_goes_to_keyring(mock_keyring, manager):
    mock_keyring.get_password.return_value = "s3cret"

    manager.add_profile("db", SSHConfig(host="db.internal", password="s3cret"))

    mock_keyring.set_password.assert_called_once_with("stack-provisioner", "db", "s3cret")
    assert manager.list_profiles()["db"]["password"] == "__keyring__"
    assert "s3cret" not in manager.profiles_file.read_text()
    assert manager.get_profile("db").password == "s3cret"


@patch("stack_provisioner.config.keyring")
def test_keyring_failure_falls_back_to_file(mock_keyring, manager):
    mock_keyring.set_password.side_effect = KeyringError("no backend")

    manager.add_profile("db", SSHConfig(host="db.internal", password="s3cret"))

    assert manager.get_profile("db").password == "s3cret"


@patch("stack_provisioner.config.keyring")
def test_remove_profile_cleans_keyring(mock_keyring, manager):
    manager.add_profile("db", SSHConfig(host="db.internal", password="s3cret"))

    assert manager.remove_profile("db")
    mock_keyring.delete_password.assert_called_once_with("stack-provisioner", "db")
    assert manager.get_profile("db") is None
    assert not manager.remove_profile("db")


def test_corrupt_profiles_file_raises(manager):
    manager.profiles_file.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        manager.list_profiles()
