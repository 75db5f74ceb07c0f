"""Provisioning settings.

Every value a provisioner needs lives here, grouped per component.
Defaults reproduce the stock setup (Tomcat 10.1 in /opt/tomcat, Node.js
18, the ``ubuntu`` admin account, and so on).

Precedence, lowest first:
    defaults < YAML settings file < STACK_PROVISIONER_<SECTION>_<FIELD>
    environment variables < ``--set section.field=value`` overrides
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Mapping, get_origin

import yaml

from stack_provisioner.errors import ConfigError

ENV_PREFIX = "STACK_PROVISIONER"
SECRET_FIELDS = {"admin_password"}


@dataclass
class GeneralSettings:
    lock_file: str = "/run/lock/stack-provisioner.lock"
    backup_suffix: str = ".backup"
    upgrade_packages: bool = True
    command_timeout: int = 0  # seconds, 0 = no limit


@dataclass
class TomcatSettings:
    version: str = "10.1.20"
    user: str = "tomcat"
    install_dir: str = "/opt/tomcat"
    java_home: str = "/usr/lib/jvm/java-11-openjdk-amd64"
    java_package: str = "default-jdk"
    catalina_opts: str = "-Xms512M -Xmx1024M -server -XX:+UseParallelGC"
    download_base: str = "https://downloads.apache.org/tomcat"
    service_name: str = "tomcat"
    http_port: int = 8080

    @property
    def major(self) -> str:
        return self.version.split(".", 1)[0]

    @property
    def tarball(self) -> str:
        return f"apache-tomcat-{self.version}.tar.gz"

    @property
    def download_url(self) -> str:
        return f"{self.download_base}/tomcat-{self.major}/v{self.version}/bin/{self.tarball}"

    @property
    def pid_file(self) -> str:
        return f"{self.install_dir}/tomcat.pid"


@dataclass
class TomcatHardeningSettings:
    admin_user: str = "admin"
    admin_password: str = ""  # empty: generated when the user is created
    roles: list[str] = field(default_factory=lambda: ["admin-gui", "manager-gui"])
    webapps: list[str] = field(default_factory=lambda: ["manager", "host-manager"])


@dataclass
class NodeSettings:
    major_version: int = 18
    essential_packages: list[str] = field(
        default_factory=lambda: [
            "curl",
            "wget",
            "git",
            "unzip",
            "software-properties-common",
            "apt-transport-https",
            "ca-certificates",
            "gnupg",
            "lsb-release",
            "build-essential",
            "python3",
            "python3-pip",
        ]
    )
    global_packages: list[str] = field(
        default_factory=lambda: ["pm2", "nodemon", "yarn", "typescript", "@types/node", "eslint", "prettier"]
    )
    pm2_user: str = "ubuntu"
    pm2_log_dir: str = "/var/log/pm2"

    @property
    def setup_url(self) -> str:
        return f"https://deb.nodesource.com/setup_{self.major_version}.x"


@dataclass
class NginxSettings:
    server_name: str = "_"
    web_root: str = "/var/www/html"
    web_user: str = "www-data"
    worker_connections: int = 1024
    keepalive_timeout: int = 65
    client_max_body_size: str = "10M"
    extra_packages: list[str] = field(default_factory=lambda: ["curl", "wget", "unzip", "software-properties-common"])


@dataclass
class MySQLSettings:
    config_file: str = "/etc/mysql/mysql.conf.d/mysqld.cnf"
    credentials_file: str = "/root/.my.cnf"
    password_length: int = 20
    auth_plugin: str = "mysql_native_password"
    bind_address: str = "127.0.0.1"
    secure_file_priv: str = "/var/lib/mysql-files"
    character_set: str = "utf8mb4"
    collation: str = "utf8mb4_unicode_ci"


@dataclass
class HardeningSettings:
    admin_user: str = "ubuntu"
    ssh_port: int = 22
    ssh_service: str = "ssh"
    allowed_ports: list[str] = field(default_factory=lambda: ["ssh", "80/tcp", "443/tcp", "22/tcp"])
    disable_ipv6: bool = True
    aide_init: bool = True
    fail2ban_bantime: int = 3600
    fail2ban_findtime: int = 600
    fail2ban_maxretry: int = 3
    packages: list[str] = field(
        default_factory=lambda: [
            "fail2ban",
            "ufw",
            "unattended-upgrades",
            "auditd",
            "rkhunter",
            "chkrootkit",
            "apparmor",
            "apparmor-utils",
            "libpam-pwquality",
            "logwatch",
            "aide",
            "clamav",
            "clamav-daemon",
        ]
    )


@dataclass
class AppSettings:
    name: str = "devsecops-app"
    directory: str = "/var/www/app"
    user: str = "ubuntu"
    port: int = 3000
    node_env: str = "production"
    instances: str = "max"
    log_dir: str = "/var/log/pm2"
    allowed_origins: str = "http://localhost:3000"


SECTIONS: dict[str, type] = {
    "general": GeneralSettings,
    "tomcat": TomcatSettings,
    "tomcat_hardening": TomcatHardeningSettings,
    "nodejs": NodeSettings,
    "nginx": NginxSettings,
    "mysql": MySQLSettings,
    "hardening": HardeningSettings,
    "app": AppSettings,
}


@dataclass
class ProvisionSettings:
    """All provisioning settings, one attribute per section."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    tomcat: TomcatSettings = field(default_factory=TomcatSettings)
    tomcat_hardening: TomcatHardeningSettings = field(default_factory=TomcatHardeningSettings)
    nodejs: NodeSettings = field(default_factory=NodeSettings)
    nginx: NginxSettings = field(default_factory=NginxSettings)
    mysql: MySQLSettings = field(default_factory=MySQLSettings)
    hardening: HardeningSettings = field(default_factory=HardeningSettings)
    app: AppSettings = field(default_factory=AppSettings)

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        overrides: list[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "ProvisionSettings":
        """Build settings from defaults, a YAML file, the environment and overrides."""
        settings = cls()
        if path:
            settings.update(_read_yaml(Path(path)))
        settings.apply_environment(os.environ if environ is None else environ)
        for override in overrides or []:
            settings.apply_override(override)
        return settings

    def section(self, name: str) -> Any:
        if name not in SECTIONS:
            raise ConfigError(f"Unknown settings section '{name}'. Known: {', '.join(SECTIONS)}")
        return getattr(self, name)

    def set_value(self, section: str, key: str, value: Any) -> None:
        """Set one field, coercing ``value`` to the field's type."""
        target = self.section(section)
        known = {f.name: f for f in fields(target)}
        if key not in known:
            raise ConfigError(f"Unknown setting '{section}.{key}'")
        setattr(target, key, _coerce(known[key].type, value, f"{section}.{key}"))

    def update(self, data: Mapping[str, Any]) -> None:
        for section, values in data.items():
            if not isinstance(values, Mapping):
                raise ConfigError(f"Settings section '{section}' must be a mapping")
            for key, value in values.items():
                self.set_value(section, key, value)

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        for section, section_cls in SECTIONS.items():
            for f in fields(section_cls):
                name = f"{ENV_PREFIX}_{section}_{f.name}".upper()
                if name in environ:
                    self.set_value(section, f.name, environ[name])

    def apply_override(self, override: str) -> None:
        """Apply one ``section.field=value`` override."""
        key, sep, value = override.partition("=")
        section, dot, name = key.strip().partition(".")
        if not sep or not dot:
            raise ConfigError(f"Invalid override '{override}', expected section.field=value")
        self.set_value(section, name, value.strip())

    def to_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        data = asdict(self)
        if mask_secrets:
            for values in data.values():
                for key in values.keys() & SECRET_FIELDS:
                    if values[key]:
                        values[key] = "********"
        return data


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Settings file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a mapping")
    return data


def _coerce(field_type: Any, value: Any, label: str) -> Any:
    """Convert strings from the environment/CLI (or YAML scalars) to ``field_type``."""
    if get_origin(field_type) is list:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, list):
            return [str(item) for item in value]
        raise ConfigError(f"{label} must be a list")

    if field_type is bool:
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{label} must be a boolean, got '{value}'")

    if field_type is int:
        if isinstance(value, bool):
            raise ConfigError(f"{label} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{label} must be an integer, got '{value}'") from e

    return "" if value is None else str(value)
