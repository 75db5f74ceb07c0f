"""Server hardening - security packages, sshd, firewall, audit and reporting.

limits.conf and sysctl.conf are shared with other tools, so only a
marker-delimited block inside them is managed. Every other file is owned
outright and rewritten when it differs from its template.
"""

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    AptUpdateStep,
    BlockStep,
    CommandStep,
    FileStep,
    PackageStep,
    ServiceStep,
    Step,
)
from stack_provisioner.engine.templates import render
from stack_provisioner.model.step import StepKind
from stack_provisioner.provisioners.base import Provisioner

SECURITY_CHECK_SCRIPT = "/usr/local/bin/security-check.sh"
AIDE_DB = "/var/lib/aide/aide.db"

# (path, template, description)
CONFIG_FILES = [
    ("/etc/apt/apt.conf.d/50unattended-upgrades", "50unattended-upgrades.j2", "Configuring automatic security updates"),
    ("/etc/apt/apt.conf.d/20auto-upgrades", "20auto-upgrades.j2", "Enabling periodic upgrades"),
]

SECURITY_SERVICES = ["fail2ban", "auditd", "apparmor"]


class ServerHardener(Provisioner):
    name = "hardening"
    title = "Server hardening"
    description = "Harden SSH, firewall, kernel parameters, audit logging and intrusion detection"

    def _file(self, path: str, template: str, description: str, **kwargs) -> FileStep:
        hardening = self.settings.hardening
        return FileStep(
            path,
            lambda: render(f"hardening/{template}", hardening=hardening),
            description=description,
            **kwargs,
        )

    def steps(self) -> list[Step]:
        hardening = self.settings.hardening
        steps: list[Step] = [
            AptUpdateStep(upgrade=self.settings.general.upgrade_packages),
            PackageStep(hardening.packages, description="Installing security packages"),
        ]
        steps += [self._file(path, template, description) for path, template, description in CONFIG_FILES]
        steps += [
            self._file("/etc/ssh/sshd_config", "sshd_config.j2", "Hardening SSH configuration", mode=0o600, backup=True),
            self._file("/etc/issue.net", "issue.net.j2", "Creating SSH banner"),
            CommandStep("sshd -t", "Validating SSH configuration", kind=StepKind.CHECK),
            self._file("/etc/fail2ban/jail.local", "jail.local.j2", "Configuring fail2ban"),
            *self._firewall_steps(),
            self._file("/etc/security/pwquality.conf", "pwquality.conf.j2", "Configuring password policy"),
            self._file("/etc/security/access.conf", "access.conf.j2", "Configuring login security"),
            BlockStep(
                "/etc/security/limits.conf",
                "limits",
                lambda: render("hardening/limits.block.j2"),
                description="Configuring system limits",
            ),
            BlockStep(
                "/etc/sysctl.conf",
                "sysctl",
                lambda: render("hardening/sysctl.block.j2", hardening=hardening),
                description="Configuring kernel security parameters",
            ),
            CommandStep("sysctl -p", "Applying kernel parameters"),
            self._file("/etc/audit/auditd.conf", "auditd.conf.j2", "Configuring audit daemon", mode=0o640),
            self._file("/etc/audit/rules.d/audit.rules", "audit.rules.j2", "Configuring audit rules", mode=0o640),
        ]
        if hardening.aide_init:
            steps.append(
                CommandStep(
                    f"aideinit --yes && cp /var/lib/aide/aide.db.new {AIDE_DB}",
                    "Initializing AIDE database",
                    unless=f"test -f {AIDE_DB}",
                )
            )
        steps += [
            self._file("/etc/logwatch/conf/logwatch.conf", "logwatch.conf.j2", "Configuring logwatch"),
            self._file(SECURITY_CHECK_SCRIPT, "security-check.sh.j2", "Creating security monitoring script", mode=0o755),
            self._file("/etc/cron.daily/security-report", "security-report.j2", "Setting up daily security reports", mode=0o755),
        ]
        for service in SECURITY_SERVICES:
            steps.append(ServiceStep("enable", service))
            steps.append(ServiceStep("start", service))
        steps.append(ServiceStep("enable", "ufw"))
        steps.append(ServiceStep("restart", hardening.ssh_service, description="Restarting SSH service"))
        return steps

    def _firewall_steps(self) -> list[Step]:
        """Default policies plus one allow rule per configured port.

        ``ufw allow`` skips rules that already exist, so these are safe to
        repeat without resetting the rule set first.
        """
        steps: list[Step] = [
            CommandStep(
                "ufw default deny incoming && ufw default allow outgoing",
                "Configuring UFW default policies",
            ),
        ]
        for port in self.settings.hardening.allowed_ports:
            steps.append(CommandStep(f"ufw allow {quote(port)}", f"Allowing {port} through UFW"))
        steps.append(
            CommandStep(
                "ufw --force enable",
                "Enabling UFW firewall",
                unless="ufw status | grep -q 'Status: active'",
            )
        )
        return steps

    def summary(self) -> list[str]:
        user = self.settings.hardening.admin_user
        return [
            "Security services enabled: UFW, fail2ban, auditd, AppArmor, automatic security updates, daily security reports",
            f"Security status: {SECURITY_CHECK_SCRIPT}",
            "IMPORTANT: Before disconnecting, ensure you have:",
            f"1. Configured SSH keys for '{user}' (password login and root login are now disabled)",
            "2. Tested a new SSH connection with the hardened configuration",
            "3. Documented the server's IP and access credentials",
            "4. Set up monitoring and alerting for security events",
        ]
