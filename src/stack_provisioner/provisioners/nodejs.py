"""Node.js installer - NodeSource repository, global npm tooling and PM2."""

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    AptUpdateStep,
    CommandStep,
    DirectoryStep,
    PackageStep,
    Step,
)
from stack_provisioner.model.step import StepKind
from stack_provisioner.provisioners.base import Provisioner

NODESOURCE_LIST = "/etc/apt/sources.list.d/nodesource.list"


class NodeInstaller(Provisioner):
    name = "nodejs"
    title = "Node.js runtime"
    description = "Install Node.js from NodeSource, global npm packages and the PM2 startup unit"

    def steps(self) -> list[Step]:
        node = self.settings.nodejs
        user = quote(node.pm2_user)
        packages = " ".join(quote(p) for p in node.global_packages)

        steps: list[Step] = [
            AptUpdateStep(upgrade=self.settings.general.upgrade_packages),
            PackageStep(node.essential_packages, description="Installing essential packages"),
            CommandStep(
                f"curl -fsSL {quote(node.setup_url)} | bash -",
                f"Adding NodeSource repository for Node.js {node.major_version}.x",
                unless=f"grep -qs 'node_{node.major_version}.x' {NODESOURCE_LIST}",
                kind=StepKind.PACKAGE,
            ),
            PackageStep(["nodejs"], description="Installing Node.js and npm"),
            CommandStep("node --version && npm --version", "Verifying Node.js installation", kind=StepKind.CHECK),
        ]
        if packages:
            steps.append(
                CommandStep(
                    f"npm install -g {packages}",
                    "Installing global npm packages",
                    unless=f"npm ls -g --depth=0 {packages}",
                    kind=StepKind.PACKAGE,
                )
            )
        steps += [
            DirectoryStep(
                node.pm2_log_dir,
                owner=node.pm2_user,
                group=node.pm2_user,
                recursive_owner=True,
                description="Creating PM2 log directory",
            ),
            CommandStep(
                f'pm2 startup systemd -u {user} --hp "$(getent passwd {user} | cut -d: -f6)"',
                "Configuring PM2 startup",
                unless=f"systemctl is-enabled {quote('pm2-' + node.pm2_user)}",
            ),
        ]
        return steps

    def summary(self) -> list[str]:
        node = self.settings.nodejs
        return [
            f"Node.js {node.major_version}.x and npm installed",
            f"Global packages: {', '.join(node.global_packages)}",
            f"PM2 logs: {node.pm2_log_dir}",
            "Next: run the app component to deploy the sample application",
        ]
