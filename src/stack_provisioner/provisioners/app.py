"""Sample application deployment - Express API managed by PM2.

Node.js and PM2 come from the nodejs component; their absence is a
fatal dependency error, not something this provisioner installs.
"""

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    CommandStep,
    DirectoryStep,
    FileStep,
    RequireCommandStep,
    Step,
)
from stack_provisioner.engine.templates import render
from stack_provisioner.model.step import StepKind
from stack_provisioner.provisioners.base import Provisioner

SCRIPT_DIR = "/usr/local/bin"

# (file name in the app directory, template)
APP_FILES = [
    ("package.json", "package.json.j2"),
    ("app.js", "app.js.j2"),
    ("ecosystem.config.js", "ecosystem.config.js.j2"),
    (".eslintrc.js", "eslintrc.js.j2"),
    (".prettierrc", "prettierrc.j2"),
]

MANAGEMENT_SCRIPTS = ["app-status.sh", "restart-app.sh", "deploy-app.sh"]


class AppDeployer(Provisioner):
    name = "app"
    title = "DevSecOps sample application"
    description = "Deploy the Express sample API, its management scripts, and start it under PM2"

    def _render(self, template: str):
        app = self.settings.app
        return lambda: render(f"app/{template}", app=app)

    def steps(self) -> list[Step]:
        app = self.settings.app
        hint = "Run the nodejs component first."
        directory = quote(app.directory)

        steps: list[Step] = [
            RequireCommandStep("node", hint),
            RequireCommandStep("pm2", hint),
            DirectoryStep(app.directory, owner=app.user, group=app.user, description="Creating application directory"),
        ]
        for filename, template in APP_FILES:
            steps.append(
                FileStep(
                    f"{app.directory}/{filename}",
                    self._render(template),
                    owner=app.user,
                    group=app.user,
                    description=f"Creating {filename}",
                )
            )
        steps.append(
            CommandStep(
                "npm install --no-audit --no-fund",
                "Installing application dependencies",
                unless=f"cd {directory} && npm ls --depth=0",
                user=app.user,
                cwd=app.directory,
                kind=StepKind.PACKAGE,
            )
        )
        for script in MANAGEMENT_SCRIPTS:
            steps.append(
                FileStep(
                    f"{SCRIPT_DIR}/{script}",
                    self._render(f"{script}.j2"),
                    mode=0o755,
                    description=f"Creating {script}",
                )
            )
        steps += [
            CommandStep(
                "pm2 startOrReload ecosystem.config.js --env production",
                "Starting application with PM2",
                user=app.user,
                cwd=app.directory,
            ),
            CommandStep("pm2 save", "Saving PM2 process list", user=app.user),
        ]
        return steps

    def summary(self) -> list[str]:
        app = self.settings.app
        base = f"http://<your-ip>:{app.port}"
        return [
            f"Application URL: {base}",
            f"Health Check: {base}/health",
            f"API Status: {base}/api/status",
            f"Users API: {base}/api/users",
            f"Projects API: {base}/api/projects",
            f"System Info: {base}/api/system",
            f"App Status: {SCRIPT_DIR}/app-status.sh",
            f"Restart App: {SCRIPT_DIR}/restart-app.sh",
            f"Deploy Updates: {SCRIPT_DIR}/deploy-app.sh",
            f"View Logs: sudo -u {app.user} pm2 logs {app.name}",
            f"Development Mode: cd {app.directory} && npm run dev",
        ]
