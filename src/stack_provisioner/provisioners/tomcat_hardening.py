"""Tomcat hardener - admin account and remote manager access.

Edits are structural (see engine.xmledit): running the hardener again
leaves tomcat-users.xml unchanged instead of appending duplicate
``<role>``/``<user>`` entries.

A webapp whose context.xml has no RemoteAddrValve is reported as
skipped ("already relaxed") rather than failing the run.
"""

from stack_provisioner.engine.diff import compute_change
from stack_provisioner.engine.steps import CallableStep, ServiceStep, Step, StepContext, skipped
from stack_provisioner.engine.xmledit import XMLEdit, ensure_tomcat_user, has_tomcat_user, remove_remote_addr_valve
from stack_provisioner.errors import ProvisionError
from stack_provisioner.model.step import StepKind, StepResult
from stack_provisioner.provisioners.base import Provisioner
from stack_provisioner.provisioners.mysql import generate_password

DRY_RUN_PASSWORD = "<generated>"


class TomcatHardener(Provisioner):
    name = "tomcat-hardening"
    title = "Tomcat hardening"
    description = "Add the Tomcat admin account and open the manager webapps to remote access"

    def __init__(self, settings) -> None:
        super().__init__(settings)
        self.generated_password: str | None = None
        self.password_pending = False

    @property
    def users_file(self) -> str:
        return f"{self.settings.tomcat.install_dir}/conf/tomcat-users.xml"

    def context_file(self, webapp: str) -> str:
        return f"{self.settings.tomcat.install_dir}/webapps/{webapp}/META-INF/context.xml"

    def steps(self) -> list[Step]:
        hardening = self.settings.tomcat_hardening
        steps: list[Step] = [
            CallableStep("Configuring admin user for Tomcat", self._configure_users, kind=StepKind.FILE),
        ]
        for webapp in hardening.webapps:
            steps.append(
                CallableStep(
                    f"Enabling remote access to {webapp}",
                    lambda ctx, step, webapp=webapp: self._relax_webapp(ctx, step, webapp),
                    kind=StepKind.FILE,
                )
            )
        steps.append(ServiceStep("restart", self.settings.tomcat.service_name, description="Restarting Tomcat service"))
        return steps

    def _write(self, ctx: StepContext, step: Step, path: str, current: str, edit: XMLEdit) -> StepResult:
        change = compute_change(path, current, edit.text)
        message = "; ".join(edit.changes)
        if ctx.dry_run:
            return step.result(changed=True, diff=change.unified_diff(), message=f"would apply: {message}")

        tomcat = self.settings.tomcat
        ctx.connector.write_file(path, edit.text, mode=0o640, owner=tomcat.user, group=tomcat.user)
        return step.result(changed=True, diff=change.unified_diff(), message=message)

    def _configure_users(self, ctx: StepContext, step: Step) -> StepResult:
        hardening = self.settings.tomcat_hardening
        current = ctx.connector.read_file(self.users_file)
        if current is None:
            raise ProvisionError(f"{self.users_file} not found. Run the tomcat component first.")

        password = hardening.admin_password or None
        if password is None and not has_tomcat_user(current, hardening.admin_user):
            if ctx.dry_run:
                # Nothing is written, so no credential is handed out
                password = DRY_RUN_PASSWORD
                self.password_pending = True
            else:
                password = self.generated_password = generate_password()

        edit = ensure_tomcat_user(current, hardening.admin_user, hardening.roles, password=password)
        if self.password_pending:
            edit.changes.append("password is generated on a real run")
        if not edit.changed:
            return step.result(message=f"user {hardening.admin_user} already configured")
        return self._write(ctx, step, self.users_file, current, edit)

    def _relax_webapp(self, ctx: StepContext, step: Step, webapp: str) -> StepResult:
        path = self.context_file(webapp)
        current = ctx.connector.read_file(path)
        if current is None:
            return skipped(step, f"{path} not found, webapp not deployed")

        edit = remove_remote_addr_valve(current)
        if not edit.changed:
            return skipped(step, "no RemoteAddrValve found, access already relaxed")
        return self._write(ctx, step, path, current, edit)

    def summary(self) -> list[str]:
        user = self.settings.tomcat_hardening.admin_user
        port = self.settings.tomcat.http_port
        lines = [
            f"Access Tomcat: http://<your-ip>:{port}",
            f"Manager GUI: http://<your-ip>:{port}/manager/html",
        ]
        if self.generated_password:
            lines.append(f"Login: {user} / {self.generated_password} (generated, store it now)")
        elif self.password_pending:
            lines.append(f"Login: {user} / <generated on a real run>")
        else:
            lines.append(f"Login: {user} / <configured password>")
        return lines
