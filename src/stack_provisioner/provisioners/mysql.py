"""MySQL installer - server packages, root credential, hardened mysqld.cnf.

The root password is regenerated on every run: the live credential and
the root-only credentials file always end in the same, known state even
though the secret itself changes.
"""

import secrets
import string

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    AptUpdateStep,
    CallableStep,
    FileStep,
    PackageStep,
    ServiceStep,
    Step,
    StepContext,
)
from stack_provisioner.engine.templates import render
from stack_provisioner.errors import CommandFailedError
from stack_provisioner.model.step import StepKind, StepResult
from stack_provisioner.provisioners.base import Provisioner

PASSWORD_ALPHABET = string.ascii_letters + string.digits
CREDENTIALS_MODE = 0o600


def generate_password(length: int = 20) -> str:
    """Random alphanumeric credential from the OS CSPRNG."""
    if length < 1:
        raise ValueError("Password length must be positive")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class MySQLInstaller(Provisioner):
    name = "mysql"
    title = "MySQL server"
    description = "Install MySQL, rotate the root credential, apply secure mysqld.cnf defaults"

    def steps(self) -> list[Step]:
        mysql = self.settings.mysql
        return [
            AptUpdateStep(upgrade=self.settings.general.upgrade_packages),
            PackageStep(["mysql-server", "mysql-client"], description="Installing MySQL server"),
            ServiceStep("start", "mysql", description="Starting MySQL"),
            ServiceStep("enable", "mysql", description="Enabling MySQL"),
            CallableStep(
                "Setting root password and securing installation",
                self._rotate_root_password,
                kind=StepKind.COMMAND,
            ),
            FileStep(
                mysql.config_file,
                lambda: render("mysql/mysqld.cnf.j2", mysql=mysql),
                backup=True,
                description="Applying secure defaults to mysqld.cnf",
            ),
            ServiceStep("restart", "mysql", description="Restarting MySQL"),
        ]

    def _rotate_root_password(self, ctx: StepContext, step: Step) -> StepResult:
        mysql = self.settings.mysql
        if ctx.dry_run:
            return step.result(changed=True, message=f"would rotate the root password and rewrite {mysql.credentials_file}")

        password = generate_password(mysql.password_length)
        sql = render("mysql/set_root_password.sql.j2", auth_plugin=mysql.auth_plugin, password=password)

        # An existing credentials file holds the password set by the previous run
        if ctx.connector.file_exists(mysql.credentials_file):
            client = f"mysql --defaults-file={quote(mysql.credentials_file)}"
        else:
            client = "mysql --user=root"

        result = ctx.connector.run(client, input=sql, sensitive=True)
        if not result.success:
            raise CommandFailedError(result, "set MySQL root password")

        ctx.connector.write_file(
            mysql.credentials_file,
            render("mysql/my.cnf.j2", password=password),
            mode=CREDENTIALS_MODE,
            owner="root",
            group="root",
        )
        return step.result(changed=True, message=f"root password stored in {mysql.credentials_file}")

    def summary(self) -> list[str]:
        return [
            f"Root password saved to: {self.settings.mysql.credentials_file}",
            "Use 'mysql' as root without typing password (only as root user)",
        ]
