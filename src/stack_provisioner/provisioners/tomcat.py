"""Tomcat installer - release tarball, service account and systemd unit."""

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    AptUpdateStep,
    CommandStep,
    DirectoryStep,
    FileStep,
    PackageStep,
    ServiceStep,
    Step,
)
from stack_provisioner.engine.templates import render
from stack_provisioner.provisioners.base import Provisioner

UNIT_PATH = "/etc/systemd/system/{service}.service"


def render_unit(tomcat) -> str:
    """Render the systemd unit for ``tomcat`` settings."""
    return render("tomcat/tomcat.service.j2", tomcat=tomcat)


class TomcatInstaller(Provisioner):
    name = "tomcat"
    title = "Apache Tomcat"
    description = "Download Tomcat, create its service account and systemd unit"

    @property
    def unit_path(self) -> str:
        return UNIT_PATH.format(service=self.settings.tomcat.service_name)

    def steps(self) -> list[Step]:
        tomcat = self.settings.tomcat
        install_dir = quote(tomcat.install_dir)
        user = quote(tomcat.user)
        archive = quote(f"/tmp/{tomcat.tarball}")

        return [
            AptUpdateStep(upgrade=False),
            PackageStep([tomcat.java_package, "wget", "curl"], description="Installing Java"),
            CommandStep(
                f"useradd -m -U -d {install_dir} -s /bin/false {user}",
                f"Creating {tomcat.user} user",
                unless=f"id -u {user}",
            ),
            CommandStep(
                f"curl -fsSL -o {archive} {quote(tomcat.download_url)}",
                f"Downloading Tomcat {tomcat.version}",
                unless=f"test -s {archive}",
            ),
            DirectoryStep(tomcat.install_dir),
            CommandStep(
                f"tar -xzf {archive} -C {install_dir} --strip-components=1",
                "Extracting Tomcat",
                unless=f"grep -q 'Apache Tomcat Version {tomcat.version}$' {install_dir}/RELEASE-NOTES",
            ),
            CommandStep(
                f"chown -R {user}: {install_dir} && chmod +x {install_dir}/bin/*.sh",
                "Setting permissions",
            ),
            FileStep(self.unit_path, lambda: render_unit(tomcat), description="Creating systemd service"),
            ServiceStep("daemon-reload"),
            ServiceStep("enable --now", tomcat.service_name, description="Starting Tomcat"),
        ]

    def summary(self) -> list[str]:
        port = self.settings.tomcat.http_port
        return [
            f"Tomcat is now running on http://localhost:{port}",
            f"You can access the Tomcat manager at http://localhost:{port}/manager",
        ]
