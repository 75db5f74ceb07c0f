"""Nginx installer - default site, main config, landing page, status script."""

from stack_provisioner.connector.base import quote
from stack_provisioner.engine.steps import (
    AptUpdateStep,
    CommandStep,
    FileStep,
    PackageStep,
    ServiceStep,
    Step,
)
from stack_provisioner.engine.templates import render
from stack_provisioner.model.step import StepKind
from stack_provisioner.provisioners.base import Provisioner

SITE_PATH = "/etc/nginx/sites-available/default"
CONF_PATH = "/etc/nginx/nginx.conf"
STATUS_SCRIPT = "/usr/local/bin/nginx-status.sh"


class NginxInstaller(Provisioner):
    name = "nginx"
    title = "Nginx web server"
    description = "Install Nginx with security headers, gzip, caching and a status script"

    def steps(self) -> list[Step]:
        nginx = self.settings.nginx
        web_root = quote(nginx.web_root)
        owner = quote(nginx.web_user)

        return [
            AptUpdateStep(upgrade=self.settings.general.upgrade_packages),
            PackageStep(["nginx", *nginx.extra_packages], description="Installing Nginx and dependencies"),
            FileStep(
                SITE_PATH,
                lambda: render("nginx/default-site.j2", nginx=nginx),
                backup=True,
                description="Configuring default site",
            ),
            FileStep(
                f"{nginx.web_root}/index.html",
                lambda: render("nginx/index.html.j2", nginx=nginx),
                owner=nginx.web_user,
                group=nginx.web_user,
                mode=0o755,
                description="Creating test web page",
            ),
            CommandStep(
                f"chown -R {owner}:{owner} {web_root} && chmod -R 755 {web_root}",
                "Setting web root permissions",
            ),
            FileStep(
                CONF_PATH,
                lambda: render("nginx/nginx.conf.j2", nginx=nginx),
                backup=True,
                description="Configuring Nginx main settings",
            ),
            CommandStep("nginx -t", "Testing Nginx configuration", kind=StepKind.CHECK),
            ServiceStep("enable", "nginx", description="Enabling Nginx"),
            ServiceStep("start", "nginx", description="Starting Nginx"),
            ServiceStep("reload", "nginx", description="Reloading Nginx configuration"),
            FileStep(
                STATUS_SCRIPT,
                lambda: render("nginx/nginx-status.sh.j2"),
                mode=0o755,
                description="Creating management scripts",
            ),
        ]

    def summary(self) -> list[str]:
        return [
            "Nginx Web Server: Running on port 80",
            "Web Interface: http://<your-ip>",
            "Health Check: http://<your-ip>/health",
            f"Status Check: {STATUS_SCRIPT}",
            "Reload Config: sudo systemctl reload nginx",
            "View Logs: sudo tail -f /var/log/nginx/access.log",
            "Next: run the mysql component to set up the database server",
        ]
