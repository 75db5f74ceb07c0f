"""Tests for individual provisioning steps against the fake connector."""

import pytest

from stack_provisioner.engine.steps import (
    AptUpdateStep,
    BlockStep,
    CommandStep,
    DirectoryStep,
    FileStep,
    PackageStep,
    RequireCommandStep,
    ServiceStep,
    StepContext,
)
from stack_provisioner.errors import CommandFailedError, DependencyMissingError
from stack_provisioner.model.step import StepStatus


@pytest.fixture
def ctx(fake):
    return StepContext(connector=fake)


@pytest.fixture
def dry_ctx(fake):
    return StepContext(connector=fake, dry_run=True)


class TestFileStep:
    def test_creates_missing_file_with_mode(self, fake, ctx):
        result = FileStep("/etc/app.conf", "key = 1\n", mode=0o600, owner="root").execute(ctx)

        assert result.changed
        assert result.message == "created"
        assert fake.files["/etc/app.conf"] == "key = 1\n"
        assert fake.modes["/etc/app.conf"] == 0o600
        assert fake.owners["/etc/app.conf"] == ("root", None)

    def test_unchanged_content_is_not_rewritten(self, fake, ctx):
        fake.files["/etc/app.conf"] = "key = 1\n"

        result = FileStep("/etc/app.conf", "key = 1\n", mode=0o600).execute(ctx)

        assert not result.changed
        assert result.message == "unchanged"
        assert fake.writes == []
        assert fake.ran(r"^chmod 600 /etc/app.conf$")

    def test_backup_taken_before_overwrite(self, fake, ctx):
        fake.files["/etc/ssh/sshd_config"] = "Port 2222\n"

        result = FileStep("/etc/ssh/sshd_config", "Port 22\n", backup=True).execute(ctx)

        assert result.changed
        assert fake.files["/etc/ssh/sshd_config.backup"] == "Port 2222\n"
        assert fake.files["/etc/ssh/sshd_config"] == "Port 22\n"
        assert "-Port 2222" in result.diff

    def test_no_backup_for_new_file(self, fake, ctx):
        FileStep("/etc/new.conf", "x\n", backup=True).execute(ctx)
        assert not fake.ran(r"^cp -p")

    def test_failed_backup_is_fatal(self, fake, ctx):
        fake.files["/etc/nginx/nginx.conf"] = "old\n"
        fake.fail_on(r"^cp -p", stderr="cp: cannot create regular file")

        with pytest.raises(CommandFailedError):
            FileStep("/etc/nginx/nginx.conf", "new\n", backup=True).execute(ctx)
        assert fake.files["/etc/nginx/nginx.conf"] == "old\n"

    def test_dry_run_reports_diff_without_writing(self, fake, dry_ctx):
        fake.files["/etc/app.conf"] = "key = 1\n"

        result = FileStep("/etc/app.conf", "key = 2\n").execute(dry_ctx)

        assert result.changed
        assert result.message == "would update"
        assert "+key = 2" in result.diff
        assert fake.writes == []
        assert fake.commands == []

    def test_content_callable_is_rendered_lazily(self, fake, ctx):
        calls = []

        def content():
            calls.append(1)
            return "rendered\n"

        step = FileStep("/etc/lazy", content)
        assert calls == []
        step.execute(ctx)
        assert calls == [1]


class TestBlockStep:
    def test_inserts_block_once(self, fake, ctx):
        fake.files["/etc/sysctl.conf"] = "# stock sysctl\n"
        step = BlockStep("/etc/sysctl.conf", "sysctl", "kernel.randomize_va_space = 2\n")

        first = step.execute(ctx)
        second = step.execute(ctx)

        assert first.changed
        assert not second.changed
        assert fake.writes == ["/etc/sysctl.conf"]
        assert fake.files["/etc/sysctl.conf"].startswith("# stock sysctl\n")
        assert fake.files["/etc/sysctl.conf"].count("kernel.randomize_va_space") == 1


class TestPackageStep:
    def test_installs_only_missing_packages(self, fake, ctx):
        fake.installed = {"curl"}

        result = PackageStep(["curl", "nginx"]).execute(ctx)

        assert result.changed
        assert fake.ran(r"^apt-get install -y nginx$")
        assert not fake.ran(r"apt-get install .*curl")

    def test_everything_installed_is_a_no_op(self, fake, ctx):
        fake.installed = {"curl", "nginx"}

        result = PackageStep(["curl", "nginx"]).execute(ctx)

        assert not result.changed
        assert not fake.ran(r"^apt-get")

    def test_install_failure_raises(self, fake, ctx):
        fake.fail_on(r"^apt-get install", stderr="E: Unable to locate package nope")

        with pytest.raises(CommandFailedError, match="Unable to locate package nope"):
            PackageStep(["nope"]).execute(ctx)


def test_apt_update_without_upgrade(fake, ctx):
    result = AptUpdateStep(upgrade=False).execute(ctx)

    assert fake.command_lines == ["apt-get update"]
    assert not result.changed


class TestCommandStep:
    def test_guard_success_skips_command(self, fake, ctx):
        result = CommandStep("useradd tomcat", "Creating user", unless="id -u tomcat").execute(ctx)

        assert not result.changed
        assert result.message == "already done"
        assert not fake.ran("useradd")

    def test_guard_failure_runs_command(self, fake, ctx):
        fake.respond(r"^id -u", exit_code=1)

        result = CommandStep("useradd tomcat", "Creating user", unless="id -u tomcat").execute(ctx)

        assert result.changed
        assert fake.ran("^useradd tomcat$")

    def test_sensitive_command_is_redacted_in_dry_run(self, dry_ctx):
        result = CommandStep("echo secret", "Secret", sensitive=True).execute(dry_ctx)
        assert "secret" not in result.message


class TestDirectoryStep:
    def test_creates_and_chowns(self, fake, ctx):
        result = DirectoryStep("/var/www/app", owner="ubuntu", group="ubuntu").execute(ctx)

        assert result.changed
        assert fake.ran(r"^mkdir -p /var/www/app$")
        assert fake.ran(r"^chown ubuntu:ubuntu /var/www/app$")

    def test_existing_directory_is_not_created(self, fake, ctx):
        fake.dirs.add("/var/log/pm2")

        result = DirectoryStep("/var/log/pm2", owner="ubuntu", recursive_owner=True).execute(ctx)

        assert not result.changed
        assert not fake.ran("mkdir")
        assert fake.ran(r"^chown -R ubuntu /var/log/pm2$")


class TestServiceStep:
    def test_enable_now(self, fake, ctx):
        ServiceStep("enable --now", "tomcat").execute(ctx)
        assert fake.command_lines == ["systemctl enable --now tomcat"]

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            ServiceStep("mask", "tomcat")

    def test_unit_required(self):
        with pytest.raises(ValueError):
            ServiceStep("restart")


class TestRequireCommandStep:
    def test_present(self, fake, ctx):
        fake.available.add("node")
        assert RequireCommandStep("node").execute(ctx).status == StepStatus.SUCCESS

    def test_missing_raises_with_hint(self, ctx):
        with pytest.raises(DependencyMissingError, match="Run the nodejs component first"):
            RequireCommandStep("pm2", "Run the nodejs component first.").execute(ctx)
