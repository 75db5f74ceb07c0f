"""
Click-based CLI for stack-provisioner.

IMPORTANT: This module only ORCHESTRATES. It never decides what a step does.
- Loads settings and target profiles
- Builds the connector
- Hands provisioners to the runner
- Formats output
"""

import contextlib
import logging
import sys
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from stack_provisioner import __version__
from stack_provisioner.actions.reporters import REPORTERS, get_reporter
from stack_provisioner.config import ConfigManager
from stack_provisioner.connector.base import Connector
from stack_provisioner.connector.local import LocalConnector
from stack_provisioner.connector.ssh import SSHConfig, SSHConnector
from stack_provisioner.engine.runner import ProvisionRunner
from stack_provisioner.errors import ConfigError, ProvisionError
from stack_provisioner.provisioners import PROVISIONERS, get_provisioner
from stack_provisioner.settings import ProvisionSettings

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # paramiko is chatty at DEBUG
    logging.getLogger("paramiko").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="stack-provisioner")
@click.option("--config", "-c", type=click.Path(), help="Path to profiles directory")
@click.pass_context
def main(ctx: click.Context, config: str | None) -> None:
    """stack-provisioner: idempotent Ubuntu server provisioning.

    Installs Tomcat, Nginx, MySQL, Node.js, a sample Express app and a
    hardened baseline, locally or over SSH.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = Path(config) if config else None


def _config_mgr(ctx: click.Context) -> ConfigManager:
    if "config_mgr" not in ctx.obj:
        ctx.obj["config_mgr"] = ConfigManager(ctx.obj.get("config_dir"))
    return ctx.obj["config_mgr"]


def _resolve_config(ctx: click.Context, target: str) -> SSHConfig:
    """Resolve target string to SSHConfig (profile name, user@host or host)."""
    cfg = _config_mgr(ctx).get_profile(target)
    if cfg:
        return cfg

    user, sep, host = target.rpartition("@")
    if sep:
        return SSHConfig(host=host, user=user)
    return SSHConfig(host=target, user="root")


def _connector(ctx: click.Context, target: str | None, settings: ProvisionSettings) -> contextlib.AbstractContextManager[Connector]:
    timeout = settings.general.command_timeout or None
    if not target:
        return contextlib.nullcontext(LocalConnector(timeout=timeout))
    return SSHConnector(_resolve_config(ctx, target), command_timeout=timeout)


def _load_settings(settings_file: str | None, overrides: tuple[str, ...]) -> ProvisionSettings:
    return ProvisionSettings.load(settings_file, list(overrides))


settings_option = click.option(
    "--settings",
    "settings_file",
    type=click.Path(dir_okay=False),
    help="YAML settings file",
)
set_option = click.option(
    "--set",
    "overrides",
    multiple=True,
    metavar="SECTION.KEY=VALUE",
    help="Override one setting (repeatable)",
)
format_option = click.option(
    "--format",
    "fmt",
    type=click.Choice(list(REPORTERS)),
    default="rich",
    show_default=True,
    help="Output format",
)


@main.command("list")
@format_option
def list_components(fmt: str) -> None:
    """List components in their conventional run order."""
    settings = ProvisionSettings()
    reporter = get_reporter(fmt, console)
    reporter.report_components([cls(settings) for cls in PROVISIONERS.values()])


@main.command()
@click.argument("components", nargs=-1, required=True)
@click.option("--target", "-t", help="Profile name or [user@]host; local machine when omitted")
@click.option("--dry-run", is_flag=True, help="Show what would change without changing anything")
@settings_option
@set_option
@format_option
@click.option("--verbose", "-v", is_flag=True, help="Debug logging (every command and file write)")
@click.pass_context
def run(
    ctx: click.Context,
    components: tuple[str, ...],
    target: str | None,
    dry_run: bool,
    settings_file: str | None,
    overrides: tuple[str, ...],
    fmt: str,
    verbose: bool,
) -> None:
    """Provision COMPONENTS in the order given.

    Stops at the first component whose run is aborted. Exits 0 only when
    every run completes.
    """
    _setup_logging(verbose)
    reporter = get_reporter(fmt, console, show_diff=dry_run or verbose)

    try:
        settings = _load_settings(settings_file, overrides)
        provisioners = [get_provisioner(name, settings) for name in components]

        with _connector(ctx, target, settings) as connector:
            runner = ProvisionRunner(
                connector,
                dry_run=dry_run,
                lock_path=settings.general.lock_file,
                backup_suffix=settings.general.backup_suffix,
                log_fn=reporter.log_line,
            )
            reports = runner.run_many(provisioners)
    except (ProvisionError, OSError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)

    sys.exit(reporter.report_runs(reports))


@main.group()
def settings() -> None:
    """Inspect provisioning settings."""


@settings.command("show")
@settings_option
@set_option
def settings_show(settings_file: str | None, overrides: tuple[str, ...]) -> None:
    """Print effective settings as YAML (secrets masked)."""
    try:
        effective = _load_settings(settings_file, overrides)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)
    console.print(yaml.safe_dump(effective.to_dict(), sort_keys=False), markup=False, highlight=False)


@main.group()
def config() -> None:
    """Manage SSH target profiles."""


@config.command("add")
@click.argument("name")
@click.option("--host", "-h", required=True, help="Server hostname or IP")
@click.option("--user", "-u", default="root", help="SSH username")
@click.option("--port", "-p", default=22, help="SSH port")
@click.option("--password", "-pass", help="SSH password")
@click.option("--key", "-k", type=click.Path(), help="Path to SSH private key")
@click.option("--sudo/--no-sudo", default=True, help="Use sudo for commands")
@click.option("--timeout", default=30, help="Connection timeout in seconds")
@click.pass_context
def config_add(
    ctx: click.Context,
    name: str,
    host: str,
    user: str,
    port: int,
    password: str | None,
    key: str | None,
    sudo: bool,
    timeout: int,
) -> None:
    """Add a new target profile."""
    cfg = SSHConfig(host=host, user=user, port=port, password=password, key_path=key, use_sudo=sudo, timeout=timeout)
    _config_mgr(ctx).add_profile(name, cfg)
    console.print(f"[bold green]Added target profile:[/] {name}")


@config.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """List all target profiles."""
    try:
        profiles = _config_mgr(ctx).list_profiles()
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        sys.exit(1)
    if not profiles:
        console.print("[dim]No profiles configured yet.[/]")
        return

    for name, data in profiles.items():
        console.print(f"[bold green]{name}[/]: {data['user']}@{data['host']}:{data['port']}")


@config.command("remove")
@click.argument("name")
@click.pass_context
def config_remove(ctx: click.Context, name: str) -> None:
    """Remove a target profile."""
    if _config_mgr(ctx).remove_profile(name):
        console.print(f"[bold green]Removed profile:[/] {name}")
    else:
        console.print(f"[bold red]Error:[/] Profile {name} not found.")
        sys.exit(1)


if __name__ == "__main__":
    main()
