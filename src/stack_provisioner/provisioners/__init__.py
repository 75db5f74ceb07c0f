"""Component provisioners, listed in the conventional run order."""

from stack_provisioner.errors import ConfigError
from stack_provisioner.provisioners.app import AppDeployer
from stack_provisioner.provisioners.base import Provisioner
from stack_provisioner.provisioners.hardening import ServerHardener
from stack_provisioner.provisioners.mysql import MySQLInstaller
from stack_provisioner.provisioners.nginx import NginxInstaller
from stack_provisioner.provisioners.nodejs import NodeInstaller
from stack_provisioner.provisioners.tomcat import TomcatInstaller
from stack_provisioner.provisioners.tomcat_hardening import TomcatHardener
from stack_provisioner.settings import ProvisionSettings

PROVISIONERS: dict[str, type[Provisioner]] = {
    cls.name: cls
    for cls in (
        NginxInstaller,
        MySQLInstaller,
        NodeInstaller,
        AppDeployer,
        TomcatInstaller,
        TomcatHardener,
        ServerHardener,
    )
}


def get_provisioner(name: str, settings: ProvisionSettings) -> Provisioner:
    """Instantiate the provisioner registered as ``name``."""
    try:
        cls = PROVISIONERS[name]
    except KeyError:
        raise ConfigError(f"Unknown component '{name}'. Available: {', '.join(PROVISIONERS)}") from None
    return cls(settings)


__all__ = ["PROVISIONERS", "Provisioner", "get_provisioner"]
