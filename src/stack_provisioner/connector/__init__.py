"""Connector package - access to the machine being provisioned."""

from stack_provisioner.connector.base import CommandResult, Connector
from stack_provisioner.connector.local import LocalConnector
from stack_provisioner.connector.ssh import SSHConfig, SSHConnector

__all__ = ["CommandResult", "Connector", "LocalConnector", "SSHConfig", "SSHConnector"]
