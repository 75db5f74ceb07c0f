"""Provisioner base class.

CONTRACT:
- A provisioner only DESCRIBES work: ``steps()`` returns the ordered
  step list, the runner executes it.
- Provisioners never call each other. Cross-component requirements are
  expressed as RequireCommandStep checks.
"""

from abc import ABC, abstractmethod

from stack_provisioner.engine.steps import Step
from stack_provisioner.settings import ProvisionSettings


class Provisioner(ABC):
    """One installable component."""

    #: CLI name, e.g. "nginx"
    name: str = ""
    #: Display name, e.g. "Nginx web server"
    title: str = ""
    #: One line shown by ``stack-provisioner list``
    description: str = ""

    def __init__(self, settings: ProvisionSettings) -> None:
        self.settings = settings

    @abstractmethod
    def steps(self) -> list[Step]:
        """The fixed, ordered step sequence for this component."""

    def summary(self) -> list[str]:
        """Lines shown after a successful run (URLs, management commands)."""
        return []
