"""Engine package - step execution and desired-state logic."""

from stack_provisioner.engine.runner import ProvisionRunner
from stack_provisioner.engine.steps import StepContext

__all__ = ["ProvisionRunner", "StepContext"]
