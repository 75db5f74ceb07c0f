"""Actions package - output of provisioning runs."""

from stack_provisioner.actions.reporters import get_reporter

__all__ = ["get_reporter"]
