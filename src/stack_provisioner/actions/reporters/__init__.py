"""Run report renderers."""

from rich.console import Console

from stack_provisioner.actions.reporters.base import BaseReporter
from stack_provisioner.actions.reporters.json_reporter import JsonReporter
from stack_provisioner.actions.reporters.plain_reporter import PlainReporter
from stack_provisioner.actions.reporters.rich_reporter import RichReporter

REPORTERS: dict[str, type[BaseReporter]] = {
    "rich": RichReporter,
    "plain": PlainReporter,
    "json": JsonReporter,
}


def get_reporter(fmt: str, console: Console, show_diff: bool = False) -> BaseReporter:
    return REPORTERS[fmt](console, show_diff=show_diff)


__all__ = ["BaseReporter", "JsonReporter", "PlainReporter", "RichReporter", "get_reporter", "REPORTERS"]
