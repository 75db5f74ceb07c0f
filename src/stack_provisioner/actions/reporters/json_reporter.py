"""JSON Reporter Implementation."""

import json

from stack_provisioner.actions.reporters.base import BaseReporter, exit_code
from stack_provisioner.model.step import RunReport
from stack_provisioner.provisioners.base import Provisioner


class JsonReporter(BaseReporter):
    """Machine-readable output: one JSON document, nothing streamed."""

    def _dump(self, data) -> None:
        self.console.print(json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True)

    def log_line(self, level: str, message: str) -> None:
        # Log lines are part of each report's "logs" array
        return None

    def report_runs(self, reports: list[RunReport]) -> int:
        code = exit_code(reports)
        self._dump({"exit_code": code, "runs": [report.to_dict() for report in reports]})
        return code

    def report_components(self, provisioners: list[Provisioner]) -> None:
        self._dump(
            [
                {"name": p.name, "title": p.title, "description": p.description}
                for p in provisioners
            ]
        )
