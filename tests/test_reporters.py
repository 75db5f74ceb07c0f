"""Tests for run report rendering."""

import json

import pytest
from rich.console import Console

from stack_provisioner.actions.reporters import JsonReporter, PlainReporter, RichReporter, get_reporter
from stack_provisioner.model.step import RunReport, RunState, StepKind, StepResult, StepStatus
from stack_provisioner.provisioners import PROVISIONERS


def _console():
    return Console(record=True, width=200, color_system=None)


@pytest.fixture
def done_report():
    report = RunReport(component="nginx", target="fake-host")
    report.log_info("Configuring default site")
    report.results = [
        StepResult("Installing Nginx", StepKind.PACKAGE, changed=True, message="installed: nginx"),
        StepResult(
            "Configuring default site",
            StepKind.FILE,
            changed=True,
            diff="--- /dev/null\n+++ /etc/nginx/sites-available/default\n@@ -0,0 +1 @@\n+server {\n",
        ),
        StepResult("Enabling remote access to manager", StepKind.FILE, status=StepStatus.SKIPPED, message="already relaxed"),
    ]
    report.summary = ["Health Check: http://<your-ip>/health"]
    report.finish(RunState.DONE)
    return report


@pytest.fixture
def aborted_report():
    report = RunReport(component="mysql", target="fake-host")
    report.results = [
        StepResult("Installing MySQL server", StepKind.PACKAGE, status=StepStatus.FATAL, error="apt-get failed with exit code 100"),
    ]
    report.finish(RunState.ABORTED)
    return report


class TestPlainReporter:
    def test_log_line_uses_bracketed_levels(self):
        console = _console()
        reporter = PlainReporter(console)

        reporter.log_line("INFO", "Starting")
        reporter.log_line("WARN", "Careful [really]")

        text = console.export_text()
        assert "[INFO] Starting" in text
        assert "[WARNING] Careful [really]" in text

    def test_done_report(self, done_report):
        console = _console()
        code = PlainReporter(console).report_runs([done_report])

        text = console.export_text()
        assert code == 0
        assert "RUN: nginx on fake-host" in text
        assert "[SKIPPED] Enabling remote access to manager" in text
        assert "STATE: done (exit 0)" in text
        assert "- Health Check: http://<your-ip>/health" in text
        assert "+server {" not in text

    def test_diff_shown_when_requested(self, done_report):
        console = _console()
        PlainReporter(console, show_diff=True).report_runs([done_report])
        assert "+server {" in console.export_text()

    def test_aborted_report(self, aborted_report):
        console = _console()
        code = PlainReporter(console).report_runs([aborted_report])

        text = console.export_text()
        assert code == 1
        assert "Error: apt-get failed with exit code 100" in text
        assert "STATE: aborted (exit 1)" in text


class TestRichReporter:
    def test_log_line_keeps_brackets(self):
        console = _console()
        RichReporter(console).log_line("ERROR", "Bad [value]")
        assert "[ERROR] Bad [value]" in console.export_text()

    def test_report_runs(self, done_report, aborted_report):
        console = _console()
        code = RichReporter(console, show_diff=True).report_runs([done_report, aborted_report])

        text = console.export_text()
        assert code == 1
        assert "nginx: done" in text
        assert "mysql: aborted" in text
        assert "apt-get failed with exit code 100" in text
        assert "+server {" in text

    def test_components_table(self, settings):
        console = _console()
        RichReporter(console).report_components([cls(settings) for cls in PROVISIONERS.values()])

        text = console.export_text()
        for name in PROVISIONERS:
            assert name in text


class TestJsonReporter:
    def test_single_document(self, done_report, aborted_report):
        console = _console()
        reporter = JsonReporter(console)
        reporter.log_line("INFO", "not printed")

        code = reporter.report_runs([done_report, aborted_report])

        data = json.loads(console.export_text())
        assert code == 1
        assert data["exit_code"] == 1
        assert [run["state"] for run in data["runs"]] == ["done", "aborted"]
        assert data["runs"][0]["results"][2]["status"] == "skipped"
        assert data["runs"][0]["logs"][0]["message"] == "Configuring default site"

    def test_empty_run_list_is_failure(self):
        assert JsonReporter(_console()).report_runs([]) == 1


def test_get_reporter():
    assert isinstance(get_reporter("plain", _console()), PlainReporter)
    assert get_reporter("rich", _console(), show_diff=True).show_diff
