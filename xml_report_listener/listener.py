"""Test execution listeners that turn runner callbacks into XML reports."""

import logging
import re
import sys
import time
import traceback
from pathlib import Path
from typing import TextIO

from xml_report_listener.config import ReportConfig
from xml_report_listener.models.entry import ReportEntry
from xml_report_listener.models.outcome import ExecutionOutcome
from xml_report_listener.models.plan import TestNode, TestPlan
from xml_report_listener.store import Clock, ResultStore
from xml_report_listener.writer import ReportWriter, write_xml_report

log = logging.getLogger(__name__)

_UNSAFE_FILE_NAME_CHARACTERS = re.compile(r"[\\/\x00]")


class TestExecutionListener:
    """Callbacks a runner invokes while executing a test plan.

    Every callback is a no-op here; listeners override the ones they need.
    """

    __test__ = False

    def test_plan_execution_started(self, plan: TestPlan) -> None:
        """Called once before any node of ``plan`` executes."""

    def test_plan_execution_finished(self, plan: TestPlan) -> None:
        """Called once after every node of ``plan`` has executed."""

    def dynamic_test_registered(self, node: TestNode) -> None:
        """Called when a node is added to the plan during execution."""

    def execution_skipped(self, node: TestNode, reason: str | None) -> None:
        """Called instead of started/finished when ``node`` is skipped."""

    def execution_started(self, node: TestNode) -> None:
        """Called when ``node`` starts executing."""

    def reporting_entry_published(self, node: TestNode, entry: ReportEntry) -> None:
        """Called when ``node`` publishes a report entry."""

    def execution_finished(self, node: TestNode, outcome: ExecutionOutcome) -> None:
        """Called when ``node`` has finished, whatever the outcome."""


class XmlReportGeneratingListener(TestExecutionListener):
    """Writes a legacy JUnit XML report for every root node of a plan.

    A report is written as soon as its root is skipped or finishes. Failures
    to write are reported on ``out`` and never raised to the runner.
    """

    def __init__(
        self,
        reports_dir: Path,
        *,
        out: TextIO | None = None,
        clock: Clock = time.monotonic,
        report_writer: ReportWriter = write_xml_report,
        redirect_entries_to_stdout: bool = False,
    ) -> None:
        self.reports_dir = Path(reports_dir)
        self.out = out if out is not None else sys.stdout
        self.clock = clock
        self.report_writer = report_writer
        self.redirect_entries_to_stdout = redirect_entries_to_stdout
        self.store: ResultStore | None = None

    def test_plan_execution_started(self, plan: TestPlan) -> None:
        self.store = ResultStore(plan=plan, clock=self.clock)
        try:
            self.reports_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._print_exception(
                f"Could not create reports directory: {self.reports_dir}", e
            )

    def test_plan_execution_finished(self, plan: TestPlan) -> None:
        self.store = None

    def execution_skipped(self, node: TestNode, reason: str | None) -> None:
        store = self._require_store("execution_skipped", node)
        if store is None:
            return
        store.mark_skipped(node, reason)
        self._write_report_if_root(store, node)

    def execution_started(self, node: TestNode) -> None:
        if (store := self._require_store("execution_started", node)) is not None:
            store.mark_started(node)

    def reporting_entry_published(self, node: TestNode, entry: ReportEntry) -> None:
        if (store := self._require_store("reporting_entry_published", node)) is None:
            return
        store.add_report_entry(node, entry)
        if self.redirect_entries_to_stdout:
            for key, value in entry.key_values.items():
                print(f"{node.reporting_name}: {key} = {value}", file=self.out)

    def execution_finished(self, node: TestNode, outcome: ExecutionOutcome) -> None:
        store = self._require_store("execution_finished", node)
        if store is None:
            return
        store.mark_finished(node, outcome)
        self._write_report_if_root(store, node)

    def report_path(self, root: TestNode) -> Path:
        """Return the report file for ``root``, named after its first id segment."""
        root_name = _UNSAFE_FILE_NAME_CHARACTERS.sub("_", root.segments[0].value)
        return self.reports_dir / f"TEST-{root_name}.xml"

    def _write_report_if_root(self, store: ResultStore, node: TestNode) -> None:
        if node.is_root:
            self._write_report_safely(store, node)

    def _write_report_safely(self, store: ResultStore, root: TestNode) -> None:
        xml_file = self.report_path(root)
        try:
            with open(xml_file, "w", encoding="utf-8") as f:
                self.report_writer(store, root, f)
        except Exception as e:
            self._print_exception(f"Could not write XML report: {xml_file}", e)
            return
        log.info("Wrote XML report for %s to %s", root.unique_id, xml_file)

    def _require_store(self, callback: str, node: TestNode) -> ResultStore | None:
        if self.store is None:
            log.warning(
                "Ignoring %s for %s outside of a test plan", callback, node.unique_id
            )
        return self.store

    def _print_exception(self, message: str, exception: BaseException) -> None:
        log.warning("%s (%s)", message, exception)
        print(message, file=self.out)
        traceback.print_exception(exception, file=self.out)


def create_listener(config: ReportConfig) -> TestExecutionListener:
    """Return an XML report listener, or a no-op one when reporting is disabled."""
    if not config.enabled:
        log.debug("XML reporting disabled")
        return TestExecutionListener()
    return XmlReportGeneratingListener(
        config.output_directory,
        redirect_entries_to_stdout=config.redirect_entries_to_stdout,
    )
