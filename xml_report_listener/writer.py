"""Legacy JUnit XML rendering of a finished test tree."""

import re
import socket
import xml.etree.ElementTree as ET
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TextIO

from xml_report_listener.models.entry import ReportEntry
from xml_report_listener.models.outcome import ExecutionOutcome
from xml_report_listener.models.plan import TestNode
from xml_report_listener.store import ResultStore

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

_ILLEGAL_XML_CHARACTERS = re.compile(
    "[^\u0009\u000A\u000D\u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]"
)

ReportWriter = Callable[[ResultStore, TestNode, TextIO], None]


def write_xml_report(store: ResultStore, root: TestNode, out: TextIO) -> None:
    """Write the report for ``root`` and every test below it to ``out``."""
    tests = [node for node in store.plan.descendants_of(root) if node.is_test]
    statuses = [_status_of(store, test) for test in tests]

    suite = ET.Element(
        "testsuite",
        {
            "name": root.reporting_name,
            "tests": str(len(tests)),
            "skipped": str(statuses.count("skipped")),
            "failures": str(statuses.count("failure")),
            "errors": str(statuses.count("error")),
            "time": _format_seconds(store.duration_seconds(root)),
            "timestamp": datetime.now().isoformat(timespec="seconds"),
            "hostname": socket.gethostname(),
        },
    )
    _add_properties(suite, store.report_entries(root))

    for test in tests:
        _add_test_case(suite, store, test)

    _sanitize(suite)
    ET.indent(suite)
    out.write(XML_DECLARATION)
    ET.ElementTree(suite).write(out, encoding="unicode")
    out.write("\n")


def _status_of(store: ResultStore, node: TestNode) -> str:
    if store.was_skipped(node):
        return "skipped"
    failed = _first_failure(store.results(node))
    if failed is None:
        return "successful"
    return "failure" if isinstance(failed.cause, AssertionError) else "error"


def _first_failure(results: Sequence[ExecutionOutcome]) -> ExecutionOutcome | None:
    return next((r for r in results if r.status == "failed"), None)


def _add_test_case(suite: ET.Element, store: ResultStore, test: TestNode) -> None:
    parent = store.parent_of(test)
    case = ET.SubElement(
        suite,
        "testcase",
        {
            "name": test.reporting_name,
            "classname": parent.reporting_name if parent else "",
            "time": _format_seconds(store.duration_seconds(test)),
        },
    )
    entries = store.report_entries(test)
    _add_properties(case, entries)

    status = _status_of(store, test)
    if status == "skipped":
        skipped = ET.SubElement(case, "skipped")
        if reason := store.skip_reason(test):
            skipped.set("message", reason)
    elif status in ("failure", "error"):
        failed = _first_failure(store.results(test))
        element = ET.SubElement(case, status)
        if failed is not None and failed.cause is not None:
            element.set("message", str(failed.cause))
            element.set("type", _qualified_name(failed.cause))
            element.text = store.format_cause(failed.cause)

    if entries:
        system_out = ET.SubElement(case, "system-out")
        system_out.text = _format_entries(entries)


def _add_properties(parent: ET.Element, entries: Sequence[ReportEntry]) -> None:
    if not entries:
        return
    properties = ET.SubElement(parent, "properties")
    for entry in entries:
        for key, value in entry.key_values.items():
            ET.SubElement(properties, "property", {"name": key, "value": value})


def _format_entries(entries: Sequence[ReportEntry]) -> str:
    lines: list[str] = []
    for number, entry in enumerate(entries, start=1):
        lines.append(
            f"Report Entry #{number} (timestamp: {entry.timestamp.isoformat()})"
        )
        lines.extend(f"\t- {key}: {value}" for key, value in entry.key_values.items())
    return "\n".join(lines)


def _sanitize(root: ET.Element) -> None:
    """Replace characters XML 1.0 cannot represent in every text and attribute."""
    for element in root.iter():
        for name, value in list(element.attrib.items()):
            element.set(name, escape_illegal_characters(value))
        if element.text:
            element.text = escape_illegal_characters(element.text)


def escape_illegal_characters(text: str) -> str:
    """Render characters outside the XML 1.0 Char range as ``&#xNN;`` text."""
    return _ILLEGAL_XML_CHARACTERS.sub(lambda m: f"&#x{ord(m.group()):02X};", text)


def _format_seconds(seconds: float) -> str:
    return f"{seconds:.3f}"


def _qualified_name(cause: BaseException) -> str:
    cls = type(cause)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"
