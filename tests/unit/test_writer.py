"""Tests for the legacy JUnit XML writer."""

import io
import xml.etree.ElementTree as ET

import pytest

from xml_report_listener.models.entry import ReportEntry
from xml_report_listener.models.outcome import ExecutionOutcome
from xml_report_listener.models.plan import TestNode, TestPlan
from xml_report_listener.store import ResultStore
from xml_report_listener.testing.clock import FakeClock
from xml_report_listener.writer import escape_illegal_characters, write_xml_report


def render(store: ResultStore, root: TestNode) -> ET.Element:
    """Write the report for ``root`` and parse it back."""
    out = io.StringIO()
    write_xml_report(store, root, out)
    text = out.getvalue()
    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    return ET.fromstring(text.split("\n", 1)[1])


@pytest.fixture
def second_leaf(container: TestNode) -> TestNode:
    """Another test below the container."""
    return TestNode(
        unique_id=f"{container.unique_id}/[method:checkbox()]",
        parent_id=container.unique_id,
        display_name="checkbox()",
    )


def test_successful_suite(
    store: ResultStore,
    clock: FakeClock,
    root: TestNode,
    container: TestNode,
    leaf: TestNode,
) -> None:
    """A passing test produces a plain testcase element."""
    store.mark_started(root)
    store.mark_started(leaf)
    clock.advance(1.5)
    store.mark_finished(leaf, ExecutionOutcome.successful())
    store.mark_finished(container, ExecutionOutcome.successful())
    clock.advance(0.5)
    store.mark_finished(root, ExecutionOutcome.successful())

    suite = render(store, root)

    assert suite.tag == "testsuite"
    assert suite.get("name") == "Screenshot Tests"
    assert suite.get("tests") == "1"
    assert suite.get("skipped") == "0"
    assert suite.get("failures") == "0"
    assert suite.get("errors") == "0"
    assert suite.get("time") == "2.000"
    (case,) = suite.findall("testcase")
    assert case.get("name") == "button"
    assert case.get("classname") == "com.example.PreviewTest"
    assert case.get("time") == "1.500"
    assert list(case) == []


def test_containers_are_not_test_cases(
    plan: TestPlan, store: ResultStore, root: TestNode, second_leaf: TestNode
) -> None:
    """Only test nodes become testcase elements."""
    plan.add(second_leaf)

    suite = render(store, root)

    names = [case.get("name") for case in suite.findall("testcase")]
    assert names == ["button", "checkbox()"]


def test_assertion_failure_and_error(
    plan: TestPlan,
    store: ResultStore,
    root: TestNode,
    leaf: TestNode,
    second_leaf: TestNode,
) -> None:
    """Assertion causes render as failures, other causes as errors."""
    plan.add(second_leaf)
    store.mark_finished(leaf, ExecutionOutcome.failed(AssertionError("diff 3%")))
    store.mark_finished(second_leaf, ExecutionOutcome.failed(RuntimeError("crash")))

    suite = render(store, root)

    assert suite.get("failures") == "1"
    assert suite.get("errors") == "1"
    first, second = suite.findall("testcase")
    failure = first.find("failure")
    assert failure is not None
    assert failure.get("message") == "diff 3%"
    assert failure.get("type") == "AssertionError"
    assert "AssertionError: diff 3%" in (failure.text or "")
    error = second.find("error")
    assert error is not None
    assert error.get("type") == "RuntimeError"


def test_container_failure_marks_tests(
    store: ResultStore, root: TestNode, container: TestNode, leaf: TestNode
) -> None:
    """A failed ancestor is reported on its tests."""
    store.mark_finished(leaf, ExecutionOutcome.successful())
    store.mark_finished(container, ExecutionOutcome.failed(RuntimeError("setup")))

    suite = render(store, root)

    assert suite.get("errors") == "1"
    (case,) = suite.findall("testcase")
    assert case.find("error") is not None


def test_skipped_test_has_reason(
    store: ResultStore, root: TestNode, container: TestNode
) -> None:
    """Tests below a skipped container are reported as skipped."""
    store.mark_skipped(container, "env unavailable")

    suite = render(store, root)

    assert suite.get("skipped") == "1"
    (case,) = suite.findall("testcase")
    skipped = case.find("skipped")
    assert skipped is not None
    assert skipped.get("message") == "parent was skipped: env unavailable"


def test_report_entries_become_properties(
    store: ResultStore, root: TestNode, leaf: TestNode
) -> None:
    """Report entries are written as properties and to system-out."""
    store.add_report_entry(root, ReportEntry(key_values={"device": "pixel"}))
    store.add_report_entry(leaf, ReportEntry(key_values={"image": "a.png"}))
    store.add_report_entry(leaf, ReportEntry(key_values={"diff": "b.png"}))

    suite = render(store, root)

    suite_props = suite.findall("properties/property")
    assert [(p.get("name"), p.get("value")) for p in suite_props] == [
        ("device", "pixel")
    ]
    (case,) = suite.findall("testcase")
    case_props = case.findall("properties/property")
    assert [(p.get("name"), p.get("value")) for p in case_props] == [
        ("image", "a.png"),
        ("diff", "b.png"),
    ]
    system_out = case.findtext("system-out") or ""
    assert "Report Entry #1" in system_out
    assert "\t- image: a.png" in system_out
    assert system_out.index("image") < system_out.index("diff")


def test_illegal_xml_characters_are_escaped(
    store: ResultStore, root: TestNode, container: TestNode, leaf: TestNode
) -> None:
    """Control characters in messages and entries still give parseable XML."""
    store.add_report_entry(leaf, ReportEntry(key_values={"log": "\x1b[31mred\x00"}))
    store.mark_finished(
        leaf, ExecutionOutcome.failed(AssertionError("\x1b[31mimages differ"))
    )

    out = io.StringIO()
    write_xml_report(store, root, out)
    suite = ET.fromstring(out.getvalue().split("\n", 1)[1])

    (case,) = suite.findall("testcase")
    failure = case.find("failure")
    assert failure is not None
    assert failure.get("message") == "&#x1B;[31mimages differ"
    assert "\x1b" not in (failure.text or "")
    (prop,) = case.findall("properties/property")
    assert prop.get("value") == "&#x1B;[31mred&#x00;"
    assert "&#x1B;[31mred" in (case.findtext("system-out") or "")


def test_skip_reason_with_control_characters(
    store: ResultStore, root: TestNode, container: TestNode
) -> None:
    """Skip reasons are escaped like failure messages."""
    store.mark_skipped(container, "no device\x07")

    suite = render(store, root)

    skipped = suite.find("testcase/skipped")
    assert skipped is not None
    assert skipped.get("message") == "parent was skipped: no device&#x07;"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("plain", "plain"),
        ("tab\tnewline\n", "tab\tnewline\n"),
        ("\x1b[0m", "&#x1B;[0m"),
        ("\ufffe", "&#xFFFE;"),
        ("emoji \U0001f600", "emoji \U0001f600"),
    ],
)
def test_escape_illegal_characters(text: str, expected: str) -> None:
    """Only characters outside the XML 1.0 range are replaced."""
    assert escape_illegal_characters(text) == expected
