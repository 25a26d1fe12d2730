"""Shared fixtures for unit tests."""

import pytest

from xml_report_listener.models.plan import TestNode, TestPlan
from xml_report_listener.store import ResultStore
from xml_report_listener.testing.clock import FakeClock


@pytest.fixture
def root() -> TestNode:
    """Root node of the sample plan."""
    return TestNode(
        unique_id="[engine:screenshot]",
        display_name="Screenshot Tests",
        type="container",
    )


@pytest.fixture
def container(root: TestNode) -> TestNode:
    """Container node below the root."""
    return TestNode(
        unique_id="[engine:screenshot]/[class:com.example.PreviewTest]",
        parent_id=root.unique_id,
        display_name="PreviewTest",
        type="container",
        legacy_reporting_name="com.example.PreviewTest",
    )


@pytest.fixture
def leaf(container: TestNode) -> TestNode:
    """Test node below the container."""
    return TestNode(
        unique_id=f"{container.unique_id}/[method:button()]",
        parent_id=container.unique_id,
        display_name="button()",
        legacy_reporting_name="button",
    )


@pytest.fixture
def plan(root: TestNode, container: TestNode, leaf: TestNode) -> TestPlan:
    """Plan with root -> container -> test."""
    return TestPlan([root, container, leaf])


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def store(plan: TestPlan, clock: FakeClock) -> ResultStore:
    """Result store for the sample plan."""
    return ResultStore(plan=plan, clock=clock)
