"""Recorded runner events and their replay against a listener."""

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Annotated, Literal

from pydantic import Field, TypeAdapter, ValidationError

from xml_report_listener.listener import TestExecutionListener
from xml_report_listener.models.base import Model
from xml_report_listener.models.entry import ReportEntry
from xml_report_listener.models.outcome import ExecutionOutcome
from xml_report_listener.models.plan import NodeType, TestNode, TestPlan

log = logging.getLogger(__name__)


class EventLogError(Exception):
    """Raised when a recorded event log cannot be replayed."""


class NodeSpec(Model):
    """Serialized form of a test node."""

    unique_id: str
    parent_id: str | None = None
    display_name: str = ""
    type: NodeType = "test"
    legacy_reporting_name: str = ""

    def to_node(self) -> TestNode:
        return TestNode(
            unique_id=self.unique_id,
            parent_id=self.parent_id,
            display_name=self.display_name,
            type=self.type,
            legacy_reporting_name=self.legacy_reporting_name,
        )


class PlanStarted(Model):
    event: Literal["plan"]
    nodes: Sequence[NodeSpec] = Field(default_factory=list)


class NodeRegistered(Model):
    event: Literal["registered"]
    node: NodeSpec


class NodeSkipped(Model):
    event: Literal["skipped"]
    unique_id: str
    reason: str | None = None


class NodeStarted(Model):
    event: Literal["started"]
    unique_id: str


class EntryPublished(Model):
    event: Literal["entry"]
    unique_id: str
    key_values: Mapping[str, str]
    timestamp: datetime | None = None

    def to_entry(self) -> ReportEntry:
        if self.timestamp is None:
            return ReportEntry(key_values=self.key_values)
        return ReportEntry(key_values=self.key_values, timestamp=self.timestamp)


class NodeFinished(Model):
    event: Literal["finished"]
    unique_id: str
    status: Literal["successful", "failed", "aborted"] = "successful"
    message: str | None = None
    # Failed assertions render as <failure>, anything else as <error>
    kind: Literal["assertion", "error"] = "error"

    def to_outcome(self) -> ExecutionOutcome:
        cause: BaseException | None = None
        if self.message is not None:
            cause = (
                AssertionError(self.message)
                if self.kind == "assertion"
                else RuntimeError(self.message)
            )
        return ExecutionOutcome(status=self.status, cause=cause)


class PlanFinished(Model):
    event: Literal["plan_finished"]


Event = Annotated[
    PlanStarted
    | NodeRegistered
    | NodeSkipped
    | NodeStarted
    | EntryPublished
    | NodeFinished
    | PlanFinished,
    Field(discriminator="event"),
]

_event_adapter: TypeAdapter[Event] = TypeAdapter(Event)


def parse_events(lines: Iterable[str]) -> Sequence[Event]:
    """Parse a JSON-lines event log, skipping blank lines."""
    events: list[Event] = []
    for number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            events.append(_event_adapter.validate_json(line))
        except ValidationError as e:
            raise EventLogError(f"Invalid event on line {number}: {e}") from e
    return events


def replay_events(events: Iterable[Event], listener: TestExecutionListener) -> bool:
    """Drive ``listener`` with recorded events.

    Returns:
        True if any node finished with a failed outcome

    Raises:
        EventLogError: If an event refers to an unknown node or arrives
            outside of a plan

    """
    plan: TestPlan | None = None
    has_failures = False

    for event in events:
        if isinstance(event, PlanStarted):
            plan = TestPlan(spec.to_node() for spec in event.nodes)
            log.debug("Replaying plan with %d node(s)", len(plan))
            listener.test_plan_execution_started(plan)
            continue

        if plan is None:
            raise EventLogError(f"Event '{event.event}' received before plan start")

        match event:
            case NodeRegistered(node=spec):
                node = spec.to_node()
                plan.add(node)
                listener.dynamic_test_registered(node)
            case NodeSkipped(unique_id=unique_id, reason=reason):
                listener.execution_skipped(_lookup(plan, unique_id), reason)
            case NodeStarted(unique_id=unique_id):
                listener.execution_started(_lookup(plan, unique_id))
            case EntryPublished(unique_id=unique_id):
                listener.reporting_entry_published(
                    _lookup(plan, unique_id), event.to_entry()
                )
            case NodeFinished(unique_id=unique_id, status=status):
                has_failures = has_failures or status == "failed"
                listener.execution_finished(
                    _lookup(plan, unique_id), event.to_outcome()
                )
            case PlanFinished():
                listener.test_plan_execution_finished(plan)
                plan = None

    return has_failures


def _lookup(plan: TestPlan, unique_id: str) -> TestNode:
    if (node := plan.get(unique_id)) is None:
        raise EventLogError(f"Unknown test node: {unique_id}")
    return node
