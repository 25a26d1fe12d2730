"""Models for the identity tree of a test execution."""

import re
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

NodeType = Literal["container", "test", "container_and_test"]

_SEGMENT_PATTERN = re.compile(r"\[(?P<type>[^:\]]+):(?P<value>[^\]]*)\]")


@dataclass(frozen=True)
class UniqueIdSegment:
    """One ``[type:value]`` element of a unique id."""

    type: str
    value: str


def parse_unique_id(unique_id: str) -> Sequence[UniqueIdSegment]:
    """Split a unique id such as ``[engine:junit]/[class:Foo]`` into segments.

    Ids that do not follow the bracketed format yield a single segment whose
    value is the whole id.
    """
    segments = [
        UniqueIdSegment(type=m.group("type"), value=m.group("value"))
        for m in _SEGMENT_PATTERN.finditer(unique_id)
    ]
    if not segments:
        return (UniqueIdSegment(type="", value=unique_id),)
    return tuple(segments)


@dataclass(frozen=True, kw_only=True)
class TestNode:
    """Immutable identity of a node in the execution tree.

    Two nodes are equal when their unique ids are equal.
    """

    __test__ = False

    unique_id: str
    parent_id: str | None = field(default=None, compare=False)
    display_name: str = field(default="", compare=False)
    type: NodeType = field(default="test", compare=False)
    legacy_reporting_name: str = field(default="", compare=False)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_test(self) -> bool:
        return self.type in ("test", "container_and_test")

    @property
    def is_container(self) -> bool:
        return self.type in ("container", "container_and_test")

    @property
    def segments(self) -> Sequence[UniqueIdSegment]:
        return parse_unique_id(self.unique_id)

    @property
    def reporting_name(self) -> str:
        return self.legacy_reporting_name or self.display_name or self.unique_id


class TestPlan:
    """Parent/child relations between the nodes of one execution.

    Nodes can be added while the plan executes, so lookups and additions are
    guarded by a lock.
    """

    __test__ = False

    def __init__(self, nodes: Iterable[TestNode] = ()) -> None:
        self._lock = threading.Lock()
        self._nodes: dict[str, TestNode] = {}
        self._children: dict[str, list[TestNode]] = {}
        for node in nodes:
            self.add(node)

    def add(self, node: TestNode) -> None:
        """Register a node, e.g. a dynamically discovered test."""
        with self._lock:
            if node.unique_id in self._nodes:
                return
            self._nodes[node.unique_id] = node
            if node.parent_id is not None:
                self._children.setdefault(node.parent_id, []).append(node)

    def get(self, unique_id: str) -> TestNode | None:
        with self._lock:
            return self._nodes.get(unique_id)

    def parent_of(self, node: TestNode) -> TestNode | None:
        if node.parent_id is None:
            return None
        return self.get(node.parent_id)

    def children_of(self, node: TestNode) -> Sequence[TestNode]:
        with self._lock:
            return tuple(self._children.get(node.unique_id, ()))

    def descendants_of(self, node: TestNode) -> Sequence[TestNode]:
        """Return all descendants of ``node`` in depth-first discovery order."""
        descendants: list[TestNode] = []
        pending = list(reversed(self.children_of(node)))
        while pending:
            current = pending.pop()
            descendants.append(current)
            pending.extend(reversed(self.children_of(current)))
        return descendants

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)
