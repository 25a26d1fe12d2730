"""Thread-safe store of execution facts for one test plan."""

import threading
import time
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from xml_report_listener.models.entry import ReportEntry
from xml_report_listener.models.outcome import ExecutionOutcome
from xml_report_listener.models.plan import TestNode

EPOCH = 0.0
INHERITED_SKIP_PREFIX = "parent was skipped: "

Clock = Callable[[], float]
CauseFormatter = Callable[[BaseException], str]


class NodeTree(Protocol):
    """Navigation over the identity tree of a plan."""

    def parent_of(self, node: TestNode) -> TestNode | None: ...

    def descendants_of(self, node: TestNode) -> Sequence[TestNode]: ...


def format_stack_trace(cause: BaseException) -> str:
    """Render an exception with its full traceback."""
    return "".join(traceback.format_exception(cause)).rstrip()


@dataclass(frozen=True, kw_only=True)
class ResultStore:
    """Records what happened to each node of a plan while it executes.

    Each kind of fact lives in its own map guarded by its own lock, so worker
    threads updating different facts never wait on each other. Skips are not
    propagated when recorded; ancestors are consulted when a node is queried,
    which lets a skip apply to descendants that were recorded earlier.
    """

    plan: NodeTree
    clock: Clock = time.monotonic
    format_cause: CauseFormatter = format_stack_trace

    _finished: dict[TestNode, ExecutionOutcome] = field(
        default_factory=dict, init=False, repr=False
    )
    _skipped: dict[TestNode, str] = field(default_factory=dict, init=False, repr=False)
    _started_at: dict[TestNode, float] = field(
        default_factory=dict, init=False, repr=False
    )
    _ended_at: dict[TestNode, float] = field(
        default_factory=dict, init=False, repr=False
    )
    _entries: dict[TestNode, list[ReportEntry]] = field(
        default_factory=dict, init=False, repr=False
    )
    _finished_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _skipped_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _timing_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _entries_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def mark_skipped(self, node: TestNode, reason: str | None) -> None:
        with self._skipped_lock:
            self._skipped[node] = reason or ""

    def mark_started(self, node: TestNode) -> None:
        now = self.clock()
        with self._timing_lock:
            self._started_at[node] = now

    def mark_finished(self, node: TestNode, outcome: ExecutionOutcome) -> None:
        """Record the end of ``node``.

        An aborted node is stored as skipped, with its formatted cause as the
        reason, and gets no finished outcome.
        """
        now = self.clock()
        with self._timing_lock:
            self._ended_at[node] = now
        if outcome.status == "aborted":
            cause = outcome.cause
            reason = self.format_cause(cause) if cause is not None else ""
            self.mark_skipped(node, reason)
        else:
            with self._finished_lock:
                self._finished[node] = outcome

    def add_report_entry(self, node: TestNode, entry: ReportEntry) -> None:
        with self._entries_lock:
            self._entries.setdefault(node, []).append(entry)

    def parent_of(self, node: TestNode) -> TestNode | None:
        return self.plan.parent_of(node)

    def was_skipped(self, node: TestNode) -> bool:
        return self._find_skipped_ancestor(node) is not None

    def skip_reason(self, node: TestNode) -> str | None:
        """Return why ``node`` was skipped, or None if it was not.

        A reason inherited from an ancestor is prefixed with
        ``parent was skipped:``.
        """
        skipped = self._find_skipped_ancestor(node)
        if skipped is None:
            return None
        with self._skipped_lock:
            reason = self._skipped[skipped]
        if skipped != node:
            return INHERITED_SKIP_PREFIX + reason
        return reason

    def duration_seconds(self, node: TestNode) -> float:
        with self._timing_lock:
            start = self._started_at.get(node, EPOCH)
            end = self._ended_at.get(node, start)
        return max(0.0, end - start)

    def results(self, node: TestNode) -> Sequence[ExecutionOutcome]:
        """Return the finished outcomes of ``node`` and its ancestors, node first."""
        ancestors = self._ancestors(node)
        with self._finished_lock:
            return [self._finished[a] for a in ancestors if a in self._finished]

    def report_entries(self, node: TestNode) -> Sequence[ReportEntry]:
        with self._entries_lock:
            return tuple(self._entries.get(node, ()))

    def _find_skipped_ancestor(self, node: TestNode) -> TestNode | None:
        current: TestNode | None = node
        while current is not None:
            with self._skipped_lock:
                if current in self._skipped:
                    return current
            current = self.parent_of(current)
        return None

    def _ancestors(self, node: TestNode) -> Sequence[TestNode]:
        ancestors: list[TestNode] = []
        current: TestNode | None = node
        while current is not None:
            ancestors.append(current)
            current = self.parent_of(current)
        return ancestors
