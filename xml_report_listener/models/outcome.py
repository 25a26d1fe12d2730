"""Models for the terminal outcome of a test node."""

from dataclasses import dataclass
from typing import Literal

Status = Literal["successful", "failed", "aborted"]


@dataclass(frozen=True, kw_only=True)
class ExecutionOutcome:
    """Result reported by the runner when a node finishes.

    The cause is whatever exception ended the node, if any.
    """

    status: Status
    cause: BaseException | None = None

    @classmethod
    def successful(cls) -> "ExecutionOutcome":
        return cls(status="successful")

    @classmethod
    def failed(cls, cause: BaseException | None = None) -> "ExecutionOutcome":
        return cls(status="failed", cause=cause)

    @classmethod
    def aborted(cls, cause: BaseException | None = None) -> "ExecutionOutcome":
        return cls(status="aborted", cause=cause)
