"""Models for report entries published while a node executes."""

from collections.abc import Mapping
from datetime import datetime

from pydantic import Field

from xml_report_listener.models.base import Model


class ReportEntry(Model):
    """Timestamped key/value data attributed to a single test node."""

    timestamp: datetime = Field(
        default_factory=datetime.now, description="When the entry was published"
    )
    key_values: Mapping[str, str] = Field(
        default_factory=dict, description="Published data, in publish order"
    )

    @classmethod
    def from_value(cls, value: str) -> "ReportEntry":
        """Create an entry holding a single free-text value."""
        return cls(key_values={"value": value})
