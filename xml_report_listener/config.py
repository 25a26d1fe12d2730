"""Configuration for XML report generation."""

from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel

ENV_PREFIX = "XML_REPORT_"


class ReportConfig(BaseModel):
    """Configuration for the XML report listener."""

    output_directory: Path
    enabled: bool = True
    # Echo report entries to the output stream for consumers that drop them
    redirect_entries_to_stdout: bool = False

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "ReportConfig":
        """Build a config from ``XML_REPORT_*`` variables.

        Reporting is disabled unless ``XML_REPORT_ENABLED`` is set.
        """
        return cls.model_validate(
            {
                "enabled": environ.get(f"{ENV_PREFIX}ENABLED", "false"),
                "output_directory": environ.get(f"{ENV_PREFIX}OUTPUT_DIRECTORY", "."),
                "redirect_entries_to_stdout": environ.get(
                    f"{ENV_PREFIX}REDIRECT_ENTRIES_TO_STDOUT", "false"
                ),
            }
        )
