"""CLI entry point for replaying recorded test events into XML reports."""

import argparse
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError

from xml_report_listener.config import ReportConfig
from xml_report_listener.events import EventLogError, parse_events, replay_events
from xml_report_listener.listener import create_listener


def load_config(
    output_dir: Path | None,
    redirect_entries: bool,
    environ: Mapping[str, str],
) -> ReportConfig:
    """Use the command line output directory if given, the environment otherwise."""
    if output_dir is None:
        return ReportConfig.from_environ(environ)
    return ReportConfig(
        output_directory=output_dir,
        redirect_entries_to_stdout=redirect_entries,
    )


def resolve_config(
    output_dir: Path | None,
    redirect_entries: bool,
    environ: Mapping[str, str],
) -> ReportConfig | None:
    """Load the config, logging and returning None when it is invalid."""
    try:
        return load_config(output_dir, redirect_entries, environ)
    except ValidationError as e:
        logging.getLogger("xml_report_listener").error(
            "Invalid report configuration: %s", e
        )
        return None


def run(events_path: Path, config: ReportConfig) -> int:
    """Replay the event log at ``events_path`` and return the exit code."""
    log = logging.getLogger("xml_report_listener")

    if not config.enabled:
        log.warning(
            "XML reporting is disabled, no reports will be written "
            "(pass --output-dir or set XML_REPORT_ENABLED)"
        )
    log.info("Replaying events from %s", events_path)
    try:
        with open(events_path, encoding="utf-8") as f:
            events = parse_events(f)
        has_failures = replay_events(events, create_listener(config))
    except (OSError, EventLogError) as e:
        log.error("Could not replay %s: %s", events_path, e)
        return 2

    log.info("Replayed %d event(s)", len(events))
    return 1 if has_failures else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Write JUnit XML reports from a recorded test event log"
    )
    parser.add_argument(
        "events",
        type=Path,
        help="JSON-lines file with one runner event per line",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the reports (default: XML_REPORT_* environment)",
    )
    parser.add_argument(
        "--redirect-entries",
        action="store_true",
        help="Also print published report entries to stdout",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    config = resolve_config(args.output_dir, args.redirect_entries, os.environ)
    if config is None:
        sys.exit(2)
    sys.exit(run(args.events, config))


if __name__ == "__main__":  # pragma: no cover
    main()
