"""Command line entry point: ``schedule-builder SOURCE --config CONFIG``."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import requests

from .builder import ScheduleBuilder
from .config import ConfigurationError, load_config
from .selection import SelectionStore

logger = logging.getLogger(__name__)

DEFAULT_STORE = "schedule-builder-selections.json"


def _build_parser() -> argparse.ArgumentParser:
    """Return the argument parser of the ``schedule-builder`` command."""
    parser = argparse.ArgumentParser(
        prog="schedule-builder",
        description="Pick events from a listing page and export them as an ICS file.",
    )
    parser.add_argument("source", help="URL or local HTML file of the listing page")
    parser.add_argument("--config", "-c", required=True, help="Block configuration (JSON)")
    parser.add_argument(
        "--store", default=DEFAULT_STORE, help="JSON file holding saved selections"
    )
    parser.add_argument(
        "--select", "-s", action="append", default=[], metavar="ID",
        help="Select an event by id (repeatable)",
    )
    parser.add_argument("--all", action="store_true", help="Select every event found")
    parser.add_argument("--clear", action="store_true", help="Clear the saved selection first")
    parser.add_argument("--list", action="store_true", help="List events and exit")
    parser.add_argument("--output", "-o", default=".", help="Directory for the ICS file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the command line.

    :param argv: Arguments without the program name; defaults to ``sys.argv``.
    :returns: ``0`` on success, ``1`` if the page cannot be read or nothing
        is selected, ``2`` for an invalid configuration.
    """
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigurationError as err:
        logger.error("%s", err)
        return 2

    builder = ScheduleBuilder(config, SelectionStore(args.store))
    try:
        if args.source.startswith(("http://", "https://")):
            result = builder.fetch(args.source)
        else:
            result = builder.scan(Path(args.source).read_text(encoding="utf-8"))
    except (OSError, requests.RequestException) as err:
        logger.error("Could not read %s: %s", args.source, err)
        return 1

    logger.info(
        "Found %d events in %d containers", len(result.events), result.containers_scanned
    )

    if args.list:
        for event in builder.events:
            mark = "*" if builder.is_selected(event.id) else ""
            print(f"{event.id}\t{event.start_time}\t{event.end_time}\t{event.summary}\t{mark}")
        return 0

    if args.clear:
        builder.clear()
    if args.all:
        builder.select(event.id for event in builder.events)
    if args.select:
        known = {event.id for event in builder.events}
        for event_id in args.select:
            if event_id not in known:
                logger.warning("No event with id %s on this page", event_id)
        builder.select(args.select)

    path = builder.write_ics(args.output)
    if path is None:
        logger.error("No events selected")
        return 1
    logger.info("Wrote %d events to %s", len(builder.selected_events()), path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
