"""ScheduleBuilder class module.

Provides :class:`ScheduleBuilder`, one configured schedule builder block:
it scans a page for events, tracks which of them the visitor selected,
and exports the selection as an ICS file.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import requests
from bs4 import BeautifulSoup, Tag

from .config import ScheduleBuilderConfig
from .extractor import EventExtractor, ExtractionResult
from .ics import encode
from .models import Event
from .selection import SelectionStore, filter_selected

logger = logging.getLogger(__name__)


class ScheduleBuilder:
    """One schedule builder block: extractor, selection and encoder.

    Each instance owns its events and selection; nothing is shared between
    blocks. Re-scanning unchanged markup yields the same event ids, so a
    selection loaded from the store still applies after a re-scan.

    :param config: The block configuration.
    :param store: Where the selection is persisted. Without a store the
        selection only lives as long as the instance.

    Example usage::

        builder = ScheduleBuilder(config, SelectionStore("selections.json"))
        builder.fetch("https://example.org/program/")
        builder.toggle(builder.events[0].id)
        builder.write_ics("downloads")
    """

    def __init__(
        self,
        config: ScheduleBuilderConfig,
        store: SelectionStore | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.extractor = EventExtractor(config)
        self.events: list[Event] = []
        self.last_result: ExtractionResult | None = None
        self.selected_ids: set[str] = self._load_selection()

    def _load_selection(self) -> set[str]:
        """Return the persisted selection for this block, empty without a store."""
        if self.store is None:
            return set()
        return self.store.load(self.config.local_storage_key)

    def _save_selection(self) -> None:
        """Persist the current selection, if a store is attached."""
        if self.store is not None:
            self.store.save(self.config.local_storage_key, self.selected_ids)

    # noinspection PyMethodMayBeStatic
    def _fetch_html(self, url: str) -> str:
        """Fetch and return the HTML content of a URL.

        :param url: The URL to fetch.
        :returns: The response body as a string.
        :raises requests.HTTPError: If the server returns an error status.
        """
        resp = requests.get(url, timeout=30)
        resp.raise_for_status()
        return resp.text

    def scan(self, page: str | BeautifulSoup | Tag) -> ExtractionResult:
        """Extract events from *page* and keep them on the instance.

        :param page: Raw HTML or an already parsed document.
        :returns: The :class:`~.extractor.ExtractionResult` of the scan.
        """
        root = BeautifulSoup(page, "html.parser") if isinstance(page, str) else page
        result = self.extractor.extract(root)
        self.events = result.events
        self.last_result = result
        if result.containers_scanned and not result.events:
            logger.warning(
                "Selector %s matched %d containers but none had a title, "
                "start time and end time",
                self.config.selectors.event_container,
                result.containers_scanned,
            )
        return result

    def fetch(self, url: str) -> ExtractionResult:
        """Download the page at *url* and scan it.

        Relative event links are resolved against *url* unless the
        configuration sets its own ``base_url``.

        :raises requests.HTTPError: If the server returns an error status.
        """
        html = self._fetch_html(url)
        if not self.config.base_url:
            self.extractor = EventExtractor(replace(self.config, base_url=url))
        return self.scan(html)

    def is_selected(self, event_id: str) -> bool:
        """Return ``True`` if *event_id* is in the current selection."""
        return event_id in self.selected_ids

    def toggle(self, event_id: str) -> bool:
        """Flip the selection state of *event_id* and persist it.

        :returns: ``True`` if the event is now selected.
        """
        if event_id in self.selected_ids:
            self.selected_ids.discard(event_id)
        else:
            self.selected_ids.add(event_id)
        self._save_selection()
        return event_id in self.selected_ids

    def select(self, event_ids: Iterable[str]) -> None:
        """Add *event_ids* to the selection and persist it."""
        self.selected_ids.update(event_ids)
        self._save_selection()

    def clear(self) -> None:
        """Empty the selection and persist it."""
        self.selected_ids.clear()
        self._save_selection()

    def selected_events(self) -> list[Event]:
        """Return the selected events in page order."""
        return filter_selected(self.events, self.selected_ids)

    def get_ics(self, now: datetime | None = None) -> str:
        """Return the selected events as an ICS string.

        :param now: Instant to use for ``DTSTAMP``; defaults to now.
        :returns: The calendar in iCalendar (RFC 5545) format, or ``""``
            if nothing is selected.
        """
        selected = self.selected_events()
        if not selected:
            return ""
        return encode(
            selected,
            self.config.timezone,
            now=now,
            calendar_name=self.config.calendar_name,
        )

    def write_ics(self, directory: str | Path = ".") -> Path | None:
        """Write the selected events to ``<ics_filename>.ics``.

        :param directory: Destination directory. It must exist.
        :returns: The written path, or ``None`` if nothing was selected.
        """
        content = self.get_ics()
        if not content:
            logger.info("No selected events; nothing written")
            return None
        path = Path(directory) / self.config.ics_path_name
        # newline="" keeps the CRLF line endings intact
        path.write_text(content, encoding="utf-8", newline="")
        return path

