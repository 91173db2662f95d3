"""EventExtractor class module.

Provides the :class:`EventExtractor`, which walks the event containers of
a parsed listing page and turns them into :class:`~.models.Event` records,
and the :class:`ExtractionResult` it returns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .config import ScheduleBuilderConfig
from .datetimes import NormalizedTime, compute_duration, normalize
from .identity import make_event_id
from .models import Event, TimezoneKind

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Outcome of one scan of a page.

    :param events: Complete events, in document order.
    :param containers_scanned: Number of elements the container selector
        matched. Compare with ``len(events)`` to tell "selector matched
        nothing" apart from "required fields missing".
    :param warnings: Non-fatal problems met during the scan.
    """

    events: list[Event] = field(default_factory=list)
    containers_scanned: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class _ContainerFields:
    """Raw field values read from one container, before validation."""

    summary: str | None = None
    start: NormalizedTime = NormalizedTime(None, False)
    end: NormalizedTime = NormalizedTime(None, False)
    location: str | None = None
    description: str | None = None
    link: str | None = None

    @property
    def complete(self) -> bool:
        """Whether a title, start and end were all read."""
        return bool(self.summary and self.start.timestamp and self.end.timestamp)


def _kind(value: NormalizedTime) -> TimezoneKind:
    """Map a normalized time to the zone kind stored on the event."""
    return TimezoneKind.EXPLICIT_UTC if value.explicit_timezone else TimezoneKind.UNKNOWN


class EventExtractor:
    """Scrapes events out of a parsed page using configured selectors.

    Each element matching the container selector is one candidate event.
    Field selectors are applied relative to that container; a container
    only becomes an :class:`~.models.Event` if its title, start time and
    end time can all be read. Sparse markup is expected, so incomplete
    containers are skipped without complaint.

    :param config: The block configuration holding the selectors.

    Example usage::

        extractor = EventExtractor(config)
        result = extractor.extract(BeautifulSoup(html, "html.parser"))
        for event in result.events:
            print(event.id, event.summary)
    """

    def __init__(self, config: ScheduleBuilderConfig) -> None:
        self.config = config
        self.selectors = config.selectors

    def _search_root(self, root: Tag, warnings: list[str]) -> Tag:
        """Resolve the search context selector, falling back to *root*."""
        if not self.selectors.search_context:
            return root
        context = root.select_one(self.selectors.search_context)
        if context is None:
            message = (
                f"Search context not found with selector: "
                f"{self.selectors.search_context}, falling back to document"
            )
            logger.warning(message)
            warnings.append(message)
            return root
        return context

    def containers(self, root: Tag, warnings: list[str] | None = None) -> list[Tag]:
        """Return the event containers under *root* in document order.

        :param root: A parsed document or any tag within one.
        :param warnings: Optional list that receives non-fatal warnings.
        """
        scan_root = self._search_root(root, warnings if warnings is not None else [])
        return scan_root.select(self.selectors.event_container)

    # noinspection PyMethodMayBeStatic
    def _time_value(self, el: Tag, data_attr: str) -> str:
        """Read a time: ``datetime`` attribute, data attribute, then text."""
        return (
            el.get("datetime")
            or el.get(data_attr)
            or el.get_text().strip()
        )

    def _fallback_date(self, container: Tag) -> str | None:
        """Return the text of the container's date element, if configured.

        :param container: The event container.
        :returns: The date text or its ``data-date`` value, else ``None``.
        """
        if not self.selectors.date:
            return None
        date_el = container.select_one(self.selectors.date)
        if date_el is None:
            return None
        return date_el.get_text().strip() or date_el.get("data-date") or None

    def _read_time(
        self,
        container: Tag,
        selector: str,
        data_attr: str,
        warnings: list[str],
    ) -> NormalizedTime:
        """Read and normalize one time field of *container*.

        :param container: The event container.
        :param selector: CSS selector of the time element.
        :param data_attr: Data attribute tried when no ``datetime`` is set.
        :param warnings: Collects a message if the value cannot be parsed.
        :returns: The :class:`~.datetimes.NormalizedTime` of the field.
        """
        el = container.select_one(selector)
        if el is None:
            return NormalizedTime(None, False)
        raw = self._time_value(el, data_attr)
        value = normalize(raw, self._fallback_date(container))
        if raw and value.timestamp is None:
            warnings.append(f"Could not parse date/time: {raw!r}")
        return value

    def _read_fields(self, container: Tag, warnings: list[str]) -> _ContainerFields:
        """Apply every configured selector relative to *container*."""
        sel = self.selectors
        fields = _ContainerFields()

        title_el = container.select_one(sel.title)
        if title_el is not None:
            fields.summary = title_el.get_text(" ", True) or None  # type: ignore[call-overload]

        fields.start = self._read_time(container, sel.start_time, "data-start-time", warnings)
        fields.end = self._read_time(container, sel.end_time, "data-end-time", warnings)

        if sel.location:
            location_el = container.select_one(sel.location)
            if location_el is not None:
                fields.location = (
                    location_el.get("data-location") or location_el.get_text().strip() or None
                )

        if sel.description:
            desc_el = container.select_one(sel.description)
            if desc_el is not None:
                fields.description = desc_el.get_text().strip() or None

        if sel.link:
            link_el = container.select_one(sel.link)
            if link_el is not None and link_el.get("href"):
                href = link_el["href"]
                fields.link = urljoin(self.config.base_url, href) if self.config.base_url else href

        return fields

    def container_event_id(self, container: Tag, index: int) -> str | None:
        """Re-derive the id an event extracted from *container* would carry.

        Uses the same reading code as :meth:`extract`, so a UI layer can
        match page elements to events after any re-scan.

        :param container: One element matched by the container selector.
        :param index: Its position among all matched containers.
        :returns: The event id, or ``None`` if the container is incomplete.
        """
        fields = self._read_fields(container, [])
        if not fields.complete:
            return None
        return make_event_id(fields.start.timestamp, fields.summary, index)

    def extract(self, root: BeautifulSoup | Tag) -> ExtractionResult:
        """Scan *root* and return every complete event.

        A failure while reading one container is logged and recorded as a
        warning; the scan continues with the next container.

        :param root: A parsed document or any tag within one.
        :returns: An :class:`ExtractionResult`.
        """
        result = ExtractionResult()
        containers = self.containers(root, result.warnings)
        result.containers_scanned = len(containers)

        for index, container in enumerate(containers):
            try:
                fields = self._read_fields(container, result.warnings)
                if not fields.complete:
                    continue

                result.events.append(
                    Event(
                        id=make_event_id(fields.start.timestamp, fields.summary, index),
                        summary=fields.summary,
                        start_time=fields.start.timestamp,
                        end_time=fields.end.timestamp,
                        start_timezone_kind=_kind(fields.start),
                        end_timezone_kind=_kind(fields.end),
                        location=fields.location,
                        description=fields.description,
                        link=fields.link,
                        duration=compute_duration(
                            fields.start.timestamp, fields.end.timestamp
                        ),
                    )
                )
            except Exception as err:
                message = f"Error extracting event from container {index}: {err}"
                logger.warning(message)
                result.warnings.append(message)

        if not containers:
            logger.warning(
                "No events found with selector: %s", self.selectors.event_container
            )
        logger.debug(
            "Extracted %d events from %d containers",
            len(result.events),
            result.containers_scanned,
        )
        return result
