"""Data classes shared by the extractor and the ICS encoder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TimezoneKind(str, Enum):
    """Where a timestamp's timezone came from."""

    EXPLICIT_UTC = "explicit-utc"
    """The source carried a zone or offset; the value is UTC wall-clock."""

    UNKNOWN = "unknown"
    """No zone in the source; the value is local wall-clock time."""


@dataclass(frozen=True)
class Event:
    """A single event scraped from a listing page.

    :param id: Derived identifier, stable across scans of unchanged markup.
    :param summary: The event title.
    :param start_time: Start as ``"YYYY-MM-DDTHH:MM:SS"``, with a trailing
        ``Z`` when the source carried timezone information.
    :param end_time: End, in the same format as *start_time*.
    :param start_timezone_kind: Provenance of the start timezone.
    :param end_timezone_kind: Provenance of the end timezone.
    :param location: Venue text, or ``None``.
    :param description: Description text, or ``None``.
    :param link: URL of the event detail page, or ``None``.
    :param duration: ISO-8601 duration such as ``"PT1H30M"``.
    """

    id: str
    summary: str
    start_time: str
    end_time: str
    start_timezone_kind: TimezoneKind = TimezoneKind.UNKNOWN
    end_timezone_kind: TimezoneKind = TimezoneKind.UNKNOWN
    location: str | None = None
    description: str | None = None
    link: str | None = None
    duration: str = "PT"

    def has_required_fields(self) -> bool:
        """Return ``True`` if summary, start and end are all present."""
        return bool(self.summary and self.start_time and self.end_time)
