"""ICS (RFC 5545) encoding of selected events.

The document is assembled line by line instead of through
:class:`icalendar.Calendar`, because its layout is fixed: property order,
``TZID`` parameters, and folding after exactly 75 characters with
74-character continuations. ``icalendar`` value types still render the
``DTSTAMP`` and UTC-offset values, and the output parses back with
:meth:`icalendar.Calendar.from_ical`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import datetime, timedelta

from dateutil import tz
from icalendar.prop import vDatetime, vUTCOffset

from .models import Event, TimezoneKind

logger = logging.getLogger(__name__)

CRLF = "\r\n"
PRODID = "-//Schedule Builder//EN"
UID_DOMAIN = "schedule-builder"
DEFAULT_CALENDAR_NAME = "Selected Events"
FOLD_LIMIT = 75

UTC_ZONE_NAMES = frozenset({"UTC", "ETC/UTC", "ETC/GMT", "GMT", "Z"})

_SEPARATORS_RE = re.compile(r"[-:]")
_FRACTION_RE = re.compile(r"\.\d+")
_ICS_DATETIME_RE = re.compile(r"^\d{8}T\d{6}Z?$")

_EU_CENTRAL = {
    "daylight": ("19700329T020000", "+0100", "+0200", "FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU"),
    "standard": ("19701025T030000", "+0200", "+0100", "FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU"),
}


def _us_zone(standard: str, daylight: str) -> dict[str, tuple[str, str, str, str]]:
    """Rules for a US zone since 2007: second Sunday of March to first of November."""
    return {
        "daylight": ("20070311T020000", standard, daylight, "FREQ=YEARLY;BYMONTH=3;BYDAY=2SU"),
        "standard": ("20071104T020000", daylight, standard, "FREQ=YEARLY;BYMONTH=11;BYDAY=1SU"),
    }


# zone -> {"daylight"|"standard": (DTSTART, TZOFFSETFROM, TZOFFSETTO, RRULE)}
TIMEZONE_DEFINITIONS: dict[str, dict[str, tuple[str, str, str, str]]] = {
    "Europe/Vienna": _EU_CENTRAL,
    "Europe/Berlin": _EU_CENTRAL,
    "Europe/Paris": _EU_CENTRAL,
    "Europe/London": {
        "daylight": ("19960331T010000", "+0000", "+0100", "FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU"),
        "standard": ("19961027T020000", "+0100", "+0000", "FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU"),
    },
    "America/New_York": _us_zone("-0500", "-0400"),
    "America/Chicago": _us_zone("-0600", "-0500"),
    "America/Denver": _us_zone("-0700", "-0600"),
    "America/Los_Angeles": _us_zone("-0800", "-0700"),
    "UTC": {
        "standard": ("19700101T000000", "+0000", "+0000", ""),
    },
}


def _to_text(value: str | bytes) -> str:
    """Return an icalendar value rendering as text.

    :param value: Output of a ``to_ical()`` call, bytes or str by version.
    """
    return value.decode("utf-8") if isinstance(value, bytes) else value


def is_utc(timezone: str) -> bool:
    """Return ``True`` if *timezone* names UTC, ignoring case."""
    return timezone.strip().upper() in UTC_ZONE_NAMES


def escape_text(value: str | None) -> str:
    r"""Escape a TEXT value per RFC 5545 section 3.3.11.

    Backslashes are escaped first so later escapes are not doubled.

    >>> escape_text("A,B;C\nD\\E")
    'A\\,B\\;C\\nD\\\\E'
    """
    if not value:
        return ""
    return (
        str(value)
        .replace("\\", "\\\\")
        .replace("\r\n", "\\n")
        .replace("\r", "\\n")
        .replace("\n", "\\n")
        .replace(",", "\\,")
        .replace(";", "\\;")
    )


def fold_line(line: str) -> str:
    """Fold a content line longer than 75 characters.

    The first physical line keeps 75 characters; each continuation holds
    up to 74 more, prefixed with a single space.
    """
    if len(line) <= FOLD_LIMIT:
        return line
    pieces = [line[:FOLD_LIMIT]]
    for pos in range(FOLD_LIMIT, len(line), FOLD_LIMIT - 1):
        pieces.append(" " + line[pos:pos + FOLD_LIMIT - 1])
    return CRLF.join(pieces)


def format_ics_datetime(timestamp: str | None, utc: bool) -> str:
    """Turn a canonical timestamp into an ICS DATE-TIME token.

    ``"2025-10-14T09:30:00Z"`` becomes ``"20251014T093000Z"``. UTC tokens
    always end in ``Z``; local tokens never do.

    :returns: The token, or ``""`` if *timestamp* is empty.
    """
    if not timestamp:
        return ""
    token = _FRACTION_RE.sub("", _SEPARATORS_RE.sub("", timestamp)).rstrip("Z")
    return token + "Z" if utc else token


def _date_property(name: str, token: str, utc: bool, timezone: str) -> str:
    """Render a DTSTART or DTEND line, bare for UTC, else with ``TZID``.

    :param name: Property name.
    :param token: ICS DATE-TIME token from :func:`format_ics_datetime`.
    :param utc: Whether the token is UTC.
    :param timezone: Zone name for the ``TZID`` parameter.
    """
    if utc:
        return f"{name}:{token}"
    return f"{name};TZID={timezone}:{token}"


def _current_offset(timezone: str) -> str:
    """Return *timezone*'s current UTC offset as ``+HHMM``."""
    zone = tz.gettz(timezone)
    if zone is None:
        raise ValueError(f"unknown timezone {timezone!r}")
    offset = datetime.now(zone).utcoffset() or timedelta(0)
    return _to_text(vUTCOffset(offset).to_ical())


def build_vtimezone(timezone: str) -> list[str]:
    """Return the content lines of a ``VTIMEZONE`` block for *timezone*.

    Zones in :data:`TIMEZONE_DEFINITIONS` get their daylight-saving rules.
    Other zones get a single ``STANDARD`` rule using their current offset,
    or ``+0000`` if the zone cannot be resolved.
    """
    lines = ["BEGIN:VTIMEZONE", f"TZID:{timezone}"]
    definition = TIMEZONE_DEFINITIONS.get("UTC" if is_utc(timezone) else timezone)

    if definition is None:
        try:
            offset = _current_offset(timezone)
        except (ValueError, OverflowError) as err:
            logger.warning("Could not compute UTC offset for %s: %s", timezone, err)
            offset = "+0000"
        definition = {"standard": ("19700101T000000", offset, offset, "")}

    for kind in ("daylight", "standard"):
        if kind not in definition:
            continue
        dtstart, offset_from, offset_to, rrule = definition[kind]
        lines.append(f"BEGIN:{kind.upper()}")
        lines.append(f"DTSTART:{dtstart}")
        if rrule:
            lines.append(f"RRULE:{rrule}")
        lines.append(f"TZOFFSETFROM:{offset_from}")
        lines.append(f"TZOFFSETTO:{offset_to}")
        lines.append(f"END:{kind.upper()}")

    lines.append("END:VTIMEZONE")
    return lines


def _vevent_lines(event: Event, timezone: str, dtstamp: str) -> list[str] | None:
    """Return the folded lines of one ``VEVENT``, or ``None`` to skip it."""
    start_utc = event.start_timezone_kind == TimezoneKind.EXPLICIT_UTC or is_utc(timezone)
    end_utc = event.end_timezone_kind == TimezoneKind.EXPLICIT_UTC or is_utc(timezone)
    start = format_ics_datetime(event.start_time, start_utc)
    end = format_ics_datetime(event.end_time, end_utc)
    if not (_ICS_DATETIME_RE.match(start) and _ICS_DATETIME_RE.match(end)):
        logger.warning(
            "Skipping event with invalid date format: %s %s", event.id, event.summary
        )
        return None

    description = event.description or ""
    if event.link:
        description = f"{event.link}\n\n{description}"

    content = [
        f"UID:{event.id}@{UID_DOMAIN}",
        f"DTSTAMP:{dtstamp}",
        _date_property("DTSTART", start, start_utc, timezone),
        _date_property("DTEND", end, end_utc, timezone),
        f"SUMMARY:{escape_text(event.summary)}",
        f"LOCATION:{escape_text(event.location)}",
        f"DESCRIPTION:{escape_text(description)}",
    ]
    return ["BEGIN:VEVENT", *(fold_line(line) for line in content), "END:VEVENT"]


def encode(
    events: Iterable[Event],
    timezone: str = "UTC",
    *,
    now: datetime | None = None,
    calendar_name: str = DEFAULT_CALENDAR_NAME,
) -> str:
    """Encode *events* as an iCalendar document.

    Times whose source named a timezone are written in UTC; all others are
    written as local times in *timezone*, which also names the document's
    single ``VTIMEZONE``.

    :param events: Selected events, in the order they should appear.
    :param timezone: IANA zone name, or ``"UTC"``.
    :param now: Instant used for every ``DTSTAMP``; defaults to now.
    :param calendar_name: Value of ``X-WR-CALNAME``.
    :returns: The document with CRLF line endings, or ``""`` if no event
        has a summary, start and end.
    """
    timezone = (timezone or "UTC").strip()
    valid = []
    for event in events:
        if event.has_required_fields():
            valid.append(event)
        else:
            logger.warning("Skipping event missing required fields: %s", event.id)
    if not valid:
        logger.warning(
            "No valid events with required fields (title, startTime, endTime) "
            "to generate ICS."
        )
        return ""

    stamp = (now or datetime.now(tz.UTC)).astimezone(tz.UTC)
    dtstamp = _to_text(vDatetime(stamp.replace(microsecond=0)).to_ical())

    vevents: list[str] = []
    for event in valid:
        lines = _vevent_lines(event, timezone, dtstamp)
        if lines is not None:
            vevents.extend(lines)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        fold_line(f"X-WR-CALNAME:{escape_text(calendar_name)}"),
        f"X-WR-TIMEZONE:{timezone}",
        *build_vtimezone(timezone),
        *vevents,
        "END:VCALENDAR",
    ]
    return CRLF.join(lines) + CRLF
