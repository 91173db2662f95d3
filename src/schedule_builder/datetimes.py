"""Date/time normalization for scraped event times.

Listing pages mark up times in every shape imaginable: ISO-8601 in a
``datetime`` attribute, ``"Oct 14, 2025 9:30 AM"`` in plain text, or a
bare ``"9:30 AM"`` next to a separate date heading. :func:`normalize`
turns all of them into one canonical form, ``"YYYY-MM-DDTHH:MM:SS"``,
with a trailing ``Z`` only when the source named its timezone.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import NamedTuple

from dateutil import parser, tz

logger = logging.getLogger(__name__)

_EXPLICIT_ZONE_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})$"
)


class NormalizedTime(NamedTuple):
    """Result of :func:`normalize`.

    :param timestamp: Canonical timestamp, or ``None`` if unparseable.
    :param explicit_timezone: ``True`` if the source carried a zone and
        *timestamp* has been converted to UTC.
    """

    timestamp: str | None
    explicit_timezone: bool


def format_timestamp(dt: datetime) -> str:
    """Render *dt*'s wall-clock fields as ``YYYY-MM-DDTHH:MM:SS``."""
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
        f"T{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}"
    )


def _parse_literal(text: str, fuzzy: bool = False) -> datetime:
    """Parse *text* as a date/time that names at least a month and day.

    The text is parsed against two different default dates; if the results
    disagree on the date, the text only held a time and is rejected.

    :raises ValueError: If *text* is unparseable or has no calendar date.
    """
    year = date.today().year
    first = parser.parse(text, default=datetime(year, 1, 1), fuzzy=fuzzy)
    second = parser.parse(text, default=datetime(year, 2, 2), fuzzy=fuzzy)
    if first.date() != second.date():
        raise ValueError(f"no calendar date in {text!r}")
    return first


def normalize(raw_value: str | None, fallback_date_text: str | None = None) -> NormalizedTime:
    """Convert a scraped date/time string to the canonical timestamp form.

    Attempts, in order:

    * Strict ISO-8601 with ``Z`` or a numeric offset: converted to UTC and
      returned with a ``Z`` suffix.
    * A general date/time literal, e.g. ``"Oct 14, 2025 9:30 AM"``.
    * ``"<fallback_date_text> <raw_value>"``, for a time whose date lives in
      a separate element.
    * The original value once more, in fuzzy mode, so surrounding words
      such as ``"Starts"`` are ignored.

    Values without a zone keep their wall-clock fields unchanged. A zone
    found by the general parse, as in ``"2025-10-14T09:30+02:00"`` or
    ``"9:30 AM UTC"``, is converted to the host's local wall clock and is
    not reported as explicit.

    :param raw_value: The text or attribute value holding the time.
    :param fallback_date_text: Text of a separate date element, if any.
    :returns: A :class:`NormalizedTime`; ``timestamp`` is ``None`` when
        nothing could be parsed.
    """
    value = (raw_value or "").strip()
    if not value:
        return NormalizedTime(None, False)

    if _EXPLICIT_ZONE_RE.match(value):
        try:
            aware = parser.isoparse(value)
        except ValueError:
            logger.debug("Zoned value %r is not valid ISO-8601", value)
        else:
            return NormalizedTime(format_timestamp(aware.astimezone(tz.UTC)) + "Z", True)

    attempts = [(value, False)]
    if fallback_date_text and fallback_date_text.strip():
        attempts.append((f"{fallback_date_text.strip()} {value}", False))
    attempts.append((value, True))

    for text, fuzzy in attempts:
        try:
            parsed = _parse_literal(text, fuzzy=fuzzy)
        except (ValueError, OverflowError):
            continue
        if parsed.tzinfo is not None:
            # zone outside the strict ISO form: shift to local wall clock
            parsed = parsed.astimezone(tz.tzlocal()).replace(tzinfo=None)
        return NormalizedTime(format_timestamp(parsed), False)

    logger.warning("Could not parse date/time: %r", value)
    return NormalizedTime(None, False)


def _wall_clock(timestamp: str) -> datetime:
    """Parse a canonical timestamp as naive wall-clock time, ignoring ``Z``."""
    return datetime.strptime(timestamp.rstrip("Z")[:19], "%Y-%m-%dT%H:%M:%S")


def compute_duration(start_time: str, end_time: str) -> str:
    """Return the ISO-8601 duration between two canonical timestamps.

    Hours and remaining minutes are floored; empty segments are omitted,
    so a zero or negative difference renders as bare ``"PT"``.

    >>> compute_duration("2025-10-14T09:30:00", "2025-10-14T11:00:00")
    'PT1H30M'
    """
    seconds = int((_wall_clock(end_time) - _wall_clock(start_time)).total_seconds())
    hours, remainder = divmod(max(seconds, 0), 3600)
    minutes = remainder // 60
    return "PT" + (f"{hours}H" if hours else "") + (f"{minutes}M" if minutes else "")
