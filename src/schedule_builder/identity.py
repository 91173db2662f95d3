"""Derived event identifiers."""

from __future__ import annotations

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_DASH_RUN_RE = re.compile(r"-+")


def make_event_id(start_time: str | None, summary: str | None, index: int) -> str:
    """Build a stable identifier for an event.

    The id joins the start date, the start time, a slug of the summary and
    the container's position in the scan, e.g.
    ``"2025-10-14-09:30:00-opening-keynote-3"``. The same inputs always
    give the same id, so selections survive a re-scan of unchanged markup.

    :param start_time: Canonical start timestamp.
    :param summary: Event title.
    :param index: Position of the event's container in document order.
    :returns: The identifier; empty parts are dropped and runs of ``-``
        collapsed.
    """
    date_part, _, time_part = (start_time or "").partition("T")
    slug = _NON_ALNUM_RE.sub("-", summary.lower()) if summary else ""
    parts = [p for p in (date_part, time_part, slug, str(index)) if p]
    return _DASH_RUN_RE.sub("-", "-".join(parts)).strip("-")
