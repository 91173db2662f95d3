"""Tests for ScheduleBuilder: scan, select and export."""

from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from dateutil import tz
from icalendar import Calendar

from schedule_builder import ScheduleBuilder, ScheduleBuilderConfig, SelectionStore, SelectorConfig

FIXTURES = Path(__file__).parent / "fixtures"
SCHEDULE_HTML = (FIXTURES / "schedule.html").read_text(encoding="utf-8")
NOW = datetime(2025, 10, 1, 12, 0, 0, tzinfo=tz.UTC)

CONFIG = ScheduleBuilderConfig(
    selectors=SelectorConfig(
        event_container=".session",
        search_context="#program",
        date=".date",
    ),
    timezone="America/New_York",
    local_storage_key="program_talks",
    ics_filename="my-program",
)


@pytest.fixture()
def store(tmp_path):
    return SelectionStore(tmp_path / "selections.json")


@pytest.fixture()
def builder(store):
    b = ScheduleBuilder(CONFIG, store)
    b.scan(SCHEDULE_HTML)
    return b


def test_scan_keeps_events(builder):
    assert len(builder.events) == 4
    assert builder.last_result.containers_scanned == 6


def test_toggle_persists(builder, store):
    event_id = builder.events[0].id
    assert builder.toggle(event_id) is True
    assert store.load("program_talks") == {event_id}
    assert builder.toggle(event_id) is False
    assert store.load("program_talks") == set()


def test_selection_survives_rescan(builder, store):
    """A new instance over unchanged markup picks up the saved selection."""
    builder.select([builder.events[1].id, builder.events[3].id])

    again = ScheduleBuilder(CONFIG, store)
    again.scan(SCHEDULE_HTML)
    assert [e.summary for e in again.selected_events()] == [
        "Cloud Ops",
        "Workshop: Python, ICS & You",
    ]


def test_selection_loaded_on_construction(store):
    """The saved selection is read once, when the block is created."""
    store.save("program_talks", ["2025-10-14-09:30:00-opening-keynote-0"])
    b = ScheduleBuilder(CONFIG, store)
    assert b.is_selected("2025-10-14-09:30:00-opening-keynote-0")

    with patch.object(store, "load") as load:
        b.scan(SCHEDULE_HTML)
    load.assert_not_called()
    assert [e.summary for e in b.selected_events()] == ["Opening Keynote"]


def test_selected_events_in_page_order(builder):
    builder.toggle(builder.events[2].id)
    builder.toggle(builder.events[0].id)
    assert [e.summary for e in builder.selected_events()] == ["Opening Keynote", "Lunch"]


def test_blocks_do_not_share_selection(store):
    other_config = ScheduleBuilderConfig(
        selectors=CONFIG.selectors, local_storage_key="other_block"
    )
    first = ScheduleBuilder(CONFIG, store)
    first.scan(SCHEDULE_HTML)
    first.select(e.id for e in first.events)

    second = ScheduleBuilder(other_config, store)
    second.scan(SCHEDULE_HTML)
    assert second.selected_events() == []


def test_clear(builder, store):
    builder.select(e.id for e in builder.events)
    builder.clear()
    assert builder.selected_events() == []
    assert store.load("program_talks") == set()


def test_get_ics_empty_without_selection(builder):
    assert builder.get_ics(now=NOW) == ""


def test_get_ics_round_trip(builder):
    """Explicit UTC events stay UTC; local ones carry the block's TZID."""
    builder.select([builder.events[0].id, builder.events[1].id])
    ics = builder.get_ics(now=NOW)
    lines = ics.split("\r\n")

    assert "DTSTART;TZID=America/New_York:20251014T093000" in lines
    assert "DTSTART:20251014T120000Z" in lines
    assert "DTEND:20251014T131500Z" in lines
    assert "LOCATION:Main Hall\\, Level 1" in lines
    assert "TZOFFSETTO:-0500" in lines

    cal = Calendar.from_ical(ics)
    assert [str(e["SUMMARY"]) for e in cal.walk("VEVENT")] == ["Opening Keynote", "Cloud Ops"]


def test_write_ics(builder, tmp_path):
    builder.select([builder.events[0].id])
    path = builder.write_ics(tmp_path)
    assert path == tmp_path / "my-program.ics"
    data = path.read_bytes()
    assert data.startswith(b"BEGIN:VCALENDAR\r\n")
    assert b"\r\nEND:VCALENDAR\r\n" in data


def test_write_ics_nothing_selected(builder, tmp_path):
    assert builder.write_ics(tmp_path) is None
    assert not (tmp_path / "my-program.ics").exists()


def test_fetch_resolves_links_against_page_url(store):
    builder = ScheduleBuilder(CONFIG, store)
    with patch.object(builder, "_fetch_html", return_value=SCHEDULE_HTML) as fetch:
        result = builder.fetch("https://example.org/program/")

    fetch.assert_called_once_with("https://example.org/program/")
    assert len(result.events) == 4
    assert builder.events[0].link == "https://example.org/talks/keynote"


def test_without_store_selection_is_in_memory():
    builder = ScheduleBuilder(CONFIG)
    builder.scan(SCHEDULE_HTML)
    builder.toggle(builder.events[0].id)
    assert builder.is_selected(builder.events[0].id)
