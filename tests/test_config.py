"""Tests for block configuration parsing and validation."""

import json

import pytest

from schedule_builder import ConfigurationError, ScheduleBuilderConfig, SelectorConfig
from schedule_builder.config import CheckboxPosition, load_config

PAGE_SETTINGS = {
    "blockId": "schedule_builder_talks",
    "selectors": {
        "searchContext": "#program",
        "eventContainer": ".session",
        "title": "h3",
        "startTime": "[data-start-time]",
        "endTime": "[data-end-time]",
        "date": None,
        "location": ".room",
        "description": None,
        "link": "a.more",
    },
    "timezone": "Europe/Vienna",
    "localStorageKey": "talks",
    "icsFilename": "talks",
    "checkboxPosition": "end",
}

BLOCK_CONFIGURATION = {
    "search_context_selector": "",
    "event_container_selector": ".event-card",
    "event_title_selector": "h2",
    "event_start_time_selector": ".start",
    "event_end_time_selector": ".end",
    "event_date_selector": "",
    "event_location_selector": ".venue",
    "event_description_selector": "",
    "event_link_selector": "a[href]",
    "timezone": "America/New_York",
    "localStorage_key": "",
    "ics_filename": "schedule-selected-events",
    "checkbox_position": "beginning",
}


def test_from_page_settings():
    config = ScheduleBuilderConfig.from_settings(PAGE_SETTINGS)
    assert config.block_id == "schedule_builder_talks"
    assert config.selectors.event_container == ".session"
    assert config.selectors.search_context == "#program"
    assert config.selectors.date is None
    assert config.selectors.description is None
    assert config.timezone == "Europe/Vienna"
    assert config.local_storage_key == "talks"
    assert config.checkbox_position is CheckboxPosition.END
    assert config.ics_path_name == "talks.ics"


def test_from_block_configuration():
    config = ScheduleBuilderConfig.from_settings(BLOCK_CONFIGURATION)
    assert config.selectors.event_container == ".event-card"
    assert config.selectors.search_context is None
    assert config.selectors.location == ".venue"
    assert config.selectors.description is None
    assert config.checkbox_position is CheckboxPosition.BEGINNING


def test_default_selectors():
    selectors = SelectorConfig(event_container=".session")
    assert selectors.title == "h2, h3, .title, .summary"
    assert selectors.start_time == ".start-time, [data-start-time]"
    assert selectors.link == "a.session-link, a[href]"
    assert selectors.date is None


@pytest.mark.parametrize("name", ["event_container", "title", "start_time", "end_time"])
def test_required_selectors(name):
    values = {"event_container": ".session", name: "  "}
    with pytest.raises(ConfigurationError):
        SelectorConfig(**values)


@pytest.mark.parametrize("name", ["date", "location", "search_context", "link"])
def test_optional_selector_must_be_a_string(name):
    """A number or list from JSON is reported, not crashed on."""
    with pytest.raises(ConfigurationError, match=name):
        SelectorConfig(".session", **{name: 5})


@pytest.mark.parametrize(
    "field, value",
    [("timezone", 1), ("local_storage_key", ["a"]), ("ics_filename", 3)],
)
def test_non_string_settings_rejected(field, value):
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig(SelectorConfig(".session"), **{field: value})


def test_non_string_selector_in_settings():
    settings = {"selectors": {"eventContainer": ".session", "date": 5}}
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig.from_settings(settings)


def test_missing_container_in_settings():
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig.from_settings({"selectors": {"title": "h3"}})
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig.from_settings({"event_title_selector": "h3"})


@pytest.mark.parametrize("key", ["has space", "dash-key", "dot.key"])
def test_invalid_storage_key(key):
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig(SelectorConfig(".session"), local_storage_key=key)


@pytest.mark.parametrize("name", ["my file", "cal.ics", ""])
def test_invalid_filename(name):
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig(SelectorConfig(".session"), ics_filename=name)


def test_invalid_checkbox_position():
    with pytest.raises(ConfigurationError):
        ScheduleBuilderConfig(SelectorConfig(".session"), checkbox_position="middle")


def test_legacy_checkbox_positions_accepted():
    config = ScheduleBuilderConfig(SelectorConfig(".session"), checkbox_position="after-title")
    assert config.checkbox_position is CheckboxPosition.AFTER_TITLE


def test_block_id_from_storage_key():
    config = ScheduleBuilderConfig(SelectorConfig(".session"), local_storage_key="My_Talks")
    assert config.block_id == "schedule_builder_my_talks"


def test_block_id_hash_and_default_storage_key():
    config = ScheduleBuilderConfig(SelectorConfig(".session"))
    assert config.block_id.startswith("schedule_builder_")
    assert len(config.block_id) == len("schedule_builder_") + 8
    assert config.local_storage_key == f"schedule_builder_selections_{config.block_id}"
    assert ScheduleBuilderConfig(SelectorConfig(".session")).block_id == config.block_id


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(PAGE_SETTINGS), encoding="utf-8")
    assert load_config(path).selectors.link == "a.more"


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(bad)
