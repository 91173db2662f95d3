"""Block configuration: which selectors to scrape and how to export.

Configuration reaches this package in one of two shapes. One is the
nested camelCase settings handed to the page script:

.. code-block:: json

    {"blockId": "schedule_builder_talks",
     "selectors": {"eventContainer": ".session", "title": "h3", ...},
     "timezone": "Europe/Vienna", "localStorageKey": "talks", ...}

The other is the flat block configuration saved by the admin form
(``event_container_selector``, ``localStorage_key``, ...).
:meth:`ScheduleBuilderConfig.from_settings` accepts both.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any

PLUGIN_ID = "schedule_builder"

DEFAULT_TITLE_SELECTOR = "h2, h3, .title, .summary"
DEFAULT_START_TIME_SELECTOR = ".start-time, [data-start-time]"
DEFAULT_END_TIME_SELECTOR = ".end-time, [data-end-time]"
DEFAULT_LOCATION_SELECTOR = ".location, .venue, [data-location]"
DEFAULT_DESCRIPTION_SELECTOR = ".description, .speaker"
DEFAULT_LINK_SELECTOR = "a.session-link, a[href]"
DEFAULT_ICS_FILENAME = "schedule-selected-events"

_STORAGE_KEY_RE = re.compile(r"^[a-zA-Z0-9_]+$")
_FILENAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_UNSAFE_ID_CHARS_RE = re.compile(r"[^a-z0-9_]")

# camelCase selector keys of the page settings -> SelectorConfig fields
_SELECTOR_KEYS = {
    "searchContext": "search_context",
    "eventContainer": "event_container",
    "title": "title",
    "startTime": "start_time",
    "endTime": "end_time",
    "date": "date",
    "location": "location",
    "description": "description",
    "link": "link",
}

# flat block configuration keys -> SelectorConfig fields
_BLOCK_SELECTOR_KEYS = {
    "search_context_selector": "search_context",
    "event_container_selector": "event_container",
    "event_title_selector": "title",
    "event_start_time_selector": "start_time",
    "event_end_time_selector": "end_time",
    "event_date_selector": "date",
    "event_location_selector": "location",
    "event_description_selector": "description",
    "event_link_selector": "link",
}


class ConfigurationError(ValueError):
    """Raised when a block configuration is missing or malformed."""


class CheckboxPosition(str, Enum):
    """Where the selection checkbox sits inside an event container."""

    BEGINNING = "beginning"
    END = "end"
    BEFORE_TITLE = "before-title"
    AFTER_TITLE = "after-title"


def _optional(name: str, value: str | None) -> str | None:
    """Normalize an optional selector; blank strings become ``None``.

    :param name: Field name, for the error message.
    :param value: The configured selector, or ``None``.
    :raises ConfigurationError: If *value* is not a string.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"Selector {name!r} must be a string.")
    value = value.strip()
    return value or None


def _sanitize(value: str) -> str:
    """Lower-case *value* and replace anything outside ``[a-z0-9_]``.

    :param value: A block id or storage key.
    :returns: A string safe to embed in an identifier.
    """
    return _UNSAFE_ID_CHARS_RE.sub("_", value.lower())


@dataclass(frozen=True)
class SelectorConfig:
    """CSS selectors used to find events and their fields.

    All field selectors are evaluated relative to one event container.
    Optional selectors may be ``None``; empty strings are treated the same.

    :raises ConfigurationError: If a required selector is empty.
    """

    event_container: str
    title: str = DEFAULT_TITLE_SELECTOR
    start_time: str = DEFAULT_START_TIME_SELECTOR
    end_time: str = DEFAULT_END_TIME_SELECTOR
    search_context: str | None = None
    date: str | None = None
    location: str | None = DEFAULT_LOCATION_SELECTOR
    description: str | None = DEFAULT_DESCRIPTION_SELECTOR
    link: str | None = DEFAULT_LINK_SELECTOR

    REQUIRED = ("event_container", "title", "start_time", "end_time")
    OPTIONAL = ("search_context", "date", "location", "description", "link")

    def __post_init__(self) -> None:
        for name in self.REQUIRED:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"Selector {name!r} is required.")
            object.__setattr__(self, name, value.strip())
        for name in self.OPTIONAL:
            object.__setattr__(self, name, _optional(name, getattr(self, name)))


@dataclass(frozen=True)
class ScheduleBuilderConfig:
    """Everything one schedule builder block needs.

    :param selectors: The :class:`SelectorConfig` for this block.
    :param timezone: IANA zone name (or ``"UTC"``) used for local times.
    :param local_storage_key: Key under which the selection is persisted.
        Defaults to a key derived from *block_id*.
    :param ics_filename: Download filename, without ``.ics``.
    :param checkbox_position: Where the page script places checkboxes.
    :param block_id: Identifier of the block instance. Defaults to one
        derived from the storage key, or a hash of the configuration.
    :param base_url: Base URL for resolving relative event links.
    :raises ConfigurationError: If a value fails validation.
    """

    selectors: SelectorConfig
    timezone: str = "UTC"
    local_storage_key: str = ""
    ics_filename: str = DEFAULT_ICS_FILENAME
    checkbox_position: CheckboxPosition = CheckboxPosition.BEGINNING
    block_id: str = ""
    base_url: str | None = None
    calendar_name: str = "Selected Events"

    def __post_init__(self) -> None:
        if not isinstance(self.timezone, str) or not self.timezone.strip():
            raise ConfigurationError("A timezone is required.")
        object.__setattr__(self, "timezone", self.timezone.strip())

        try:
            position = CheckboxPosition(self.checkbox_position)
        except ValueError:
            raise ConfigurationError(
                f"Unknown checkbox position {self.checkbox_position!r}."
            ) from None
        object.__setattr__(self, "checkbox_position", position)

        if not isinstance(self.local_storage_key, str) or (
            self.local_storage_key and not _STORAGE_KEY_RE.match(self.local_storage_key)
        ):
            raise ConfigurationError(
                "LocalStorage key can only contain letters, numbers, and underscores."
            )
        if not isinstance(self.ics_filename, str) or not _FILENAME_RE.match(self.ics_filename):
            raise ConfigurationError(
                "ICS filename can only contain letters, numbers, hyphens, and underscores."
            )

        if not self.block_id:
            object.__setattr__(self, "block_id", self._generate_block_id())
        if not self.local_storage_key:
            object.__setattr__(
                self,
                "local_storage_key",
                f"{PLUGIN_ID}_selections_{_sanitize(self.block_id)}",
            )

    def _generate_block_id(self) -> str:
        """Derive a block id from the storage key, or hash the config."""
        if self.local_storage_key:
            return f"{PLUGIN_ID}_{_sanitize(self.local_storage_key)}"
        payload = json.dumps(asdict(self), sort_keys=True, default=str)
        return f"{PLUGIN_ID}_{hashlib.md5(payload.encode('utf-8')).hexdigest()[:8]}"

    @property
    def ics_path_name(self) -> str:
        """The download filename including the ``.ics`` extension."""
        return f"{self.ics_filename}.ics"

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> ScheduleBuilderConfig:
        """Build a configuration from page settings or block configuration.

        :param settings: Either the nested camelCase page settings (with a
            ``"selectors"`` mapping) or the flat block configuration.
        :raises ConfigurationError: If required values are missing.
        """
        if "selectors" in settings:
            raw = settings.get("selectors") or {}
            if not isinstance(raw, Mapping):
                raise ConfigurationError("'selectors' must be a mapping.")
            selector_values = {
                name: raw[key] for key, name in _SELECTOR_KEYS.items() if key in raw
            }
            if "event_container" not in selector_values:
                raise ConfigurationError("Selector 'event_container' is required.")
            return cls(
                selectors=SelectorConfig(**selector_values),
                timezone=settings.get("timezone") or "UTC",
                local_storage_key=settings.get("localStorageKey") or "",
                ics_filename=settings.get("icsFilename") or DEFAULT_ICS_FILENAME,
                checkbox_position=settings.get("checkboxPosition") or CheckboxPosition.BEGINNING,
                block_id=settings.get("blockId") or "",
                base_url=settings.get("baseUrl"),
            )

        selector_values = {
            name: settings[key]
            for key, name in _BLOCK_SELECTOR_KEYS.items()
            if key in settings
        }
        if "event_container" not in selector_values:
            raise ConfigurationError("Selector 'event_container' is required.")
        return cls(
            selectors=SelectorConfig(**selector_values),
            timezone=settings.get("timezone") or "UTC",
            local_storage_key=settings.get("localStorage_key") or "",
            ics_filename=settings.get("ics_filename") or DEFAULT_ICS_FILENAME,
            checkbox_position=settings.get("checkbox_position") or CheckboxPosition.BEGINNING,
            block_id=settings.get("block_id") or "",
            base_url=settings.get("base_url"),
        )


def load_config(path: str | Path) -> ScheduleBuilderConfig:
    """Read a JSON configuration file.

    :param path: Path to a JSON file in either settings shape.
    :raises ConfigurationError: If the file is unreadable or invalid.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise ConfigurationError(f"Cannot read configuration {path}: {err}") from err
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration {path} is not a JSON object.")
    return ScheduleBuilderConfig.from_settings(data)
