"""Lets visitors pick events from any listing page and download them as ICS.

This package exposes these public symbols:

* :class:`ScheduleBuilder`: one configured block (scan, select, export).
* :class:`ScheduleBuilderConfig` and :class:`SelectorConfig`: block
  configuration.
* :class:`EventExtractor`: scrapes events with CSS selectors.
* :class:`SelectionStore`: persists selected event ids.
* :class:`Event`: data class for individual events.
* :func:`encode`: serializes events as an RFC 5545 document.
"""

from .builder import ScheduleBuilder
from .config import ConfigurationError, ScheduleBuilderConfig, SelectorConfig
from .extractor import EventExtractor, ExtractionResult
from .ics import encode
from .models import Event, TimezoneKind
from .selection import SelectionStore, filter_selected

__all__ = [
    "ConfigurationError",
    "Event",
    "EventExtractor",
    "ExtractionResult",
    "ScheduleBuilder",
    "ScheduleBuilderConfig",
    "SelectionStore",
    "SelectorConfig",
    "TimezoneKind",
    "encode",
    "filter_selected",
]
