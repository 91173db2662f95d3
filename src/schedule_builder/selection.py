"""Persisted event selections and selection filtering.

The page script keeps a visitor's selection in browser storage as a JSON
array of event ids under a per-block key. :class:`SelectionStore` plays
that role here with a JSON file holding one such array per key.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from .models import Event

logger = logging.getLogger(__name__)


class SelectionStore:
    """A JSON file mapping storage keys to lists of selected event ids.

    Load and save failures are never raised: a missing, unreadable or
    corrupt file reads as "nothing selected", and a failed save is logged.

    :param path: Location of the JSON file. Parent directories are created
        on save.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, list]:
        """Return the whole store file as a dict of key to id list.

        :raises ValueError: If the file is not a JSON object.
        :raises OSError: If the file cannot be read.
        """
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("selection data is not a JSON object")
        return data

    def load(self, key: str) -> set[str]:
        """Return the ids saved under *key*, or an empty set."""
        try:
            saved = self._read_all().get(key)
            if saved is None:
                return set()
            if not isinstance(saved, list):
                raise ValueError(f"selection for {key!r} is not a JSON array")
            return {str(event_id) for event_id in saved}
        except (OSError, ValueError) as err:
            logger.warning("Could not load selections from %s: %s", self.path, err)
            return set()

    def save(self, key: str, selected_ids: Iterable[str]) -> None:
        """Persist *selected_ids* under *key*, keeping other keys intact."""
        try:
            try:
                data = self._read_all()
            except ValueError:
                data = {}
            data[key] = sorted(selected_ids)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as err:
            logger.warning("Could not save selections to %s: %s", self.path, err)


def filter_selected(events: Iterable[Event], selected_ids: Iterable[str]) -> list[Event]:
    """Return the events whose id is selected, in their original order.

    :param events: Events in document order.
    :param selected_ids: Selected ids, in any order.
    """
    wanted = set(selected_ids)
    return [event for event in events if event.id in wanted]
