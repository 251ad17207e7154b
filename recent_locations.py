"""
Recent Locations
Most-recently-used list of searched locations, persisted between sessions
"""

import json
import logging
import os
import threading
from typing import List, Optional

logger = logging.getLogger(__name__)

# Configuration
RECENT_LOCATIONS_PATH = os.getenv('RECENT_LOCATIONS_PATH', 'recent_locations.json')
RECENT_LOCATIONS_KEY = 'recentLocations'
MAX_RECENT_LOCATIONS = 5


class JsonFileStorage:
    """
    Key/value string storage kept in a single JSON file.
    Behaves like browser localStorage: values are strings, a missing or
    unreadable file is an empty store.
    """

    def __init__(self, path: str = None):
        self.path = path or RECENT_LOCATIONS_PATH
        self._lock = threading.Lock()

    def _read(self) -> dict:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"[Storage] Ignoring unreadable store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict):
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str):
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str):
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)


class RecentLocationsStore:
    """Bounded, de-duplicated, most-recent-first list of location labels"""

    def __init__(self, storage: JsonFileStorage = None, key: str = RECENT_LOCATIONS_KEY,
                 limit: int = MAX_RECENT_LOCATIONS):
        self.storage = storage or JsonFileStorage()
        self.key = key
        self.limit = limit
        self._items = []
        self.load()

    @property
    def items(self) -> List[str]:
        return list(self._items)

    def load(self) -> List[str]:
        """Restore the list from storage; malformed data is discarded"""
        raw = self.storage.get_item(self.key)
        items = []
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError as e:
                logger.warning(f"[Recent] Error parsing recent locations: {e}")
                parsed = []
            if isinstance(parsed, list):
                for label in parsed:
                    if isinstance(label, str) and label not in items:
                        items.append(label)
        self._items = items[:self.limit]
        return self.items

    def record(self, label: str) -> List[str]:
        """Move label to the front, dropping any older copy and anything past the limit"""
        if not label or not label.strip():
            return self.items
        self._items = [label] + [loc for loc in self._items if loc != label]
        self._items = self._items[:self.limit]
        self.storage.set_item(self.key, json.dumps(self._items))
        return self.items

    def clear(self):
        self._items = []
        self.storage.remove_item(self.key)
