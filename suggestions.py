"""
Location Suggestions
Debounced type-ahead place suggestions backed by Nominatim
"""

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Callable, Dict, List, Optional

from nominatim_api import NominatimAPI, nominatim_api
from postcodes_api import LocationError

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
MAX_SUGGESTIONS = 5
DEBOUNCE_SECONDS = 0.3


@dataclass
class LocationSuggestion:
    """A candidate place offered while the user types"""
    name: str
    display_name: str
    latitude: float
    longitude: float

    def to_dict(self) -> Dict:
        return asdict(self)


def fetch_suggestions(query: str, api: NominatimAPI = None, limit: int = MAX_SUGGESTIONS) -> List[LocationSuggestion]:
    """
    Fetch up to `limit` place suggestions for partial input

    Args:
        query: What the user has typed so far
        api: Geocoder to use (defaults to the global Nominatim client)
        limit: Maximum number of suggestions

    Returns:
        Suggestions, or an empty list for short input or a failed lookup
    """
    query = (query or '').strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    api = api or nominatim_api
    try:
        hits = api.search(query, limit=limit)
    except LocationError as e:
        logger.warning(f"[Suggestions] Lookup failed for {query!r}: {e}")
        return []

    suggestions = []
    for hit in hits:
        try:
            suggestions.append(LocationSuggestion(
                name=hit['display_name'].split(',')[0].strip(),
                display_name=hit['display_name'],
                latitude=float(hit['lat']),
                longitude=float(hit['lon']),
            ))
        except (KeyError, TypeError, ValueError):
            continue
    return suggestions


class SuggestionFetcher:
    """
    Debounced suggestion list for a single input field.

    Every fetch is tagged with a sequence number; a response is only
    applied if no newer fetch has been issued since, so a slow reply can
    never overwrite the suggestions for what the user typed later.
    """

    def __init__(self, api: NominatimAPI = None, delay: float = DEBOUNCE_SECONDS,
                 on_change: Optional[Callable[[List[LocationSuggestion]], None]] = None):
        self.api = api or nominatim_api
        self.delay = delay
        self.on_change = on_change
        self._lock = threading.Lock()
        self._timer = None
        self._pending = None
        self._sequence = 0
        self._suggestions = []
        self.visible = False

    @property
    def suggestions(self) -> List[LocationSuggestion]:
        with self._lock:
            return list(self._suggestions)

    def on_input(self, text: str):
        """Handle a keystroke: clear on short input, otherwise (re)start the debounce timer"""
        self.cancel()
        text = (text or '').strip()
        if len(text) < MIN_QUERY_LENGTH:
            with self._lock:
                # Outstanding fetches are now stale too
                self._sequence += 1
            self._apply([], None)
            return

        with self._lock:
            self._pending = text
            self._timer = threading.Timer(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._pending = None

    def flush(self) -> List[LocationSuggestion]:
        """Run the pending fetch now, returning the suggestions it produced"""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            query = self._pending
            self._pending = None
            self._timer = None
            if query is None:
                return list(self._suggestions)
            self._sequence += 1
            tag = self._sequence
        return self._fetch(query, tag)

    def _fetch(self, query: str, tag: int) -> List[LocationSuggestion]:
        results = fetch_suggestions(query, api=self.api)
        self._apply(results, tag)
        return results

    def _apply(self, results: List[LocationSuggestion], tag: Optional[int]):
        with self._lock:
            if tag is not None and tag != self._sequence:
                logger.debug(f"[Suggestions] Dropping stale response #{tag} (latest #{self._sequence})")
                return
            self._suggestions = list(results)
            self.visible = bool(results)
            current = list(self._suggestions)
        if self.on_change:
            self.on_change(current)
