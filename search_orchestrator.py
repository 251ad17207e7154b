"""
Search Orchestrator
Throttled listings search: a minimum interval between searches and a cap
on metered searches per session, then in-memory filtering of the results
"""

import logging
import math
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import requests

from listings_api import ListingsError, MappedProperty
from location_resolver import LocationResolver, LocationResult, location_resolver
from property_filters import ALL_FILTERS, SearchFilters, apply_filters
from recent_locations import RecentLocationsStore

logger = logging.getLogger(__name__)

# Configuration
RATE_LIMIT_MS = int(os.getenv('RATE_LIMIT_MS', '2000'))
MAX_SEARCHES_PER_SESSION = int(os.getenv('MAX_SEARCHES_PER_SESSION', '5'))

OK = 'ok'
INVALID = 'invalid'
RATE_LIMITED = 'rate_limited'
SESSION_LIMIT = 'session_limit'
NOT_FOUND = 'not_found'
ERROR = 'error'


@dataclass
class SessionRateState:
    """Throttling counters for one session"""
    last_search_ms: int = 0
    search_count: int = 0
    pending_ms: Optional[int] = None


@dataclass
class SearchOutcome:
    status: str
    properties: List[MappedProperty] = field(default_factory=list)
    message: str = ''
    retry_after: Optional[int] = None
    total: int = 0
    location: Optional[LocationResult] = None

    @property
    def ok(self) -> bool:
        return self.status == OK

    def to_dict(self) -> Dict:
        data = {
            'status': self.status,
            'properties': [p.to_dict() for p in self.properties],
            'count': len(self.properties),
            'total': self.total,
            'message': self.message,
        }
        if self.retry_after is not None:
            data['retry_after'] = self.retry_after
        if self.location is not None:
            data['location'] = self.location.to_dict()
        return data


class SearchOrchestrator:
    """
    Guards and runs listings searches.

    Guard checks and the in-flight reservation happen under one lock, so
    two searches started back to back cannot both pass the interval guard.
    Counters only advance when the provider call succeeds.

    Per-session counters live here, keyed by session id, so concurrent
    requests from one session all check and reserve against the same state.
    """

    def __init__(self, source, rate_limit_ms: int = None, max_searches: int = None,
                 clock: Callable[[], float] = time.time, enabled_filters=ALL_FILTERS):
        self.source = source
        self.rate_limit_ms = RATE_LIMIT_MS if rate_limit_ms is None else rate_limit_ms
        self.max_searches = MAX_SEARCHES_PER_SESSION if max_searches is None else max_searches
        self.clock = clock
        self.enabled_filters = frozenset(enabled_filters)
        self._lock = threading.Lock()
        self._sessions: Dict[str, SessionRateState] = {}

    def session_state(self, session_id: str) -> SessionRateState:
        """The shared counters for a session, created on first use"""
        with self._lock:
            state = self._sessions.get(session_id)
            if state is None:
                state = self._sessions[session_id] = SessionRateState()
            return state

    def reset_session(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def check(self, state: SessionRateState, now_ms: int) -> Optional[SearchOutcome]:
        """Return a rejection outcome if a guard trips, else None"""
        if state.search_count >= self.max_searches:
            return SearchOutcome(
                status=SESSION_LIMIT,
                message=(f"You've reached the maximum number of searches ({self.max_searches}) "
                         f"for this session. Please reload the page to continue."),
            )

        last = max(state.last_search_ms, state.pending_ms or 0)
        elapsed = now_ms - last
        if last and elapsed < self.rate_limit_ms:
            remaining = math.ceil((self.rate_limit_ms - elapsed) / 1000)
            return SearchOutcome(
                status=RATE_LIMITED,
                message=f"Please wait {remaining} second{'s' if remaining != 1 else ''} before searching again",
                retry_after=remaining,
            )
        return None

    def search(self, term: str, filters: SearchFilters, state: SessionRateState,
               on_start: Callable[[], None] = None, on_complete: Callable[[], None] = None) -> SearchOutcome:
        """
        Run one guarded search

        Args:
            term: Free-text query passed to the listings provider
            filters: Filters applied to the returned listings
            state: The session's throttling counters (updated in place)
            on_start: Called just before the provider is contacted
            on_complete: Called after the provider call, whatever its result

        Returns:
            SearchOutcome with status ok, invalid, rate_limited,
            session_limit or error
        """
        term = (term or '').strip()
        if not term:
            return SearchOutcome(status=INVALID, message='Please enter a search term')

        with self._lock:
            now = self._now_ms()
            rejection = self.check(state, now)
            if rejection:
                logger.info(f"[Search] Rejected {term!r}: {rejection.status}")
                return rejection
            state.pending_ms = now

        if on_start:
            on_start()
        try:
            logger.info(f"[Search] Starting search for {term!r}")
            found = self.source.search(term)
            filtered = apply_filters(found, filters, self.enabled_filters)
            with self._lock:
                state.last_search_ms = now
                state.search_count += 1
            logger.info(f"[Search] {len(filtered)} of {len(found)} properties match filters")
            if filtered:
                message = f"Found {len(filtered)} properties"
            else:
                message = 'No properties found matching your search. Try a different search term.'
            return SearchOutcome(status=OK, properties=filtered, message=message, total=len(found))
        except (ListingsError, requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"[Search] Search error for {term!r}: {e}")
            return SearchOutcome(status=ERROR, message=str(e) or 'Error searching for properties')
        finally:
            with self._lock:
                if state.pending_ms == now:
                    state.pending_ms = None
            if on_complete:
                on_complete()

    def search_location(self, text: str, filters: SearchFilters, state: SessionRateState,
                        resolver: LocationResolver = None, recent: RecentLocationsStore = None,
                        **callbacks) -> SearchOutcome:
        """Resolve a typed location, store it in the filters, then search with its canonical label"""
        resolver = resolver or location_resolver
        result = resolver.resolve(text)
        if not result.resolved:
            # invalid / not_found / error carry over unchanged
            return SearchOutcome(status=result.status, message=result.message or '', location=result)

        if recent is not None:
            recent.record((text or '').strip())
        filters.location = result.canonical
        filters.latitude = result.latitude
        filters.longitude = result.longitude

        outcome = self.search(result.canonical, filters, state, **callbacks)
        outcome.location = result
        return outcome
