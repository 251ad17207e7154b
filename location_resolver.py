"""
Location Resolver
Turns a typed location (postcode or place name) into coordinates and a
canonical label suitable for use as a search key
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from nominatim_api import NominatimAPI, nominatim_api
from postcodes_api import LocationError, PostcodesAPI, is_postcode, postcodes_api, normalize_postcode
from suggestions import LocationSuggestion

logger = logging.getLogger(__name__)

RESOLVED = 'resolved'
NOT_FOUND = 'not_found'
ERROR = 'error'
INVALID = 'invalid'

# Fields tried in order when naming a postcode
POSTCODE_LABEL_FIELDS = ('parish', 'admin_district', 'admin_county', 'country')


@dataclass
class LocationResult:
    """Outcome of a location resolution"""
    status: str
    query: str = ''
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    label: Optional[str] = None       # human-readable name
    canonical: Optional[str] = None   # stable key stored as the filter's location
    source: Optional[str] = None      # 'postcode', 'geocode' or 'suggestion'
    message: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status == RESOLVED

    def to_dict(self) -> Dict:
        return asdict(self)


def shorten_display_name(display_name: str, parts: int = 2) -> str:
    """Keep the first comma-separated segments of a Nominatim display name"""
    return ','.join(display_name.split(',')[:parts]).strip()


class LocationResolver:
    """
    Resolves free text to (latitude, longitude, canonical label)

    Postcode-shaped input goes to postcodes.io first; anything else, or a
    postcode the service does not know, goes to Nominatim and is then
    reverse-resolved to its nearest postcode.
    """

    def __init__(self, postcodes: PostcodesAPI = None, geocoder: NominatimAPI = None):
        self.postcodes = postcodes or postcodes_api
        self.geocoder = geocoder or nominatim_api

    def resolve(self, text: str) -> LocationResult:
        query = (text or '').strip()
        if not query:
            return LocationResult(status=INVALID, message='Please enter a location or postcode')

        if is_postcode(query):
            result = self._resolve_postcode(query)
            if result:
                return result
            logger.info(f"[Resolver] {query!r} looks like a postcode but lookup failed, trying place search")

        return self._resolve_place(query)

    def resolve_suggestion(self, suggestion: LocationSuggestion) -> LocationResult:
        """Use a picked suggestion's coordinates directly, refining only the label"""
        canonical = self._nearest_postcode(suggestion.latitude, suggestion.longitude) or suggestion.name
        return LocationResult(
            status=RESOLVED,
            query=suggestion.name,
            latitude=suggestion.latitude,
            longitude=suggestion.longitude,
            label=suggestion.name,
            canonical=canonical,
            source='suggestion',
        )

    def _resolve_postcode(self, query: str) -> Optional[LocationResult]:
        try:
            record = self.postcodes.lookup(query)
        except LocationError as e:
            logger.warning(f"[Resolver] Postcode lookup error for {query!r}: {e}")
            return None
        if not record or record.get('latitude') is None or record.get('longitude') is None:
            return None

        label = next((record[f] for f in POSTCODE_LABEL_FIELDS if record.get(f)), query)
        canonical = record.get('postcode') or normalize_postcode(query)
        logger.info(f"[Resolver] Postcode {canonical} -> {label}")
        return LocationResult(
            status=RESOLVED,
            query=query,
            latitude=float(record['latitude']),
            longitude=float(record['longitude']),
            label=label,
            canonical=canonical,
            source='postcode',
        )

    def _resolve_place(self, query: str) -> LocationResult:
        try:
            hits = self.geocoder.search(query, limit=1)
        except LocationError as e:
            logger.error(f"[Resolver] Place search failed for {query!r}: {e}")
            return LocationResult(
                status=ERROR,
                query=query,
                message='Error finding location, please try a more specific search term',
            )

        if not hits:
            logger.info(f"[Resolver] No location found for {query!r}")
            return LocationResult(
                status=NOT_FOUND,
                query=query,
                message='Location not found in the UK. Please try a different search term',
            )

        hit = hits[0]
        try:
            latitude = float(hit['lat'])
            longitude = float(hit['lon'])
        except (KeyError, TypeError, ValueError):
            return LocationResult(status=ERROR, query=query, message='Location service returned bad coordinates')

        display_name = shorten_display_name(hit.get('display_name') or query) or query
        canonical = self._nearest_postcode(latitude, longitude) or display_name
        logger.info(f"[Resolver] {query!r} -> {display_name} ({canonical})")
        return LocationResult(
            status=RESOLVED,
            query=query,
            latitude=latitude,
            longitude=longitude,
            label=display_name,
            canonical=canonical,
            source='geocode',
        )

    def _nearest_postcode(self, lat: float, lon: float) -> Optional[str]:
        # Best effort; callers fall back to the display name
        try:
            nearby = self.postcodes.nearest(lat, lon, limit=1)
        except LocationError as e:
            logger.warning(f"[Resolver] Reverse postcode lookup failed: {e}")
            return None
        return nearby[0] if nearby else None


# Global instance
location_resolver = LocationResolver()
