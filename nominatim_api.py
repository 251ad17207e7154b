"""
Nominatim (OpenStreetMap) Geocoding Integration
Free-text UK place search, no API key required
"""

import logging
import os
from typing import Dict, List

import requests

from postcodes_api import LookupFailed

logger = logging.getLogger(__name__)

# Configuration
NOMINATIM_URL = os.getenv('NOMINATIM_URL', 'https://nominatim.openstreetmap.org')
# Nominatim's usage policy requires an identifying User-Agent
NOMINATIM_USER_AGENT = os.getenv('NOMINATIM_USER_AGENT', 'PropertySearch/1.0 (location lookup)')
REQUEST_TIMEOUT = 8


class NominatimAPI:
    """Client for Nominatim forward geocoding, scoped to the UK"""

    def __init__(self, base_url: str = None, user_agent: str = None, session: requests.Session = None):
        self.base_url = (base_url or NOMINATIM_URL).rstrip('/')
        self.headers = {
            'User-Agent': user_agent or NOMINATIM_USER_AGENT,
            'Accept': 'application/json',
        }
        self.session = session or requests.Session()

    def search(self, query: str, limit: int = 1) -> List[Dict]:
        """
        Search for a place by name

        Args:
            query: Free-text place name (e.g., "Manchester")
            limit: Maximum number of hits

        Returns:
            Hits ordered by relevance, each with display_name, lat and lon
            (lat/lon are strings, as Nominatim returns them)
        """
        params = {
            'q': query,
            'format': 'json',
            'countrycodes': 'gb',
            'limit': limit,
        }
        try:
            response = self.session.get(
                f"{self.base_url}/search",
                params=params,
                headers=self.headers,
                timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise LookupFailed(f'Nominatim request failed: {e}') from e
        except ValueError as e:
            raise LookupFailed('Invalid JSON response from Nominatim') from e

        if not isinstance(data, list):
            logger.warning(f"[Nominatim] Unexpected response for {query!r}: {type(data).__name__}")
            return []
        return [hit for hit in data[:limit] if hit.get('lat') and hit.get('lon')]


# Global instance
nominatim_api = NominatimAPI()

if __name__ == "__main__":
    print("Testing Nominatim...")
    for hit in nominatim_api.search("Manchester", limit=3):
        print(f"  {hit['display_name']} ({hit['lat']}, {hit['lon']})")
