"""
Postcodes.io API Integration
UK postcode lookup and nearest-postcode reverse geocoding
"""

import logging
import os
import re
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

# Configuration
POSTCODES_API_URL = os.getenv('POSTCODES_API_URL', 'https://api.postcodes.io')
REQUEST_TIMEOUT = 10

# Outward code, optional space, inward code
UK_POSTCODE_PATTERN = re.compile(r'^[A-Z]{1,2}[0-9][A-Z0-9]?\s?[0-9][A-Z]{2}$', re.IGNORECASE)


class LocationError(Exception):
    """Base class for location lookup failures"""


class LookupFailed(LocationError):
    """A location service could not be reached or returned garbage"""


def is_postcode(text: str) -> bool:
    """Check whether text looks like a UK postcode (spaces ignored)"""
    if not text:
        return False
    return bool(UK_POSTCODE_PATTERN.match(re.sub(r'\s', '', text)))


def normalize_postcode(postcode: str) -> str:
    """Normalize postcode to standard format: uppercase, single space before last 3 chars"""
    if not postcode:
        return ''
    clean = re.sub(r'\s', '', postcode).upper()
    if len(clean) >= 5:
        return clean[:-3] + ' ' + clean[-3:]
    return clean


class PostcodesAPI:
    """Client for the postcodes.io reference service"""

    def __init__(self, base_url: str = None, session: requests.Session = None):
        self.base_url = (base_url or POSTCODES_API_URL).rstrip('/')
        self.session = session or requests.Session()

    def _get(self, endpoint: str, params: Dict = None) -> Dict:
        """GET a postcodes.io endpoint and return the decoded body.

        postcodes.io answers 404 with a JSON body carrying ``status: 404``,
        so non-2xx responses are still decoded and left to the caller.
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise LookupFailed(f'Postcodes request failed: {e}') from e

        try:
            return response.json()
        except ValueError as e:
            if response.status_code != 200:
                return {'status': response.status_code, 'result': None}
            raise LookupFailed('Invalid JSON response from postcodes.io') from e

    def lookup(self, postcode: str) -> Optional[Dict]:
        """
        Look up a single postcode

        Args:
            postcode: UK postcode (e.g., "SW1A 1AA")

        Returns:
            The postcode record (latitude, longitude, admin areas) or None
        """
        data = self._get(f"postcodes/{requests.utils.quote(postcode.strip())}")
        if data.get('status') == 200 and data.get('result'):
            return data['result']
        logger.info(f"[Postcodes] No result for {postcode!r} (status {data.get('status')})")
        return None

    def nearest(self, lat: float, lon: float, limit: int = 1) -> List[str]:
        """
        Find the postcodes nearest to a coordinate pair

        Args:
            lat: Latitude
            lon: Longitude
            limit: Maximum number of postcodes to return

        Returns:
            Postcodes ordered nearest first (empty if none nearby)
        """
        data = self._get('postcodes', {'lat': lat, 'lon': lon, 'limit': limit})
        if data.get('status') != 200 or not data.get('result'):
            return []
        return [r['postcode'] for r in data['result'] if r.get('postcode')][:limit]


# Global instance
postcodes_api = PostcodesAPI()

if __name__ == "__main__":
    print("Testing postcodes.io...")
    record = postcodes_api.lookup("SW1A 1AA")
    if record:
        print(f"  {record['postcode']}: {record['latitude']}, {record['longitude']} ({record.get('admin_district')})")
        print(f"  Nearest: {postcodes_api.nearest(record['latitude'], record['longitude'], limit=3)}")
