"""
Listings API Integration
Search UK property listings and normalise them into MappedProperty records
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

# Configuration
LISTINGS_API_URL = os.getenv('LISTINGS_API_URL', 'https://zoopla-data.onrender.com')
LISTINGS_API_KEY = os.getenv('LISTINGS_API_KEY', '')
USE_MOCK_DATA = os.getenv('USE_MOCK_DATA', 'false').lower() == 'true'
REQUEST_TIMEOUT = 15

FEATURE_KEYWORDS = [
    'garden', 'parking', 'garage', 'modern', 'renovated', 'fireplace',
    'pool', 'view', 'balcony', 'terrace', 'patio', 'conservatory',
    'central heating', 'double glazing', 'en-suite', 'open plan',
    'kitchen diner', 'utility room', 'study', 'office', 'gym'
]


class ListingsError(Exception):
    """The listings provider could not be queried"""


@dataclass(frozen=True)
class Agent:
    name: str = 'Unknown Agent'
    phone: str = 'N/A'


@dataclass(frozen=True)
class MappedProperty:
    """A listing normalised from the provider's raw payload"""
    id: str
    address: str
    price: int
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    square_feet: Optional[float] = None
    description: str = ''
    property_type: str = 'Unknown'
    image_url: Optional[str] = None
    url: Optional[str] = None
    features: tuple = ()
    agent: Agent = field(default_factory=Agent)
    rental_estimate: int = 0
    roi_estimate: float = 0.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    date_added: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['features'] = list(self.features)
        return data


def estimate_rent(price: float, bedrooms: Optional[int], property_type: str) -> int:
    """
    Rough monthly rent estimate

    Base is 0.8% of value a year, adjusted 10% per bedroom away from two,
    up for flats and down for detached houses.
    """
    if not price:
        return 0
    if not bedrooms:
        bedrooms = 2

    rent = (price * 0.008) / 12
    rent *= (1 + (bedrooms - 2) * 0.1)

    ptype = (property_type or '').lower()
    if 'flat' in ptype or 'apartment' in ptype:
        rent *= 1.1
    elif 'detached' in ptype:
        rent *= 0.9

    return round(rent)


def estimate_roi(price: float, monthly_rent: float) -> float:
    """Gross yield as a percentage"""
    if not price or not monthly_rent:
        return 0.0
    return round((monthly_rent * 12) / price * 100, 2)


def extract_features(description: str) -> List[str]:
    if not description:
        return []
    text = description.lower()
    return [kw.title() for kw in FEATURE_KEYWORDS if kw in text]


def _parse_json_field(value):
    """Provider fields are sometimes JSON encoded strings, sometimes real objects"""
    if isinstance(value, str):
        value = value.strip()
        if value[:1] in ('[', '{'):
            try:
                return json.loads(value)
            except ValueError:
                return None
    return value


def _parse_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = re.sub(r'[^\d]', '', value)
        return int(digits) if digits else None
    return None


def _parse_image(value) -> Optional[str]:
    value = _parse_json_field(value)
    if isinstance(value, list):
        return next((v for v in value if isinstance(v, str) and v), None)
    if isinstance(value, str) and value.startswith('http'):
        return value
    return None


def _parse_agent(value) -> Agent:
    value = _parse_json_field(value)
    if isinstance(value, dict):
        return Agent(name=value.get('name') or 'Unknown Agent', phone=value.get('phone') or 'N/A')
    return Agent()


def _parse_coordinates(raw: Dict):
    location = _parse_json_field(raw.get('google_map_location'))
    if not isinstance(location, dict):
        location = raw.get('location') if isinstance(raw.get('location'), dict) else {}
    lat = location.get('lat', location.get('latitude'))
    lon = location.get('lng', location.get('longitude'))
    try:
        return (float(lat), float(lon)) if lat is not None and lon is not None else (None, None)
    except (TypeError, ValueError):
        return None, None


def _parse_square_feet(value) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = re.search(r'[\d,]+(?:\.\d+)?', str(value))
    if not match:
        return None
    try:
        return float(match.group(0).replace(',', ''))
    except ValueError:
        return None


def map_listing(raw: Dict) -> Optional[MappedProperty]:
    """
    Map one raw provider record to a MappedProperty

    Args:
        raw: Listing as returned by the provider

    Returns:
        MappedProperty, or None if the record cannot be used
    """
    if not isinstance(raw, dict) or not raw:
        return None

    try:
        price = _parse_int(raw.get('price')) or 0
        bedrooms = _parse_int(raw.get('bedrooms'))
        bathrooms = _parse_int(raw.get('bathrooms'))
        property_type = raw.get('property_type') or 'Unknown'
        description = raw.get('description') or ''

        features = _parse_json_field(raw.get('features'))
        if isinstance(features, str) and features:
            features = [features]
        if not isinstance(features, list) or not features:
            features = extract_features(description)

        latitude, longitude = _parse_coordinates(raw)
        rent = estimate_rent(price, bedrooms, property_type)
        listing_id = raw.get('_id') or raw.get('id') or raw.get('uprn') or raw.get('url')
        if not listing_id:
            listing_id = f"{raw.get('address', 'unknown')}:{price}"

        return MappedProperty(
            id=str(listing_id),
            address=raw.get('address') or 'Unknown Address',
            price=price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            square_feet=_parse_square_feet(raw.get('property_size', raw.get('square_feet'))),
            description=description,
            property_type=property_type,
            image_url=_parse_image(raw.get('property_images', raw.get('image_url'))),
            url=raw.get('url'),
            features=tuple(str(f) for f in features),
            agent=_parse_agent(raw.get('agent_details', raw.get('agent'))),
            rental_estimate=rent,
            roi_estimate=estimate_roi(price, rent),
            latitude=latitude,
            longitude=longitude,
            date_added=raw.get('listing_history') or raw.get('created_at') or datetime.now().isoformat(),
        )
    except Exception as e:
        logger.warning(f"[Listings] Error mapping property: {e}")
        return None


def map_listings(records) -> List[MappedProperty]:
    if not isinstance(records, list):
        logger.error(f"[Listings] Expected array of properties but got {type(records).__name__}")
        return []
    return [p for p in (map_listing(r) for r in records) if p is not None]


def _results(data) -> Optional[list]:
    # Accept either a bare array or a paginated {"results": [...]} body
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get('results'), list):
        return data['results']
    return None


class ListingsAPI:
    """Client for the property listings aggregator"""

    def __init__(self, base_url: str = None, api_key: str = None, session: requests.Session = None):
        self.base_url = (base_url or LISTINGS_API_URL).rstrip('/')
        self.api_key = api_key if api_key is not None else LISTINGS_API_KEY
        self.session = session or requests.Session()
        self.headers = {'Accept': 'application/json'}
        if self.api_key:
            self.headers['Authorization'] = f"Bearer {self.api_key}"

    def _get(self, endpoint: str, params: Dict = None):
        response = self.session.get(
            f"{self.base_url}/{endpoint}",
            params=params,
            headers=self.headers,
            timeout=REQUEST_TIMEOUT
        )
        response.raise_for_status()
        return response.json()

    def search(self, term: str) -> List[MappedProperty]:
        """
        Search listings by free text

        Tries the provider's search endpoint first, then falls back to
        fetching everything and matching the term locally.

        Raises:
            ListingsError: if neither endpoint can be read
        """
        term = (term or '').strip()
        if term:
            try:
                records = _results(self._get('api/properties/search', {'q': term}))
                if records is not None:
                    logger.info(f"[Listings] Search endpoint returned {len(records)} properties for {term!r}")
                    return map_listings(records)
                logger.warning("[Listings] Unexpected search response format, falling back")
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.warning(f"[Listings] Search endpoint failed ({e}), falling back to client-side filtering")

        try:
            records = _results(self._get('api/properties'))
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ListingsError(f'Failed to fetch properties: {e}') from e
        if records is None:
            raise ListingsError('Unexpected data format from properties endpoint')

        if term:
            needle = term.lower()
            fields = ('address', 'property_title', 'description', 'property_type')
            records = [
                r for r in records
                if isinstance(r, dict) and any(needle in str(r.get(f) or '').lower() for f in fields)
            ]
            logger.info(f"[Listings] Client-side filtering found {len(records)} matching properties")
        return map_listings(records)


def get_listings_source(use_mock: bool = None):
    """Return the configured listings source (real API, or fake data when USE_MOCK_DATA is set)"""
    if use_mock is None:
        use_mock = USE_MOCK_DATA
    if use_mock:
        from mock_listings import FakeListingsSource
        return FakeListingsSource()
    return ListingsAPI()
