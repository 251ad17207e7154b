"""
Search filters applied to listings after they come back from the provider
"""

import math
from dataclasses import dataclass, asdict, fields
from typing import Dict, Iterable, List, Optional

from listings_api import MappedProperty

EARTH_RADIUS_MILES = 3958.8

RENOVATION_KEYWORDS = (
    'modernisation', 'modernization', 'renovation', 'refurbishment',
    'needs work', 'in need of', 'cash buyers only', 'cash only',
)

PROPERTY_TYPE = 'property_type'
PRICE = 'price'
BEDROOMS = 'bedrooms'
BATHROOMS = 'bathrooms'
SQUARE_FEET = 'square_feet'
RADIUS = 'radius'
CONDITION = 'condition'

ALL_FILTERS = frozenset({PROPERTY_TYPE, PRICE, BEDROOMS, BATHROOMS, SQUARE_FEET, RADIUS, CONDITION})

# camelCase keys sent by the front end
_ALIASES = {
    'propertyType': 'property_type',
    'minPrice': 'min_price',
    'maxPrice': 'max_price',
    'minBedrooms': 'min_bedrooms',
    'maxBedrooms': 'max_bedrooms',
    'minBathrooms': 'min_bathrooms',
    'maxBathrooms': 'max_bathrooms',
    'minSquareFeet': 'min_square_feet',
    'maxSquareFeet': 'max_square_feet',
    'needsWork': 'needs_work',
}

_NUMERIC = {
    'min_price', 'max_price', 'min_bedrooms', 'max_bedrooms', 'min_bathrooms',
    'max_bathrooms', 'min_square_feet', 'max_square_feet', 'latitude', 'longitude', 'radius',
}


@dataclass
class SearchFilters:
    property_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_bedrooms: Optional[float] = None
    max_bedrooms: Optional[float] = None
    min_bathrooms: Optional[float] = None
    max_bathrooms: Optional[float] = None
    min_square_feet: Optional[float] = None
    max_square_feet: Optional[float] = None
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None  # miles
    needs_work: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'SearchFilters':
        """
        Build filters from request data

        Blank strings count as unset. Raises ValueError for a numeric
        field that is not a number, or when data is not a mapping.
        """
        if data is None:
            data = {}
        elif not isinstance(data, dict):
            raise ValueError('filters must be an object')
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known or value is None or (isinstance(value, str) and not value.strip()):
                continue
            if name in _NUMERIC:
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    raise ValueError(f'{key} must be a number')
                if math.isnan(value):
                    raise ValueError(f'{key} must be a number')
            elif name == 'needs_work':
                value = value if isinstance(value, bool) else str(value).lower() in ('true', '1', 'yes')
            else:
                value = str(value).strip()
            values[name] = value
        return cls(**values)

    def to_dict(self) -> Dict:
        return asdict(self)

    def clear(self):
        for f in fields(self):
            setattr(self, f.name, None)


def distance_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in miles"""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def _outside(value, low, high) -> bool:
    # Listings that don't state a value are not excluded by its bounds
    if value is None:
        return False
    if low is not None and value < low:
        return True
    if high is not None and value > high:
        return True
    return False


def matches(prop: MappedProperty, filters: SearchFilters, enabled: Iterable[str] = ALL_FILTERS) -> bool:
    """Check one listing against every enabled filter"""
    enabled = set(enabled)

    if PROPERTY_TYPE in enabled and filters.property_type and prop.property_type:
        if filters.property_type.lower() not in prop.property_type.lower():
            return False

    if PRICE in enabled and _outside(prop.price, filters.min_price, filters.max_price):
        return False

    if BEDROOMS in enabled and _outside(prop.bedrooms, filters.min_bedrooms, filters.max_bedrooms):
        return False

    if BATHROOMS in enabled and _outside(prop.bathrooms, filters.min_bathrooms, filters.max_bathrooms):
        return False

    if SQUARE_FEET in enabled and _outside(prop.square_feet, filters.min_square_feet, filters.max_square_feet):
        return False

    if (RADIUS in enabled and filters.radius and filters.latitude is not None
            and filters.longitude is not None and prop.latitude is not None and prop.longitude is not None):
        if distance_miles(filters.latitude, filters.longitude, prop.latitude, prop.longitude) > filters.radius:
            return False

    if CONDITION in enabled and filters.needs_work:
        text = (prop.description or '').lower()
        if not any(kw in text for kw in RENOVATION_KEYWORDS):
            return False

    return True


def apply_filters(properties: Iterable[MappedProperty], filters: Optional[SearchFilters],
                  enabled: Iterable[str] = ALL_FILTERS) -> List[MappedProperty]:
    """
    Filter listings in memory

    Args:
        properties: Listings returned by the provider
        filters: Current search filters (None keeps everything)
        enabled: Names of the filters to apply (defaults to all of them)

    Returns:
        Listings that pass every enabled filter, in their original order
    """
    if filters is None:
        return list(properties)
    enabled = frozenset(enabled)
    unknown = enabled - ALL_FILTERS
    if unknown:
        raise ValueError(f"Unknown filters: {', '.join(sorted(unknown))}")
    return [p for p in properties if matches(p, filters, enabled)]
