"""
Fake listings source for demos and offline development.
Same search() interface as ListingsAPI; never used unless USE_MOCK_DATA is set.
"""

import random
import zlib
from typing import List

from listings_api import map_listings, MappedProperty

STREETS = ['High Street', 'Station Road', 'Church Lane', 'Victoria Road', 'Park Avenue', 'Mill Lane']
PROPERTY_TYPES = ['Terraced', 'Semi-Detached', 'Detached', 'Flat', 'Bungalow']
DESCRIPTIONS = [
    'Well presented home with garden and parking.',
    'Requires modernisation throughout, ideal for investors.',
    'Open plan living with double glazing and central heating.',
    'Spacious property with conservatory and garage.',
]


class FakeListingsSource:
    """Generates deterministic pseudo-random listings for a search term"""

    def __init__(self, count: int = 12, seed: int = None):
        self.count = count
        self.seed = seed

    def search(self, term: str) -> List[MappedProperty]:
        term = (term or '').strip() or 'London'
        # Same term, same listings
        seed = self.seed if self.seed is not None else zlib.crc32(term.lower().encode('utf-8'))
        rng = random.Random(seed)

        records = []
        for i in range(self.count):
            bedrooms = rng.randint(1, 5)
            records.append({
                'id': f"mock-{seed:x}-{i}",
                'address': f"{rng.randint(1, 200)} {rng.choice(STREETS)}, {term}",
                'price': rng.randrange(90_000, 750_000, 5_000),
                'bedrooms': bedrooms,
                'bathrooms': max(1, bedrooms - rng.randint(0, 2)),
                'property_size': f"{rng.randint(450, 2400)} sq. ft",
                'property_type': rng.choice(PROPERTY_TYPES),
                'description': rng.choice(DESCRIPTIONS),
                'agent_details': {'name': 'Demo Estates', 'phone': '0000 000000'},
                'created_at': f"2024-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}",
                'location': {
                    'latitude': round(51.5 + rng.uniform(-0.05, 0.05), 6),
                    'longitude': round(-0.12 + rng.uniform(-0.05, 0.05), 6),
                },
            })
        return map_listings(records)
