import pytest
import requests

from listings_api import MappedProperty
from postcodes_api import LookupFailed, normalize_postcode

_BAD_JSON = object()


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.payload is _BAD_JSON:
            raise ValueError('No JSON object could be decoded')
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} Error')


class FakeSession:
    """Stands in for requests.Session; routes by URL suffix"""

    def __init__(self):
        self.routes = []
        self.calls = []

    def add(self, suffix, response):
        self.routes.append((suffix, response))
        return self

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        for suffix, response in self.routes:
            if url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise requests.exceptions.ConnectionError(f'No route for {url}')


class StubPostcodes:
    """PostcodesAPI double keyed by normalised postcode"""

    def __init__(self, log):
        self.log = log
        self.records = {}
        self.nearby = []
        self.fail_lookup = False
        self.fail_nearest = False

    def lookup(self, postcode):
        self.log.append(('lookup', postcode))
        if self.fail_lookup:
            raise LookupFailed('postcodes.io down')
        return self.records.get(normalize_postcode(postcode))

    def nearest(self, lat, lon, limit=1):
        self.log.append(('nearest', lat, lon))
        if self.fail_nearest:
            raise LookupFailed('postcodes.io down')
        return self.nearby[:limit]


class StubGeocoder:
    """NominatimAPI double keyed by exact query"""

    def __init__(self, log):
        self.log = log
        self.places = {}
        self.fail = False

    def search(self, query, limit=1):
        self.log.append(('search', query))
        if self.fail:
            raise LookupFailed('nominatim down')
        return self.places.get(query, [])[:limit]


class StubSource:
    def __init__(self, properties=None, error=None):
        self.properties = properties or []
        self.error = error
        self.terms = []

    def search(self, term):
        self.terms.append(term)
        if self.error:
            raise self.error
        return list(self.properties)


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_property(id='p1', **overrides):
    values = {
        'id': id,
        'address': '1 High Street, Leeds',
        'price': 200000,
        'bedrooms': 3,
        'bathrooms': 1,
        'square_feet': 900.0,
        'description': 'Family home with garden',
        'property_type': 'Semi-Detached',
        'latitude': 53.8,
        'longitude': -1.55,
    }
    values.update(overrides)
    return MappedProperty(**values)


WESTMINSTER = {
    'postcode': 'SW1A 1AA',
    'latitude': 51.501009,
    'longitude': -0.141588,
    'parish': None,
    'admin_district': 'Westminster',
    'admin_county': None,
    'country': 'England',
}

MANCHESTER_HIT = {
    'display_name': 'Manchester, Greater Manchester, England, United Kingdom',
    'lat': '53.4794892',
    'lon': '-2.2451148',
}


@pytest.fixture
def call_log():
    return []


@pytest.fixture
def postcodes(call_log):
    return StubPostcodes(call_log)


@pytest.fixture
def geocoder(call_log):
    return StubGeocoder(call_log)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bad_json():
    return _BAD_JSON
