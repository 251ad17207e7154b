import pytest
import requests

from conftest import FakeResponse, WESTMINSTER
from nominatim_api import NominatimAPI
from postcodes_api import LookupFailed, PostcodesAPI, is_postcode, normalize_postcode


@pytest.mark.parametrize('text', ['SW1A 1AA', 'sw1a1aa', 'M1 1AE', ' EC1A 1BB ', 'W1A 0AX', 'B33 8TH', 'CR2 6XH'])
def test_is_postcode_accepts_uk_postcodes(text):
    assert is_postcode(text)


@pytest.mark.parametrize('text', ['Manchester', '12345', '', None, 'SW1A 1A', 'some nonexistent place xyz123'])
def test_is_postcode_rejects_other_text(text):
    assert not is_postcode(text)


def test_is_postcode_ignores_inner_spaces():
    assert is_postcode('SW1A  1 AA')


def test_normalize_postcode():
    assert normalize_postcode('sw1a1aa') == 'SW1A 1AA'
    assert normalize_postcode(' m1  1ae ') == 'M1 1AE'
    assert normalize_postcode('') == ''


def test_lookup_returns_result(fake_session):
    fake_session.add('postcodes/SW1A%201AA', FakeResponse({'status': 200, 'result': WESTMINSTER}))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    assert api.lookup('SW1A 1AA') == WESTMINSTER
    assert fake_session.calls[0]['url'] == 'https://pc.test/postcodes/SW1A%201AA'


def test_lookup_unknown_postcode_returns_none(fake_session):
    fake_session.add('postcodes/ZZ99%209ZZ', FakeResponse({'status': 404, 'error': 'Postcode not found'}, 404))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    assert api.lookup('ZZ99 9ZZ') is None


def test_lookup_network_error_raises_lookup_failed(fake_session):
    fake_session.add('postcodes/M1%201AE', requests.exceptions.Timeout('slow'))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    with pytest.raises(LookupFailed):
        api.lookup('M1 1AE')


def test_lookup_bad_json_raises_lookup_failed(fake_session, bad_json):
    fake_session.add('postcodes/M1%201AE', FakeResponse(bad_json))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    with pytest.raises(LookupFailed):
        api.lookup('M1 1AE')


def test_nearest_returns_postcodes_in_order(fake_session):
    fake_session.add('/postcodes', FakeResponse({
        'status': 200,
        'result': [{'postcode': 'M2 5DB'}, {'postcode': 'M2 5DA'}],
    }))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    assert api.nearest(53.48, -2.245, limit=2) == ['M2 5DB', 'M2 5DA']
    assert fake_session.calls[0]['params'] == {'lat': 53.48, 'lon': -2.245, 'limit': 2}


def test_nearest_with_no_result_is_empty(fake_session):
    fake_session.add('/postcodes', FakeResponse({'status': 200, 'result': None}))
    api = PostcodesAPI(base_url='https://pc.test', session=fake_session)

    assert api.nearest(60.0, -30.0) == []


def test_nominatim_search_is_uk_scoped(fake_session):
    fake_session.add('/search', FakeResponse([
        {'display_name': 'Leeds, West Yorkshire, England', 'lat': '53.79', 'lon': '-1.54'},
        {'display_name': 'Nowhere', 'lat': None, 'lon': None},
    ]))
    api = NominatimAPI(base_url='https://geo.test', user_agent='tests', session=fake_session)

    hits = api.search('Leeds', limit=5)

    assert [h['display_name'] for h in hits] == ['Leeds, West Yorkshire, England']
    call = fake_session.calls[0]
    assert call['params']['countrycodes'] == 'gb'
    assert call['params']['limit'] == 5
    assert call['headers']['User-Agent'] == 'tests'


def test_nominatim_http_error_raises_lookup_failed(fake_session):
    fake_session.add('/search', FakeResponse([], status_code=503))
    api = NominatimAPI(base_url='https://geo.test', session=fake_session)

    with pytest.raises(LookupFailed):
        api.search('Leeds')
