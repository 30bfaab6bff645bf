"""
City geocoding over HTTP
"""
from unittest.mock import patch, MagicMock

import requests

from geocoding import geocode_location, fill_coordinates


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = 'error'
    return response


def test_geocode_success():
    payload = {'results': [{'geometry': {'location': {'lat': 41.0, 'lng': 29.0}}}]}
    with patch('geocoding.requests.get', return_value=fake_response(payload=payload)) as get:
        assert geocode_location('Istanbul', api_key='k') == {'lat': 41.0, 'lng': 29.0}

    assert get.call_args.kwargs['params'] == {'address': 'Istanbul', 'key': 'k'}


def test_geocode_without_key_skips_request(monkeypatch):
    monkeypatch.delenv('GEO_API_KEY', raising=False)
    with patch('geocoding.requests.get') as get:
        assert geocode_location('Istanbul') is None
    get.assert_not_called()


def test_geocode_no_results_or_http_error():
    with patch('geocoding.requests.get', return_value=fake_response(payload={'results': []})):
        assert geocode_location('Nowhere', api_key='k') is None
    with patch('geocoding.requests.get', return_value=fake_response(status_code=500)):
        assert geocode_location('Istanbul', api_key='k') is None


def test_geocode_network_error():
    with patch('geocoding.requests.get', side_effect=requests.ConnectionError('down')):
        assert geocode_location('Istanbul', api_key='k') is None


def test_fill_coordinates_only_when_missing():
    complete = {'city': 'Ankara', 'lat': 39.9, 'lng': 32.8}
    with patch('geocoding.geocode_location') as geocode:
        assert fill_coordinates(complete, api_key='k') is complete
        assert fill_coordinates({'city': '', 'lat': None, 'lng': None}, api_key='k')['city'] == ''
    geocode.assert_not_called()

    with patch('geocoding.geocode_location', return_value={'lat': 1.5, 'lng': 2.5}):
        filled = fill_coordinates({'city': 'Ankara', 'lat': None, 'lng': None}, api_key='k')
    assert filled == {'city': 'Ankara', 'lat': 1.5, 'lng': 2.5}
