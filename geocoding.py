"""
City geocoding for profile locations
Optional: only active when GEO_API_KEY is configured
"""

import logging
import os

import requests

logger = logging.getLogger(__name__)

GEOCODE_URL = os.environ.get('GEO_API_URL', 'https://maps.googleapis.com/maps/api/geocode/json')


def geocode_location(location_string, api_key=None):
    """Geocode a city name, returning {'lat', 'lng'} or None"""
    api_key = api_key if api_key is not None else os.environ.get('GEO_API_KEY')
    if not api_key or not location_string:
        return None

    try:
        response = requests.get(
            GEOCODE_URL,
            params={'address': location_string, 'key': api_key},
            timeout=10
        )

        if response.status_code == 200:
            data = response.json()
            if data.get('results'):
                location = data['results'][0]['geometry']['location']
                return {'lat': location['lat'], 'lng': location['lng']}
        else:
            logger.warning(f"Geocoding error: {response.status_code} - {response.text}")

        return None
    except requests.RequestException as e:
        logger.warning(f"Geocoding request error: {e}")
        return None


def fill_coordinates(location, api_key=None):
    """Return a copy of a normalized location with lat/lng filled in when missing"""
    if not location or not location.get('city'):
        return location
    if location.get('lat') is not None and location.get('lng') is not None:
        return location

    coords = geocode_location(location['city'], api_key=api_key)
    if not coords:
        return location

    filled = dict(location)
    filled.update(coords)
    return filled
