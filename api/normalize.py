"""
Request normalization utilities for profile writers
Fills document defaults for details/location and coerces loose client values
"""

import logging
from typing import Dict, List, Any, Optional

logger = logging.getLogger(__name__)

DETAIL_UNSPECIFIED = 'Belirtilmedi'
DETAIL_TEXT_FIELDS = ('smoking', 'relationshipGoal', 'gender')

# Snake-case and short aliases seen from older clients
DETAIL_ALIASES = {
    'relationship_goal': 'relationshipGoal',
    'goal': 'relationshipGoal',
}


def default_details() -> Dict[str, Any]:
    details = {'hobbies': []}
    for field in DETAIL_TEXT_FIELDS:
        details[field] = DETAIL_UNSPECIFIED
    return details


def default_location() -> Dict[str, Any]:
    return {'city': '', 'lat': None, 'lng': None}


def _to_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge client details onto the defaults, dropping unknown keys"""
    normalized = default_details()
    if not details:
        return normalized

    for key, value in details.items():
        canonical_key = DETAIL_ALIASES.get(key, key)
        if canonical_key == 'hobbies':
            if isinstance(value, str):
                value = [h.strip() for h in value.split(',') if h.strip()]
            normalized['hobbies'] = list(value or [])
        elif canonical_key in DETAIL_TEXT_FIELDS:
            normalized[canonical_key] = value or DETAIL_UNSPECIFIED
    return normalized


def normalize_location(location) -> Dict[str, Any]:
    """Accept a bare city string or a {city, lat, lng} dict"""
    normalized = default_location()
    if not location:
        return normalized

    if isinstance(location, str):
        normalized['city'] = location.strip()
        return normalized

    normalized['city'] = (location.get('city') or '').strip()
    normalized['lat'] = _to_float(location.get('lat', location.get('latitude')))
    normalized['lng'] = _to_float(location.get('lng', location.get('longitude')))
    return normalized


def normalize_interested_in(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [v for v in value if v]


def normalize_profile_request(updates: Dict[str, Any], route: str) -> Dict[str, Any]:
    """
    Normalize a validated profile update

    Args:
        updates: Field -> value mapping (model attribute names) from the request schema
        route: Route name for logging

    Returns:
        Normalized updates dictionary
    """
    normalized = {}
    dropped_empty = []

    for key, value in updates.items():
        if key == 'details':
            value = normalize_details(value)
        elif key == 'location':
            value = normalize_location(value)
        elif key == 'interested_in':
            value = normalize_interested_in(value)
        elif key == 'username':
            value = (value or '').strip()
            if not value:
                dropped_empty.append(key)
                continue
        elif value is None:
            dropped_empty.append(key)
            continue

        normalized[key] = value

    logger.info("save_attempt", extra={
        'route': route,
        'normalized_keys': list(normalized.keys()),
        'dropped_empty': dropped_empty,
    })

    return normalized
