"""
Discovery feed ranking for The Vault
Pure functions over already-loaded user documents: filtering, VIP priority,
proximity sort and photo card selection
"""

import math
import random
from typing import Dict, List, Optional

EARTH_RADIUS_KM = 6371
SAME_CITY_DISTANCE_KM = 20
UNKNOWN_DISTANCE_KM = 100000
FEED_LIMIT = 50


def haversine_km(lat1, lng1, lat2, lng2):
    """Great-circle distance between two points in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _normalize_city(location: Optional[Dict]) -> str:
    if not location:
        return ''
    return (location.get('city') or '').lower().strip()


def _has_coordinates(location: Optional[Dict]) -> bool:
    # Zero coordinates count as missing
    return bool(location and location.get('lat') and location.get('lng'))


def distance_between(viewer_location: Optional[Dict], candidate_location: Optional[Dict]) -> float:
    """
    Approximate distance used for ordering the feed.

    Exact haversine when both sides have coordinates, a fixed short distance
    when only the city names match, and a far sentinel otherwise.
    """
    if _has_coordinates(viewer_location) and _has_coordinates(candidate_location):
        return haversine_km(
            viewer_location['lat'], viewer_location['lng'],
            candidate_location['lat'], candidate_location['lng']
        )

    viewer_city = _normalize_city(viewer_location)
    if viewer_city and _normalize_city(candidate_location) == viewer_city:
        return SAME_CITY_DISTANCE_KM

    return UNKNOWN_DISTANCE_KM


def is_visible_vip(user: Dict) -> bool:
    return bool(user.get('isMember')) and not user.get('isAnonymous')


def build_exclusion_list(viewer: Optional[Dict]) -> List[str]:
    """Usernames the viewer must not see: seen, blocked and themselves"""
    if not viewer:
        return []
    excluded = list(viewer.get('seenUsers') or []) + list(viewer.get('blockedUsers') or [])
    excluded.append(viewer.get('username'))
    return excluded


def is_candidate(user: Dict, viewer: Optional[Dict], excluded) -> bool:
    if user.get('isAnonymous'):
        return False
    if not user.get('photos'):
        return False
    if user.get('username') in excluded:
        return False

    interested_in = (viewer or {}).get('interestedIn') or []
    if interested_in:
        gender = (user.get('details') or {}).get('gender')
        if gender not in interested_in:
            return False
    return True


def rank_candidates(candidates: List[Dict], viewer: Optional[Dict]) -> List[Dict]:
    """Non-anonymous VIP members first, then nearest first"""
    viewer_location = (viewer or {}).get('location')

    def sort_key(user):
        return (
            0 if is_visible_vip(user) else 1,
            distance_between(viewer_location, user.get('location'))
        )

    return sorted(candidates, key=sort_key)


def build_feed(users: List[Dict], viewer: Optional[Dict] = None, limit: int = FEED_LIMIT,
               rng: Optional[random.Random] = None) -> List[Dict]:
    """
    Build the swipe feed for a viewer.

    Args:
        users: Serialized user documents (camelCase keys)
        viewer: The requesting user document, or None for anonymous callers
        limit: Maximum number of cards
        rng: Random source used to pick one photo per user

    Returns:
        Cards of {photo, username, avatar, isMember, details, location}
    """
    rng = rng or random
    excluded = set(build_exclusion_list(viewer))
    candidates = [u for u in users if is_candidate(u, viewer, excluded)]

    cards = []
    for user in rank_candidates(candidates, viewer):
        photos = user.get('photos') or []
        if not photos:
            continue
        cards.append({
            'photo': rng.choice(photos),
            'username': user.get('username'),
            'avatar': user.get('avatar'),
            'isMember': user.get('isMember') or False,
            'details': user.get('details') or {},
            'location': user.get('location'),
        })

    return cards[:limit]
