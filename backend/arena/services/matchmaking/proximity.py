import math
from typing import Iterable, List, NamedTuple, Optional

from arena.models import PlayerProfile, QueueEntry
from .location import Coordinates
from .queue import get_entry, snapshot


EARTH_RADIUS_KM = 6371.0
ANONYMOUS_NAME = 'Anonymous Player'
UNKNOWN_LOCATION = 'Unknown Location'


class RankedCandidate(NamedTuple):
    entry: QueueEntry
    distance_km: Optional[float]


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def rank_candidates(requester: Optional[Coordinates], candidates: Iterable[QueueEntry]) -> List[RankedCandidate]:
    """Order candidates nearest first.

    A candidate whose distance cannot be computed (either side lacks
    coordinates) is kept, after every located one, in its original order.
    """
    ranked = []
    for entry in candidates:
        target = entry.coordinates
        distance = None
        if requester is not None and target is not None:
            distance = haversine_km(requester, target)
        ranked.append(RankedCandidate(entry, distance))
    # sorted() is stable, so ties keep snapshot order
    return sorted(ranked, key=lambda c: (c.distance_km is None, c.distance_km or 0.0))


def list_candidates(player_id: str) -> List[dict]:
    own = get_entry(player_id)
    requester = own.coordinates if own else None
    ranked = rank_candidates(requester, snapshot(exclude_player_id=player_id))

    ids = [c.entry.player_id for c in ranked]
    profiles = {}
    if ids:
        profiles = {p.player_id: p for p in PlayerProfile.query.filter(PlayerProfile.player_id.in_(ids)).all()}

    result = []
    for candidate in ranked:
        entry = candidate.entry
        profile = profiles.get(entry.player_id)
        result.append({
            'player_id': entry.player_id,
            'display_name': (profile.display_name if profile else None) or ANONYMOUS_NAME,
            'locality_label': (profile.locality_label if profile else None) or UNKNOWN_LOCATION,
            'distance_km': round(candidate.distance_km, 1) if candidate.distance_km is not None else None,
            'wager_amount': float(entry.wager_amount or 0),
            'joined_at': entry.joined_at.isoformat() if entry.joined_at else None,
        })
    return result
