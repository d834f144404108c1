"""
Distance-based ordering of activity blocks.

Within each date the owner's blocks keep their time order (the owner never
moves) and the members' blocks are ordered by a greedy nearest-neighbour walk
that starts at the owner's address. This is an O(n^2) approximation of a
single-depot tour, not an optimal route.
"""

import math
from collections import defaultdict
from datetime import date as date_type
from typing import Dict, List, Optional

from models import ActivityBlock, Location
from .constants import EARTH_RADIUS_KM


def haversine_km(a: Location, b: Location) -> float:
    """Great-circle distance between two locations in kilometres."""
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])
    dlat = lat2 - lat1
    dlng = lng2 - lng1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def sort_blocks_by_time(blocks: List[ActivityBlock]) -> List[ActivityBlock]:
    return sorted(blocks, key=lambda b: (b.date, b.start_minute))


def _nearest_neighbour_walk(
    blocks: List[ActivityBlock],
    depot: Location,
    member_locations: Dict[str, Location],
) -> List[ActivityBlock]:
    remaining = list(blocks)
    ordered: List[ActivityBlock] = []
    current = depot

    while remaining:
        closest_index: Optional[int] = None
        closest_distance = math.inf

        for i, block in enumerate(remaining):
            location = member_locations.get(block.participant_id)
            if location is None:
                continue
            distance = haversine_km(current, location)
            # Strict comparison: ties go to the earlier candidate
            if distance < closest_distance:
                closest_distance = distance
                closest_index = i

        if closest_index is None:
            # Only unlocated members left; keep their input order
            ordered.extend(remaining)
            break

        chosen = remaining.pop(closest_index)
        ordered.append(chosen)
        current = member_locations[chosen.participant_id]

    return ordered


def sort_blocks_by_distance(
    blocks: List[ActivityBlock],
    owner_id: str,
    owner_location: Location,
    member_locations: Dict[str, Location],
) -> List[ActivityBlock]:
    """
    Date-grouped block order driving the main recalculation loop:
    for each date (ascending), the owner's blocks by start time, then the
    members' blocks in nearest-neighbour order from the owner's address.
    """
    by_date: Dict[date_type, List[ActivityBlock]] = defaultdict(list)
    for block in blocks:
        by_date[block.date].append(block)

    ordered: List[ActivityBlock] = []
    for day in sorted(by_date):
        day_blocks = by_date[day]
        owner_blocks = sorted(
            (b for b in day_blocks if b.participant_id == owner_id),
            key=lambda b: b.start_minute,
        )
        member_blocks = [b for b in day_blocks if b.participant_id != owner_id]

        ordered.extend(owner_blocks)
        ordered.extend(_nearest_neighbour_walk(member_blocks, owner_location, member_locations))
    return ordered
