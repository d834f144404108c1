"""
Walking-mode gate.

Walking is only offered when no single leg of any day's itinerary (owner to
the first member, then member to member in time order) takes more than an
hour on foot.
"""

import logging
from typing import Optional

from models import Location, Room, TravelMode, ValidationResult
from .constants import OWNER_LABEL, WALKING_LEG_LIMIT_MINUTES
from .routing import sort_blocks_by_time
from .slots import merge_consecutive_slots
from .timeutils import ceil_minutes
from .travel import TravelTimeService

logger = logging.getLogger(__name__)


async def validate_walking_mode(room: Room, travel_service: Optional[TravelTimeService] = None) -> ValidationResult:
    if not room.time_slots:
        return ValidationResult(is_valid=False, message="No timetable data")
    if room.owner.location is None:
        return ValidationResult(is_valid=False, message="The owner's address is required")

    travel_service = travel_service or TravelTimeService()
    depot = room.owner.location
    member_locations = room.member_locations()

    blocks = sort_blocks_by_time(merge_consecutive_slots(room.time_slots))

    current_day = None
    previous: Location = depot
    previous_name = OWNER_LABEL

    for block in blocks:
        if block.date != current_day:
            current_day = block.date
            previous, previous_name = depot, OWNER_LABEL

        location = member_locations.get(block.participant_id)
        if location is None:
            continue

        leg = await travel_service.leg(previous, location, TravelMode.WALKING)
        minutes = ceil_minutes(leg.duration_seconds)
        if minutes > WALKING_LEG_LIMIT_MINUTES:
            logger.info(f"Walking rejected: {previous_name} -> {location.display_name} takes {minutes} min")
            return ValidationResult(
                is_valid=False,
                message=f"Walking leg exceeds one hour: {previous_name} -> {location.display_name}: {minutes} min",
            )

        previous, previous_name = location, location.display_name

    return ValidationResult(is_valid=True, message="Walking mode is available")
