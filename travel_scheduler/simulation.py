"""
Read-only placement probes for interactive callers.

Answers "could this participant start at HH:MM on day D?" with exactly the
positioning and feasibility rules of the engine's in-place insertion, and
lists the blocked and available start times of a day. Nothing here mutates
the room.
"""

import logging
from datetime import date as date_type
from typing import Dict, List, Optional, Tuple, Union

from models import (
    AvailableStart,
    BlockedInterval,
    Conflict,
    MemberAvailability,
    Room,
    SimulationResult,
    TimeWindow,
    TravelMode,
)
from .constants import MINUTES_PER_DAY, OWNER_LABEL, PROBE_END, PROBE_START, SLOT_MINUTES
from .constraints import ConstraintChecker, ConstraintViolation
from .preferences import build_preferences
from .slots import merge_consecutive_slots
from .state import RecalculationContext
from .timeutils import ceil_to_slot, format_minutes, parse_local_date
from .travel import TravelTimeService

logger = logging.getLogger(__name__)


def _clamp(minute: int) -> int:
    return min(max(minute, 0), MINUTES_PER_DAY)


def _window(start: int, end: int) -> TimeWindow:
    return TimeWindow(start_time=format_minutes(_clamp(start)), end_time=format_minutes(_clamp(end)))


def _day_context(room: Room, day: date_type) -> Tuple[RecalculationContext, Dict[int, str]]:
    """Allocation Table of the room's current assignment on ``day`` (travel units excluded)."""
    context = RecalculationContext()
    labels: Dict[int, str] = {}
    for block in merge_consecutive_slots(room.time_slots):
        if block.date != day:
            continue
        allocation = context.commit(day, block.start_minute, block.end_minute, block.participant_id,
                                    is_owner=room.is_owner(block.participant_id))
        labels[id(allocation)] = block.label
    return context, labels


def _to_conflict(violation: ConstraintViolation, labels: Dict[int, str]) -> Conflict:
    if violation.constraint_type == "Blocked":
        blocked = violation.blocked_time
        return Conflict(type="blocked", name=blocked.name, time=f"{blocked.start_time}-{blocked.end_time}")
    if violation.constraint_type == "Overlap":
        other = violation.conflicting
        return Conflict(
            type="overlap",
            time=f"{format_minutes(other.start_minute)}-{format_minutes(other.end_minute)}",
            participant_id=other.participant_id,
            label=labels.get(id(other), ""),
        )
    kind = "preference" if violation.constraint_type == "Preference" else "day_range"
    return Conflict(
        type=kind,
        time=f"{format_minutes(_clamp(violation.start_minute))}-{format_minutes(_clamp(violation.end_minute))}",
        name=violation.reason,
    )


async def simulate_placement(
    room: Room,
    participant_id: str,
    day: Union[date_type, str],
    start_minute: int,
    duration: int,
    mode: Union[TravelMode, str] = TravelMode.NORMAL,
    travel_service: Optional[TravelTimeService] = None,
) -> SimulationResult:
    mode = TravelMode(mode)
    day = parse_local_date(day)
    travel_service = travel_service or TravelTimeService()

    depot = room.owner.location
    if depot is None:
        return SimulationResult(can_place=False, reason="The owner's address is missing")

    member_locations = room.member_locations()
    destination = member_locations.get(participant_id)
    if destination is None:
        return SimulationResult(can_place=False, reason="The participant's address is missing")

    context, labels = _day_context(room, day)

    # The owner leaves from whoever finishes last before the requested start
    predecessor = context.predecessor_before(day, start_minute)
    origin, origin_name = depot, OWNER_LABEL
    if predecessor is not None and not predecessor.is_owner and predecessor.participant_id in member_locations:
        origin = member_locations[predecessor.participant_id]
        origin_name = origin.display_name or predecessor.participant_id

    leg = await travel_service.leg(origin, destination, mode)
    travel_minutes = ceil_to_slot(leg.duration_seconds)

    if predecessor is None:
        activity_start = start_minute
        travel_start = activity_start - travel_minutes
    else:
        travel_start = predecessor.end_minute
        activity_start = travel_start + travel_minutes
    activity_end = activity_start + duration

    checker = ConstraintChecker(room.blocked_times, build_preferences(room.participants))
    violations = checker.collect_violations(
        participant_id, day, travel_start, activity_start, activity_end, context.table,
    )
    conflicts = [_to_conflict(v, labels) for v in violations]

    return SimulationResult(
        can_place=not conflicts,
        reason=conflicts[0].type if conflicts else "",
        travel_minutes=travel_minutes,
        from_location_name=origin_name,
        to_location_name=destination.display_name or participant_id,
        conflicts=conflicts,
        proposed_travel_window=_window(travel_start, activity_start) if travel_minutes else None,
        proposed_activity_window=_window(activity_start, activity_end),
    )


def get_blocked_times_for_member(room: Room, participant_id: str, day: Union[date_type, str]) -> List[BlockedInterval]:
    """Room blocked times plus everyone else's occupied intervals on ``day``."""
    day = parse_local_date(day)
    blocked = [
        BlockedInterval(start_time=b.start_time, end_time=b.end_time, type="blocked", reason=b.name)
        for b in room.blocked_times
    ]
    for block in merge_consecutive_slots(room.time_slots):
        if block.date != day or block.participant_id == participant_id:
            continue
        blocked.append(BlockedInterval(
            start_time=format_minutes(block.start_minute),
            end_time=format_minutes(block.end_minute),
            type="occupied",
            reason="Assigned to another participant",
        ))
    return blocked


async def get_available_times_for_member(
    room: Room,
    participant_id: str,
    day: Union[date_type, str],
    duration: int,
    mode: Union[TravelMode, str] = TravelMode.NORMAL,
    travel_service: Optional[TravelTimeService] = None,
) -> MemberAvailability:
    """Probe every 10-minute start between 09:00 and 18:00."""
    travel_service = travel_service or TravelTimeService()
    availability = MemberAvailability(blocked=get_blocked_times_for_member(room, participant_id, day))

    for minute in range(PROBE_START, PROBE_END, SLOT_MINUTES):
        result = await simulate_placement(room, participant_id, day, minute, duration, mode, travel_service)
        if result.can_place:
            availability.available.append(AvailableStart(
                start_time=format_minutes(minute),
                end_time=format_minutes(minute + SLOT_MINUTES),
                activity_window=result.proposed_activity_window,
                travel_minutes=result.travel_minutes,
                from_location_name=result.from_location_name,
            ))
        else:
            availability.blocked.append(BlockedInterval(
                start_time=format_minutes(minute),
                end_time=format_minutes(minute + SLOT_MINUTES),
                type="unavailable",
                reason=result.reason,
            ))

    logger.debug(f"{participant_id} on {day}: {len(availability.available)} available starts")
    return availability
