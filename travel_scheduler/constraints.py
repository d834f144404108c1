"""
Hard Constraint Validation Logic.

This module answers the binary question: "Can this travel + activity span
happen on day D?" It enforces physical reality (two things can't happen at
once), room-wide blocked times and the participant's declared availability.

The same checker backs the in-place insertion, the relocation search, the
reconciliation guard and the interactive simulation probe, so the four can
never disagree about feasibility.
"""

from datetime import date as date_type
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass

from models import BlockedTime
from .constants import MINUTES_PER_DAY
from .preferences import ParticipantPreferences, is_within_preferred_time
from .timeutils import format_minutes, intervals_overlap


@dataclass
class Allocation:
    """One committed interval in the Allocation Table."""
    start_minute: int
    end_minute: int
    participant_id: str
    is_owner: bool = False


@dataclass
class BlockedCheck:
    blocked: bool
    which: Optional[BlockedTime] = None


@dataclass
class ConstraintViolation:
    """Detailed reason for rejection."""
    constraint_type: str  # "DayRange", "Blocked", "Preference", "Overlap"
    reason: str
    participant_id: str
    date: date_type
    start_minute: int
    end_minute: int
    conflicting: Optional[Allocation] = None
    blocked_time: Optional[BlockedTime] = None


AllocationTable = Dict[date_type, List[Allocation]]


def overlaps(day: date_type, start: int, end: int, table: AllocationTable,
             ignore: Optional[Allocation] = None) -> bool:
    return find_overlap(day, start, end, table, ignore) is not None


def find_overlap(day: date_type, start: int, end: int, table: AllocationTable,
                 ignore: Optional[Allocation] = None) -> Optional[Allocation]:
    for allocation in table.get(day, []):
        if allocation is ignore:
            continue
        if intervals_overlap(start, end, allocation.start_minute, allocation.end_minute):
            return allocation
    return None


def overlaps_blocked(start: int, end: int, blocked_times: Sequence[BlockedTime]) -> BlockedCheck:
    for blocked in blocked_times:
        if intervals_overlap(start, end, blocked.start_minute, blocked.end_minute):
            return BlockedCheck(blocked=True, which=blocked)
    return BlockedCheck(blocked=False)


class ConstraintChecker:
    """
    Validates hard constraints for a travel + activity span.
    """

    def __init__(self, blocked_times: Sequence[BlockedTime], preferences: Dict[str, ParticipantPreferences]):
        self.blocked_times = list(blocked_times)
        self.preferences = preferences

    def check_span(
        self,
        participant_id: str,
        day: date_type,
        travel_start: int,
        activity_start: int,
        activity_end: int,
        table: AllocationTable,
        check_preference: bool = True,
        ignore: Optional[Allocation] = None,
    ) -> Optional[ConstraintViolation]:
        """
        Master validation function. Returns None if valid, the first violation
        otherwise. The travel leg is [travel_start, activity_start).
        """
        violations = self.collect_violations(
            participant_id, day, travel_start, activity_start, activity_end, table,
            check_preference=check_preference, ignore=ignore, first_only=True,
        )
        return violations[0] if violations else None

    def collect_violations(
        self,
        participant_id: str,
        day: date_type,
        travel_start: int,
        activity_start: int,
        activity_end: int,
        table: AllocationTable,
        check_preference: bool = True,
        ignore: Optional[Allocation] = None,
        first_only: bool = False,
    ) -> List[ConstraintViolation]:
        found: List[ConstraintViolation] = []

        def violation(kind: str, reason: str, **extra) -> ConstraintViolation:
            return ConstraintViolation(kind, reason, participant_id, day, travel_start, activity_end, **extra)

        # 1. The whole span must stay inside one calendar day
        if travel_start < 0 or activity_end > MINUTES_PER_DAY:
            found.append(violation("DayRange", "Span leaves the calendar day"))
            if first_only: return found

        # 2. Room-wide blocked times (travel and activity alike)
        for blocked in self.blocked_times:
            if intervals_overlap(travel_start, activity_end, blocked.start_minute, blocked.end_minute):
                found.append(violation(
                    "Blocked",
                    f"Overlaps blocked time '{blocked.name}' {blocked.start_time}-{blocked.end_time}",
                    blocked_time=blocked,
                ))
                if first_only: return found

        # 3. Declared availability must contain travel start through activity end
        if check_preference:
            prefs = self.preferences.get(participant_id)
            if prefs is None or not is_within_preferred_time(prefs, day, travel_start, activity_end):
                found.append(violation(
                    "Preference",
                    f"{format_minutes(max(travel_start, 0))}-{format_minutes(min(activity_end, MINUTES_PER_DAY))} "
                    f"is outside the preferred time",
                ))
                if first_only: return found

        # 4. Committed allocations
        for allocation in table.get(day, []):
            if allocation is ignore:
                continue
            if intervals_overlap(travel_start, activity_end, allocation.start_minute, allocation.end_minute):
                found.append(violation(
                    "Overlap",
                    f"Clash with {allocation.participant_id} "
                    f"{format_minutes(allocation.start_minute)}-{format_minutes(allocation.end_minute)}",
                    conflicting=allocation,
                ))
                if first_only: return found

        return found
