"""
Relocation search for blocks that cannot stay where they are.

Two strategies, tried in order by the engine:
1. Whole-block: move the travel + activity pair as one chunk to the first
   preference window (original date first, then the following weekdays)
   that can hold it.
2. Split: fill windows greedily with as much of the activity as fits,
   carrying the remainder forward. Only the first segment of a day pays a
   travel leg.

Both commit to the Allocation Table on success. The split search rolls its
tentative commits back if it cannot place the whole duration.
"""

import logging
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Dict, List, Optional

from models import ActivityBlock, Location, TravelLeg, TravelMode
from .constraints import Allocation, ConstraintChecker
from .preferences import ParticipantPreferences, windows_for
from .state import RecalculationContext
from .timeutils import ceil_to_slot, format_minutes, weekday_horizon
from .travel import TravelTimeService

logger = logging.getLogger(__name__)


@dataclass
class PlacedSpan:
    """One committed travel + activity span produced by the search."""
    date: date_type
    travel_start: int
    activity_start: int
    activity_end: int
    allocation: Allocation
    origin_participant_id: Optional[str] = None
    origin_location: Optional[Location] = None
    leg: Optional[TravelLeg] = None

    @property
    def travel_minutes(self) -> int:
        return self.activity_start - self.travel_start

    @property
    def duration_minutes(self) -> int:
        return self.activity_end - self.activity_start


@dataclass
class PlacementSearch:
    success: bool
    spans: List[PlacedSpan] = field(default_factory=list)
    remaining_minutes: int = 0


@dataclass
class TravelOrigin:
    participant_id: str
    location: Location
    leg: TravelLeg
    minutes: int


class SlotPlacer:
    """
    Searches the relocation horizon for a member block.
    Shares the run's context, checker and travel service with the engine.
    """

    def __init__(
        self,
        mode: TravelMode,
        checker: ConstraintChecker,
        preferences: Dict[str, ParticipantPreferences],
        context: RecalculationContext,
        travel_service: TravelTimeService,
    ):
        self.mode = mode
        self.checker = checker
        self.preferences = preferences
        self.context = context
        self.travel_service = travel_service

    async def origin_from(self, participant_id: str, origin: Location, destination: Location) -> TravelOrigin:
        leg = await self.travel_service.leg(origin, destination, self.mode)
        return TravelOrigin(participant_id, origin, leg, ceil_to_slot(leg.duration_seconds))

    async def find_whole_block_slot(
        self,
        block: ActivityBlock,
        destination: Location,
        owner_origin: TravelOrigin,
        min_start: int = 0,
    ) -> PlacementSearch:
        prefs = self.preferences.get(block.participant_id)
        if prefs is None:
            return PlacementSearch(success=False, remaining_minutes=block.duration_minutes)

        duration = block.duration_minutes

        for day in weekday_horizon(block.date):
            windows = windows_for(prefs, day)
            if not windows:
                continue

            # Chain from whoever was placed last on that day, else from the owner
            origin = owner_origin
            last = self.context.last_location_on(day)
            if last is not None:
                origin = await self.origin_from(last.participant_id, last.location, destination)

            effective_min_start = min_start if day == block.date else 0

            for window in windows:
                travel_start = max(window.start_minute, effective_min_start)
                activity_start = travel_start + origin.minutes
                activity_end = activity_start + duration

                if activity_end > window.end_minute:
                    continue

                violation = self.checker.check_span(
                    block.participant_id, day, travel_start, activity_start, activity_end, self.context.table,
                )
                if violation is not None:
                    self.context.record_rejection(block, violation)
                    continue

                allocation = self.context.commit(day, travel_start, activity_end, block.participant_id)
                logger.debug(f"Relocated {block} -> {day} {format_minutes(travel_start)}-{format_minutes(activity_end)}")
                return PlacementSearch(success=True, spans=[PlacedSpan(
                    date=day,
                    travel_start=travel_start,
                    activity_start=activity_start,
                    activity_end=activity_end,
                    allocation=allocation,
                    origin_participant_id=origin.participant_id,
                    origin_location=origin.location,
                    leg=origin.leg,
                )])

        return PlacementSearch(success=False, remaining_minutes=duration)

    async def find_split_slots(
        self,
        block: ActivityBlock,
        destination: Location,
        owner_origin: TravelOrigin,
        min_start: int = 0,
    ) -> PlacementSearch:
        prefs = self.preferences.get(block.participant_id)
        remaining = block.duration_minutes
        if prefs is None:
            return PlacementSearch(success=False, remaining_minutes=remaining)

        spans: List[PlacedSpan] = []
        last_span_day: Optional[date_type] = None

        for day in weekday_horizon(block.date):
            if remaining <= 0:
                break

            for window in windows_for(prefs, day):
                if remaining <= 0:
                    break

                origin: Optional[TravelOrigin] = None
                if last_span_day != day:
                    last = self.context.last_location_on(day)
                    if last is not None and last.end_minute <= window.start_minute:
                        origin = await self.origin_from(last.participant_id, last.location, destination)
                    else:
                        origin = owner_origin
                travel_minutes = origin.minutes if origin else 0

                effective_min_start = min_start if (day == block.date and not spans) else 0
                travel_start = max(window.start_minute, effective_min_start)
                activity_start = travel_start + travel_minutes
                available = window.end_minute - activity_start
                if available <= 0:
                    continue

                segment = min(remaining, available)
                activity_end = activity_start + segment

                violation = self.checker.check_span(
                    block.participant_id, day, travel_start, activity_start, activity_end, self.context.table,
                )
                if violation is not None:
                    self.context.record_rejection(block, violation)
                    continue

                allocation = self.context.commit(day, travel_start, activity_end, block.participant_id)
                spans.append(PlacedSpan(
                    date=day,
                    travel_start=travel_start,
                    activity_start=activity_start,
                    activity_end=activity_end,
                    allocation=allocation,
                    origin_participant_id=origin.participant_id if travel_minutes else None,
                    origin_location=origin.location if travel_minutes else None,
                    leg=origin.leg if travel_minutes else None,
                ))
                remaining -= segment
                last_span_day = day

        if remaining > 0:
            # Never truncate silently: undo everything this search committed
            for span in spans:
                self.context.release(span.date, span.allocation)
            logger.debug(f"Split search for {block} left {remaining} min unplaced; rolled back {len(spans)} segment(s)")
            return PlacementSearch(success=False, remaining_minutes=remaining)

        logger.debug(f"Split {block} into {len(spans)} segment(s)")
        return PlacementSearch(success=True, spans=spans)
