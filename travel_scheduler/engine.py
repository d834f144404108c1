"""
The Travel Schedule Recalculation Engine.

This module implements the core pass that turns an existing slot assignment
into a travel-aware timetable:
1. Distance Ordering - per date, members are visited greedily from the owner.
2. In-place Insertion - a travel leg is put in front of each member block.
3. Relocation - blocks that no longer fit move (whole, then split) within a
   five-weekday horizon, or are dropped with a reason.
4. Reconciliation - one sweep that fixes legs whose real predecessor changed
   after later placements.
"""

import logging
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Dict, List, Optional, Union

from models import (
    ActivityBlock,
    Location,
    PlacedSegment,
    PlacementOutcome,
    PlacementStatus,
    RecalculationResult,
    Room,
    TravelBlock,
    TravelLeg,
    TravelMode,
)
from .constants import OWNER_LABEL
from .constraints import Allocation, ConstraintChecker, ConstraintViolation
from .errors import ScheduleInputError
from .placement import PlacedSpan, SlotPlacer
from .preferences import build_preferences
from .routing import sort_blocks_by_distance, sort_blocks_by_time
from .slots import expand_activity, expand_travel, merge_consecutive_slots, slot_from_unit
from .state import EmittedPlacement, RecalculationContext
from .timeutils import ceil_to_slot, format_minutes
from .travel import TravelTimeProvider, TravelTimeService
from .validation import validate_walking_mode

logger = logging.getLogger(__name__)


@dataclass
class _PreviousVisit:
    """The member placed last in the loop (drives same-date chaining)."""
    original_date: date_type
    final_date: date_type
    participant_id: str
    location: Location
    end_minute: int


@dataclass
class _BlockRecord:
    block: ActivityBlock
    original_date: date_type
    status: PlacementStatus
    reason: str = ""
    placements: List[EmittedPlacement] = field(default_factory=list)
    unplaced_minutes: int = 0


class TravelScheduleRecalculator:
    """
    Main recalculation engine.
    Ingests a Room and a travel mode, outputs a RecalculationResult.
    """

    def __init__(self, room: Room, mode: Union[TravelMode, str], travel_service: Optional[TravelTimeService] = None):
        self.room = room
        self.mode = TravelMode(mode)
        self.travel_service = travel_service or TravelTimeService()

        self.owner_id = room.owner.id
        self.depot = room.owner.location
        self.member_locations: Dict[str, Location] = room.member_locations()

        # Initialize Helpers
        self.context = RecalculationContext()
        self.preferences = build_preferences(room.participants)
        self.checker = ConstraintChecker(room.blocked_times, self.preferences)
        self.placer = SlotPlacer(self.mode, self.checker, self.preferences, self.context, self.travel_service)

        self._records: List[_BlockRecord] = []

    async def run(self) -> RecalculationResult:
        """
        Execute the recalculation pipeline.
        Raises ScheduleInputError before touching anything if a precondition fails.
        """
        blocks = merge_consecutive_slots(self.room.time_slots)
        if not blocks:
            raise ScheduleInputError("No timetable data")

        if self.mode == TravelMode.NORMAL:
            return self._passthrough(blocks)

        if self.depot is None:
            raise ScheduleInputError("The owner's address is required to calculate travel time")

        if self.mode == TravelMode.WALKING:
            gate = await validate_walking_mode(self.room, self.travel_service)
            if not gate.is_valid:
                raise ScheduleInputError(gate.message)

        logger.info(f"Recalculating {len(blocks)} blocks for mode '{self.mode.value}'")

        # 1. Sort: per date, owner first, then members nearest-neighbour from the owner
        ordered = sort_blocks_by_distance(blocks, self.owner_id, self.depot, self.member_locations)

        # 2. Seed: the owner never moves, so the owner's time is taken before anyone is placed
        owner_allocations: Dict[int, Allocation] = {}
        for block in ordered:
            if block.participant_id == self.owner_id:
                owner_allocations[id(block)] = self.context.commit(
                    block.date, block.start_minute, block.end_minute, self.owner_id, is_owner=True,
                )

        # 3. Main Loop
        previous: Optional[_PreviousVisit] = None
        for block in ordered:
            if block.participant_id == self.owner_id:
                self._pass_through(block, owner_allocations[id(block)])
                continue

            location = self.member_locations.get(block.participant_id)
            if location is None:
                self._place_unlocated(block)
                continue

            previous = await self._place_member(block, location, previous)

        # 4. Reconcile travel legs against the settled schedule
        await self._reconcile()

        result = self._build_result()
        stats = self.context.get_statistics()
        logger.info(f"Recalculation done: {stats['placed']} placed, {stats['partially_placed']} split, "
                    f"{stats['dropped']} dropped, {stats['travel_legs']} travel legs")
        return result

    # --- Placement ---

    def _pass_through(self, block: ActivityBlock, allocation: Allocation) -> None:
        placement = self.context.emit(block, allocation=allocation)
        self._records.append(_BlockRecord(block, block.date, PlacementStatus.PLACED, placements=[placement]))

    def _check_unchanged(self, block: ActivityBlock) -> Optional[ConstraintViolation]:
        """Can ``block`` keep its stored timing without travel? Preferences are not re-checked."""
        return self.checker.check_span(
            block.participant_id, block.date, block.start_minute, block.start_minute, block.end_minute,
            self.context.table, check_preference=False,
        )

    def _place_unlocated(self, block: ActivityBlock) -> None:
        # Without an address there is no leg to relocate with
        violation = self._check_unchanged(block)
        if violation is None:
            allocation = self.context.commit(block.date, block.start_minute, block.end_minute, block.participant_id)
            self._pass_through(block, allocation)
            return

        self.context.record_rejection(block, violation)
        reason = f"No address to relocate from; {violation.reason}"
        logger.warning(f"Dropped {block}: {reason}")
        self._records.append(_BlockRecord(
            block, block.date, PlacementStatus.DROPPED, reason=reason, unplaced_minutes=block.duration_minutes,
        ))

    async def _place_member(
        self,
        block: ActivityBlock,
        location: Location,
        previous: Optional[_PreviousVisit],
    ) -> Optional[_PreviousVisit]:
        pid = block.participant_id
        day = block.date

        # Same original date: leave from the previous member, otherwise from the owner
        if previous is not None and previous.original_date == day:
            origin_id, origin_location = previous.participant_id, previous.location
        else:
            origin_id, origin_location = self.owner_id, self.depot

        leg = await self.travel_service.leg(origin_location, location, self.mode)
        travel_minutes = ceil_to_slot(leg.duration_seconds)

        duration = block.duration_minutes
        follows_other = False

        if travel_minutes == 0:
            violation = self._check_unchanged(block)
            if violation is None:
                allocation = self.context.commit(day, block.start_minute, block.end_minute, pid)
                self._pass_through(block, allocation)
                self.context.update_last_location(day, pid, location, block.end_minute)
                return _PreviousVisit(day, day, pid, location, block.end_minute)
        else:
            follows_other = (
                previous is not None
                and previous.original_date == day
                and previous.final_date == day
                and previous.participant_id != pid
            )
            if follows_other:
                travel_start = previous.end_minute
                activity_start = travel_start + travel_minutes
            else:
                activity_start = block.start_minute
                travel_start = activity_start - travel_minutes
            activity_end = activity_start + duration

            violation = self.checker.check_span(pid, day, travel_start, activity_start, activity_end, self.context.table)
            if violation is None:
                allocation = self.context.commit(day, travel_start, activity_end, pid)
                block.start_minute, block.end_minute = activity_start, activity_end
                travel = self._travel_block(pid, day, travel_start, activity_start, origin_id, origin_location, location, leg)
                placement = self.context.emit(block, travel, allocation, origin_id)
                self.context.update_last_location(day, pid, location, activity_end)
                self._records.append(_BlockRecord(block, day, PlacementStatus.PLACED, placements=[placement]))
                return _PreviousVisit(day, day, pid, location, activity_end)

        self.context.record_rejection(block, violation)
        logger.debug(f"In-place insertion rejected for {block}: {violation.reason}")

        # Relocation: the owner leg is the default, the previous member's end the floor
        owner_origin = await self.placer.origin_from(self.owner_id, self.depot, location)
        min_start = previous.end_minute if follows_other else 0

        status = PlacementStatus.PLACED
        search = await self.placer.find_whole_block_slot(block, location, owner_origin, min_start)
        if not search.success:
            search = await self.placer.find_split_slots(block, location, owner_origin, min_start)
            status = PlacementStatus.PARTIALLY_PLACED

        if not search.success:
            reason = (f"No feasible slot within five weekdays of {day} "
                      f"({search.remaining_minutes} of {duration} min unplaced); first rejection: {violation.reason}")
            logger.warning(f"Dropped {block}: {reason}")
            self._records.append(_BlockRecord(
                block, day, PlacementStatus.DROPPED, reason=reason, unplaced_minutes=search.remaining_minutes,
            ))
            return previous

        if len(search.spans) == 1:
            status = PlacementStatus.PLACED

        placements = [self._emit_span(block, span, location) for span in search.spans]
        first = search.spans[0]
        reason = f"Moved to {first.date} {format_minutes(first.activity_start)}"
        if len(search.spans) > 1:
            reason = f"Split into {len(search.spans)} segments starting {first.date} {format_minutes(first.activity_start)}"
        self._records.append(_BlockRecord(block, day, status, reason=reason, placements=placements))

        last = search.spans[-1]
        return _PreviousVisit(day, last.date, pid, location, last.activity_end)

    def _emit_span(self, block: ActivityBlock, span: PlacedSpan, destination: Location) -> EmittedPlacement:
        activity = ActivityBlock(
            participant_id=block.participant_id,
            date=span.date,
            start_minute=span.activity_start,
            end_minute=span.activity_end,
            label=block.label,
            original_start_minute=block.original_start_minute,
            original_end_minute=block.original_end_minute,
        )
        travel = None
        if span.travel_minutes > 0 and span.leg is not None:
            travel = self._travel_block(
                block.participant_id, span.date, span.travel_start, span.activity_start,
                span.origin_participant_id, span.origin_location, destination, span.leg,
            )
        self.context.update_last_location(span.date, block.participant_id, destination, span.activity_end)
        return self.context.emit(activity, travel, span.allocation, span.origin_participant_id)

    def _origin_name(self, participant_id: str, location: Location) -> str:
        if participant_id == self.owner_id:
            return OWNER_LABEL
        return location.display_name or participant_id

    def _travel_block(self, participant_id: str, day: date_type, travel_start: int, activity_start: int,
                      origin_id: str, origin_location: Location, destination: Location, leg: TravelLeg) -> TravelBlock:
        return TravelBlock(
            participant_id=participant_id,
            date=day,
            start_minute=travel_start,
            end_minute=activity_start,
            from_location_name=self._origin_name(origin_id, origin_location),
            to_location_name=destination.display_name or participant_id,
            mode=self.mode,
            duration_seconds=leg.duration_seconds,
            distance_meters=leg.distance_meters,
            is_estimate=leg.is_estimate,
        )

    # --- Reconciliation ---

    async def _reconcile(self) -> None:
        """
        One pass over every emitted travel leg. Later placements can put
        someone else directly in front of a leg; when that changes its
        rounded duration, the leg end and its activity shift by the delta,
        as long as the shifted span is still feasible. No iteration to a
        fixed point.
        """
        for placement in self.context.placements:
            travel = placement.travel
            if travel is None:
                continue

            predecessor = self.context.predecessor_before(travel.date, travel.start_minute, travel.participant_id)
            if predecessor is None or predecessor.is_owner:
                true_id, true_location = self.owner_id, self.depot
            else:
                true_id = predecessor.participant_id
                true_location = self.member_locations.get(true_id)
                if true_location is None:
                    continue

            if true_id == placement.origin_participant_id:
                continue

            destination = self.member_locations[travel.participant_id]
            leg = await self.travel_service.leg(true_location, destination, self.mode)
            new_minutes = ceil_to_slot(leg.duration_seconds)
            old_minutes = travel.duration_minutes
            if new_minutes == 0:
                continue

            delta = new_minutes - old_minutes
            activity = placement.activity
            if delta:
                violation = self.checker.check_span(
                    travel.participant_id, travel.date, travel.start_minute,
                    activity.start_minute + delta, activity.end_minute + delta,
                    self.context.table, ignore=placement.allocation,
                )
                if violation is not None:
                    logger.debug(f"Kept assumed leg for {activity}: corrected span rejected ({violation.reason})")
                    continue
                activity.shift(delta)
                travel.end_minute += delta
                placement.allocation.end_minute = activity.end_minute
                self.context.reconciled += 1
                logger.debug(f"Reconciled leg to {activity}: {old_minutes} -> {new_minutes} min "
                             f"(from {self._origin_name(true_id, true_location)})")

            travel.from_location_name = self._origin_name(true_id, true_location)
            travel.duration_seconds = leg.duration_seconds
            travel.distance_meters = leg.distance_meters
            travel.is_estimate = leg.is_estimate
            placement.origin_participant_id = true_id

    # --- Output ---

    def _passthrough(self, blocks: List[ActivityBlock]) -> RecalculationResult:
        """'normal' mode: the stored assignment is returned as is, without travel."""
        for block in sort_blocks_by_time(blocks):
            self._records.append(_BlockRecord(block, block.date, PlacementStatus.PLACED,
                                              placements=[EmittedPlacement(block)]))
        self._finalize_outcomes()
        return RecalculationResult(
            activity_slots=[slot_from_unit(u) for u in self.room.time_slots if not u.is_travel],
            travel_slots=[],
            mode=self.mode,
            outcomes=self.context.outcomes,
        )

    def _finalize_outcomes(self) -> None:
        for record in self._records:
            block = record.block
            segments = []
            for p in record.placements:
                segments.append(PlacedSegment(
                    date=p.activity.date,
                    start_time=format_minutes(p.activity.start_minute),
                    end_time=format_minutes(p.activity.end_minute),
                    travel_minutes=p.travel.duration_minutes if p.travel else 0,
                ))
            placed = sum(p.activity.duration_minutes for p in record.placements)
            self.context.record_outcome(PlacementOutcome(
                participant_id=block.participant_id,
                original_date=record.original_date,
                original_start_time=format_minutes(block.original_start_minute),
                original_end_time=format_minutes(block.original_end_minute),
                status=record.status,
                reason=record.reason,
                placed_minutes=placed,
                unplaced_minutes=record.unplaced_minutes,
                segments=segments,
            ))

    def _build_result(self) -> RecalculationResult:
        self._finalize_outcomes()

        emitted = sorted(self.context.placements, key=lambda p: (p.activity.date, p.activity.start_minute))
        activity_slots = []
        for placement in emitted:
            travel = placement.travel
            if travel is not None:
                activity_slots.extend(expand_travel(travel))
            activity_slots.extend(expand_activity(
                placement.activity, travel_minutes_before=travel.duration_minutes if travel else 0,
            ))

        travel_slots = sorted(
            (p.travel for p in emitted if p.travel is not None),
            key=lambda t: (t.date, t.start_minute),
        )
        return RecalculationResult(
            activity_slots=activity_slots,
            travel_slots=travel_slots,
            mode=self.mode,
            outcomes=self.context.outcomes,
        )


async def recalculate_schedule(
    room: Room,
    mode: Union[TravelMode, str] = TravelMode.NORMAL,
    provider: Optional[TravelTimeProvider] = None,
) -> RecalculationResult:
    """
    Public entry point: recalculate ``room``'s timetable for ``mode``.
    ``provider`` is an async travel-time lookup; without one every leg is
    estimated from straight-line distance.
    """
    service = TravelTimeService(provider)
    return await TravelScheduleRecalculator(room, mode, service).run()
