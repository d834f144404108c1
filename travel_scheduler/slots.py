"""
Conversion between atomic 10-minute storage units and contiguous blocks.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple
from datetime import date as date_type

from models import ActivityBlock, AssignedSlot, TimeSlot, TravelBlock
from .constants import SLOT_MINUTES
from .timeutils import format_minutes, minutes_of


def merge_consecutive_slots(slots: Iterable[AssignedSlot]) -> List[ActivityBlock]:
    """
    Contract stored units into contiguous Activity Blocks, grouped by
    participant and local date. Travel units from a previous run are
    discarded; they are regenerated by every recalculation.
    """
    grouped: Dict[Tuple[str, date_type], List[AssignedSlot]] = defaultdict(list)
    for slot in slots:
        if slot.is_travel:
            continue
        grouped[(slot.participant_id, slot.date)].append(slot)

    blocks: List[ActivityBlock] = []
    for (participant_id, day), group in grouped.items():
        group.sort(key=lambda s: minutes_of(s.start_time))
        current: Optional[ActivityBlock] = None
        for slot in group:
            start, end = minutes_of(slot.start_time), minutes_of(slot.end_time)
            if end <= start:
                continue
            if current is not None and current.end_minute == start:
                current.end_minute = end
                current.original_end_minute = end
                continue
            current = ActivityBlock(
                participant_id=participant_id,
                date=day,
                start_minute=start,
                end_minute=end,
                label=slot.label,
            )
            blocks.append(current)
    return blocks


def expand_block(
    participant_id: str,
    day: date_type,
    start_minute: int,
    end_minute: int,
    label: str = "",
    is_travel: bool = False,
    travel_minutes_before: int = 0,
    original_start_minute: Optional[int] = None,
    original_end_minute: Optional[int] = None,
) -> List[TimeSlot]:
    """Split a contiguous interval into atomic storage units."""
    original_start = format_minutes(original_start_minute) if original_start_minute is not None else None
    original_end = format_minutes(original_end_minute) if original_end_minute is not None else None

    units = []
    for m in range(start_minute, end_minute, SLOT_MINUTES):
        units.append(TimeSlot(
            participant_id=participant_id,
            date=day,
            start_time=format_minutes(m),
            end_time=format_minutes(min(m + SLOT_MINUTES, end_minute)),
            label=label,
            is_travel=is_travel,
            travel_minutes_before=travel_minutes_before,
            original_start_time=original_start,
            original_end_time=original_end,
        ))
    return units


def expand_activity(block: ActivityBlock, travel_minutes_before: int = 0) -> List[TimeSlot]:
    moved = (block.start_minute, block.end_minute) != (block.original_start_minute, block.original_end_minute)
    return expand_block(
        block.participant_id,
        block.date,
        block.start_minute,
        block.end_minute,
        label=block.label,
        travel_minutes_before=travel_minutes_before,
        original_start_minute=block.original_start_minute if (moved or travel_minutes_before) else None,
        original_end_minute=block.original_end_minute if (moved or travel_minutes_before) else None,
    )


def expand_travel(travel: TravelBlock) -> List[TimeSlot]:
    return expand_block(
        travel.participant_id,
        travel.date,
        travel.start_minute,
        travel.end_minute,
        label="Travel",
        is_travel=True,
    )


def slot_from_unit(unit: AssignedSlot) -> TimeSlot:
    """Pass a stored unit through unchanged (used by the non-travel mode)."""
    return TimeSlot(
        participant_id=unit.participant_id,
        date=unit.date,
        start_time=unit.start_time,
        end_time=unit.end_time,
        label=unit.label,
        is_travel=unit.is_travel,
    )
