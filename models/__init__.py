"""
Data models package for the Travel Schedule Recalculator.

This package exports the three core pillars of the data architecture:
1. Demand (AssignedSlot, ActivityBlock, TravelBlock)
2. Supply (Participant, Location, AvailabilityEntry, BlockedTime, Room)
3. Output (TimeSlot, PlacementOutcome, RecalculationResult, probe results)
"""

from .activity import (
    ActivityBlock,
    AssignedSlot,
    TravelBlock,
    TravelMode
)

from .resource import (
    AvailabilityEntry,
    BlockedTime,
    Location,
    Participant,
    normalize_participant_ref
)

from .room import Room

from .schedule import (
    AvailableStart,
    BlockedInterval,
    Conflict,
    MemberAvailability,
    PlacedSegment,
    PlacementOutcome,
    PlacementStatus,
    RecalculationResult,
    SimulationResult,
    TimeSlot,
    TimeWindow,
    TravelLeg,
    ValidationResult
)

__all__ = [
    # --- Demand Models ---
    "ActivityBlock",
    "AssignedSlot",
    "TravelBlock",
    "TravelMode",

    # --- Supply Models ---
    "AvailabilityEntry",
    "BlockedTime",
    "Location",
    "Participant",
    "Room",
    "normalize_participant_ref",

    # --- Output Models ---
    "AvailableStart",
    "BlockedInterval",
    "Conflict",
    "MemberAvailability",
    "PlacedSegment",
    "PlacementOutcome",
    "PlacementStatus",
    "RecalculationResult",
    "SimulationResult",
    "TimeSlot",
    "TimeWindow",
    "TravelLeg",
    "ValidationResult",
]
