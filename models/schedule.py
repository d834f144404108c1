"""
Schedule data models for the Travel Schedule Recalculator.

This module defines the 'Output' of the recalculation engine:
atomic time slots, travel legs, per-block placement outcomes, and the
results of the validation and simulation probes.
"""

from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type

from .activity import TravelBlock, TravelMode


class TimeSlot(BaseModel):
    """
    One atomic 10-minute unit of the recalculated timetable.
    Downstream storage keeps everything at this granularity.
    """
    participant_id: str
    date: date_type
    start_time: str = Field(description="'HH:MM'")
    end_time: str = Field(description="'HH:MM'")
    label: str = ""
    is_travel: bool = False

    # Metadata for slots that were moved to make room for travel
    travel_minutes_before: int = Field(default=0, ge=0)
    original_start_time: Optional[str] = None
    original_end_time: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "participant_id": "member_01",
            "date": "2025-03-03",
            "start_time": "10:00",
            "end_time": "10:10",
            "label": "Math",
            "is_travel": False,
            "travel_minutes_before": 50,
            "original_start_time": "10:00",
            "original_end_time": "11:00"
        }
    })


class TravelLeg(BaseModel):
    """One answer from the travel-time provider (or its estimator fallback)."""
    duration_seconds: int = Field(ge=0)
    distance_meters: int = Field(default=0, ge=0)
    is_estimate: bool = False


class PlacementStatus(str, Enum):
    """What happened to one activity block during a run."""
    PLACED = "Placed"
    PARTIALLY_PLACED = "PartiallyPlaced"  # placed as several segments, full duration
    DROPPED = "Dropped"


class PlacedSegment(BaseModel):
    date: date_type
    start_time: str
    end_time: str
    travel_minutes: int = 0


class PlacementOutcome(BaseModel):
    """
    Typed per-block result so callers never have to infer dropped blocks
    from a shrinking slot count.
    """
    participant_id: str
    original_date: date_type
    original_start_time: str
    original_end_time: str
    status: PlacementStatus
    reason: str = ""
    placed_minutes: int = 0
    unplaced_minutes: int = 0
    segments: List[PlacedSegment] = Field(default_factory=list)


class RecalculationResult(BaseModel):
    """Externally visible output of one recalculation run."""
    activity_slots: List[TimeSlot] = Field(default_factory=list)
    travel_slots: List[TravelBlock] = Field(default_factory=list)
    mode: TravelMode
    outcomes: List[PlacementOutcome] = Field(default_factory=list)

    @property
    def dropped(self) -> List[PlacementOutcome]:
        return [o for o in self.outcomes if o.status == PlacementStatus.DROPPED]


class ValidationResult(BaseModel):
    is_valid: bool
    message: str = ""


class TimeWindow(BaseModel):
    start_time: str
    end_time: str


class Conflict(BaseModel):
    """One reason a simulated placement is not possible."""
    type: str = Field(description="blocked | overlap | preference | day_range")
    time: str = Field(description="'HH:MM-HH:MM' of the conflicting interval")
    name: str = ""
    participant_id: Optional[str] = None
    label: str = ""


class SimulationResult(BaseModel):
    """Read-only answer to 'can this participant be placed here?'."""
    can_place: bool
    reason: str = ""
    travel_minutes: int = 0
    from_location_name: str = ""
    to_location_name: str = ""
    conflicts: List[Conflict] = Field(default_factory=list)
    proposed_travel_window: Optional[TimeWindow] = None
    proposed_activity_window: Optional[TimeWindow] = None


class AvailableStart(BaseModel):
    """A start time offered to an interactive caller."""
    start_time: str
    end_time: str
    activity_window: TimeWindow
    travel_minutes: int = 0
    from_location_name: str = ""


class BlockedInterval(BaseModel):
    start_time: str
    end_time: str
    type: str = Field(description="blocked | occupied | unavailable")
    reason: str = ""


class MemberAvailability(BaseModel):
    available: List[AvailableStart] = Field(default_factory=list)
    blocked: List[BlockedInterval] = Field(default_factory=list)
