"""
Activity and Travel data models for the Travel Schedule Recalculator.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import date as date_type

from travel_scheduler.constants import MINUTES_PER_DAY
from travel_scheduler.timeutils import format_duration, format_minutes, parse_local_date
from .resource import normalize_participant_ref, validate_hhmm


class TravelMode(str, Enum):
    """Transportation mode selected for a recalculation run."""
    NORMAL = "normal"
    TRANSIT = "transit"
    DRIVING = "driving"
    BICYCLING = "bicycling"
    WALKING = "walking"


class AssignedSlot(BaseModel):
    """
    One unit of the existing assignment as stored by the coordination room
    (an atomic 10-minute unit or an already merged block).
    """
    participant_id: str = Field(description="Owner of the slot")
    date: date_type = Field(description="Local calendar date")
    start_time: str = Field(description="'HH:MM'")
    end_time: str = Field(description="'HH:MM'")
    label: str = Field(default="", description="Subject / activity name")
    is_travel: bool = Field(default=False, description="True for travel units from a previous run")

    @model_validator(mode='before')
    @classmethod
    def normalize_reference(cls, data):
        """The participant may arrive as participantId / participant / user, string or document."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "participant_id" not in data:
            for key in ("participantId", "participant", "user"):
                if key in data:
                    data["participant_id"] = data.pop(key)
                    break
        if "participant_id" in data:
            data["participant_id"] = normalize_participant_ref(data["participant_id"])
        for legacy, key in (("startTime", "start_time"), ("endTime", "end_time"),
                            ("subject", "label"), ("isTravel", "is_travel")):
            if legacy in data and key not in data:
                data[key] = data.pop(legacy)
        return data

    @field_validator('date', mode='before')
    @classmethod
    def local_day(cls, v):
        return parse_local_date(v)

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_format(cls, v):
        return validate_hhmm(v)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "participant_id": "member_01",
            "date": "2025-03-03",
            "start_time": "10:00",
            "end_time": "10:10",
            "label": "Math"
        }
    })


class ActivityBlock(BaseModel):
    """
    One contiguous occupation of a single participant on a single date.
    Mutated in place with new timing during one recalculation run.
    """
    participant_id: str
    date: date_type
    start_minute: int = Field(ge=0, le=MINUTES_PER_DAY)
    end_minute: int = Field(ge=0, le=MINUTES_PER_DAY)
    label: str = ""

    # Timing before the run touched it
    original_start_minute: Optional[int] = None
    original_end_minute: Optional[int] = None

    @model_validator(mode='after')
    def validate_span(self):
        if self.start_minute >= self.end_minute:
            raise ValueError("Activity end must be strictly after start")
        if self.original_start_minute is None:
            self.original_start_minute = self.start_minute
        if self.original_end_minute is None:
            self.original_end_minute = self.end_minute
        return self

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def shift(self, delta: int) -> None:
        self.start_minute += delta
        self.end_minute += delta

    def __str__(self) -> str:
        return f"{self.participant_id}@{self.date} {format_minutes(self.start_minute)}-{format_minutes(self.end_minute)}"


class TravelBlock(BaseModel):
    """
    Synthetic interval inserted immediately before a member's Activity Block.
    The owner never travels, so the owner never gets one.
    """
    participant_id: str = Field(description="Member being travelled to")
    date: date_type
    start_minute: int = Field(ge=0, le=MINUTES_PER_DAY)
    end_minute: int = Field(ge=0, le=MINUTES_PER_DAY)
    from_location_name: str
    to_location_name: str
    mode: TravelMode
    duration_seconds: int = Field(ge=0, description="Raw provider answer")
    distance_meters: Optional[int] = Field(default=None, ge=0)
    is_estimate: bool = Field(default=False, description="True if the average-speed fallback produced it")

    @property
    def duration_minutes(self) -> int:
        """Minutes actually reserved on the schedule (a whole number of slots)."""
        return self.end_minute - self.start_minute

    @property
    def duration_text(self) -> str:
        return format_duration(self.duration_minutes)

    @property
    def distance_text(self) -> Optional[str]:
        if self.distance_meters is None:
            return None
        return f"{self.distance_meters / 1000:.1f}km"
