"""
Participant and Location data models for the Travel Schedule Recalculator.

This module defines the 'Supply' side of a coordination room:
1. Locations (geocoded addresses, one per participant)
2. Availability (declared preference windows)
3. Participants (the owner depot and the travelling members' destinations)
4. Blocked Times (room-wide forbidden intervals)
"""

import re
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from datetime import date

from travel_scheduler.timeutils import minutes_of, parse_local_date

_HHMM = re.compile(r"^([01]\d|2[0-4]):[0-5]\d$")


def normalize_participant_ref(value: Any) -> str:
    """
    Collapse the shapes a participant reference arrives in (plain id, int id,
    nested ``{"_id": ...}`` / ``{"id": ...}`` document) into one string id.
    """
    if isinstance(value, dict):
        value = value.get("_id") or value.get("id")
    elif hasattr(value, "id") and not isinstance(value, (str, int)):
        value = value.id
    if value is None or value == "":
        raise ValueError("Participant reference is missing an id")
    return str(value)


def validate_hhmm(value: str) -> str:
    if not isinstance(value, str) or not _HHMM.match(value):
        raise ValueError(f"Time must be 'HH:MM', got {value!r}")
    if minutes_of(value) > 24 * 60:
        raise ValueError(f"Time out of range: {value}")
    return value


class Location(BaseModel):
    """A geocoded address. Immutable for the duration of a run."""
    lat: float = Field(ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(ge=-180, le=180, description="Longitude in degrees")
    display_name: str = Field(default="", description="Human readable name used in travel labels")

    model_config = ConfigDict(frozen=True)


class AvailabilityEntry(BaseModel):
    """
    One raw availability declaration, either recurring (weekday) or for a
    specific date. Only entries with priority >= 2 count as real availability.
    """
    weekday: Optional[int] = Field(default=None, ge=0, le=6, description="0=Monday, 6=Sunday")
    specific_date: Optional[date] = Field(default=None, description="Overrides weekday windows for that date")
    start_time: str = Field(description="Window start 'HH:MM'")
    end_time: str = Field(description="Window end 'HH:MM'")
    priority: int = Field(default=2, ge=0, description="1=soft default, >=2 declared availability")

    @model_validator(mode='before')
    @classmethod
    def accept_legacy_keys(cls, data):
        """Accept the camelCase storage shape (dayOfWeek counts from Sunday)."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "dayOfWeek" in data and "weekday" not in data:
            day = data.pop("dayOfWeek")
            data["weekday"] = None if day is None else (int(day) - 1) % 7
        for legacy, key in (("specificDate", "specific_date"), ("startTime", "start_time"), ("endTime", "end_time")):
            if legacy in data and key not in data:
                data[key] = data.pop(legacy)
        return data

    @field_validator('specific_date', mode='before')
    @classmethod
    def local_day(cls, v):
        return None if v in (None, "") else parse_local_date(v)

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_format(cls, v):
        return validate_hhmm(v)

    @model_validator(mode='after')
    def validate_window(self):
        if self.weekday is None and self.specific_date is None:
            raise ValueError("Either weekday or specific_date must be provided")
        if minutes_of(self.start_time) >= minutes_of(self.end_time):
            raise ValueError("End time must be strictly after start time")
        return self

    @property
    def start_minute(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minute(self) -> int:
        return minutes_of(self.end_time)


class Participant(BaseModel):
    """
    A room participant. The owner is the fixed depot; members are the
    destinations the owner travels to.
    """
    id: str = Field(description="Unique identifier")
    display_name: str = Field(default="", description="Name used in travel labels")
    location: Optional[Location] = Field(default=None, description="Geocoded address, if known")
    availability: List[AvailabilityEntry] = Field(default_factory=list, description="Raw availability entries")

    @model_validator(mode='before')
    @classmethod
    def accept_user_document(cls, data):
        """Normalise the stored user document shape (_id, addressLat, firstName...)."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "id" not in data:
            data["id"] = normalize_participant_ref(data)
        else:
            data["id"] = normalize_participant_ref(data["id"])
        data.pop("_id", None)

        if "display_name" not in data:
            full = f"{data.pop('firstName', '') or ''} {data.pop('lastName', '') or ''}".strip()
            data["display_name"] = full
        if "location" not in data and data.get("addressLat") is not None and data.get("addressLng") is not None:
            data["location"] = {
                "lat": data.pop("addressLat"),
                "lng": data.pop("addressLng"),
                "display_name": data["display_name"],
            }
        if "availability" not in data and "defaultSchedule" in data:
            data["availability"] = data.pop("defaultSchedule") or []
        return data

    @model_validator(mode='after')
    def label_location(self):
        if self.location is not None and not self.location.display_name:
            self.location = self.location.model_copy(update={"display_name": self.label})
        return self

    @property
    def label(self) -> str:
        return self.display_name or self.id

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "member_01",
            "display_name": "Minji Kim",
            "location": {"lat": 37.5665, "lng": 126.9780},
            "availability": [
                {"weekday": 0, "start_time": "09:00", "end_time": "12:00", "priority": 3}
            ]
        }
    })


class BlockedTime(BaseModel):
    """Room-wide forbidden interval (e.g. lunch). Applies to everyone, every day."""
    name: str = Field(default="", description="Label, e.g. 'Lunch'")
    start_time: str = Field(description="'HH:MM'")
    end_time: str = Field(description="'HH:MM'")

    @model_validator(mode='before')
    @classmethod
    def accept_legacy_keys(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for legacy, key in (("startTime", "start_time"), ("endTime", "end_time")):
                if legacy in data and key not in data:
                    data[key] = data.pop(legacy)
        return data

    @field_validator('start_time', 'end_time')
    @classmethod
    def check_format(cls, v):
        return validate_hhmm(v)

    @model_validator(mode='after')
    def validate_times(self):
        if self.start_minute >= self.end_minute:
            raise ValueError("End time must be strictly after start time")
        return self

    @property
    def start_minute(self) -> int:
        return minutes_of(self.start_time)

    @property
    def end_minute(self) -> int:
        return minutes_of(self.end_time)
