"""
The coordination room: the single input aggregate handed to the engine.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field, model_validator, ConfigDict

from .activity import AssignedSlot
from .resource import BlockedTime, Location, Participant


class Room(BaseModel):
    """
    Owner (the depot), members, room-wide blocked times and the existing
    slot assignment produced by the auto-assignment step.
    """
    owner: Participant
    members: List[Participant] = Field(default_factory=list)
    blocked_times: List[BlockedTime] = Field(default_factory=list)
    time_slots: List[AssignedSlot] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def accept_room_document(cls, data):
        """Members may be wrapped as {'user': {...}}; blocked times may sit under settings."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        members = data.get("members") or []
        data["members"] = [m["user"] if isinstance(m, dict) and "user" in m else m for m in members]
        if "blocked_times" not in data:
            settings = data.pop("settings", None) or {}
            data["blocked_times"] = settings.get("blockedTimes", [])
        if "time_slots" not in data and "timeSlots" in data:
            data["time_slots"] = data.pop("timeSlots")
        return data

    @property
    def participants(self) -> List[Participant]:
        return [self.owner, *self.members]

    def participant(self, participant_id: str) -> Optional[Participant]:
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    def member_locations(self) -> Dict[str, Location]:
        """Located members only; the owner is handled separately as the depot."""
        return {m.id: m.location for m in self.members if m.location is not None}

    def is_owner(self, participant_id: str) -> bool:
        return participant_id == self.owner.id

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "owner": {"id": "owner", "display_name": "Tutor", "location": {"lat": 37.50, "lng": 127.03}},
            "members": [
                {"id": "member_01", "display_name": "Minji", "location": {"lat": 37.52, "lng": 127.05}}
            ],
            "blocked_times": [{"name": "Lunch", "start_time": "12:00", "end_time": "13:00"}],
            "time_slots": [
                {"participant_id": "member_01", "date": "2025-03-03", "start_time": "10:00", "end_time": "11:00"}
            ]
        }
    })
