"""Shared builders for the test suite: rooms, slots and a deterministic provider."""

from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from models import Participant, Room, TravelLeg, TravelMode

MONDAY = date(2025, 3, 3)
TUESDAY = MONDAY + timedelta(days=1)
WEDNESDAY = MONDAY + timedelta(days=2)
THURSDAY = MONDAY + timedelta(days=3)
FRIDAY = MONDAY + timedelta(days=4)


class StubProvider:
    """
    Async travel-time provider keyed by (origin name, destination name).
    Unknown pairs answer ``default`` seconds.
    """

    def __init__(self, seconds: Optional[Dict[Tuple[str, str], int]] = None, default: int = 0,
                 fail: bool = False):
        self.seconds = seconds or {}
        self.default = default
        self.fail = fail
        self.calls: List[Tuple[str, str, TravelMode]] = []

    async def __call__(self, origin, destination, mode):
        self.calls.append((origin.display_name, destination.display_name, mode))
        if self.fail:
            raise RuntimeError("provider down")
        seconds = self.seconds.get((origin.display_name, destination.display_name), self.default)
        return TravelLeg(duration_seconds=seconds, distance_meters=1000)


def person(pid: str, name: str, lat: Optional[float] = None, lng: Optional[float] = None,
           windows: Optional[List[dict]] = None) -> Participant:
    data = {"id": pid, "display_name": name, "availability": windows or []}
    if lat is not None:
        data["location"] = {"lat": lat, "lng": lng}
    return Participant.model_validate(data)


def window(weekday: int, start: str, end: str, priority: int = 3) -> dict:
    return {"weekday": weekday, "start_time": start, "end_time": end, "priority": priority}


def slot(pid: str, day: date, start: str, end: str, label: str = "Lesson", is_travel: bool = False) -> dict:
    return {"participant_id": pid, "date": day.isoformat(), "start_time": start, "end_time": end,
            "label": label, "is_travel": is_travel}


def units(pid: str, day: date, start: str, end: str, label: str = "Lesson") -> List[dict]:
    """Atomic 10-minute storage units covering [start, end)."""
    sh, sm = map(int, start.split(":"))
    eh, em = map(int, end.split(":"))
    result = []
    for m in range(sh * 60 + sm, eh * 60 + em, 10):
        result.append(slot(pid, day, f"{m // 60:02d}:{m % 60:02d}", f"{(m + 10) // 60:02d}:{(m + 10) % 60:02d}", label))
    return result


def make_room(owner: Participant, members: List[Participant], slots: List[dict],
              blocked: Optional[List[dict]] = None) -> Room:
    return Room.model_validate({
        "owner": owner.model_dump(),
        "members": [m.model_dump() for m in members],
        "blocked_times": blocked or [],
        "time_slots": slots,
    })


def owner_at_origin(**kwargs) -> Participant:
    return person("owner", "Tutor", 0.0, 0.0, **kwargs)
