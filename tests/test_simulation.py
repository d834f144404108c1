import asyncio
from datetime import date

from models import TravelMode
from travel_scheduler.simulation import (
    get_available_times_for_member,
    get_blocked_times_for_member,
    simulate_placement,
)
from travel_scheduler.travel import TravelTimeService

from tests.helpers import MONDAY, StubProvider, make_room, owner_at_origin, person, slot

SATURDAY = date(2025, 3, 8)
LUNCH = {"name": "Lunch", "start_time": "12:00", "end_time": "13:00"}


def room_with_bob(blocked=None, members=None):
    members = members or [person("ann", "Ann", 0.0, 0.01), person("bob", "Bob", 0.0, 0.02)]
    return make_room(owner_at_origin(), members, [slot("bob", MONDAY, "10:00", "11:00")], blocked=blocked)


def simulate(room, start, duration=60, day=MONDAY, mode=TravelMode.TRANSIT, seconds=None):
    service = TravelTimeService(StubProvider(seconds or {("Bob", "Ann"): 1200}))
    return asyncio.run(simulate_placement(room, "ann", day, start, duration, mode, service))


def test_travel_leaves_from_the_previous_participant():
    result = simulate(room_with_bob(), 11 * 60)

    assert result.can_place
    assert result.from_location_name == "Bob"
    assert result.to_location_name == "Ann"
    assert result.travel_minutes == 20
    assert (result.proposed_travel_window.start_time, result.proposed_travel_window.end_time) == ("11:00", "11:20")
    assert (result.proposed_activity_window.start_time, result.proposed_activity_window.end_time) == ("11:20", "12:20")


def test_blocked_time_conflict():
    result = simulate(room_with_bob(blocked=[LUNCH]), 11 * 60)

    assert not result.can_place
    assert result.reason == "blocked"
    assert result.conflicts[0].name == "Lunch"
    assert result.conflicts[0].time == "12:00-13:00"


def test_overlap_conflict_names_the_other_participant():
    result = simulate(room_with_bob(), 10 * 60 + 30)

    assert not result.can_place
    overlap = [c for c in result.conflicts if c.type == "overlap"]
    assert len(overlap) == 1
    assert overlap[0].participant_id == "bob"
    assert overlap[0].label == "Lesson"
    assert overlap[0].time == "10:00-11:00"
    # No predecessor and a zero leg from the owner
    assert result.from_location_name == "Owner"
    assert result.proposed_travel_window is None


def test_preference_conflict_outside_declared_availability():
    result = simulate(room_with_bob(), 10 * 60, day=SATURDAY)

    assert not result.can_place
    assert [c.type for c in result.conflicts] == ["preference"]


def test_missing_addresses_are_reported_without_probing():
    room = room_with_bob(members=[person("ann", "Ann"), person("bob", "Bob", 0.0, 0.02)])
    result = simulate(room, 11 * 60)
    assert not result.can_place
    assert result.reason == "The participant's address is missing"


def test_simulation_never_mutates_the_room():
    room = room_with_bob()
    before = room.model_dump()
    simulate(room, 11 * 60)
    assert room.model_dump() == before


def test_blocked_listing_shows_other_participants_only():
    room = room_with_bob(blocked=[LUNCH])

    for_ann = get_blocked_times_for_member(room, "ann", MONDAY)
    assert [(b.type, b.start_time, b.end_time) for b in for_ann] == [
        ("blocked", "12:00", "13:00"),
        ("occupied", "10:00", "11:00"),
    ]
    assert [b.type for b in get_blocked_times_for_member(room, "bob", MONDAY)] == ["blocked"]


def test_available_starts_are_probed_in_ten_minute_steps():
    room = room_with_bob()
    service = TravelTimeService()

    availability = asyncio.run(
        get_available_times_for_member(room, "ann", MONDAY, 60, TravelMode.NORMAL, service)
    )

    starts = {a.start_time for a in availability.available}
    assert "09:00" in starts
    assert "09:10" not in starts
    unavailable = {b.start_time: b.reason for b in availability.blocked if b.type == "unavailable"}
    assert unavailable["09:10"] == "overlap"
    assert len(availability.available) + len(unavailable) == 54
