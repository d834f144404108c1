import pytest
from pydantic import ValidationError

from models import ActivityBlock, AssignedSlot, AvailabilityEntry, Participant, Room, normalize_participant_ref

from tests.helpers import MONDAY


def test_participant_reference_shapes():
    assert normalize_participant_ref("u1") == "u1"
    assert normalize_participant_ref(42) == "42"
    assert normalize_participant_ref({"_id": "u1", "firstName": "Min"}) == "u1"
    assert normalize_participant_ref({"id": "u2"}) == "u2"
    with pytest.raises(ValueError):
        normalize_participant_ref({})


def test_stored_slot_shape_is_normalised():
    stored = AssignedSlot.model_validate({
        "participantId": {"_id": "u1"},
        "date": "2025-03-03",
        "startTime": "10:00",
        "endTime": "10:10",
        "subject": "Math",
        "isTravel": False,
    })
    assert stored.participant_id == "u1"
    assert stored.date == MONDAY
    assert (stored.start_time, stored.end_time, stored.label) == ("10:00", "10:10", "Math")


def test_slot_times_must_be_hhmm():
    with pytest.raises(ValidationError):
        AssignedSlot(participant_id="u1", date="2025-03-03", start_time="9am", end_time="10:00")


def test_user_document_becomes_a_participant():
    member = Participant.model_validate({
        "_id": "u1",
        "firstName": "Min",
        "lastName": "Kim",
        "addressLat": 37.5,
        "addressLng": 127.0,
        "defaultSchedule": [{"dayOfWeek": 1, "startTime": "09:00", "endTime": "12:00", "priority": 3}],
    })
    assert member.id == "u1"
    assert member.display_name == "Min Kim"
    assert (member.location.lat, member.location.lng) == (37.5, 127.0)
    assert member.location.display_name == "Min Kim"
    assert member.availability[0].weekday == 0


def test_location_label_falls_back_to_the_id():
    member = Participant(id="u9", location={"lat": 1.0, "lng": 2.0})
    assert member.label == "u9"
    assert member.location.display_name == "u9"


def test_availability_needs_a_day_and_a_positive_range():
    with pytest.raises(ValidationError):
        AvailabilityEntry(start_time="09:00", end_time="10:00")
    with pytest.raises(ValidationError):
        AvailabilityEntry(weekday=0, start_time="10:00", end_time="09:00")


def test_room_document_shape():
    room = Room.model_validate({
        "owner": {"_id": "owner", "firstName": "Tutor", "addressLat": 0.0, "addressLng": 0.0},
        "members": [{"user": {"_id": "u1", "firstName": "Ann"}}],
        "settings": {"blockedTimes": [{"name": "Lunch", "startTime": "12:00", "endTime": "13:00"}]},
        "timeSlots": [{"user": "u1", "date": "2025-03-03", "startTime": "10:00", "endTime": "10:10"}],
    })
    assert [m.id for m in room.members] == ["u1"]
    assert room.blocked_times[0].name == "Lunch"
    assert room.time_slots[0].participant_id == "u1"
    assert room.is_owner("owner")
    assert room.member_locations() == {}
    assert room.participant("u1").display_name == "Ann"


def test_activity_block_keeps_its_original_timing():
    block = ActivityBlock(participant_id="u1", date=MONDAY, start_minute=600, end_minute=660)
    block.shift(30)
    assert (block.start_minute, block.end_minute) == (630, 690)
    assert (block.original_start_minute, block.original_end_minute) == (600, 660)
    assert block.duration_minutes == 60

    with pytest.raises(ValidationError):
        ActivityBlock(participant_id="u1", date=MONDAY, start_minute=600, end_minute=600)
