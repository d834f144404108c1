from models import ActivityBlock, Location, PlacementOutcome, PlacementStatus
from travel_scheduler.constraints import ConstraintViolation
from travel_scheduler.state import RecalculationContext

from tests.helpers import MONDAY, TUESDAY


def test_predecessor_is_the_latest_allocation_ending_in_time():
    context = RecalculationContext()
    context.commit(MONDAY, 540, 600, "owner", is_owner=True)
    bob = context.commit(MONDAY, 600, 660, "bob")
    context.commit(MONDAY, 660, 720, "ann")

    assert context.predecessor_before(MONDAY, 660) is bob
    assert context.predecessor_before(MONDAY, 720, exclude_participant="ann") is bob
    assert context.predecessor_before(MONDAY, 500) is None
    assert context.predecessor_before(TUESDAY, 900) is None


def test_release_removes_only_that_allocation():
    context = RecalculationContext()
    first = context.commit(MONDAY, 600, 660, "bob")
    context.commit(MONDAY, 600, 660, "bob")

    context.release(MONDAY, first)

    remaining = context.allocations_on(MONDAY)
    assert len(remaining) == 1 and remaining[0] is not first


def test_last_location_only_moves_forward():
    context = RecalculationContext()
    ann = Location(lat=0.0, lng=0.01, display_name="Ann")
    bob = Location(lat=0.0, lng=0.02, display_name="Bob")

    context.update_last_location(MONDAY, "bob", bob, 720)
    context.update_last_location(MONDAY, "ann", ann, 660)

    assert context.last_location_on(MONDAY).participant_id == "bob"
    assert context.last_location_on(TUESDAY) is None


def test_failure_report_summarises_dropped_blocks():
    context = RecalculationContext()
    block = ActivityBlock(participant_id="ann", date=MONDAY, start_minute=600, end_minute=660)
    for kind in ("Overlap", "Overlap", "Blocked"):
        context.record_rejection(block, ConstraintViolation(kind, "", "ann", MONDAY, 590, 660))
    context.record_outcome(PlacementOutcome(
        participant_id="ann", original_date=MONDAY, original_start_time="10:00", original_end_time="11:00",
        status=PlacementStatus.DROPPED, unplaced_minutes=60,
    ))
    context.record_outcome(PlacementOutcome(
        participant_id="bob", original_date=MONDAY, original_start_time="09:00", original_end_time="10:00",
        status=PlacementStatus.PLACED, placed_minutes=60,
    ))

    report = context.get_failure_report()

    assert len(report) == 1
    assert report[0]["primary_failure_cause"] == "Overlap"
    assert report[0]["violation_breakdown"] == {"Overlap": 2, "Blocked": 1}
    assert context.rejections["ann@2025-03-03:600"].attempts == 3

    stats = context.get_statistics()
    assert (stats["blocks"], stats["placed"], stats["dropped"]) == (2, 1, 1)
