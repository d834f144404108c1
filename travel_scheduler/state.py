"""
Recalculation State Management.

This module acts as the 'Memory' of one recalculation run. It tracks:
1. The Allocation Table (committed, non-overlapping intervals per date).
2. The last known location of the travelling owner on each date.
3. Every emitted placement (activity block + optional travel block).
4. Per-block outcomes and rejection reasons (for the final report).

A context is created per run and discarded with it.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date as date_type
from typing import Any, Dict, List, Optional

from models import ActivityBlock, Location, PlacementOutcome, PlacementStatus, TravelBlock
from .constraints import Allocation, AllocationTable, ConstraintViolation


@dataclass
class LastLocation:
    """Where the owner is after the latest-ending placement on a date."""
    participant_id: str
    location: Location
    end_minute: int


@dataclass
class EmittedPlacement:
    """One activity block in the output, with the travel leg (if any) in front of it."""
    activity: ActivityBlock
    travel: Optional[TravelBlock] = None
    allocation: Optional[Allocation] = None
    origin_participant_id: Optional[str] = None


@dataclass
class RejectionLog:
    """Rejected candidates for one block (only kept for blocks that end up dropped or moved)."""
    block: ActivityBlock
    attempts: int = 0
    violations: List[ConstraintViolation] = field(default_factory=list)


class RecalculationContext:
    """
    Maintains the mutable state of one recalculation run.
    """

    def __init__(self):
        self.table: AllocationTable = defaultdict(list)
        self.last_location: Dict[date_type, LastLocation] = {}
        self.placements: List[EmittedPlacement] = []
        self.outcomes: List[PlacementOutcome] = []
        self.rejections: Dict[str, RejectionLog] = {}
        self.reconciled = 0

    # --- Allocation Table ---

    def commit(self, day: date_type, start: int, end: int, participant_id: str,
               is_owner: bool = False) -> Allocation:
        allocation = Allocation(start, end, participant_id, is_owner)
        self.table[day].append(allocation)
        return allocation

    def release(self, day: date_type, allocation: Allocation) -> None:
        allocations = self.table.get(day, [])
        for i, existing in enumerate(allocations):
            if existing is allocation:
                del allocations[i]
                return

    def allocations_on(self, day: date_type) -> List[Allocation]:
        return list(self.table.get(day, []))

    def predecessor_before(self, day: date_type, minute: int,
                           exclude_participant: Optional[str] = None) -> Optional[Allocation]:
        """Latest allocation ending at or before ``minute`` (optionally ignoring one participant)."""
        best = None
        for allocation in self.table.get(day, []):
            if exclude_participant is not None and allocation.participant_id == exclude_participant:
                continue
            if allocation.end_minute > minute:
                continue
            if best is None or allocation.end_minute > best.end_minute:
                best = allocation
        return best

    # --- Last location by date ---

    def update_last_location(self, day: date_type, participant_id: str, location: Location, end_minute: int) -> None:
        current = self.last_location.get(day)
        if current is None or end_minute > current.end_minute:
            self.last_location[day] = LastLocation(participant_id, location, end_minute)

    def last_location_on(self, day: date_type) -> Optional[LastLocation]:
        return self.last_location.get(day)

    # --- Output ---

    def emit(self, activity: ActivityBlock, travel: Optional[TravelBlock] = None,
             allocation: Optional[Allocation] = None, origin_participant_id: Optional[str] = None) -> EmittedPlacement:
        placement = EmittedPlacement(activity, travel, allocation, origin_participant_id)
        self.placements.append(placement)
        return placement

    def record_outcome(self, outcome: PlacementOutcome) -> None:
        self.outcomes.append(outcome)

    def record_rejection(self, block: ActivityBlock, violation: ConstraintViolation) -> None:
        """
        Log a rejected candidate. A block may be rejected many times during
        relocation; the reasons are aggregated.
        """
        key = f"{block.participant_id}@{block.date}:{block.original_start_minute}"
        log = self.rejections.get(key)
        if log is None:
            log = self.rejections[key] = RejectionLog(block=block)
        log.attempts += 1
        log.violations.append(violation)

    # --- Reporting ---

    def get_statistics(self) -> Dict[str, Any]:
        status_counts = defaultdict(int)
        for outcome in self.outcomes:
            status_counts[outcome.status.value] += 1

        travel_blocks = [p.travel for p in self.placements if p.travel is not None]
        travel_minutes = sum(t.duration_minutes for t in travel_blocks)
        estimated = sum(1 for t in travel_blocks if t.is_estimate)

        return {
            "blocks": len(self.outcomes),
            "placed": status_counts[PlacementStatus.PLACED.value],
            "partially_placed": status_counts[PlacementStatus.PARTIALLY_PLACED.value],
            "dropped": status_counts[PlacementStatus.DROPPED.value],
            "travel_legs": len(travel_blocks),
            "travel_minutes": travel_minutes,
            "estimated_legs": estimated,
            "reconciled_legs": self.reconciled,
            "dates": sorted({p.activity.date for p in self.placements}),
        }

    def get_failure_report(self) -> List[Dict]:
        """
        Human-readable list of dropped blocks and why. Blocks that were
        rejected in place but relocated successfully are not reported.
        """
        report = []
        for outcome in self.outcomes:
            if outcome.status != PlacementStatus.DROPPED:
                continue

            violation_summary = defaultdict(int)
            for log in self.rejections.values():
                if log.block.participant_id != outcome.participant_id or log.block.date != outcome.original_date:
                    continue
                for v in log.violations:
                    violation_summary[v.constraint_type] += 1

            report.append({
                "participant_id": outcome.participant_id,
                "date": outcome.original_date.isoformat(),
                "time": f"{outcome.original_start_time}-{outcome.original_end_time}",
                "unplaced_minutes": outcome.unplaced_minutes,
                "primary_failure_cause": max(violation_summary, key=violation_summary.get) if violation_summary else "Unknown",
                "violation_breakdown": dict(violation_summary),
                "reason": outcome.reason,
            })

        report.sort(key=lambda x: (x["date"], x["time"]))
        return report
