"""
Preference (availability) window construction.

Turns each participant's raw availability entries into merged,
non-overlapping minute ranges keyed by weekday and by specific date.
"""

import logging
from collections import defaultdict
from datetime import date as date_type
from typing import Dict, Iterable, List
from dataclasses import dataclass, field

from models import AvailabilityEntry, Participant
from .constants import (
    DEFAULT_WINDOW_END,
    DEFAULT_WINDOW_START,
    DEFAULT_WINDOW_WEEKDAYS,
    MIN_PREFERENCE_PRIORITY,
)

logger = logging.getLogger(__name__)


@dataclass
class PreferenceWindow:
    start_minute: int
    end_minute: int

    def contains(self, start: int, end: int) -> bool:
        return start >= self.start_minute and end <= self.end_minute


@dataclass
class ParticipantPreferences:
    by_weekday: Dict[int, List[PreferenceWindow]] = field(default_factory=lambda: {d: [] for d in range(7)})
    by_date: Dict[date_type, List[PreferenceWindow]] = field(default_factory=dict)


def merge_windows(windows: Iterable[PreferenceWindow]) -> List[PreferenceWindow]:
    """Sort-and-sweep merge; touching ranges are merged too."""
    ordered = sorted(windows, key=lambda w: w.start_minute)
    if not ordered:
        return []

    merged = [PreferenceWindow(ordered[0].start_minute, ordered[0].end_minute)]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start_minute <= last.end_minute:
            last.end_minute = max(last.end_minute, current.end_minute)
        else:
            merged.append(PreferenceWindow(current.start_minute, current.end_minute))
    return merged


def build_participant_preferences(entries: Iterable[AvailabilityEntry]) -> ParticipantPreferences:
    prefs = ParticipantPreferences()
    raw_by_date: Dict[date_type, List[PreferenceWindow]] = defaultdict(list)

    qualifying = [e for e in entries if e.priority >= MIN_PREFERENCE_PRIORITY]
    if not qualifying:
        for weekday in DEFAULT_WINDOW_WEEKDAYS:
            prefs.by_weekday[weekday].append(PreferenceWindow(DEFAULT_WINDOW_START, DEFAULT_WINDOW_END))
        return prefs

    for entry in qualifying:
        window = PreferenceWindow(entry.start_minute, entry.end_minute)
        if entry.specific_date is not None:
            raw_by_date[entry.specific_date].append(window)
        else:
            prefs.by_weekday[entry.weekday].append(window)

    for weekday in prefs.by_weekday:
        prefs.by_weekday[weekday] = merge_windows(prefs.by_weekday[weekday])
    for day, windows in raw_by_date.items():
        prefs.by_date[day] = merge_windows(windows)
    return prefs


def build_preferences(participants: Iterable[Participant]) -> Dict[str, ParticipantPreferences]:
    """Preference windows for every participant, keyed by participant id."""
    preferences = {}
    for participant in participants:
        preferences[participant.id] = build_participant_preferences(participant.availability)
        if not any(e.priority >= MIN_PREFERENCE_PRIORITY for e in participant.availability):
            logger.debug(f"No declared availability for {participant.id}; using Mon-Fri 09:00-17:00")
    return preferences


def windows_for(prefs: ParticipantPreferences, day: date_type) -> List[PreferenceWindow]:
    """Windows that apply on ``day``: date-specific ones win over the weekday ones."""
    specific = prefs.by_date.get(day)
    if specific:
        return list(specific)
    return list(prefs.by_weekday.get(day.weekday(), []))


def is_within_preferred_time(prefs: ParticipantPreferences, day: date_type, start: int, end: int) -> bool:
    return any(window.contains(start, end) for window in windows_for(prefs, day))
