"""
Exceptions raised by the recalculation engine.
"""


class ScheduleInputError(ValueError):
    """A fatal precondition failed before anything was mutated (message is user-facing)."""


class TravelTimeError(RuntimeError):
    """The travel-time provider could not answer for a leg."""
