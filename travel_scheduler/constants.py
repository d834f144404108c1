"""
Engine-wide constants for the travel schedule recalculator.
"""

# Storage granularity of the timetable (minutes per atomic slot)
SLOT_MINUTES = 10
MINUTES_PER_DAY = 24 * 60

# Relocation horizon: original date + following calendar days (weekends skipped)
HORIZON_DAYS = 5
WEEKEND = (5, 6)  # date.weekday(): Saturday, Sunday

# Availability entries below this priority are soft defaults, not real availability
MIN_PREFERENCE_PRIORITY = 2

# Fallback availability when a participant declares nothing usable: Mon-Fri 09:00-17:00
DEFAULT_WINDOW_WEEKDAYS = (0, 1, 2, 3, 4)
DEFAULT_WINDOW_START = 9 * 60
DEFAULT_WINDOW_END = 17 * 60

# Walking mode is rejected outright if any single leg exceeds this
WALKING_LEG_LIMIT_MINUTES = 60

# Average speeds (km/h) used when the travel-time provider is unavailable
AVERAGE_SPEED_KMH = {
    "walking": 5,
    "bicycling": 15,
    "transit": 25,
    "driving": 40,
}
DEFAULT_SPEED_KMH = 30

EARTH_RADIUS_KM = 6371.0

# Interactive availability probe range
PROBE_START = 9 * 60
PROBE_END = 18 * 60

OWNER_LABEL = "Owner"
