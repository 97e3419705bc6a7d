"""Constants and default values."""

from enum import Enum


class EnergyCategory(str, Enum):
    """How demanding a task feels; history is segmented by this tag."""

    CREATIVE = "Creative"
    TEDIOUS = "Tedious"
    ADMIN = "Admin"
    SOCIAL = "Social"
    ERRAND = "Errand"


class Difficulty(float, Enum):
    """Self-reported difficulty, used to normalize actual durations."""

    EASIER = 0.8
    TYPICAL = 1.0
    HARDER = 1.25


class ContextTag(str, Enum):
    """Tags that describe the character of an anchor."""

    RUSHED = "rushed"
    RELAXED = "relaxed"
    HIGH_ENERGY = "high-energy"
    LOW_ENERGY = "low-energy"
    WORK = "work"
    SCHOOL = "school"
    PERSONAL = "personal"
    PREP = "prep"
    TRAVEL = "travel"
    RECOVERY = "recovery"


# Python weekday() order
DAYS_OF_WEEK = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

MINUTES_PER_DAY = 1440

# Completion history
MAX_RECORDS_PER_CATEGORY = 100
MIN_RECORDS_FOR_ESTIMATE = 5
MIN_RECORDS_FOR_STATS = 3

# Estimation
BLEND_WEIGHT_COMPLEXITY = 0.5
P90_STDDEV_FACTOR = 1.3
MIN_P50_MINUTES = 5
MIN_P90_SPREAD_MINUTES = 5
LOW_CONFIDENCE_BELOW = 10
MEDIUM_CONFIDENCE_BELOW = 25

# Learning settings
DEFAULT_SENSITIVITY = 0.3
MIN_SENSITIVITY = 0.1
MAX_SENSITIVITY = 0.9

# Reminder actions
SNOOZE_OPTIONS = [5, 10, 15]
LATER_TODAY_HOURS = 3
LATER_TODAY_FALLBACK_HOURS = 1
LATER_TODAY_DND_MARGIN_MINUTES = 15
PAUSE_RESUME_HOUR = 9
CHANGE_LOG_LIMIT = 5
DND_SHIFTED = "DND-shifted"

# Default DND window for new users (24-hour format)
DEFAULT_DND_START = "23:00"
DEFAULT_DND_END = "07:00"

# Default timezone
DEFAULT_TIMEZONE = "UTC"

# Storage keys
HISTORY_KEY = "completion_history"
SCHEDULE_KEY = "schedule"
SETTINGS_KEY = "learning_settings"
SESSIONS_KEY = "sessions"
