"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal

from momentum.utils.constants import DEFAULT_SENSITIVITY, DEFAULT_TIMEZONE


ReminderStatus = Literal["active", "snoozed", "done", "paused", "ignored"]
SuccessState = Literal["success", "snoozed", "ignored"]
Confidence = Literal["low", "medium", "high"]
ConflictKind = Literal["dnd", "overlap"]
Weekday = Literal[
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
]


@dataclass(frozen=True)
class CompletionRecord:
    """A finished task, used to learn how long similar tasks take."""

    id: str
    actual_duration_minutes: float
    estimated_duration_minutes: float  # The p50 shown when the task was done
    energy_category: str
    completed_at: datetime
    sub_step_count: int
    day_of_week: int  # 0=Monday, 6=Sunday
    difficulty: float = 1.0  # 0.8, 1.0 or 1.25


@dataclass(frozen=True)
class EstimateResult:
    """Personalized duration range for a task."""

    p50_minutes: int
    p90_minutes: int
    confidence: Confidence


@dataclass
class AnchorEvent:
    """A fixed weekly calendar block that reminders hang off."""

    id: str
    day: Weekday
    title: str
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    prep_buffer_minutes: int | None = None
    recovery_buffer_minutes: int | None = None
    context_tags: List[str] = field(default_factory=list)


@dataclass
class DNDWindow:
    """Daily do-not-disturb range. start > end wraps past midnight."""

    day: Weekday
    start_time: str  # HH:MM
    end_time: str  # HH:MM


@dataclass
class SmartReminder:
    """A reminder placed relative to an anchor's start."""

    id: str
    anchor_id: str
    offset_minutes: int  # Negative = before the anchor starts
    message: str
    why: str = ""
    is_locked: bool = False
    is_exploratory: bool = False
    allow_exploration: bool = True
    status: ReminderStatus = "active"
    snooze_history: List[int] = field(default_factory=list)
    snoozed_until: datetime | None = None
    success_history: List[SuccessState] = field(default_factory=list)
    original_offset_minutes: int | None = None  # Set while exploring
    last_interaction: datetime | None = None
    last_notified_at: datetime | None = None


@dataclass
class ActiveReminder:
    """A reminder resolved against today's schedule."""

    reminder: SmartReminder
    anchor: AnchorEvent
    trigger_time: datetime
    shifted_reason: str | None = None


@dataclass(frozen=True)
class Conflict:
    """A problem found when moving an anchor to another day."""

    kind: ConflictKind
    anchor_id: str
    target_day: Weekday
    start_time: str
    end_time: str
    overlapping_anchor_id: str | None = None


@dataclass
class Schedule:
    """Everything the reminder engine works from."""

    anchors: List[AnchorEvent] = field(default_factory=list)
    dnd_windows: List[DNDWindow] = field(default_factory=list)
    reminders: List[SmartReminder] = field(default_factory=list)
    pause_until: datetime | None = None


@dataclass(frozen=True)
class LearningSettings:
    """Per-user time learning preferences."""

    is_enabled: bool = True
    sensitivity: float = DEFAULT_SENSITIVITY
    timezone: str = DEFAULT_TIMEZONE


@dataclass(frozen=True)
class ChangeEvent:
    """An undoable change, holding the schedule from before it."""

    message: str
    created_at: datetime
    before: Schedule
