"""Tests for the persistent stores."""

import asyncio
import json
from datetime import datetime, timedelta
from itertools import count
from zoneinfo import ZoneInfo

import pytest

from momentum.db.models import (
    AnchorEvent,
    CompletionRecord,
    DNDWindow,
    LearningSettings,
    Schedule,
    SmartReminder,
)
from momentum.db.repository import (
    HistoryStore,
    ScheduleStore,
    SessionRegistry,
    SettingsStore,
    UserRepository,
)
from momentum.db.storage import MemoryStorage, NamespacedStorage
from momentum.utils.constants import HISTORY_KEY, SCHEDULE_KEY, SETTINGS_KEY

START = datetime(2026, 3, 2, 9, 0, tzinfo=ZoneInfo("UTC"))


def make_record(minutes_later=0, category="Admin", actual=20.0):
    completed_at = START + timedelta(minutes=minutes_later)
    return CompletionRecord(
        id="",
        actual_duration_minutes=actual,
        estimated_duration_minutes=15.0,
        energy_category=category,
        completed_at=completed_at,
        sub_step_count=2,
        day_of_week=completed_at.weekday(),
    )


def sequential_ids():
    counter = count(1)
    return lambda: f"cr-{next(counter)}"


def test_empty_history_has_every_category():
    """A fresh store lists all five categories with no records."""
    store = HistoryStore(MemoryStorage())

    history = asyncio.run(store.load())

    assert set(history) == {"Creative", "Tedious", "Admin", "Social", "Errand"}
    assert all(records == [] for records in history.values())


def test_append_assigns_id_and_persists():
    storage = MemoryStorage()
    store = HistoryStore(storage, id_factory=sequential_ids())

    history = asyncio.run(store.append(make_record()))

    assert history["Admin"][0].id == "cr-1"
    assert HISTORY_KEY in storage.data

    reloaded = asyncio.run(HistoryStore(storage).all_records("Admin"))
    assert reloaded == history["Admin"]
    assert reloaded[0].completed_at == START


def test_append_prunes_oldest_records():
    """Past the cap only the most recent records survive."""
    store = HistoryStore(MemoryStorage(), max_records=3, id_factory=sequential_ids())

    async def fill():
        for i in range(5):
            await store.append(make_record(minutes_later=i))
        return await store.all_records("Admin")

    records = asyncio.run(fill())

    assert len(records) == 3
    assert [r.id for r in records] == ["cr-5", "cr-4", "cr-3"]


def test_prune_only_touches_one_category():
    store = HistoryStore(MemoryStorage(), max_records=1)

    async def fill():
        await store.append(make_record(category="Errand"))
        await store.append(make_record(minutes_later=1))
        await store.append(make_record(minutes_later=2))
        return await store.load()

    history = asyncio.run(fill())

    assert len(history["Errand"]) == 1
    assert len(history["Admin"]) == 1


def test_corrupt_history_loads_empty():
    storage = MemoryStorage({HISTORY_KEY: "{not json"})

    history = asyncio.run(HistoryStore(storage).load())

    assert history["Creative"] == []


def test_unreadable_record_is_skipped():
    good = {
        "id": "cr-1",
        "actual_duration_minutes": 10,
        "estimated_duration_minutes": 12,
        "energy_category": "Social",
        "completed_at": "2026-03-02T09:00:00Z",
        "sub_step_count": 1,
        "day_of_week": 0,
    }
    storage = MemoryStorage({HISTORY_KEY: json.dumps({"Social": [good, {"id": "broken"}]})})

    records = asyncio.run(HistoryStore(storage).all_records("Social"))

    assert [r.id for r in records] == ["cr-1"]
    assert records[0].difficulty == 1.0


def test_reset_clears_history():
    storage = MemoryStorage()
    store = HistoryStore(storage)

    async def run():
        await store.append(make_record())
        await store.reset()
        return await store.load()

    history = asyncio.run(run())

    assert HISTORY_KEY not in storage.data
    assert history["Admin"] == []


def test_schedule_round_trip():
    """Anchors, DND windows, reminders and pause survive storage."""
    storage = MemoryStorage()
    store = ScheduleStore(storage)
    schedule = Schedule(
        anchors=[
            AnchorEvent(
                id="a1",
                day="Monday",
                title="Work",
                start_time="09:00",
                end_time="17:00",
                context_tags=["work"],
            )
        ],
        dnd_windows=[DNDWindow(day="Monday", start_time="23:00", end_time="07:00")],
        reminders=[
            SmartReminder(
                id="r1",
                anchor_id="a1",
                offset_minutes=-10,
                message="Pack laptop",
                status="snoozed",
                snoozed_until=START,
                snooze_history=[10],
                success_history=["snoozed"],
            )
        ],
        pause_until=START + timedelta(days=1),
    )

    async def run():
        await store.save(schedule)
        return await store.load()

    assert asyncio.run(run()) == schedule


def test_missing_or_corrupt_schedule_is_empty():
    assert asyncio.run(ScheduleStore(MemoryStorage()).load()) == Schedule()
    corrupt = MemoryStorage({SCHEDULE_KEY: "[]]"})
    assert asyncio.run(ScheduleStore(corrupt).load()) == Schedule()


def test_settings_merge_with_defaults():
    """Stored values override defaults; unknown keys are ignored."""
    defaults = LearningSettings(sensitivity=0.3, timezone="UTC")
    storage = MemoryStorage(
        {SETTINGS_KEY: json.dumps({"sensitivity": 0.95, "theme": "dark", "timezone": None})}
    )

    settings = asyncio.run(SettingsStore(storage, defaults).load())

    assert settings.sensitivity == 0.9
    assert settings.timezone == "UTC"
    assert settings.is_enabled


def test_user_repository_namespaces_keys():
    """Two users on one backend never see each other's data."""
    storage = MemoryStorage()
    alice = UserRepository(storage, 1, LearningSettings())
    bob = UserRepository(storage, 2, LearningSettings())

    async def run():
        await alice.history.append(make_record())
        return await bob.history.all_records("Admin")

    assert asyncio.run(run()) == []
    assert f"user:1:{HISTORY_KEY}" in storage.data


def test_namespaced_storage_remove():
    storage = MemoryStorage({"ns:key": "value", "key": "other"})

    asyncio.run(NamespacedStorage(storage, "ns").remove("key"))

    assert storage.data == {"key": "other"}


def test_session_registry():
    registry = SessionRegistry(MemoryStorage())

    async def run():
        first = await registry.add(42)
        again = await registry.add(42)
        await registry.add(7)
        return first, again, await registry.all()

    first, again, chat_ids = asyncio.run(run())

    assert first is True
    assert again is False
    assert chat_ids == [42, 7]


def test_record_completion_skipped_when_learning_off():
    storage = MemoryStorage()
    store = HistoryStore(storage)

    result = asyncio.run(store.record_completion(LearningSettings(is_enabled=False), make_record()))

    assert result is None
    assert HISTORY_KEY not in storage.data


def test_record_completion_appends_when_learning_on():
    store = HistoryStore(MemoryStorage())

    history = asyncio.run(store.record_completion(LearningSettings(), make_record()))

    assert len(history["Admin"]) == 1


@pytest.mark.parametrize(
    "stored",
    [{"Admin": [1]}, {"Admin": ["x"]}, {"Admin": 5}, {"Admin": None}, {"Admin": [[1, 2]]}],
)
def test_malformed_history_loads_empty(stored):
    """Valid JSON of the wrong shape never raises out of load."""
    storage = MemoryStorage({HISTORY_KEY: json.dumps(stored)})

    history = asyncio.run(HistoryStore(storage).load())

    assert history["Admin"] == []
    assert set(history) == {"Creative", "Tedious", "Admin", "Social", "Errand"}


def test_malformed_history_keeps_good_categories():
    good = {
        "id": "cr-1",
        "actual_duration_minutes": 10,
        "estimated_duration_minutes": 12,
        "energy_category": "Errand",
        "completed_at": "2026-03-02T09:00:00+00:00",
        "sub_step_count": 1,
        "day_of_week": 0,
    }
    storage = MemoryStorage({HISTORY_KEY: json.dumps({"Admin": 5, "Errand": [good, 7]})})

    history = asyncio.run(HistoryStore(storage).load())

    assert history["Admin"] == []
    assert [r.id for r in history["Errand"]] == ["cr-1"]
