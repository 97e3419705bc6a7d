"""Persistent stores on top of a key-value storage provider."""

import json
import logging
import uuid
from dataclasses import asdict, fields, replace
from datetime import datetime
from typing import Any, Callable, Dict, List

from dateutil.parser import isoparse

from momentum.config import merge_settings
from momentum.db.models import (
    AnchorEvent,
    CompletionRecord,
    DNDWindow,
    LearningSettings,
    Schedule,
    SmartReminder,
)
from momentum.db.storage import KeyValueStorage, NamespacedStorage
from momentum.utils.constants import (
    HISTORY_KEY,
    MAX_RECORDS_PER_CATEGORY,
    SCHEDULE_KEY,
    SESSIONS_KEY,
    SETTINGS_KEY,
    EnergyCategory,
)

logger = logging.getLogger(__name__)

History = Dict[str, List[CompletionRecord]]


def new_id(prefix: str) -> str:
    """Short random identifier such as ``anchor-1f3a9c2b``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def empty_history() -> History:
    """A history mapping with every energy category present and empty."""
    return {category.value: [] for category in EnergyCategory}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _dumps(data: Any) -> str:
    return json.dumps(data, default=_json_default)


def _parse_datetime(value: str | None) -> datetime | None:
    # isoparse also accepts the trailing "Z" of JavaScript exports
    return isoparse(value) if value else None


def _known_fields(cls: type, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


def _dict_to_record(data: dict) -> CompletionRecord:
    """Convert a stored mapping to a CompletionRecord."""
    data = _known_fields(CompletionRecord, data)
    data["completed_at"] = _parse_datetime(data["completed_at"])
    return CompletionRecord(**data)


def _dict_to_reminder(data: dict) -> SmartReminder:
    """Convert a stored mapping to a SmartReminder."""
    data = _known_fields(SmartReminder, data)
    for key in ("snoozed_until", "last_interaction", "last_notified_at"):
        data[key] = _parse_datetime(data.get(key))
    return SmartReminder(**data)


def schedule_to_json(schedule: Schedule) -> str:
    return _dumps(asdict(schedule))


def schedule_from_json(raw: str) -> Schedule:
    data = json.loads(raw)
    return Schedule(
        anchors=[
            AnchorEvent(**_known_fields(AnchorEvent, a))
            for a in data.get("anchors", [])
        ],
        dnd_windows=[
            DNDWindow(**_known_fields(DNDWindow, w))
            for w in data.get("dnd_windows", [])
        ],
        reminders=[_dict_to_reminder(r) for r in data.get("reminders", [])],
        pause_until=_parse_datetime(data.get("pause_until")),
    )


class HistoryStore:
    """Per-category log of completion records, capped per category."""

    def __init__(
        self,
        storage: KeyValueStorage,
        max_records: int = MAX_RECORDS_PER_CATEGORY,
        id_factory: Callable[[], str] | None = None,
    ):
        self.storage = storage
        self.max_records = max_records
        self._new_id = id_factory or (lambda: new_id("cr"))

    async def load(self) -> History:
        """Read the whole history, filling in any missing category."""
        history = empty_history()

        raw = await self.storage.get(HISTORY_KEY)
        if not raw:
            return history

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse completion history: {e}")
            return history

        if not isinstance(parsed, dict):
            logger.error("Completion history is not a mapping, ignoring it")
            return history

        for category, records in parsed.items():
            if not isinstance(records, list):
                logger.warning(f"Skipping {category} history, expected a list of records")
                continue

            loaded = []
            for data in records:
                try:
                    loaded.append(_dict_to_record(data))
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping unreadable {category} record: {e}")
            history[category] = loaded

        return history

    async def all_records(self, category: str | None = None):
        """Records for one category, or the full mapping when none is given."""
        history = await self.load()
        if category is None:
            return history
        return history.get(category, [])

    async def append(self, record: CompletionRecord) -> History:
        """Store a record under a fresh id and return the updated history.

        When a category grows past the cap only the most recent records
        (by completion time) are kept.
        """
        history = await self.load()
        new_record = replace(record, id=self._new_id())

        records = history.get(new_record.energy_category, []) + [new_record]
        if len(records) > self.max_records:
            records.sort(key=lambda r: r.completed_at, reverse=True)
            records = records[: self.max_records]
            logger.info(
                f"Pruned {new_record.energy_category} history to {self.max_records} records"
            )
        history[new_record.energy_category] = records

        await self.save(history)
        return history

    async def record_completion(
        self, settings: LearningSettings, record: CompletionRecord
    ) -> History | None:
        """Append a record unless time learning is turned off."""
        if not settings.is_enabled:
            logger.debug("Time learning is off, completion not recorded")
            return None
        return await self.append(record)

    async def save(self, history: History) -> None:
        payload = {
            category: [asdict(r) for r in records]
            for category, records in history.items()
        }
        await self.storage.set(HISTORY_KEY, _dumps(payload))

    async def reset(self) -> None:
        """Delete all learning data."""
        await self.storage.remove(HISTORY_KEY)
        logger.info("Completion history reset")


class ScheduleStore:
    """Anchors, DND windows, reminders and the global pause."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    async def load(self) -> Schedule:
        raw = await self.storage.get(SCHEDULE_KEY)
        if not raw:
            return Schedule()

        try:
            return schedule_from_json(raw)
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse schedule, starting empty: {e}")
            return Schedule()

    async def save(self, schedule: Schedule) -> None:
        await self.storage.set(SCHEDULE_KEY, schedule_to_json(schedule))


class SettingsStore:
    """Time learning settings."""

    def __init__(self, storage: KeyValueStorage, defaults: LearningSettings):
        self.storage = storage
        self.defaults = defaults

    async def load(self) -> LearningSettings:
        raw = await self.storage.get(SETTINGS_KEY)
        if not raw:
            return self.defaults

        try:
            return merge_settings(self.defaults, json.loads(raw))
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse learning settings: {e}")
            return self.defaults

    async def save(self, settings: LearningSettings) -> None:
        await self.storage.set(SETTINGS_KEY, _dumps(asdict(settings)))


class UserRepository:
    """All stores of one chat user, on a key namespace of their own."""

    def __init__(
        self, storage: KeyValueStorage, chat_id: int, default_settings: LearningSettings
    ):
        self.chat_id = chat_id
        namespaced = NamespacedStorage(storage, f"user:{chat_id}")
        self.history = HistoryStore(namespaced)
        self.schedule = ScheduleStore(namespaced)
        self.settings = SettingsStore(namespaced, default_settings)


class SessionRegistry:
    """Chat ids of everyone who has started the bot."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    async def all(self) -> List[int]:
        raw = await self.storage.get(SESSIONS_KEY)
        if not raw:
            return []
        try:
            return [int(chat_id) for chat_id in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse session list: {e}")
            return []

    async def add(self, chat_id: int) -> bool:
        """Register a chat id. Returns False if it was already known."""
        chat_ids = await self.all()
        if chat_id in chat_ids:
            return False
        chat_ids.append(chat_id)
        await self.storage.set(SESSIONS_KEY, json.dumps(chat_ids))
        return True
