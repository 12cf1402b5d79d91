"""Time ledger: manual time entries that supplement the board's own tracking.

Reads go through the query cache; every write invalidates the entry list and
summaries it can have changed.
"""

import logging
from typing import Optional

from cardbill.cache import QueryCache
from cardbill.models import (
    TimeEntry,
    TimeEntryCreate,
    TimeEntryUpdate,
    TimeTrackingSummary,
)
from cardbill.store import RecordStore

logger = logging.getLogger(__name__)

ENTRIES = "time_entries"
SUMMARY = "time_tracking_summary"
SUMMARIES = "time_tracking_summaries"


class TimeLedger:
    def __init__(self, store: RecordStore, cache: QueryCache):
        self.store = store
        self.cache = cache

    def _invalidate_card(self, card_id: int) -> None:
        self.cache.invalidate(ENTRIES, card_id)
        self.cache.invalidate(SUMMARY, card_id)
        self.cache.invalidate(SUMMARIES)

    # --- Mutations ---

    async def create_entry(self, data: TimeEntryCreate) -> TimeEntry:
        entry = await self.store.insert_time_entry(data)
        logger.info(
            f"Logged {entry.hours}h {entry.minutes}m on card {entry.card_id} ({entry.date})"
        )
        self._invalidate_card(entry.card_id)
        return entry

    async def update_entry(self, entry_id: str, data: TimeEntryUpdate) -> TimeEntry:
        if data.hours is not None or data.minutes is not None:
            # An update must not zero out the entry either.
            current = await self.store.get_time_entry(entry_id)
            hours = current.hours if data.hours is None else data.hours
            minutes = current.minutes if data.minutes is None else data.minutes
            if hours == 0 and minutes == 0:
                raise ValueError("Please enter at least some time (hours or minutes).")
        entry = await self.store.update_time_entry(entry_id, data)
        self._invalidate_card(entry.card_id)
        return entry

    async def delete_entry(self, entry_id: str) -> None:
        await self.store.delete_time_entry(entry_id)
        logger.info(f"Deleted time entry {entry_id}")
        # The card id is not known here, drop everything time-related.
        self.cache.invalidate(ENTRIES)
        self.cache.invalidate(SUMMARY)
        self.cache.invalidate(SUMMARIES)

    # --- Reads ---

    async def entries_for_card(self, card_id: int) -> list[TimeEntry]:
        return await self.cache.get_or_load(
            (ENTRIES, card_id), lambda: self.store.time_entries_for_card(card_id)
        )

    async def summary(self, card_id: int) -> Optional[TimeTrackingSummary]:
        return await self.cache.get_or_load(
            (SUMMARY, card_id), lambda: self.store.time_summary(card_id)
        )

    async def summaries(self, card_ids: list[int]) -> list[TimeTrackingSummary]:
        if not card_ids:
            return []
        key = (SUMMARIES, tuple(sorted(set(card_ids))))
        return await self.cache.get_or_load(
            key, lambda: self.store.time_summaries(card_ids)
        )

    async def minutes_by_card(self, card_ids: list[int]) -> dict[int, int]:
        """Ledger minutes per card id; cards without entries are absent."""
        return {s.card_id: s.total_minutes_all for s in await self.summaries(card_ids)}
