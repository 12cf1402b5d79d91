"""Tests for Archive Sync: ordering, pacing, 429 retry and abort semantics."""

import pytest

from cardbill.archive import ArchiveSync
from cardbill.config import ArchiveSyncConfig
from cardbill.errors import ArchiveSyncError, BoardServiceError, RateLimitError


class TestOrderingAndPacing:
    @pytest.mark.asyncio
    async def test_patches_in_order(self, archive_sync, board_api):
        report = await archive_sync.archive_cards([101, 102, 103])

        assert board_api.patches == [
            (101, {"condition": 2}),
            (102, {"condition": 2}),
            (103, {"condition": 2}),
        ]
        assert report.completed == [101, 102, 103]
        assert report.archived is True
        assert report.retries == 0

    @pytest.mark.asyncio
    async def test_waits_between_calls_not_after_last(self, archive_sync, sleep):
        await archive_sync.archive_cards([101, 102, 103])
        assert sleep.calls == [0.2, 0.2]

    @pytest.mark.asyncio
    async def test_single_card_no_wait(self, archive_sync, sleep):
        await archive_sync.archive_cards([101])
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_unarchive(self, archive_sync, board_api):
        report = await archive_sync.unarchive_cards([105, 101])
        assert board_api.patches == [(105, {"condition": 1}), (101, {"condition": 1})]
        assert report.archived is False

    @pytest.mark.asyncio
    async def test_empty_run_does_nothing(self, archive_sync, board_api, sleep):
        report = await archive_sync.archive_cards([])
        assert report.completed == []
        assert board_api.requests == []
        assert sleep.calls == []

    @pytest.mark.asyncio
    async def test_configured_delay(self, board, board_api, sleep):
        sync = ArchiveSync(board, ArchiveSyncConfig(inter_call_delay=0.5), sleep=sleep)
        await sync.archive_cards([101, 102])
        assert sleep.calls == [0.5]


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_retries_once_after_429(self, archive_sync, board_api, sleep):
        board_api.fail(102, 429)

        report = await archive_sync.archive_cards([101, 102, 103])

        assert board_api.patch_attempts == [101, 102, 102, 103]
        assert report.completed == [101, 102, 103]
        assert report.retries == 1
        assert sleep.calls == [0.2, 1.0, 0.2]

    @pytest.mark.asyncio
    async def test_second_429_aborts(self, archive_sync, board_api):
        board_api.fail(102, 429, 429)

        with pytest.raises(ArchiveSyncError) as exc_info:
            await archive_sync.archive_cards([101, 102, 103])

        err = exc_info.value
        assert err.card_id == 102
        assert err.completed == [101]
        assert isinstance(err.cause, RateLimitError)
        assert 103 not in board_api.patch_attempts

    @pytest.mark.asyncio
    async def test_no_retries_configured(self, board, board_api, sleep):
        sync = ArchiveSync(board, ArchiveSyncConfig(max_retries=0), sleep=sleep)
        board_api.fail(101, 429)

        with pytest.raises(ArchiveSyncError):
            await sync.archive_cards([101])
        assert board_api.patch_attempts == [101]


class TestAbort:
    @pytest.mark.asyncio
    async def test_other_error_aborts_without_retry(self, archive_sync, board_api):
        board_api.fail(102, 500)

        with pytest.raises(ArchiveSyncError) as exc_info:
            await archive_sync.archive_cards([101, 102, 103])

        assert board_api.patch_attempts == [101, 102]
        assert exc_info.value.completed == [101]
        assert isinstance(exc_info.value.cause, BoardServiceError)

    @pytest.mark.asyncio
    async def test_completed_cards_stay_archived(self, archive_sync, board_api):
        board_api.fail(103, 500)

        with pytest.raises(ArchiveSyncError):
            await archive_sync.archive_cards([101, 102, 103])

        archived = {c["id"] for c in board_api.cards if c.get("archived")}
        assert {101, 102} <= archived
        assert 103 not in archived

    @pytest.mark.asyncio
    async def test_error_message_names_card(self, archive_sync, board_api):
        board_api.fail(101, 500)
        with pytest.raises(ArchiveSyncError, match="archive card 101"):
            await archive_sync.archive_cards([101])
