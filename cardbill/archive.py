"""Archive Sync: mirror invoice payment status onto the cards' archived flag.

One deliberate worker drains a queue of card updates in order. The board API
rate-limits aggressively, so the worker waits ``inter_call_delay`` between
calls and retries a 429 at most ``max_retries`` times after ``retry_delay``.
Any other error stops the run; cards already updated stay updated.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from cardbill.adapters.board_adapter import BoardAdapter
from cardbill.config import ArchiveSyncConfig
from cardbill.errors import ArchiveSyncError, RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class ArchiveTask:
    card_id: int
    archived: bool
    attempts: int = 0


@dataclass
class ArchiveReport:
    archived: bool
    completed: list[int] = field(default_factory=list)
    retries: int = 0


class ArchiveSync:
    """Sequential, rate-limit aware archive/unarchive of board cards."""

    def __init__(
        self,
        board: BoardAdapter,
        config: ArchiveSyncConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.board = board
        self.config = config
        self._sleep = sleep

    async def run(self, card_ids: list[int], archived: bool) -> ArchiveReport:
        """Set ``archived`` on every card, in the given order."""
        queue: asyncio.Queue[ArchiveTask] = asyncio.Queue()
        for card_id in card_ids:
            queue.put_nowait(ArchiveTask(card_id=card_id, archived=archived))

        report = ArchiveReport(archived=archived)
        if queue.empty():
            return report

        action = "Archiving" if archived else "Unarchiving"
        logger.info(f"{action} {len(card_ids)} cards: {card_ids}")
        await self._worker(queue, report)
        logger.info(f"{action} done: {len(report.completed)} cards, {report.retries} retries")
        return report

    async def _worker(self, queue: asyncio.Queue, report: ArchiveReport) -> None:
        while not queue.empty():
            task = queue.get_nowait()
            try:
                await self._process(task, report)
            except Exception as e:
                dropped = queue.qsize()
                logger.error(
                    f"Archive Sync aborted at card {task.card_id} "
                    f"({dropped} cards not attempted): {e}"
                )
                raise ArchiveSyncError(
                    card_id=task.card_id,
                    archived=task.archived,
                    completed=list(report.completed),
                    cause=e,
                ) from e
            finally:
                queue.task_done()

            report.completed.append(task.card_id)
            if not queue.empty():
                await self._sleep(self.config.inter_call_delay)

    async def _process(self, task: ArchiveTask, report: ArchiveReport) -> None:
        while True:
            task.attempts += 1
            try:
                await self.board.set_archived(task.card_id, task.archived)
                return
            except RateLimitError:
                if task.attempts > self.config.max_retries:
                    raise
                logger.warning(
                    f"Rate limited on card {task.card_id}, "
                    f"retrying in {self.config.retry_delay}s"
                )
                report.retries += 1
                await self._sleep(self.config.retry_delay)

    async def archive_cards(self, card_ids: list[int]) -> ArchiveReport:
        return await self.run(card_ids, archived=True)

    async def unarchive_cards(self, card_ids: list[int]) -> ArchiveReport:
        return await self.run(card_ids, archived=False)
