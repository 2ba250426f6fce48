# src/tasksync/tasks/offline_queue.py

from __future__ import annotations

"""
Offline mutation queue.

Ordered list of PendingMutation (insertion order = replay order), mirrored to
the cache as a whole snapshot after every change so it survives restarts.

Replay walks the queue strictly sequentially, one remote call per entry:
    Pending -> Replaying -> Acknowledged (removed) | Failed
What happens to Failed entries depends on the ReplayPolicy.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from ..errors import RemoteServiceError
from ..storage.task_cache import TaskCache
from .task_models import PendingMutation, ReplayPolicy

logger = logging.getLogger(__name__)

ApplyMutation = Callable[[PendingMutation], Awaitable[None]]


@dataclass(slots=True)
class ReplayReport:
    attempted: int = 0
    acknowledged: int = 0
    failed: int = 0
    dropped: int = 0
    # Not sent this pass because an earlier entry for the same task failed.
    deferred: int = 0
    remaining: list[PendingMutation] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return self.attempted == 0 and self.deferred == 0

    @property
    def fully_acknowledged(self) -> bool:
        return self.failed == 0 and self.deferred == 0


class OfflineMutationQueue:
    def __init__(
            self,
            cache: TaskCache,
            *,
            policy: ReplayPolicy = ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED,
    ) -> None:
        self._cache = cache
        self.policy = policy
        self._items: list[PendingMutation] = []
        # Once set, memory is authoritative; the persisted copy may lag behind a failed write.
        self._loaded = False

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> list[PendingMutation]:
        return list(self._items)

    async def load(self) -> list[PendingMutation]:
        """Restore the persisted queue (startup / rehydrate)."""
        persisted = await self._cache.load_queue()
        self._items = list(persisted or [])
        self._loaded = True
        if self._items:
            logger.info("Offline queue restored: %d pending mutation(s)", len(self._items))
        return self.items

    async def enqueue(self, mutation: PendingMutation) -> None:
        if not self._loaded:
            await self.load()
        self._items.append(mutation)
        if not await self._cache.save_queue(self._items):
            logger.warning("Offline queue kept in memory only (persist failed) id=%s", mutation.id)
        logger.debug("Enqueued mutation id=%s new_value=%s size=%d", mutation.id, mutation.new_value, len(self._items))

    async def clear(self) -> None:
        self._items = []
        self._loaded = True
        await self._cache.clear_queue()

    async def discard(self, task_id: int) -> int:
        """
        Remove every pending entry for a task (a newer online write superseded them).

        Returns how many entries were removed.
        """
        if not self._loaded:
            await self.load()
        kept = [m for m in self._items if m.id != task_id]
        removed = len(self._items) - len(kept)
        if not removed:
            return 0

        self._items = kept
        if kept:
            await self._cache.save_queue(kept)
        else:
            await self._cache.clear_queue()
        logger.info("Discarded %d superseded mutation(s) task_id=%s", removed, task_id)
        return removed

    async def replay(self, apply: ApplyMutation) -> ReplayReport:
        """
        Replay every pending mutation once, in insertion order.

        The persisted queue is read only when this queue was never loaded or
        written; after that the in-memory copy wins, since a failed cache write
        leaves the persisted one behind. Mutations enqueued while the pass is
        running are kept for the next pass.
        """
        report = ReplayReport()

        if not self._loaded:
            await self.load()
        entries = list(self._items)
        if not entries:
            return report

        logger.info("Replaying %d offline mutation(s) policy=%s", len(entries), self.policy.value)

        kept: list[PendingMutation] = []
        failed_ids: set[int] = set()
        retry = self.policy == ReplayPolicy.RETRY_UNTIL_ACKNOWLEDGED

        for mutation in entries:
            if retry and mutation.id in failed_ids:
                # Sending it would let the earlier failed value overwrite it on the next pass.
                report.deferred += 1
                kept.append(mutation)
                continue

            report.attempted += 1
            try:
                await apply(mutation)
            except RemoteServiceError as e:
                logger.warning("Replay failed task_id=%s new_value=%s: %s", mutation.id, mutation.new_value, e)
                ok = False
            except Exception:
                logger.exception("Replay crashed task_id=%s", mutation.id)
                ok = False
            else:
                ok = True

            if ok:
                report.acknowledged += 1
                continue

            report.failed += 1
            failed_ids.add(mutation.id)
            if retry:
                kept.append(mutation)
            else:
                report.dropped += 1
                logger.error(
                    "Dropping unsynced mutation task_id=%s new_value=%s (drop-after-pass policy)",
                    mutation.id,
                    mutation.new_value,
                )

        arrived = self._items[len(entries):]
        self._items = kept + arrived
        report.remaining = list(self._items)

        if self._items:
            await self._cache.save_queue(self._items)
        else:
            await self._cache.clear_queue()

        logger.info(
            "Replay done attempted=%d acknowledged=%d failed=%d dropped=%d deferred=%d remaining=%d",
            report.attempted,
            report.acknowledged,
            report.failed,
            report.dropped,
            report.deferred,
            len(self._items),
        )
        return report
