"""Reindex orchestration - schedules migrations when an alias lags its descriptor."""

import logging

from searchrepo.domain.index.model.descriptor import IndexDescriptor, versioned_name
from searchrepo.domain.index.model.work_item import ParentMap, ReindexWorkItem
from searchrepo.domain.shared.error import LockUnavailableError
from searchrepo.domain.shared.port.lock import LockProvider
from searchrepo.domain.shared.port.work_queue import WorkQueue
from searchrepo.domain.shared.service import Service

logger = logging.getLogger(__name__)

ENQUEUE_LOCK_KEY = "enqueue-reindex"


def needs_reindex(descriptor: IndexDescriptor, current_version: int) -> bool:
    """Unknown (< 1) and current-or-newer versions are never migrated."""
    return 1 <= current_version < descriptor.version


def build_work_item(descriptor: IndexDescriptor, current_version: int) -> ReindexWorkItem:
    return ReindexWorkItem(
        old_index=versioned_name(descriptor.alias_name, current_version),
        new_index=descriptor.versioned_name,
        alias=descriptor.alias_name,
        delete_old=True,
        parent_maps=tuple(
            ParentMap(type=t.name, parent_path=t.parent_path)
            for t in descriptor.child_types
            if t.parent_path
        ),
    )


class ReindexOrchestrator(Service):
    """Enqueues at most one reindex per (alias, old, new) while it is in flight.

    `migration_locks` is the lock the migration worker holds while copying;
    `throttle` is a fixed-window lock that collapses a fleet of starting
    processes into a single enqueue.
    """

    queue: WorkQueue
    migration_locks: LockProvider
    throttle: LockProvider

    async def schedule(self, descriptor: IndexDescriptor, current_version: int) -> bool:
        """Enqueue a reindex if the alias is behind. Returns True if an item was enqueued."""
        if not needs_reindex(descriptor, current_version):
            return False

        item = build_work_item(descriptor, current_version)

        if await self._is_running(item):
            logger.info(
                "Reindex %s -> %s already running, skipping", item.old_index, item.new_index
            )
            return False

        enqueued = False

        async def enqueue() -> None:
            nonlocal enqueued
            entry_id = await self.queue.enqueue(item)
            enqueued = True
            logger.info(
                "Enqueued reindex %s -> %s for alias %s (entry %s)",
                item.old_index,
                item.new_index,
                item.alias,
                entry_id,
            )

        try:
            acquired = await self.throttle.try_using(ENQUEUE_LOCK_KEY, enqueue, timeout=0)
        except LockUnavailableError as e:
            if enqueued:
                return True
            logger.warning("Reindex throttle unavailable, enqueueing unthrottled: %s", e)
            await enqueue()
            return True

        if not acquired:
            logger.debug("Reindex enqueue for %s throttled", item.alias)
        return enqueued

    async def _is_running(self, item: ReindexWorkItem) -> bool:
        try:
            return await self.migration_locks.is_locked(item.lock_key)
        except LockUnavailableError as e:
            logger.warning("Could not check reindex lock %s: %s", item.lock_key, e)
            return False
