"""Turn a remote batch into the minimal set of local writes.

The diff is keyed on thread id only.  A persisted parent gets every
create/update/destroy plus its watermark advance in one atomic batch;
a parent without a stored record (degraded mode) only accumulates new
threads in memory.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import partial

from thread_sync.models import ParentSubscription, ThreadItem, assign_remote_fields
from thread_sync.remote.schemas import RemoteThread
from thread_sync.store import BatchCommitError, PendingOp, Query, Store, StoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteThreadBatch:
    """The result of one fetch, consumed once by :class:`Reconciler`.

    ``as_of`` is the watermark to record once the batch is applied.
    Page loads never carry removals.
    """

    updated: list[RemoteThread] = field(default_factory=list)
    removed: list[RemoteThread] = field(default_factory=list)
    as_of: datetime | None = None


@dataclass
class ReconcilePlan:
    """Disjoint create/update/delete sets.  ``to_update`` holds the merged records."""

    to_create: list[ThreadItem] = field(default_factory=list)
    to_update: list[ThreadItem] = field(default_factory=list)
    to_delete: list[ThreadItem] = field(default_factory=list)

    @property
    def op_count(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.to_delete)

    @property
    def is_empty(self) -> bool:
        return self.op_count == 0


def plan_reconciliation(
    batch: RemoteThreadBatch,
    parent_id: str,
    local: Iterable[ThreadItem],
    *,
    preserve: frozenset[str] = frozenset(),
) -> ReconcilePlan:
    """Diff *batch* against the *local* threads of *parent_id*.

    An id listed in both ``updated`` and ``removed`` is deleted.  Updates
    that would not change the stored record are skipped, so applying
    the same batch twice plans nothing the second time.
    """
    local_by_id = {item.id: item for item in local}
    removed_ids = [r.id for r in batch.removed]
    removed_set = set(removed_ids)

    # Last occurrence of an id wins.
    incoming: dict[str, ThreadItem] = {}
    for remote in batch.updated:
        if remote.id not in removed_set:
            incoming[remote.id] = remote.to_item(parent_id)

    plan = ReconcilePlan()
    for thread_id, candidate in incoming.items():
        existing = local_by_id.get(thread_id)
        if existing is None:
            plan.to_create.append(candidate)
            continue
        merged = replace(existing)
        assign_remote_fields(merged, candidate, preserve)
        if merged != existing:
            plan.to_update.append(merged)

    seen: set[str] = set()
    for thread_id in removed_ids:
        if thread_id in local_by_id and thread_id not in seen:
            plan.to_delete.append(local_by_id[thread_id])
            seen.add(thread_id)
    return plan


def _advance_watermark(as_of: datetime, subscription: ParentSubscription) -> None:
    subscription.last_sync_watermark = as_of


class Reconciler:
    """Applies remote batches for one parent.

    ``memory_items`` is the result list used in degraded mode, when the
    parent has no persisted record.
    """

    def __init__(
        self,
        store: Store,
        parent_id: str,
        *,
        preserve_fields: frozenset[str] = frozenset(),
    ) -> None:
        self._store = store
        self.parent_id = parent_id
        self.preserve_fields = preserve_fields
        self.memory_items: list[ThreadItem] = []

    async def apply(
        self,
        batch: RemoteThreadBatch,
        subscription: ParentSubscription | None,
    ) -> ReconcilePlan | None:
        """Reconcile *batch*; return the plan, or ``None`` if the store failed."""
        if subscription is None:
            plan = plan_reconciliation(
                batch,
                self.parent_id,
                self.memory_items,
                preserve=self.preserve_fields,
            )
            self.memory_items.extend(plan.to_create)
            logger.info(
                "Kept %d new threads of %s in memory (%d total)",
                len(plan.to_create),
                self.parent_id,
                len(self.memory_items),
            )
            return plan

        try:
            local = await self._store.query(Query.threads_for(self.parent_id))
        except StoreError as exc:
            logger.error("Reading threads of %s failed: %s", self.parent_id, exc)
            return None
        plan = plan_reconciliation(
            batch,
            self.parent_id,
            local,  # type: ignore[arg-type]
            preserve=self.preserve_fields,
        )
        ops = self._prepare(plan, subscription, batch.as_of)
        if not ops:
            return plan

        try:
            await self._store.run_batch(*ops)
        except BatchCommitError as exc:
            logger.error("Reconciling threads of %s failed: %s", self.parent_id, exc)
            return None

        logger.info(
            "Reconciled %s: %d created, %d updated, %d deleted",
            self.parent_id,
            len(plan.to_create),
            len(plan.to_update),
            len(plan.to_delete),
        )
        return plan

    def _prepare(
        self,
        plan: ReconcilePlan,
        subscription: ParentSubscription,
        as_of: datetime | None,
    ) -> list[PendingOp]:
        store = self._store
        ops = [store.prepare_create(item) for item in plan.to_create]
        ops.extend(
            store.prepare_update(
                item,
                partial(
                    assign_remote_fields, source=item, preserve=self.preserve_fields
                ),
            )
            for item in plan.to_update
        )
        ops.extend(store.prepare_destroy(item) for item in plan.to_delete)
        if as_of is not None:
            ops.append(
                store.prepare_update(subscription, partial(_advance_watermark, as_of))
            )
        return ops
