from __future__ import annotations

import copy
from dataclasses import replace

from thread_sync.store.base import Collection, OpKind, PendingOp, Query, Record, Store
from thread_sync.store.exceptions import NotFoundError, StoreError


class InMemoryStore(Store):
    """Store backed by plain Python dicts.

    Safe within a single asyncio event loop.  Every read returns a deep copy,
    and a batch is staged on copied tables that are swapped in only
    once every op has been applied.
    """

    def __init__(self) -> None:
        super().__init__()
        self._tables: dict[Collection, dict[str, Record]] = {c: {} for c in Collection}

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        pass

    async def reset(self) -> None:
        self._tables = {c: {} for c in Collection}

    async def close(self) -> None:
        pass

    # ── Reads ────────────────────────────────────────────────────────

    async def find(self, collection: Collection, record_id: str) -> Record:
        record = self._tables[collection].get(record_id)
        if record is None:
            raise NotFoundError(collection, record_id)
        return copy.deepcopy(record)

    async def query(self, query: Query) -> list[Record]:
        records = query.apply(self._tables[query.collection].values())
        return [copy.deepcopy(r) for r in records]

    # ── Writes ───────────────────────────────────────────────────────

    async def _commit(self, ops: list[PendingOp]) -> None:
        staged = {c: dict(rows) for c, rows in self._tables.items()}
        now = self._stamp()

        for op in ops:
            rows = staged[op.collection]
            record_id = op.record.id

            if op.kind is OpKind.CREATE:
                if record_id in rows:
                    raise StoreError(
                        f"{op.collection} record {record_id!r} already exists"
                    )
                rows[record_id] = replace(copy.deepcopy(op.record), updated_at=now)

            elif op.kind is OpKind.UPDATE:
                current = rows.get(record_id)
                if current is None:
                    raise NotFoundError(op.collection, record_id)
                updated = copy.deepcopy(current)
                if op.mutator is not None:
                    op.mutator(updated)
                updated.updated_at = now
                rows[record_id] = updated

            else:
                if record_id not in rows:
                    raise NotFoundError(op.collection, record_id)
                del rows[record_id]

        self._tables = staged
