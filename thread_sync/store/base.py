from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from operator import attrgetter
from types import TracebackType
from typing import Any

from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.store.exceptions import BatchCommitError
from thread_sync.store.observable import Observable, ObservableHub

logger = logging.getLogger(__name__)

Record = ParentSubscription | ThreadItem
Mutator = Callable[[Any], None]


class Collection(StrEnum):
    SUBSCRIPTIONS = "subscriptions"
    THREADS = "threads"


_COLLECTION_TYPES: dict[Collection, type] = {
    Collection.SUBSCRIPTIONS: ParentSubscription,
    Collection.THREADS: ThreadItem,
}


def collection_for(record: Record) -> Collection:
    """Return the collection a record instance belongs to."""
    for collection, record_type in _COLLECTION_TYPES.items():
        if isinstance(record, record_type):
            return collection
    raise TypeError(f"Not a store record: {type(record).__name__}")


@dataclass(frozen=True)
class Query:
    """Equality filters plus an ordering over one collection.

    ``order_by`` holds ``(field, descending)`` pairs, most significant
    first.
    """

    collection: Collection
    where: tuple[tuple[str, Any], ...] = ()
    order_by: tuple[tuple[str, bool], ...] = ()

    @classmethod
    def threads_for(cls, parent_id: str) -> Query:
        """Threads of one parent, newest activity first, ties by id."""
        return cls(
            collection=Collection.THREADS,
            where=(("parent_id", parent_id),),
            order_by=(("last_message_at", True), ("id", True)),
        )

    def matches(self, record: Record) -> bool:
        return all(getattr(record, name) == value for name, value in self.where)

    def apply(self, records: Iterable[Record]) -> list[Record]:
        """Filter and sort *records* in memory."""
        result = [r for r in records if self.matches(r)]
        # Stable sort: apply the least significant key first.
        for name, descending in reversed(self.order_by):
            result.sort(key=attrgetter(name), reverse=descending)
        return result


class OpKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DESTROY = "destroy"


@dataclass(frozen=True)
class PendingOp:
    """One prepared write, applied only by :meth:`Store.run_batch`.

    For updates, ``mutator`` is re-applied at commit time to the record
    as currently stored, so fields it does not touch keep their latest
    committed value.
    """

    kind: OpKind
    collection: Collection
    record: Record
    mutator: Mutator | None = field(default=None, compare=False)


class Store(ABC):
    """Reactive record store for subscriptions and their threads.

    Reads are point lookups and queries; writes only happen through
    ``run_batch``, which is all-or-nothing.  After every successful
    commit each live observable is re-evaluated, so subscribers see the
    whole batch or none of it.
    """

    def __init__(self) -> None:
        self._hub = ObservableHub()
        self._last_stamp: datetime | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    @abstractmethod
    async def init(self) -> None:
        """Create tables / indices (idempotent)."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any held resources (connections, file handles)."""
        ...

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Reads ────────────────────────────────────────────────────────

    @abstractmethod
    async def find(self, collection: Collection, record_id: str) -> Record:
        """Return a record by id or raise ``NotFoundError``."""
        ...

    @abstractmethod
    async def query(self, query: Query) -> list[Record]:
        """Return every record matching *query*, in its order."""
        ...

    def observe(self, record: Record) -> Observable:
        """Live view of a single record; emits when its value changes."""
        collection = collection_for(record)
        record_id = record.id

        async def source() -> Record:
            return await self.find(collection, record_id)

        return Observable(source, self._hub)

    def observe_query(self, query: Query) -> Observable:
        """Live view of a query.

        Emits when the result's membership, order, or any record's
        ``updated_at`` changes.
        """

        async def source() -> list[Record]:
            return await self.query(query)

        return Observable(
            source,
            self._hub,
            key=lambda records: [(r.id, r.updated_at) for r in records],
        )

    # ── Writes ───────────────────────────────────────────────────────

    def prepare_create(self, record: Record) -> PendingOp:
        return PendingOp(OpKind.CREATE, collection_for(record), replace(record))

    def prepare_update(self, record: Record, mutator: Mutator) -> PendingOp:
        draft = replace(record)
        mutator(draft)
        return PendingOp(OpKind.UPDATE, collection_for(record), draft, mutator)

    def prepare_destroy(self, record: Record) -> PendingOp:
        return PendingOp(OpKind.DESTROY, collection_for(record), record)

    async def run_batch(self, *ops: PendingOp) -> None:
        """Commit *ops* atomically, then notify live observables.

        Raises ``BatchCommitError`` if anything fails; in that case no
        op has been applied.
        """
        if not ops:
            return
        try:
            await self._commit(list(ops))
        except BatchCommitError:
            raise
        except Exception as exc:
            raise BatchCommitError(f"Batch of {len(ops)} ops failed: {exc}") from exc
        logger.debug("Committed batch of %d ops", len(ops))
        await self._hub.publish()

    def _stamp(self) -> datetime:
        """Return a commit timestamp strictly later than the previous one."""
        now = datetime.now(UTC)
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    @abstractmethod
    async def _commit(self, ops: list[PendingOp]) -> None:
        """Apply *ops* as one transaction, stamping ``updated_at``."""
        ...
