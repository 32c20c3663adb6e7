"""Store-specific exceptions."""


class StoreError(Exception):
    """Base exception for store operations."""


class NotFoundError(StoreError):
    """A point lookup did not match any record."""

    def __init__(self, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id!r} not found")


class BatchCommitError(StoreError):
    """An atomic batch could not be committed.  Nothing was written."""
