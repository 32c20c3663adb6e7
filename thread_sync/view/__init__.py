from thread_sync.view.binding import ThreadListBinding, ThreadListState, ThreadSelection

__all__ = [
    "ThreadListBinding",
    "ThreadListState",
    "ThreadSelection",
]
