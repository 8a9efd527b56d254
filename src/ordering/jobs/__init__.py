"""Job dispatcher factory.

Provides get_dispatcher() / set_dispatcher() to swap implementations. The
in-memory dispatcher is the default for development and tests.
"""

from ordering.jobs.port import JobDispatcher

_current_dispatcher: JobDispatcher | None = None


def get_dispatcher() -> JobDispatcher:
    """Return the current job dispatcher. Defaults to InMemoryJobDispatcher."""
    global _current_dispatcher
    if _current_dispatcher is None:
        from ordering.jobs.memory_adapter import InMemoryJobDispatcher

        _current_dispatcher = InMemoryJobDispatcher()
    return _current_dispatcher


def set_dispatcher(dispatcher: JobDispatcher) -> None:
    """Override the active job dispatcher (useful for tests)."""
    global _current_dispatcher
    _current_dispatcher = dispatcher


def reset_dispatcher() -> None:
    """Reset to default dispatcher."""
    global _current_dispatcher
    _current_dispatcher = None
