"""Optimistic concurrency for aggregate writes.

Webhooks, customer actions and the unpaid-order sweep can all write the same
order. Protean versions every aggregate (``_version``) and the write is
conditional on the version loaded, so a writer holding a stale copy fails
with ``ExpectedVersionError``, either on ``add`` or when the unit of work
commits. Both surface here as ``ConcurrentUpdateError``.

Command handlers call ``repository.add`` directly instead: Protean re-runs a
handler that hit a version conflict in a fresh unit of work, and the API maps
a conflict that outlives those retries to 409.
"""

from contextlib import contextmanager

from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError

from ordering.errors import ConcurrentUpdateError


def _conflict(exc: ExpectedVersionError, aggregate=None) -> ConcurrentUpdateError:
    if aggregate is not None:
        message = f"{type(aggregate).__name__} {aggregate.id} was modified concurrently"
        details = {"aggregate": type(aggregate).__name__, "id": str(aggregate.id)}
    else:
        message = "Record was modified concurrently"
        details = {}
    details["reason"] = str(exc)
    return ConcurrentUpdateError(message=message, details=details)


def save(repository, aggregate):
    try:
        repository.add(aggregate)
    except ExpectedVersionError as exc:
        raise _conflict(exc, aggregate) from exc
    return aggregate


@contextmanager
def unit_of_work():
    """``UnitOfWork`` whose commit-time version conflicts raise ``ConcurrentUpdateError``."""
    try:
        with UnitOfWork() as uow:
            yield uow
    except ExpectedVersionError as exc:
        raise _conflict(exc) from exc
