"""Job dispatcher port: deferred, fire-and-forget side effects.

Jobs are delivered at least once, so every job handler must be idempotent.
Callers dispatch only after the unit of work that justified the job has
committed.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

SEND_ORDER_CONFIRMATION = "send_order_confirmation"
SEND_ORDER_PAYMENT_EXPIRED_NOTIFICATION = "send_order_payment_expired_notification"


@dataclass(frozen=True)
class Job:
    name: str
    payload: dict = field(default_factory=dict)


class JobDispatcher(ABC):
    @abstractmethod
    def dispatch(self, job: Job) -> None:
        """Enqueue a job for asynchronous execution."""
        ...
