"""Typed outcome of applying an external status report to local state.

Webhook endpoints acknowledge every parsed notification with HTTP 200 no
matter what happened inside; internal callers and tests look at the result
instead:

- ``applied``  local state changed
- ``ignored``  nothing to do (duplicate, stale or irrelevant notification)
- ``rejected`` the notification could not be processed
"""

from dataclasses import dataclass
from enum import Enum


class ReconciliationOutcome(Enum):
    APPLIED = "applied"
    IGNORED = "ignored"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    reason: str | None = None
    payment_id: str | None = None
    shipment_id: str | None = None
    order_id: str | None = None
    status: str | None = None
    events: tuple[str, ...] = ()

    @classmethod
    def applied(cls, **kwargs) -> "ReconciliationResult":
        return cls(outcome=ReconciliationOutcome.APPLIED, **kwargs)

    @classmethod
    def ignored(cls, reason: str, **kwargs) -> "ReconciliationResult":
        return cls(outcome=ReconciliationOutcome.IGNORED, reason=reason, **kwargs)

    @classmethod
    def rejected(cls, reason: str, **kwargs) -> "ReconciliationResult":
        return cls(outcome=ReconciliationOutcome.REJECTED, reason=reason, **kwargs)

    @property
    def is_applied(self) -> bool:
        return self.outcome == ReconciliationOutcome.APPLIED
