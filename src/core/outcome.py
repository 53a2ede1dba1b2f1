"""Result type for webhook and background reconciliation handlers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OutcomeKind(str, Enum):
    """How the caller should treat a handler result.

    OK: applied, or already applied (idempotent replay).
    RETRYABLE: transient failure, the sender should redeliver.
    FATAL: the event can never be applied; acknowledge and log.
    """

    OK = "ok"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class Outcome:
    """Result of handling one inbound event."""

    kind: OutcomeKind
    reason: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, reason: str | None = None, **data: Any) -> "Outcome":
        return cls(OutcomeKind.OK, reason, data)

    @classmethod
    def retryable(cls, reason: str, **data: Any) -> "Outcome":
        return cls(OutcomeKind.RETRYABLE, reason, data)

    @classmethod
    def fatal(cls, reason: str, **data: Any) -> "Outcome":
        return cls(OutcomeKind.FATAL, reason, data)

    @property
    def is_ok(self) -> bool:
        return self.kind == OutcomeKind.OK

    @property
    def is_retryable(self) -> bool:
        return self.kind == OutcomeKind.RETRYABLE
