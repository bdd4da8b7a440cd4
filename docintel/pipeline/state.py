"""
Document processing state machine.

    pending ──► processing ──► completed
                    │      ├──► needs_review
                    │      └──► failed
    completed / needs_review / failed ──(reprocess)──► pending

The orchestrator is the single writer of this field for a document.
"""

from __future__ import annotations

from enum import Enum

from docintel.core.errors import InvalidTransitionError


class ProcessingStatus(str, Enum):
    PENDING      = "pending"
    PROCESSING   = "processing"
    COMPLETED    = "completed"
    NEEDS_REVIEW = "needs_review"
    FAILED       = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[ProcessingStatus] = frozenset({
    ProcessingStatus.COMPLETED,
    ProcessingStatus.NEEDS_REVIEW,
    ProcessingStatus.FAILED,
})

ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING:      frozenset({ProcessingStatus.PROCESSING}),
    ProcessingStatus.PROCESSING:   TERMINAL_STATUSES,
    ProcessingStatus.COMPLETED:    frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.NEEDS_REVIEW: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.FAILED:       frozenset({ProcessingStatus.PENDING}),
}


def can_transition(current: ProcessingStatus | str, target: ProcessingStatus | str) -> bool:
    return ProcessingStatus(target) in ALLOWED_TRANSITIONS[ProcessingStatus(current)]


def ensure_transition(current: ProcessingStatus | str, target: ProcessingStatus | str) -> ProcessingStatus:
    """Return the target status, or raise InvalidTransitionError."""
    current, target = ProcessingStatus(current), ProcessingStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Invalid status transition {current.value} -> {target.value}"
        )
    return target
