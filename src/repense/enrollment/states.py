"""Enrollment life-cycle.

    active ──> completed      (permanent for the program group)
    active ──> cancelled      (re-enrollment needs confirmation)
    active ──> transferred    (source side of a transfer)
    cancelled/transferred ──> active   (row reactivated on return to the class)

Nothing leaves ``completed``.
"""

from __future__ import annotations

from repense.enrollment.exceptions import EnrollmentError, EnrollmentErrorCode
from repense.store.models import EnrollmentStatus

TERMINAL_STATES = frozenset({EnrollmentStatus.COMPLETED})

# Statuses that block a program group from a student's available classes
BLOCKING_STATES = frozenset({EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED})

TRANSITIONS: dict[EnrollmentStatus, frozenset[EnrollmentStatus]] = {
    EnrollmentStatus.ACTIVE: frozenset(
        {
            EnrollmentStatus.COMPLETED,
            EnrollmentStatus.CANCELLED,
            EnrollmentStatus.TRANSFERRED,
        }
    ),
    EnrollmentStatus.CANCELLED: frozenset({EnrollmentStatus.ACTIVE}),
    EnrollmentStatus.TRANSFERRED: frozenset({EnrollmentStatus.ACTIVE}),
    EnrollmentStatus.COMPLETED: frozenset(),
}


def can_transition(current: EnrollmentStatus | str, target: EnrollmentStatus | str) -> bool:
    """Whether an enrollment may move from ``current`` to ``target``."""
    return EnrollmentStatus(target) in TRANSITIONS[EnrollmentStatus(current)]


def ensure_transition(current: EnrollmentStatus | str, target: EnrollmentStatus | str) -> None:
    """Raise the matching EnrollmentError if the transition is illegal.

    Raises:
        EnrollmentError: ALREADY_COMPLETED when reactivating a completed
            enrollment, ENROLLMENT_NOT_ACTIVE when completing, cancelling or
            transferring out anything but an active one.
    """
    current = EnrollmentStatus(current)
    target = EnrollmentStatus(target)
    if can_transition(current, target):
        return
    if target is EnrollmentStatus.ACTIVE and current in TERMINAL_STATES:
        raise EnrollmentError(EnrollmentErrorCode.ALREADY_COMPLETED)
    raise EnrollmentError(EnrollmentErrorCode.ENROLLMENT_NOT_ACTIVE)
