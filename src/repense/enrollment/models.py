"""Data models for the enrollment engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING

from repense.enrollment.exceptions import EnrollmentError, EnrollmentErrorCode

if TYPE_CHECKING:
    from repense.store import Enrollment, Grupo


@dataclass
class PreviousEnrollment:
    """The earlier enrollment that caused a conflict."""

    status: str
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


@dataclass
class ValidationResult:
    """Outcome of an eligibility check.

    Attributes:
        can_enroll: Whether the student may enroll right now.
        code: Reason code when refused.
        error: Display message when refused.
        requires_confirmation: Soft block; retry with confirmation to proceed.
        previous_enrollment: The conflicting earlier enrollment, if any.
    """

    can_enroll: bool
    code: EnrollmentErrorCode | None = None
    error: str | None = None
    requires_confirmation: bool = False
    previous_enrollment: PreviousEnrollment | None = None

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(can_enroll=True)

    @classmethod
    def refuse(
        cls,
        code: EnrollmentErrorCode,
        error: str | None = None,
        requires_confirmation: bool = False,
        previous_enrollment: PreviousEnrollment | None = None,
    ) -> ValidationResult:
        """Build a refusal carrying the default message for ``code``."""
        return cls(
            can_enroll=False,
            code=code,
            error=error if error is not None else EnrollmentError(code).message,
            requires_confirmation=requires_confirmation,
            previous_enrollment=previous_enrollment,
        )

    def raise_for_error(self) -> None:
        """Raise the typed error for a refusal; no-op when eligible.

        Raises:
            EnrollmentError: If ``can_enroll`` is False.
            ValueError: If a refusal was built without a reason code.
        """
        if self.can_enroll:
            return
        if self.code is None:
            raise ValueError("refused validation result has no reason code")
        raise EnrollmentError(self.code, self.error)


@dataclass
class EnrollResult:
    """Result of enroll and priority-list promotion."""

    enrollment_id: str
    reactivated: bool = False


@dataclass
class TransferResult:
    """Before/after enrollments of a transfer, for the caller's audit trail.

    Attributes:
        old_enrollment: Source enrollment, now ``transferred``.
        new_enrollment: Active enrollment in the destination class.
        seat_consumed: False when an already-active destination row was reused.
    """

    old_enrollment: Enrollment
    new_enrollment: Enrollment
    seat_consumed: bool = True


@dataclass
class AvailableClass:
    """A class a student may join, with its free seats."""

    id: str
    program_group: str
    delivery_mode: str
    capacity: int
    enrolled_count: int
    is_active: bool
    is_afternoon: bool
    is_women_only: bool
    whatsapp_link: str | None
    start_date: datetime | None
    time_slot: str | None
    city: str | None
    seats_remaining: int

    @classmethod
    def from_grupo(cls, grupo: Grupo) -> AvailableClass:
        return cls(
            id=grupo.id,
            program_group=grupo.program_group,
            delivery_mode=grupo.delivery_mode,
            capacity=grupo.capacity,
            enrolled_count=grupo.enrolled_count,
            is_active=grupo.is_active,
            is_afternoon=grupo.is_afternoon,
            is_women_only=grupo.is_women_only,
            whatsapp_link=grupo.whatsapp_link,
            start_date=grupo.start_date,
            time_slot=grupo.time_slot,
            city=grupo.city,
            seats_remaining=grupo.seats_remaining,
        )


# program group -> city -> classes
AvailableClassesGrouped = dict[str, dict[str, list[AvailableClass]]]
