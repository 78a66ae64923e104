"""Read-only eligibility checks for enrolling a student in a class."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from repense.enrollment.exceptions import EnrollmentErrorCode
from repense.enrollment.models import PreviousEnrollment, ValidationResult
from repense.store.models import MALE_GENDER, Enrollment, EnrollmentStatus, Grupo, Student

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def group_enrollments(session: Session, student_id: str, program_group: str) -> list[Enrollment]:
    """All of a student's enrollments in classes of one program group, newest first."""
    stmt = (
        select(Enrollment)
        .join(Grupo, Enrollment.grupo_id == Grupo.id)
        .where(Enrollment.student_id == student_id, Grupo.program_group == program_group)
        .order_by(Enrollment.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())


def check_group_conflict(
    enrollments: list[Enrollment],
    program_group: str,
    allow_cancelled: bool = False,
) -> ValidationResult | None:
    """Resolve a student's standing in a program group.

    Active beats completed, completed beats cancelled.

    Args:
        enrollments: The student's enrollments in ``program_group``.
        program_group: Group name, used in messages.
        allow_cancelled: Skip the cancelled-enrollment confirmation.

    Returns:
        A refusal, or None when the group is open to the student.
    """
    by_status: dict[str, Enrollment] = {}
    for enrollment in enrollments:
        by_status.setdefault(enrollment.status, enrollment)

    if EnrollmentStatus.ACTIVE.value in by_status:
        return ValidationResult.refuse(
            EnrollmentErrorCode.ALREADY_ENROLLED,
            f"Já possui inscrição ativa em {program_group}",
        )

    completed = by_status.get(EnrollmentStatus.COMPLETED.value)
    if completed is not None:
        return ValidationResult.refuse(
            EnrollmentErrorCode.ALREADY_COMPLETED,
            f"Já concluiu o PG Repense {program_group}",
            previous_enrollment=PreviousEnrollment(
                status=completed.status, completed_at=completed.completed_at
            ),
        )

    cancelled = by_status.get(EnrollmentStatus.CANCELLED.value)
    if cancelled is not None and not allow_cancelled:
        return ValidationResult.refuse(
            EnrollmentErrorCode.PREVIOUSLY_CANCELLED,
            requires_confirmation=True,
            previous_enrollment=PreviousEnrollment(
                status=cancelled.status, cancelled_at=cancelled.cancelled_at
            ),
        )

    return None


def check_seat(grupo: Grupo) -> ValidationResult | None:
    """Refuse when the class is inactive or has no free seat."""
    if not grupo.is_active:
        return ValidationResult.refuse(EnrollmentErrorCode.CLASS_INACTIVE)
    if grupo.enrolled_count >= grupo.capacity:
        return ValidationResult.refuse(EnrollmentErrorCode.CLASS_FULL)
    return None


def validate_enrollment(
    session: Session,
    student_id: str,
    grupo_id: str,
    skip_cancelled_check: bool = False,
    confirm_re_enrollment: bool = False,
) -> ValidationResult:
    """Decide whether a student can enroll in a class right now.

    Checks run in a fixed order and the first failure wins: student exists,
    class exists, class active, free seat, women-only restriction, then the
    student's standing in the class's program group.

    Nothing is written. The answer is advisory: the mutators re-check seats
    inside their own transaction.

    Args:
        session: Open database session.
        student_id: The student's ID.
        grupo_id: The class's ID.
        skip_cancelled_check: Ignore earlier cancelled enrollments.
        confirm_re_enrollment: The student confirmed re-enrolling after a
            cancellation.

    Returns:
        ValidationResult with ``can_enroll`` and, when refused, a reason code.
    """
    student = session.get(Student, student_id)
    if student is None:
        return ValidationResult.refuse(EnrollmentErrorCode.STUDENT_NOT_FOUND)

    grupo = session.get(Grupo, grupo_id)
    if grupo is None:
        return ValidationResult.refuse(EnrollmentErrorCode.CLASS_NOT_FOUND)

    refusal = check_seat(grupo)
    if refusal is not None:
        return refusal

    if grupo.is_women_only and student.gender == MALE_GENDER:
        return ValidationResult.refuse(EnrollmentErrorCode.WOMEN_ONLY_CLASS)

    refusal = check_group_conflict(
        group_enrollments(session, student_id, grupo.program_group),
        grupo.program_group,
        allow_cancelled=skip_cancelled_check or confirm_re_enrollment,
    )
    if refusal is not None:
        return refusal

    return ValidationResult.ok()
