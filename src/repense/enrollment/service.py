"""EnrollmentService - the only writer of enrollment status and seat counts."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from repense.enrollment import availability
from repense.enrollment.exceptions import EnrollmentError, EnrollmentErrorCode
from repense.enrollment.models import EnrollResult, TransferResult
from repense.enrollment.states import ensure_transition
from repense.enrollment.validator import (
    check_group_conflict,
    check_seat,
    group_enrollments,
    validate_enrollment,
)
from repense.store.models import MALE_GENDER, Base, Enrollment, EnrollmentStatus, Grupo, Student

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from repense.enrollment.models import AvailableClassesGrouped, ValidationResult
    from repense.store.database import Database

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=Base)


def _lock(session: Session, model: type[RowT], row_id: str) -> RowT | None:
    """Load a row for update, bypassing any stale copy in the identity map."""
    stmt = (
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


def _find_pair(session: Session, student_id: str, grupo_id: str) -> Enrollment | None:
    stmt = select(Enrollment).where(
        Enrollment.student_id == student_id,
        Enrollment.grupo_id == grupo_id,
    )
    return session.execute(stmt).scalar_one_or_none()


def _has_completed(session: Session, student_id: str, program_group: str) -> bool:
    """Whether the student already finished any class of this program group."""
    return any(
        enrollment.status == EnrollmentStatus.COMPLETED.value
        for enrollment in group_enrollments(session, student_id, program_group)
    )


class EnrollmentService:
    """Enroll, transfer, complete and cancel students.

    Every mutation re-validates inside one transaction and moves the seat
    ledger by exactly one seat alongside the status change, so concurrent
    requests can neither oversubscribe a class nor lose a seat. Checks made
    before the transaction only exist to fail fast with a precise error.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the service.

        Args:
            database: Database handle providing sessions and transactions.
        """
        self._db = database

    # --- Reads ---

    def validate(
        self,
        student_id: str,
        grupo_id: str,
        skip_cancelled_check: bool = False,
        confirm_re_enrollment: bool = False,
    ) -> ValidationResult:
        """Answer "can this student enroll here?" without writing anything."""
        with self._db.get_session() as session:
            return validate_enrollment(
                session,
                student_id,
                grupo_id,
                skip_cancelled_check=skip_cancelled_check,
                confirm_re_enrollment=confirm_re_enrollment,
            )

    def get_available_classes(
        self, student_id: str, gender: str | None = None
    ) -> AvailableClassesGrouped:
        """Classes the student may join, grouped by program group and city."""
        with self._db.get_session() as session:
            return availability.get_available_classes(session, student_id, gender)

    # --- Mutators ---

    def enroll(
        self,
        student_id: str,
        grupo_id: str,
        confirm_re_enrollment: bool = False,
    ) -> EnrollResult:
        """Enroll a student in a class, taking one seat.

        Args:
            student_id: The student's ID.
            grupo_id: The class's ID.
            confirm_re_enrollment: Proceed even though an earlier enrollment
                in this program group was cancelled.

        Returns:
            EnrollResult with the active enrollment's ID.

        Raises:
            EnrollmentError: STUDENT_NOT_FOUND, CLASS_NOT_FOUND, CLASS_INACTIVE,
                CLASS_FULL, WOMEN_ONLY_CLASS, ALREADY_ENROLLED,
                ALREADY_COMPLETED or PREVIOUSLY_CANCELLED.
        """
        try:
            self.validate(
                student_id, grupo_id, confirm_re_enrollment=confirm_re_enrollment
            ).raise_for_error()

            with self._db.transaction() as session:
                result = self._enroll_locked(
                    session, student_id, grupo_id, allow_cancelled=confirm_re_enrollment
                )
        except EnrollmentError as e:
            logger.warning(
                "Enroll rejected for student %s in class %s: %s", student_id, grupo_id, e.code
            )
            raise

        logger.info(
            "Enrolled student %s in class %s (enrollment %s%s)",
            student_id,
            grupo_id,
            result.enrollment_id,
            ", reactivated" if result.reactivated else "",
        )
        return result

    def transfer(self, enrollment_id: str, new_grupo_id: str) -> TransferResult:
        """Move an active enrollment to another class.

        The source seat is always released. A destination seat is taken
        only when a row is created or reactivated; if the student is already
        active in the destination, that row is reused as is.

        Args:
            enrollment_id: The active source enrollment.
            new_grupo_id: The destination class.

        Returns:
            TransferResult with the source (now ``transferred``) and the
            active destination enrollment.

        Raises:
            EnrollmentError: ENROLLMENT_NOT_FOUND, ENROLLMENT_NOT_ACTIVE,
                CLASS_NOT_FOUND, CLASS_INACTIVE, CLASS_FULL, ALREADY_ENROLLED
                (same class) or ALREADY_COMPLETED.
        """
        try:
            with self._db.get_session() as session:
                self._precheck_transfer(session, enrollment_id, new_grupo_id)

            with self._db.transaction() as session:
                result = self._transfer_locked(session, enrollment_id, new_grupo_id)
        except EnrollmentError as e:
            logger.warning(
                "Transfer of enrollment %s to class %s rejected: %s",
                enrollment_id,
                new_grupo_id,
                e.code,
            )
            raise

        logger.info(
            "Transferred enrollment %s from class %s to class %s (new enrollment %s%s)",
            enrollment_id,
            result.old_enrollment.grupo_id,
            new_grupo_id,
            result.new_enrollment.id,
            "" if result.seat_consumed else ", existing active row reused",
        )
        return result

    def complete(self, enrollment_id: str) -> None:
        """Mark an active enrollment completed and release its seat.

        Raises:
            EnrollmentError: ENROLLMENT_NOT_FOUND or ENROLLMENT_NOT_ACTIVE.
        """
        self._close_enrollment(enrollment_id, EnrollmentStatus.COMPLETED)

    def cancel(self, enrollment_id: str) -> None:
        """Cancel an active enrollment and release its seat.

        Raises:
            EnrollmentError: ENROLLMENT_NOT_FOUND or ENROLLMENT_NOT_ACTIVE.
        """
        self._close_enrollment(enrollment_id, EnrollmentStatus.CANCELLED)

    # --- Priority list ---

    def add_to_priority_list(self, student_id: str, grupo_id: str) -> Student:
        """Put a student on the waiting list for a class.

        Raises:
            EnrollmentError: STUDENT_NOT_FOUND, CLASS_NOT_FOUND, or
                ALREADY_ENROLLED if the student has any active enrollment.
        """
        with self._db.transaction() as session:
            student = _lock(session, Student, student_id)
            if student is None:
                raise EnrollmentError(EnrollmentErrorCode.STUDENT_NOT_FOUND)
            if session.get(Grupo, grupo_id) is None:
                raise EnrollmentError(EnrollmentErrorCode.CLASS_NOT_FOUND)

            active = session.execute(
                select(Enrollment.id)
                .where(
                    Enrollment.student_id == student_id,
                    Enrollment.status == EnrollmentStatus.ACTIVE.value,
                )
                .limit(1)
            ).first()
            if active is not None:
                raise EnrollmentError(
                    EnrollmentErrorCode.ALREADY_ENROLLED,
                    "O participante já possui inscrição ativa. "
                    "Não é possível adicionar à lista de prioridade.",
                )

            student.priority_list = True
            student.priority_list_class_id = grupo_id
            student.priority_list_added_at = datetime.now(UTC)

        logger.info("Student %s added to priority list for class %s", student_id, grupo_id)
        return student

    def promote_from_priority_list(
        self, student_id: str, grupo_id: str | None = None
    ) -> EnrollResult:
        """Enroll a waiting student and take them off the priority list.

        Args:
            student_id: A student on the priority list.
            grupo_id: Class to enroll in. Defaults to the class they waited for.

        Returns:
            EnrollResult with the active enrollment's ID.

        Raises:
            EnrollmentError: NOT_ON_PRIORITY_LIST, or any enroll error other
                than PREVIOUSLY_CANCELLED.
        """
        try:
            with self._db.get_session() as session:
                student = session.get(Student, student_id)
                if student is None:
                    raise EnrollmentError(EnrollmentErrorCode.STUDENT_NOT_FOUND)
                if not student.priority_list:
                    raise EnrollmentError(EnrollmentErrorCode.NOT_ON_PRIORITY_LIST)
                target_id = grupo_id or student.priority_list_class_id
                if target_id is None:
                    raise EnrollmentError(EnrollmentErrorCode.CLASS_NOT_FOUND)
                validate_enrollment(
                    session, student_id, target_id, skip_cancelled_check=True
                ).raise_for_error()

            with self._db.transaction() as session:
                student = _lock(session, Student, student_id)
                if student is None:
                    raise EnrollmentError(EnrollmentErrorCode.STUDENT_NOT_FOUND)
                if not student.priority_list:
                    raise EnrollmentError(EnrollmentErrorCode.NOT_ON_PRIORITY_LIST)
                result = self._enroll_locked(session, student_id, target_id, allow_cancelled=True)
                student.priority_list = False
                student.priority_list_class_id = None
                student.priority_list_added_at = None
        except EnrollmentError as e:
            logger.warning("Priority promotion rejected for student %s: %s", student_id, e.code)
            raise

        logger.info(
            "Promoted student %s from priority list into class %s (enrollment %s)",
            student_id,
            target_id,
            result.enrollment_id,
        )
        return result

    # --- Transaction bodies ---

    def _enroll_locked(
        self,
        session: Session,
        student_id: str,
        grupo_id: str,
        allow_cancelled: bool,
    ) -> EnrollResult:
        """Re-check eligibility under lock, then take a seat and place the student."""
        student = _lock(session, Student, student_id)
        if student is None:
            raise EnrollmentError(EnrollmentErrorCode.STUDENT_NOT_FOUND)
        grupo = _lock(session, Grupo, grupo_id)
        if grupo is None:
            raise EnrollmentError(EnrollmentErrorCode.CLASS_NOT_FOUND)

        self._raise_refusal(check_seat(grupo))
        if grupo.is_women_only and student.gender == MALE_GENDER:
            raise EnrollmentError(EnrollmentErrorCode.WOMEN_ONLY_CLASS)
        self._raise_refusal(
            check_group_conflict(
                group_enrollments(session, student_id, grupo.program_group),
                grupo.program_group,
                allow_cancelled=allow_cancelled,
            )
        )

        self._take_seat(session, grupo)
        enrollment, reactivated = self._place(session, student_id, grupo)
        return EnrollResult(enrollment_id=enrollment.id, reactivated=reactivated)

    def _precheck_transfer(self, session: Session, enrollment_id: str, new_grupo_id: str) -> None:
        old = session.get(Enrollment, enrollment_id)
        if old is None:
            raise EnrollmentError(EnrollmentErrorCode.ENROLLMENT_NOT_FOUND)
        ensure_transition(old.status, EnrollmentStatus.TRANSFERRED)

        new_grupo = session.get(Grupo, new_grupo_id)
        if new_grupo is None:
            raise EnrollmentError(EnrollmentErrorCode.CLASS_NOT_FOUND, "Novo grupo não encontrado")
        if not new_grupo.is_active:
            raise EnrollmentError(EnrollmentErrorCode.CLASS_INACTIVE, "Novo grupo não está ativo")
        if old.grupo_id == new_grupo_id:
            raise EnrollmentError(
                EnrollmentErrorCode.ALREADY_ENROLLED, "O participante já está neste grupo"
            )

        if _has_completed(session, old.student_id, new_grupo.program_group):
            raise EnrollmentError(EnrollmentErrorCode.ALREADY_COMPLETED)

    def _transfer_locked(
        self, session: Session, enrollment_id: str, new_grupo_id: str
    ) -> TransferResult:
        old = _lock(session, Enrollment, enrollment_id)
        if old is None:
            raise EnrollmentError(EnrollmentErrorCode.ENROLLMENT_NOT_FOUND)
        ensure_transition(old.status, EnrollmentStatus.TRANSFERRED)
        source_id = old.grupo_id
        if source_id == new_grupo_id:
            raise EnrollmentError(
                EnrollmentErrorCode.ALREADY_ENROLLED, "O participante já está neste grupo"
            )

        # Lock both classes in a fixed order so opposite transfers cannot deadlock
        locked = {gid: _lock(session, Grupo, gid) for gid in sorted((source_id, new_grupo_id))}
        new_grupo = locked[new_grupo_id]
        if new_grupo is None:
            raise EnrollmentError(EnrollmentErrorCode.CLASS_NOT_FOUND, "Novo grupo não encontrado")

        if _has_completed(session, old.student_id, new_grupo.program_group):
            raise EnrollmentError(EnrollmentErrorCode.ALREADY_COMPLETED)

        old.enrollment_status = EnrollmentStatus.TRANSFERRED
        old.transferred_from_grupo_id = source_id
        self._release_seat(session, source_id)

        target = _find_pair(session, old.student_id, new_grupo_id)
        if target is not None:
            if target.status == EnrollmentStatus.ACTIVE.value:
                return TransferResult(
                    old_enrollment=old, new_enrollment=target, seat_consumed=False
                )
            ensure_transition(target.status, EnrollmentStatus.ACTIVE)

        self._raise_refusal(check_seat(new_grupo))
        self._take_seat(session, new_grupo)
        new_enrollment, _ = self._place(
            session, old.student_id, new_grupo, transferred_from=source_id, existing=target
        )
        return TransferResult(old_enrollment=old, new_enrollment=new_enrollment)

    def _close_enrollment(self, enrollment_id: str, target: EnrollmentStatus) -> None:
        """Move an active enrollment to completed or cancelled and free its seat."""
        try:
            with self._db.get_session() as session:
                enrollment = session.get(Enrollment, enrollment_id)
                if enrollment is None:
                    raise EnrollmentError(EnrollmentErrorCode.ENROLLMENT_NOT_FOUND)
                ensure_transition(enrollment.status, target)

            with self._db.transaction() as session:
                enrollment = _lock(session, Enrollment, enrollment_id)
                if enrollment is None:
                    raise EnrollmentError(EnrollmentErrorCode.ENROLLMENT_NOT_FOUND)
                ensure_transition(enrollment.status, target)

                now = datetime.now(UTC)
                enrollment.enrollment_status = target
                if target is EnrollmentStatus.COMPLETED:
                    enrollment.completed_at = now
                else:
                    enrollment.cancelled_at = now
                _lock(session, Grupo, enrollment.grupo_id)
                self._release_seat(session, enrollment.grupo_id)
        except EnrollmentError as e:
            logger.warning("Cannot mark enrollment %s %s: %s", enrollment_id, target, e.code)
            raise

        logger.info("Enrollment %s marked %s", enrollment_id, target)

    # --- Seat ledger ---

    @staticmethod
    def _raise_refusal(refusal: ValidationResult | None) -> None:
        if refusal is not None:
            refusal.raise_for_error()

    @staticmethod
    def _take_seat(session: Session, grupo: Grupo) -> None:
        """Add one to enrolled_count, only if the class is still active with a free seat.

        Raises:
            EnrollmentError: CLASS_FULL if the guarded update matched no row.
        """
        result = session.execute(
            update(Grupo)
            .where(
                Grupo.id == grupo.id,
                Grupo.is_active.is_(True),
                Grupo.enrolled_count < Grupo.capacity,
            )
            .values(enrolled_count=Grupo.enrolled_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise EnrollmentError(EnrollmentErrorCode.CLASS_FULL)
        session.expire(grupo, ["enrolled_count"])

    @staticmethod
    def _release_seat(session: Session, grupo_id: str) -> None:
        """Subtract one from enrolled_count, never going below zero."""
        result = session.execute(
            update(Grupo)
            .where(Grupo.id == grupo_id, Grupo.enrolled_count > 0)
            .values(enrolled_count=Grupo.enrolled_count - 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.error(
                "Seat ledger for class %s already at zero while releasing a seat; "
                "run reconciliation",
                grupo_id,
            )
        grupo = session.get(Grupo, grupo_id)
        if grupo is not None:
            session.expire(grupo, ["enrolled_count"])

    @staticmethod
    def _place(
        session: Session,
        student_id: str,
        grupo: Grupo,
        transferred_from: str | None = None,
        existing: Enrollment | None = None,
    ) -> tuple[Enrollment, bool]:
        """Activate the student's row for this class, creating it if needed.

        A returning student reuses their old row; (student, class) is unique.

        Returns:
            The active enrollment and whether it was reactivated.
        """
        if existing is None:
            existing = _find_pair(session, student_id, grupo.id)

        if existing is not None:
            ensure_transition(existing.status, EnrollmentStatus.ACTIVE)
            existing.enrollment_status = EnrollmentStatus.ACTIVE
            existing.cancelled_at = None
            existing.completed_at = None
            existing.transferred_from_grupo_id = transferred_from
            return existing, True

        enrollment = Enrollment(
            student_id=student_id,
            grupo_id=grupo.id,
            transferred_from_grupo_id=transferred_from,
        )
        session.add(enrollment)
        try:
            session.flush()
        except IntegrityError as e:
            raise EnrollmentError(EnrollmentErrorCode.ALREADY_ENROLLED) from e
        return enrollment, False
