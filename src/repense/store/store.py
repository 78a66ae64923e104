"""Store - CRUD API for students, classes and enrollment reads."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError

from repense.logging import sanitize_for_log
from repense.store.exceptions import (
    CapacityBelowEnrolledError,
    GrupoNotFoundError,
    StudentExistsError,
    StudentNotFoundError,
)
from repense.store.models import (
    CountMismatch,
    Enrollment,
    EnrollmentStatus,
    Grupo,
    ProgramGroup,
    Student,
)
from repense.store.normalize import clean_cpf
from repense.store.schemas import GrupoCreate, GrupoUpdate, StudentCreate, StudentUpdate

if TYPE_CHECKING:
    from repense.store.database import Database

logger = logging.getLogger(__name__)

UNIQUE_STUDENT_FIELDS = ("cpf", "phone", "email")


def _conflicting_field(error: IntegrityError) -> str | None:
    """Best-effort name of the unique student column an insert violated."""
    detail = str(error.orig)
    for field in UNIQUE_STUDENT_FIELDS:
        if f"students.{field}" in detail or f"students_{field}" in detail:
            return field
    return None


class Store:
    """CRUD operations for the records around the enrollment engine.

    Seat counters are read here but never written; ``EnrollmentService`` owns
    every change to ``Grupo.enrolled_count``.
    """

    def __init__(self, database: Database) -> None:
        """Initialize the Store.

        Args:
            database: Database handle shared with the enrollment service.
        """
        self._db = database

    # --- Student Operations ---

    def create_student(self, data: StudentCreate) -> Student:
        """Register a new student.

        Args:
            data: Validated registration input

        Returns:
            Created Student with generated ID

        Raises:
            StudentExistsError: If CPF, phone or email is already registered
        """
        session = self._db.get_session()
        try:
            student = Student(**data.model_dump())
            session.add(student)
            session.commit()
            session.refresh(student)
            logger.info("Registered student %s", student.id)
            return student
        except IntegrityError as e:
            session.rollback()
            field = _conflicting_field(e)
            logger.warning(
                "Duplicate student registration (%s): %s", field, sanitize_for_log(str(e.orig))
            )
            raise StudentExistsError(
                f"Student with this {field or 'identity'} already exists", field=field
            ) from e
        finally:
            session.close()

    def get_student(self, student_id: str) -> Student:
        """Get student by ID.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            student = session.get(Student, student_id)
            if student is None:
                raise StudentNotFoundError(f"Student with id '{student_id}' not found")
            return student
        finally:
            session.close()

    def get_student_by_cpf(self, cpf: str) -> Student:
        """Get student by CPF, with or without punctuation.

        Raises:
            StudentNotFoundError: If no student has this CPF
        """
        session = self._db.get_session()
        try:
            stmt = select(Student).where(Student.cpf == clean_cpf(cpf))
            student = session.execute(stmt).scalar_one_or_none()
            if student is None:
                raise StudentNotFoundError("Student with given CPF not found")
            return student
        finally:
            session.close()

    def update_student(self, student_id: str, data: StudentUpdate) -> Student:
        """Update student profile fields. Only provided fields are updated.

        Raises:
            StudentNotFoundError: If student doesn't exist
            StudentExistsError: If the new phone or email belongs to someone else
        """
        session = self._db.get_session()
        try:
            student = session.get(Student, student_id)
            if student is None:
                raise StudentNotFoundError(f"Student with id '{student_id}' not found")

            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(student, key, value)

            session.commit()
            session.refresh(student)
            return student
        except IntegrityError as e:
            session.rollback()
            field = _conflicting_field(e)
            raise StudentExistsError(
                f"Student with this {field or 'identity'} already exists", field=field
            ) from e
        finally:
            session.close()

    def list_priority_list(self, grupo_id: str | None = None) -> list[Student]:
        """List students waiting on the priority list.

        Args:
            grupo_id: Only students waiting for this class (optional)

        Returns:
            Students ordered by when they joined the list, oldest first
        """
        session = self._db.get_session()
        try:
            stmt = select(Student).where(Student.priority_list.is_(True))
            if grupo_id is not None:
                stmt = stmt.where(Student.priority_list_class_id == grupo_id)
            stmt = stmt.order_by(Student.priority_list_added_at, Student.created_at)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    # --- Class Operations ---

    def create_grupo(self, data: GrupoCreate) -> Grupo:
        """Create a new class with an empty seat ledger."""
        session = self._db.get_session()
        try:
            grupo = Grupo(**data.model_dump())
            session.add(grupo)
            session.commit()
            session.refresh(grupo)
            logger.info(
                "Created class %s (%s, capacity=%d)", grupo.id, grupo.program_group, grupo.capacity
            )
            return grupo
        finally:
            session.close()

    def get_grupo(self, grupo_id: str) -> Grupo:
        """Get class by ID.

        Raises:
            GrupoNotFoundError: If class doesn't exist
        """
        session = self._db.get_session()
        try:
            grupo = session.get(Grupo, grupo_id)
            if grupo is None:
                raise GrupoNotFoundError(f"Class with id '{grupo_id}' not found")
            return grupo
        finally:
            session.close()

    def list_grupos(
        self,
        program_group: ProgramGroup | None = None,
        active: bool | None = None,
        include_archived: bool = False,
    ) -> list[Grupo]:
        """List classes with optional filters.

        Args:
            program_group: Filter by program group (optional)
            active: Filter by is_active (optional)
            include_archived: Whether archived classes are returned

        Returns:
            Classes ordered by program group, city and start date
        """
        session = self._db.get_session()
        try:
            stmt = select(Grupo)

            if program_group is not None:
                stmt = stmt.where(Grupo.program_group == ProgramGroup(program_group).value)
            if active is not None:
                stmt = stmt.where(Grupo.is_active.is_(active))
            if not include_archived:
                stmt = stmt.where(Grupo.is_archived.is_(False))

            stmt = stmt.order_by(Grupo.program_group, Grupo.city, Grupo.start_date)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def update_grupo(self, grupo_id: str, data: GrupoUpdate) -> Grupo:
        """Update class fields. Only provided fields are updated.

        Raises:
            GrupoNotFoundError: If class doesn't exist
            CapacityBelowEnrolledError: If capacity would drop below enrolled_count
        """
        with self._db.transaction() as session:
            grupo = session.execute(
                select(Grupo).where(Grupo.id == grupo_id).with_for_update()
            ).scalar_one_or_none()
            if grupo is None:
                raise GrupoNotFoundError(f"Class with id '{grupo_id}' not found")

            changes = data.model_dump(exclude_unset=True)
            capacity = changes.get("capacity")
            if capacity is not None and capacity < grupo.enrolled_count:
                raise CapacityBelowEnrolledError(
                    f"Capacity {capacity} is below the {grupo.enrolled_count} seats already taken"
                )

            for key, value in changes.items():
                setattr(grupo, key, value)
            session.flush()
            session.refresh(grupo)
            return grupo

    def set_archived(self, grupo_id: str, archived: bool = True) -> Grupo:
        """Archive or unarchive a class. Archiving also deactivates it.

        Raises:
            GrupoNotFoundError: If class doesn't exist
        """
        with self._db.transaction() as session:
            grupo = session.get(Grupo, grupo_id)
            if grupo is None:
                raise GrupoNotFoundError(f"Class with id '{grupo_id}' not found")

            grupo.is_archived = archived
            if archived:
                grupo.is_active = False
            session.flush()
            session.refresh(grupo)
            logger.info("Class %s %s", grupo_id, "archived" if archived else "unarchived")
            return grupo

    # --- Enrollment Reads ---

    def get_enrollment(self, enrollment_id: str) -> Enrollment | None:
        """Get enrollment by ID, or None."""
        session = self._db.get_session()
        try:
            return session.get(Enrollment, enrollment_id)
        finally:
            session.close()

    def list_enrollments(
        self,
        student_id: str | None = None,
        grupo_id: str | None = None,
        status: EnrollmentStatus | None = None,
    ) -> list[Enrollment]:
        """List enrollments with optional filters.

        Returns:
            Enrollments ordered by created_at, oldest first
        """
        session = self._db.get_session()
        try:
            stmt = select(Enrollment)

            if student_id is not None:
                stmt = stmt.where(Enrollment.student_id == student_id)
            if grupo_id is not None:
                stmt = stmt.where(Enrollment.grupo_id == grupo_id)
            if status is not None:
                stmt = stmt.where(Enrollment.status == EnrollmentStatus(status).value)

            stmt = stmt.order_by(Enrollment.created_at, Enrollment.id)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def reconcile_counts(self) -> list[CountMismatch]:
        """Compare each class's seat ledger with its active enrollment rows.

        Read-only report; drift is never corrected here.

        Returns:
            One entry per class whose enrolled_count differs from the count
            of its active enrollments
        """
        session = self._db.get_session()
        try:
            active_count = func.count(Enrollment.id)
            stmt = (
                select(Grupo.id, Grupo.enrolled_count, active_count.label("active"))
                .outerjoin(
                    Enrollment,
                    and_(
                        Enrollment.grupo_id == Grupo.id,
                        Enrollment.status == EnrollmentStatus.ACTIVE.value,
                    ),
                )
                .group_by(Grupo.id, Grupo.enrolled_count)
                .having(active_count != Grupo.enrolled_count)
                .order_by(Grupo.id)
            )
            return [
                CountMismatch(
                    grupo_id=row.id,
                    enrolled_count=row.enrolled_count,
                    active_enrollments=row.active,
                )
                for row in session.execute(stmt)
            ]
        finally:
            session.close()
