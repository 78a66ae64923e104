"""SQLAlchemy models for the Store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime  # noqa: TC003 - used at runtime for SQLAlchemy
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


class ProgramGroup(StrEnum):
    """The three PG Repense tracks. A student holds one active enrollment per track."""

    IGREJA = "Igreja"
    ESPIRITUALIDADE = "Espiritualidade"
    EVANGELHO = "Evangelho"


class DeliveryMode(StrEnum):
    """How a class meets."""

    ONLINE = "online"
    PRESENCIAL = "presencial"


class EnrollmentStatus(StrEnum):
    """Enrollment state enum."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"


# Gender value excluded from women-only classes
MALE_GENDER = "Masculino"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Student(Base):
    """Student model - a registered participant."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cpf: Mapped[str] = mapped_column(String(11), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    marital_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    birth_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    preferred_city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    priority_list: Mapped[bool] = mapped_column(Boolean, nullable=False, index=True)
    priority_list_class_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    priority_list_added_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    enrollments: Mapped[list[Enrollment]] = relationship("Enrollment", back_populates="student")

    def __init__(
        self,
        name: str,
        cpf: str,
        phone: str,
        id: str | None = None,
        email: str | None = None,
        gender: str | None = None,
        marital_status: str | None = None,
        birth_date: datetime | None = None,
        preferred_city: str | None = None,
        priority_list: bool = False,
        priority_list_class_id: str | None = None,
        priority_list_added_at: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.name = name
        self.cpf = cpf
        self.phone = phone
        self.email = email
        self.gender = gender
        self.marital_status = marital_status
        self.birth_date = birth_date
        self.preferred_city = preferred_city
        self.priority_list = priority_list
        self.priority_list_class_id = priority_list_class_id
        self.priority_list_added_at = priority_list_added_at

    def __repr__(self) -> str:
        return f"<Student(id={self.id!r}, name={self.name!r})>"


class Grupo(Base):
    """Class model - one scheduled cohort of a program group.

    ``enrolled_count`` is the seat ledger. Only the enrollment service moves
    it, one seat at a time, inside a transaction.
    """

    __tablename__ = "grupos"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_grupos_capacity_positive"),
        CheckConstraint(
            "enrolled_count >= 0 AND enrolled_count <= capacity",
            name="ck_grupos_enrolled_within_capacity",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    program_group: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    delivery_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    enrolled_count: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_women_only: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_afternoon: Mapped[bool] = mapped_column(Boolean, nullable=False)
    whatsapp_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    time_slot: Mapped[str | None] = mapped_column(String(50), nullable=True)
    city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    session_count: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    enrollments: Mapped[list[Enrollment]] = relationship(
        "Enrollment",
        back_populates="grupo",
        foreign_keys="Enrollment.grupo_id",
    )

    def __init__(
        self,
        program_group: ProgramGroup | str,
        capacity: int,
        id: str | None = None,
        delivery_mode: DeliveryMode | str = DeliveryMode.PRESENCIAL,
        enrolled_count: int = 0,
        is_active: bool = True,
        is_archived: bool = False,
        is_women_only: bool = False,
        is_afternoon: bool = False,
        whatsapp_link: str | None = None,
        start_date: datetime | None = None,
        time_slot: str | None = None,
        city: str | None = "Indaiatuba",
        session_count: int = 8,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.program_group = ProgramGroup(program_group).value
        self.delivery_mode = DeliveryMode(delivery_mode).value
        self.capacity = capacity
        self.enrolled_count = enrolled_count
        self.is_active = is_active
        self.is_archived = is_archived
        self.is_women_only = is_women_only
        self.is_afternoon = is_afternoon
        self.whatsapp_link = whatsapp_link
        self.start_date = start_date
        self.time_slot = time_slot
        self.city = city
        self.session_count = session_count

    @property
    def seats_remaining(self) -> int:
        """Free seats according to the ledger."""
        return self.capacity - self.enrolled_count

    def __repr__(self) -> str:
        return (
            f"<Grupo(id={self.id!r}, program_group={self.program_group!r}, "
            f"enrolled={self.enrolled_count}/{self.capacity})>"
        )


class Enrollment(Base):
    """Enrollment model - links a student to a class."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "grupo_id", name="uq_enrollments_student_grupo"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id"), nullable=False, index=True
    )
    grupo_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("grupos.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # Provenance only, not an ownership reference
    transferred_from_grupo_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    # Relationships
    student: Mapped[Student] = relationship("Student", back_populates="enrollments")
    grupo: Mapped[Grupo] = relationship(
        "Grupo", back_populates="enrollments", foreign_keys=[grupo_id]
    )

    def __init__(
        self,
        student_id: str,
        grupo_id: str,
        id: str | None = None,
        status: str | None = None,
        completed_at: datetime | None = None,
        cancelled_at: datetime | None = None,
        transferred_from_grupo_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.grupo_id = grupo_id
        self.status = status if status is not None else EnrollmentStatus.ACTIVE.value
        self.completed_at = completed_at
        self.cancelled_at = cancelled_at
        self.transferred_from_grupo_id = transferred_from_grupo_id

    @property
    def enrollment_status(self) -> EnrollmentStatus:
        """Get status as EnrollmentStatus enum."""
        return EnrollmentStatus(self.status)

    @enrollment_status.setter
    def enrollment_status(self, value: EnrollmentStatus) -> None:
        """Set status from EnrollmentStatus enum."""
        self.status = value.value

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id!r}, student_id={self.student_id!r}, "
            f"grupo_id={self.grupo_id!r}, status={self.status!r})>"
        )


@dataclass
class CountMismatch:
    """A class whose seat ledger disagrees with its active enrollment rows."""

    grupo_id: str
    enrolled_count: int
    active_enrollments: int

    @property
    def drift(self) -> int:
        """Ledger minus actual active rows."""
        return self.enrolled_count - self.active_enrollments
