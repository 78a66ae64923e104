"""Store - Persistent storage for students, classes and enrollments."""

from repense.store.database import Database
from repense.store.exceptions import (
    CapacityBelowEnrolledError,
    GrupoNotFoundError,
    StoreError,
    StudentExistsError,
    StudentNotFoundError,
)
from repense.store.models import (
    MALE_GENDER,
    CountMismatch,
    DeliveryMode,
    Enrollment,
    EnrollmentStatus,
    Grupo,
    ProgramGroup,
    Student,
)
from repense.store.schemas import GrupoCreate, GrupoUpdate, StudentCreate, StudentUpdate
from repense.store.store import Store

__all__ = [
    "MALE_GENDER",
    "CapacityBelowEnrolledError",
    "CountMismatch",
    "Database",
    "DeliveryMode",
    "Enrollment",
    "EnrollmentStatus",
    "Grupo",
    "GrupoCreate",
    "GrupoNotFoundError",
    "GrupoUpdate",
    "ProgramGroup",
    "StoreError",
    "Store",
    "Student",
    "StudentCreate",
    "StudentExistsError",
    "StudentNotFoundError",
    "StudentUpdate",
]
