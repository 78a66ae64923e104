"""Enrollment engine - seat-safe enrollment state transitions."""

from repense.enrollment.availability import get_available_classes
from repense.enrollment.exceptions import (
    ERROR_HTTP_STATUS,
    ERROR_MESSAGES,
    EnrollmentError,
    EnrollmentErrorCode,
)
from repense.enrollment.models import (
    AvailableClass,
    AvailableClassesGrouped,
    EnrollResult,
    PreviousEnrollment,
    TransferResult,
    ValidationResult,
)
from repense.enrollment.service import EnrollmentService
from repense.enrollment.states import can_transition, ensure_transition
from repense.enrollment.validator import validate_enrollment

__all__ = [
    "ERROR_HTTP_STATUS",
    "ERROR_MESSAGES",
    "AvailableClass",
    "AvailableClassesGrouped",
    "EnrollResult",
    "EnrollmentError",
    "EnrollmentErrorCode",
    "EnrollmentService",
    "PreviousEnrollment",
    "TransferResult",
    "ValidationResult",
    "can_transition",
    "ensure_transition",
    "get_available_classes",
    "validate_enrollment",
]
