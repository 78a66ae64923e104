"""Exceptions for the enrollment engine."""

from __future__ import annotations

from enum import StrEnum
from http import HTTPStatus


class EnrollmentErrorCode(StrEnum):
    """Stable reason codes. Callers dispatch on these, never on message text."""

    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    CLASS_NOT_FOUND = "CLASS_NOT_FOUND"
    CLASS_INACTIVE = "CLASS_INACTIVE"
    CLASS_FULL = "CLASS_FULL"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    PREVIOUSLY_CANCELLED = "PREVIOUSLY_CANCELLED"
    WOMEN_ONLY_CLASS = "WOMEN_ONLY_CLASS"
    ENROLLMENT_NOT_FOUND = "ENROLLMENT_NOT_FOUND"
    ENROLLMENT_NOT_ACTIVE = "ENROLLMENT_NOT_ACTIVE"
    NOT_ON_PRIORITY_LIST = "NOT_ON_PRIORITY_LIST"


# Display messages, one per code
ERROR_MESSAGES: dict[EnrollmentErrorCode, str] = {
    EnrollmentErrorCode.STUDENT_NOT_FOUND: "Participante não encontrado",
    EnrollmentErrorCode.CLASS_NOT_FOUND: "Grupo não encontrado",
    EnrollmentErrorCode.CLASS_INACTIVE: "Grupo não está ativo",
    EnrollmentErrorCode.CLASS_FULL: "Grupo está lotado",
    EnrollmentErrorCode.ALREADY_ENROLLED: "Já possui inscrição ativa neste PG Repense",
    EnrollmentErrorCode.ALREADY_COMPLETED: "O participante já concluiu esse PG Repense",
    EnrollmentErrorCode.PREVIOUSLY_CANCELLED: (
        "Inscrição anterior foi cancelada. Confirme para se reinscrever."
    ),
    EnrollmentErrorCode.WOMEN_ONLY_CLASS: "Este grupo é exclusivo para mulheres",
    EnrollmentErrorCode.ENROLLMENT_NOT_FOUND: "Inscrição não encontrada",
    EnrollmentErrorCode.ENROLLMENT_NOT_ACTIVE: "Inscrição não está ativa",
    EnrollmentErrorCode.NOT_ON_PRIORITY_LIST: "Participante não está na lista de prioridade",
}

# Suggested transport status for each code
ERROR_HTTP_STATUS: dict[EnrollmentErrorCode, HTTPStatus] = {
    EnrollmentErrorCode.STUDENT_NOT_FOUND: HTTPStatus.NOT_FOUND,
    EnrollmentErrorCode.CLASS_NOT_FOUND: HTTPStatus.NOT_FOUND,
    EnrollmentErrorCode.ENROLLMENT_NOT_FOUND: HTTPStatus.NOT_FOUND,
    EnrollmentErrorCode.CLASS_INACTIVE: HTTPStatus.BAD_REQUEST,
    EnrollmentErrorCode.ENROLLMENT_NOT_ACTIVE: HTTPStatus.BAD_REQUEST,
    EnrollmentErrorCode.WOMEN_ONLY_CLASS: HTTPStatus.BAD_REQUEST,
    EnrollmentErrorCode.NOT_ON_PRIORITY_LIST: HTTPStatus.BAD_REQUEST,
    EnrollmentErrorCode.CLASS_FULL: HTTPStatus.CONFLICT,
    EnrollmentErrorCode.ALREADY_ENROLLED: HTTPStatus.CONFLICT,
    EnrollmentErrorCode.ALREADY_COMPLETED: HTTPStatus.CONFLICT,
    EnrollmentErrorCode.PREVIOUSLY_CANCELLED: HTTPStatus.CONFLICT,
}


class EnrollmentError(Exception):
    """A business-rule rejection from the enrollment engine.

    Attributes:
        code: Stable reason code.
        message: Human-readable message for display only.
    """

    def __init__(self, code: EnrollmentErrorCode | str, message: str | None = None) -> None:
        self.code = EnrollmentErrorCode(code)
        self.message = message if message is not None else ERROR_MESSAGES[self.code]
        super().__init__(self.message)

    @property
    def http_status(self) -> HTTPStatus:
        """Suggested status code for a transport layer."""
        return ERROR_HTTP_STATUS[self.code]

    @property
    def retryable(self) -> bool:
        """Whether the same call could succeed later without changing its inputs."""
        return self.code in (EnrollmentErrorCode.CLASS_FULL, EnrollmentErrorCode.CLASS_INACTIVE)

    def __repr__(self) -> str:
        return f"EnrollmentError(code={self.code.value!r}, message={self.message!r})"
