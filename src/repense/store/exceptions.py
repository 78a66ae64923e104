"""Custom exceptions for the Store."""


class StoreError(Exception):
    """Base exception for Store errors."""


class StudentNotFoundError(StoreError):
    """Student with given ID or CPF does not exist."""


class StudentExistsError(StoreError):
    """Student with the same CPF, phone or email already exists.

    Attributes:
        field: Name of the conflicting column, when known.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class GrupoNotFoundError(StoreError):
    """Class with given ID does not exist."""


class CapacityBelowEnrolledError(StoreError):
    """New capacity would be lower than the seats already taken."""
