"""Shared pytest fixtures and configuration."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from repense.enrollment import EnrollmentService
from repense.store import Database, Grupo, ProgramGroup, Store, Student


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


@pytest.fixture
def database() -> Iterator[Database]:
    """In-memory database with all tables created."""
    db = Database(":memory:")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def store(database: Database) -> Store:
    """Store bound to the in-memory database."""
    return Store(database)


@pytest.fixture
def service(database: Database) -> EnrollmentService:
    """Enrollment service bound to the in-memory database."""
    return EnrollmentService(database)


@pytest.fixture
def make_student(database: Database) -> Callable[..., Student]:
    """Insert a student directly, with unique CPF and phone per call."""
    counter = itertools.count(1)

    def _make(**kwargs: Any) -> Student:
        n = next(counter)
        kwargs.setdefault("name", f"Participante {n}")
        kwargs.setdefault("cpf", f"{n:011d}")
        kwargs.setdefault("phone", f"119{n:08d}")
        student = Student(**kwargs)
        with database.transaction() as session:
            session.add(student)
        return student

    return _make


@pytest.fixture
def make_grupo(database: Database) -> Callable[..., Grupo]:
    """Insert a class directly. Defaults to an active Igreja class of 10 seats."""

    def _make(
        program_group: ProgramGroup | str = ProgramGroup.IGREJA,
        capacity: int = 10,
        **kwargs: Any,
    ) -> Grupo:
        grupo = Grupo(program_group=program_group, capacity=capacity, **kwargs)
        with database.transaction() as session:
            session.add(grupo)
        return grupo

    return _make
