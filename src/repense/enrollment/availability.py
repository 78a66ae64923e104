"""Which classes a student can still join."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from repense.enrollment.models import AvailableClass, AvailableClassesGrouped
from repense.enrollment.states import BLOCKING_STATES
from repense.store.models import MALE_GENDER, Enrollment, Grupo

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

UNKNOWN_CITY = "Other"


def city_bucket(city: str | None) -> str:
    """Grouping key for a class's city."""
    if not city:
        return UNKNOWN_CITY
    if city == "Itu":
        return "ITU"
    return city


def get_available_classes(
    session: Session,
    student_id: str,
    gender: str | None = None,
) -> AvailableClassesGrouped:
    """List the active classes a student is eligible to join.

    Program groups where the student is enrolled or has finished are left out
    entirely. Seat counts may be stale by the time the caller acts on them;
    enrollment re-checks capacity.

    Args:
        session: Open database session.
        student_id: The student's ID.
        gender: Student gender; "Masculino" hides women-only classes.

    Returns:
        Classes keyed by program group, then city, in start-date order.
    """
    blocked_stmt = (
        select(Grupo.program_group)
        .join(Enrollment, Enrollment.grupo_id == Grupo.id)
        .where(
            Enrollment.student_id == student_id,
            Enrollment.status.in_([state.value for state in BLOCKING_STATES]),
        )
        .distinct()
    )
    blocked_groups = set(session.execute(blocked_stmt).scalars().all())

    stmt = select(Grupo).where(Grupo.is_active.is_(True))
    if blocked_groups:
        stmt = stmt.where(Grupo.program_group.not_in(blocked_groups))
    if gender == MALE_GENDER:
        stmt = stmt.where(Grupo.is_women_only.is_(False))
    stmt = stmt.order_by(Grupo.program_group, Grupo.city, Grupo.start_date, Grupo.id)

    grouped: AvailableClassesGrouped = {}
    for grupo in session.execute(stmt).scalars():
        cities = grouped.setdefault(grupo.program_group, {})
        cities.setdefault(city_bucket(grupo.city), []).append(AvailableClass.from_grupo(grupo))

    return grouped
