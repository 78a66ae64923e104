"""Unit tests for the priority (waiting) list."""

import pytest

from repense.enrollment import EnrollmentError, EnrollmentErrorCode, EnrollmentService
from repense.store import Store


@pytest.mark.unit
class TestAddToPriorityList:
    """Tests for add_to_priority_list."""

    def test_add(self, store: Store, service: EnrollmentService, make_student, make_grupo) -> None:
        """Student is flagged with the class they wait for."""
        student = make_student()
        grupo = make_grupo(capacity=1, enrolled_count=1)

        service.add_to_priority_list(student.id, grupo.id)

        saved = store.get_student(student.id)
        assert saved.priority_list is True
        assert saved.priority_list_class_id == grupo.id
        assert saved.priority_list_added_at is not None
        assert [s.id for s in store.list_priority_list(grupo.id)] == [student.id]

    def test_list_in_arrival_order(
        self, store: Store, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Waiting students are listed oldest first."""
        grupo = make_grupo()
        first = make_student()
        second = make_student()
        service.add_to_priority_list(first.id, grupo.id)
        service.add_to_priority_list(second.id, grupo.id)

        assert [s.id for s in store.list_priority_list()] == [first.id, second.id]

    def test_active_student_refused(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Students with any active enrollment cannot wait."""
        student = make_student()
        service.enroll(student.id, make_grupo(program_group="Evangelho").id)

        with pytest.raises(EnrollmentError) as exc_info:
            service.add_to_priority_list(student.id, make_grupo(program_group="Igreja").id)

        assert exc_info.value.code == EnrollmentErrorCode.ALREADY_ENROLLED

    def test_unknown_ids(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """Unknown student or class is refused."""
        with pytest.raises(EnrollmentError) as exc_info:
            service.add_to_priority_list("missing", make_grupo().id)
        assert exc_info.value.code == EnrollmentErrorCode.STUDENT_NOT_FOUND

        with pytest.raises(EnrollmentError) as exc_info:
            service.add_to_priority_list(make_student().id, "missing")
        assert exc_info.value.code == EnrollmentErrorCode.CLASS_NOT_FOUND


@pytest.mark.unit
class TestPromoteFromPriorityList:
    """Tests for promote_from_priority_list."""

    def test_promote_into_waited_class(
        self, store: Store, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Promotion enrolls into the waited class and clears the flag."""
        student = make_student()
        grupo = make_grupo(capacity=2)
        service.add_to_priority_list(student.id, grupo.id)

        result = service.promote_from_priority_list(student.id)

        assert store.get_enrollment(result.enrollment_id).grupo_id == grupo.id
        assert store.get_grupo(grupo.id).enrolled_count == 1
        saved = store.get_student(student.id)
        assert saved.priority_list is False
        assert saved.priority_list_class_id is None
        assert saved.priority_list_added_at is None
        assert store.list_priority_list() == []

    def test_promote_into_other_class(
        self, store: Store, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """An explicit class overrides the waited one."""
        student = make_student()
        waited = make_grupo()
        other = make_grupo(program_group="Evangelho")
        service.add_to_priority_list(student.id, waited.id)

        result = service.promote_from_priority_list(student.id, other.id)

        assert store.get_enrollment(result.enrollment_id).grupo_id == other.id
        assert store.get_grupo(waited.id).enrolled_count == 0

    def test_promote_ignores_earlier_cancellation(
        self, store: Store, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Waiting students skip the cancelled-enrollment confirmation."""
        student = make_student()
        grupo = make_grupo()
        enrolled = service.enroll(student.id, make_grupo().id)
        service.cancel(enrolled.enrollment_id)
        service.add_to_priority_list(student.id, grupo.id)

        result = service.promote_from_priority_list(student.id)

        assert store.get_enrollment(result.enrollment_id).status == "active"

    def test_promote_into_full_class_keeps_waiting(
        self, store: Store, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A full class refuses and the student stays on the list."""
        student = make_student()
        grupo = make_grupo(capacity=1)
        service.enroll(make_student().id, grupo.id)
        service.add_to_priority_list(student.id, grupo.id)

        with pytest.raises(EnrollmentError) as exc_info:
            service.promote_from_priority_list(student.id)

        assert exc_info.value.code == EnrollmentErrorCode.CLASS_FULL
        assert store.get_student(student.id).priority_list is True
        assert store.get_grupo(grupo.id).enrolled_count == 1

    def test_not_on_list(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """Only waiting students can be promoted."""
        student = make_student()

        with pytest.raises(EnrollmentError) as exc_info:
            service.promote_from_priority_list(student.id, make_grupo().id)

        assert exc_info.value.code == EnrollmentErrorCode.NOT_ON_PRIORITY_LIST

    def test_unknown_student(self, service: EnrollmentService) -> None:
        """Unknown student is STUDENT_NOT_FOUND."""
        with pytest.raises(EnrollmentError) as exc_info:
            service.promote_from_priority_list("missing")

        assert exc_info.value.code == EnrollmentErrorCode.STUDENT_NOT_FOUND
