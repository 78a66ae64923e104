"""Unit tests for enrollment eligibility checks."""

import pytest

from repense.enrollment import EnrollmentErrorCode, EnrollmentService
from repense.store import MALE_GENDER, Database, Store


@pytest.mark.unit
class TestValidateOrder:
    """The first failing check decides the reason code."""

    def test_student_not_found(self, service: EnrollmentService, make_grupo) -> None:
        """Unknown student is checked before anything else."""
        result = service.validate("missing", make_grupo().id)

        assert result.can_enroll is False
        assert result.code == EnrollmentErrorCode.STUDENT_NOT_FOUND

    def test_class_not_found(self, service: EnrollmentService, make_student) -> None:
        """Unknown class."""
        result = service.validate(make_student().id, "missing")

        assert result.code == EnrollmentErrorCode.CLASS_NOT_FOUND

    def test_class_inactive(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """Inactive class."""
        result = service.validate(make_student().id, make_grupo(is_active=False).id)

        assert result.code == EnrollmentErrorCode.CLASS_INACTIVE
        assert result.error == "Grupo não está ativo"

    def test_class_full(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """No free seat."""
        grupo = make_grupo(capacity=2, enrolled_count=2)

        result = service.validate(make_student().id, grupo.id)

        assert result.code == EnrollmentErrorCode.CLASS_FULL

    def test_inactive_checked_before_full(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A full inactive class reports CLASS_INACTIVE."""
        grupo = make_grupo(capacity=1, enrolled_count=1, is_active=False)

        result = service.validate(make_student().id, grupo.id)

        assert result.code == EnrollmentErrorCode.CLASS_INACTIVE

    def test_full_checked_before_women_only(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A full women-only class reports CLASS_FULL to a man."""
        grupo = make_grupo(capacity=1, enrolled_count=1, is_women_only=True)

        result = service.validate(make_student(gender=MALE_GENDER).id, grupo.id)

        assert result.code == EnrollmentErrorCode.CLASS_FULL

    def test_women_only_refuses_men(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Men cannot join women-only classes."""
        grupo = make_grupo(is_women_only=True)

        result = service.validate(make_student(gender=MALE_GENDER).id, grupo.id)

        assert result.code == EnrollmentErrorCode.WOMEN_ONLY_CLASS

    @pytest.mark.parametrize("gender", ["Feminino", None])
    def test_women_only_accepts_others(
        self, service: EnrollmentService, make_student, make_grupo, gender: str | None
    ) -> None:
        """Women and students with no recorded gender may join."""
        grupo = make_grupo(is_women_only=True)

        assert service.validate(make_student(gender=gender).id, grupo.id).can_enroll

    def test_eligible(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """Fresh student in an open class."""
        result = service.validate(make_student().id, make_grupo().id)

        assert result.can_enroll is True
        assert result.code is None
        assert result.error is None


@pytest.mark.unit
class TestProgramGroupStanding:
    """Tests for the student's history in the class's program group."""

    def test_active_in_group(self, service: EnrollmentService, make_student, make_grupo) -> None:
        """An active enrollment in another class of the group blocks."""
        student = make_student()
        service.enroll(student.id, make_grupo(program_group="Igreja").id)

        result = service.validate(student.id, make_grupo(program_group="Igreja").id)

        assert result.code == EnrollmentErrorCode.ALREADY_ENROLLED
        assert "Igreja" in result.error

    def test_active_in_other_group_ok(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Groups are independent."""
        student = make_student()
        service.enroll(student.id, make_grupo(program_group="Igreja").id)

        result = service.validate(student.id, make_grupo(program_group="Evangelho").id)

        assert result.can_enroll is True

    def test_completed_in_group(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A completed enrollment blocks the whole group for good."""
        student = make_student()
        enrolled = service.enroll(student.id, make_grupo(program_group="Evangelho").id)
        service.complete(enrolled.enrollment_id)

        result = service.validate(student.id, make_grupo(program_group="Evangelho").id)

        assert result.code == EnrollmentErrorCode.ALREADY_COMPLETED
        assert result.previous_enrollment is not None
        assert result.previous_enrollment.status == "completed"
        assert result.previous_enrollment.completed_at is not None

    def test_completed_beats_confirmation(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """Confirming a re-enrollment does not lift a completion."""
        student = make_student()
        enrolled = service.enroll(student.id, make_grupo().id)
        service.complete(enrolled.enrollment_id)

        result = service.validate(
            student.id, make_grupo().id, skip_cancelled_check=True, confirm_re_enrollment=True
        )

        assert result.code == EnrollmentErrorCode.ALREADY_COMPLETED

    def test_cancelled_requires_confirmation(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A cancelled enrollment is a soft block."""
        student = make_student()
        enrolled = service.enroll(student.id, make_grupo().id)
        service.cancel(enrolled.enrollment_id)

        result = service.validate(student.id, make_grupo().id)

        assert result.code == EnrollmentErrorCode.PREVIOUSLY_CANCELLED
        assert result.requires_confirmation is True
        assert result.previous_enrollment.status == "cancelled"
        assert result.previous_enrollment.cancelled_at is not None

    @pytest.mark.parametrize(
        "flags",
        [{"confirm_re_enrollment": True}, {"skip_cancelled_check": True}],
    )
    def test_cancelled_lifted(
        self, service: EnrollmentService, make_student, make_grupo, flags: dict
    ) -> None:
        """Confirmation or skipping the check lets the student back in."""
        student = make_student()
        enrolled = service.enroll(student.id, make_grupo().id)
        service.cancel(enrolled.enrollment_id)

        assert service.validate(student.id, make_grupo().id, **flags).can_enroll

    def test_transferred_does_not_block(
        self, service: EnrollmentService, make_student, make_grupo
    ) -> None:
        """A transferred-out row alone is no conflict."""
        student = make_student()
        source = make_grupo()
        target = make_grupo()
        enrolled = service.enroll(student.id, source.id)
        moved = service.transfer(enrolled.enrollment_id, target.id)
        service.cancel(moved.new_enrollment.id)

        result = service.validate(student.id, source.id, confirm_re_enrollment=True)

        assert result.can_enroll is True


@pytest.mark.unit
class TestValidateIsReadOnly:
    """Validation never writes."""

    def test_no_side_effects(
        self,
        database: Database,
        store: Store,
        service: EnrollmentService,
        make_student,
        make_grupo,
    ) -> None:
        """Counters and enrollment rows are untouched."""
        student = make_student()
        grupo = make_grupo(capacity=3)

        for _ in range(3):
            assert service.validate(student.id, grupo.id).can_enroll

        assert store.get_grupo(grupo.id).enrolled_count == 0
        assert store.list_enrollments(student_id=student.id) == []
