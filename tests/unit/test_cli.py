"""Unit tests for the repense CLI."""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from repense.cli import main
from repense.enrollment import EnrollmentService
from repense.store import Database, Grupo, Student


@pytest.fixture(autouse=True)
def reset_repense_logger():
    """Detach handlers the CLI installs on the repense logger."""
    yield
    logger = logging.getLogger("repense")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "repense.db"


@pytest.fixture
def runner(db_path: Path, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    """CliRunner pointed at a temporary database."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REPENSE_DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.delenv("REPENSE_LOG_DIR", raising=False)
    return CliRunner()


@pytest.fixture
def seeded(db_path: Path):
    """A student and two classes in the temporary database."""
    database = Database(str(db_path))
    database.create_tables()
    student = Student(name="Maria", cpf="52998224725", phone="11987654321")
    igreja = Grupo(program_group="Igreja", capacity=10, city="Itu", time_slot="19h30")
    women = Grupo(program_group="Evangelho", capacity=5, is_women_only=True)
    with database.transaction() as session:
        session.add_all([student, igreja, women])
    yield database, student, igreja, women
    database.close()


@pytest.mark.unit
class TestInitDb:
    """Tests for init-db."""

    def test_creates_database(self, runner: CliRunner, db_path: Path) -> None:
        """Tables are created at the configured URL."""
        result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0
        assert "Database ready." in result.output
        assert db_path.exists()

    def test_bad_config_exits_2(self, runner: CliRunner, tmp_path: Path) -> None:
        """An invalid config file is reported with exit code 2."""
        config = tmp_path / "bad.yaml"
        config.write_text("unknown_key: 1\n")

        result = runner.invoke(main, ["-c", str(config), "init-db"])

        assert result.exit_code == 2
        assert "Configuration error" in result.output


@pytest.mark.unit
class TestReconcile:
    """Tests for reconcile."""

    def test_clean_ledger(self, runner: CliRunner, seeded) -> None:
        """Matching counts exit 0."""
        database, student, igreja, _ = seeded
        EnrollmentService(database).enroll(student.id, igreja.id)

        result = runner.invoke(main, ["reconcile"])

        assert result.exit_code == 0
        assert "All seat counts match" in result.output

    def test_drift_exits_1(self, runner: CliRunner, seeded) -> None:
        """Mismatches are printed and exit 1."""
        database, _, igreja, _ = seeded
        with database.transaction() as session:
            session.get(Grupo, igreja.id).enrolled_count = 2

        result = runner.invoke(main, ["reconcile"])

        assert result.exit_code == 1
        assert igreja.id in result.output
        assert "drift +2" in result.output


@pytest.mark.unit
class TestAvailable:
    """Tests for available."""

    def test_lists_classes(self, runner: CliRunner, seeded) -> None:
        """Classes are printed under program group and city."""
        _, student, igreja, women = seeded

        result = runner.invoke(main, ["available", student.id])

        assert result.exit_code == 0
        assert "Igreja" in result.output
        assert "ITU" in result.output
        assert igreja.id in result.output
        assert "seats=10/10" in result.output
        assert women.id in result.output

    def test_men_do_not_see_women_only(self, runner: CliRunner, seeded) -> None:
        """--gender Masculino hides women-only classes."""
        _, student, _, women = seeded

        result = runner.invoke(main, ["available", student.id, "--gender", "Masculino"])

        assert result.exit_code == 0
        assert women.id not in result.output

    def test_nothing_available(self, runner: CliRunner, seeded) -> None:
        """A student blocked from every group gets a clear message."""
        database, student, igreja, women = seeded
        service = EnrollmentService(database)
        service.enroll(student.id, igreja.id)
        service.enroll(student.id, women.id)

        result = runner.invoke(main, ["available", student.id])

        assert result.exit_code == 0
        assert "No classes available." in result.output
