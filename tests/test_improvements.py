"""
Tests for the ambient layers of the engine.

Covers validation, error handling, logging, configuration, repository patterns
and the application API working together.
"""

import json
import logging
import os
import tempfile
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError as SQLIntegrityError, SQLAlchemyError

from complianceiq.application.api import (
    create_assessment,
    get_assessment_summary,
    list_overdue_reviews,
    record_response,
    transition_section,
)
from complianceiq.domain.models import Actor, CollaborationStatus, CompletionStatus
from complianceiq.domain.schemas import AssessmentCreationInput, ResponseInput, validate_input
from complianceiq.infrastructure.config import (
    DatabaseConfig,
    LoggingConfig,
    ScoringConfig,
    get_settings,
    load_settings_from_file,
    override_settings,
    reset_settings,
)
from complianceiq.infrastructure.db import is_database_configured
from complianceiq.infrastructure.exceptions import (
    DatabaseError,
    IntegrityError,
    NotFoundError,
    ValidationError,
    create_user_friendly_error_message,
    handle_database_error,
)
from complianceiq.infrastructure.logging import (
    LogContext,
    clear_context,
    configure_logging,
    context_filter,
    get_logger,
    set_context,
    setup_logging,
)
from complianceiq.infrastructure.repositories import AssessmentRepo, ResponseRepo


@pytest.fixture
def isolated_env(monkeypatch):
    """Record settings-related env vars so anything a test writes is undone."""
    for key in (
        "APP_ENVIRONMENT",
        "APP_VERSION",
        "SCORING_PRODUCTION_READY_THRESHOLD",
        "SCORING_REVIEW_ESCALATION_HOURS",
    ):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    reset_settings()
    yield monkeypatch
    reset_settings()


@pytest.fixture
def assessment_id(db_session) -> str:
    assessment = create_assessment(
        db_session,
        name="Sepsis early warning",
        persona_id="data-science",
        sub_persona_id="ds-senior",
        therapeutic_area_ids=["oncology"],
        ai_model_type_ids=["llm"],
    )
    db_session.commit()
    return assessment.id


class TestPydanticValidation:
    """Test input validation using Pydantic models."""

    def test_assessment_creation_validation_success(self):
        """Test successful assessment creation validation."""
        result = validate_input(
            AssessmentCreationInput,
            {
                "name": "Radiology triage",
                "persona_id": "data-science",
                "therapeutic_area_ids": ["oncology"],
            },
        )

        assert result.success is True
        assert result.data is not None
        assert result.data["name"] == "Radiology triage"
        assert result.data["therapeutic_area_ids"] == ["oncology"]

    def test_assessment_creation_validation_failure(self):
        """Test assessment creation validation with invalid data."""
        result = validate_input(AssessmentCreationInput, {"name": "", "persona_id": "x"})

        assert result.success is False
        assert len(result.errors) > 0
        assert any("name" in error.field for error in result.errors)

    def test_input_sanitization(self):
        """Test that markup and control characters are removed."""
        result = validate_input(
            AssessmentCreationInput,
            {
                "name": "  <b>Go-live</b> review\x00  ",
                "persona_id": " data-science ",
            },
        )

        assert result.success is True
        assert result.data is not None
        assert result.data["name"] == "Go-live review"
        assert result.data["persona_id"] == "data-science"

    def test_response_value_shapes(self):
        """Responses accept any JSON-like answer shape."""
        for value in (True, 4, "free text", ["a", "b"]):
            result = validate_input(
                ResponseInput, {"assessment_id": "a-1", "question_id": "q-1", "value": value}
            )
            assert result.success is True


class TestErrorHandling:
    """Test the custom exception hierarchy and helpers."""

    def test_validation_error(self):
        error = ValidationError("persona_id", "persona is required", None)

        assert error.field == "persona_id"
        assert error.value is None
        assert "persona id" in error.user_message.lower()
        assert "ValidationError" in str(error)

    def test_not_found_error(self):
        error = NotFoundError("assessment", "a-404")

        assert error.entity_id == "a-404"
        assert "a-404" in error.message

    def test_database_error_conversion(self):
        """Driver errors are mapped onto the engine's database errors."""
        unique = SQLIntegrityError(
            "INSERT INTO responses", {}, Exception("UNIQUE constraint failed: responses.id")
        )
        converted = handle_database_error(unique, "upsert_response")

        assert isinstance(converted, IntegrityError)
        assert converted.constraint == "unique"

        generic = handle_database_error(Exception("disk I/O error"), "flush")
        assert isinstance(generic, DatabaseError)
        assert generic.operation == "flush"

    def test_user_friendly_messages(self):
        """Test creation of user-friendly error messages."""
        validation_error = ValidationError("name", "cannot be empty")
        friendly_msg = create_user_friendly_error_message(validation_error)

        assert "name" in friendly_msg.lower()

        generic_error = ValueError("Some technical error")
        friendly_msg = create_user_friendly_error_message(generic_error)

        assert "try again" in friendly_msg.lower()


class TestLogging:
    """Test the logging setup."""

    def test_logger_namespace(self):
        logger = get_logger("test_module")

        assert logger.name == "complianceiq.test_module"
        assert get_logger("complianceiq.resolver").name == "complianceiq.resolver"

    def test_logging_configuration(self):
        """Test logging setup with a file handler."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = os.path.join(temp_dir, "logs", "test.log")
            setup_logging(level="DEBUG", log_file=log_file, structured=True)

            logger = get_logger("test")
            logger.info("Test message")
            for handler in logging.getLogger("complianceiq").handlers:
                handler.flush()

            assert os.path.exists(log_file)
            with open(log_file, encoding="utf-8") as f:
                lines = [json.loads(line) for line in f if line.strip()]
            assert any(entry["message"] == "Test message" for entry in lines)

            setup_logging(level="INFO", enable_console=True)

    def test_configure_logging_applies_settings_section(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        config = LoggingConfig(
            level="WARNING",
            file_path=str(log_file),
            max_bytes=4096,
            backup_count=2,
            console_enabled=False,
        )

        try:
            configure_logging(config)
            handlers = logging.getLogger("complianceiq").handlers

            assert logging.getLogger("complianceiq").level == logging.WARNING
            assert len(handlers) == 1
            assert handlers[0].maxBytes == 4096
            assert handlers[0].backupCount == 2
        finally:
            setup_logging(level="INFO", enable_console=True)

    def test_context_logging(self):
        """Context variables are copied onto log records until cleared."""
        set_context(assessment_id="a-1", actor_id="alice")
        record = logging.LogRecord("complianceiq.test", logging.INFO, __file__, 1, "m", None, None)
        context_filter.filter(record)

        assert record.assessment_id == "a-1"
        assert record.actor_id == "alice"

        clear_context()
        assert context_filter.context == {}

    def test_log_context_restores_previous(self):
        clear_context()
        set_context(request_id="r-1")
        with LogContext(section_id="governance"):
            assert context_filter.context == {"request_id": "r-1", "section_id": "governance"}
        assert context_filter.context == {"request_id": "r-1"}
        clear_context()


class TestConfiguration:
    """Test centralized configuration management."""

    def test_database_config_sqlite(self, tmp_path):
        """Test SQLite database configuration."""
        config = DatabaseConfig(backend="sqlite", sqlite_path=str(tmp_path / "test"))

        url = config.get_connection_url()
        assert url.startswith("sqlite:///")
        assert url.endswith("test.db")

    def test_database_config_mysql(self):
        """Test MySQL database configuration."""
        config = DatabaseConfig(
            backend="mysql",
            mysql_host="localhost",
            mysql_user="test",
            mysql_password="pass",
            mysql_database="testdb",
        )

        url = config.get_connection_url()
        assert url.startswith("mysql+pymysql://")
        assert "test:pass@localhost" in url
        assert "testdb" in url

    def test_database_configuration_validation(self):
        with pytest.raises(ValueError):
            DatabaseConfig(backend="invalid")

        with pytest.raises(ValueError):
            DatabaseConfig(backend="mysql", mysql_host="localhost", mysql_database="")

    def test_settings_override(self, isolated_env):
        """Test settings override functionality."""
        test_settings = override_settings(
            app_environment="testing", scoring_production_ready_threshold=90
        )

        assert test_settings.app.environment == "testing"
        assert test_settings.is_testing()
        assert test_settings.scoring.production_ready_threshold == 90
        assert get_settings() is test_settings

    def test_scoring_policy(self):
        config = ScoringConfig(production_ready_threshold=85, blocker_scale_cutoff=3)
        policy = config.to_policy()

        assert policy.production_ready_threshold == 85
        assert policy.blocker_scale_cutoff == 3
        assert ScoringConfig(review_escalation_hours=6).review_escalation_window == timedelta(
            hours=6
        )

    def test_load_settings_from_file(self, isolated_env, tmp_path):
        config_file = tmp_path / "settings.json"
        config_file.write_text(
            json.dumps({"app": {"version": "9.9.9"}, "scoring": {"review_escalation_hours": 48}})
        )

        settings = load_settings_from_file(str(config_file))

        assert settings.app.version == "9.9.9"
        assert settings.scoring.review_escalation_window == timedelta(hours=48)

    def test_load_settings_rejects_unknown_format(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("app: {}")

        with pytest.raises(ValueError):
            load_settings_from_file(str(config_file))
        with pytest.raises(FileNotFoundError):
            load_settings_from_file(str(tmp_path / "missing.json"))


class TestRepositoryPatterns:
    """Test repository patterns and consistency."""

    @pytest.fixture
    def stored_assessment(self, db_session) -> str:
        row = AssessmentRepo(db_session).create_assessment(
            name="Repository checks", persona_id="data-science"
        )
        return row.id

    def test_response_upsert(self, db_session, stored_assessment):
        repo = ResponseRepo(db_session)

        first = repo.upsert_response(
            stored_assessment, "gov-1", None, completion_status=CompletionStatus.IN_PROGRESS
        )
        assert first.completion_status == CompletionStatus.IN_PROGRESS

        second = repo.upsert_response(
            stored_assessment, "gov-1", {"owner": "alice"}, evidence_documents=["raci.pdf"]
        )
        assert second.value == {"owner": "alice"}
        assert second.evidence_documents == ["raci.pdf"]
        assert repo.count() == 1
        assert repo.get_responses(stored_assessment)["gov-1"].value == {"owner": "alice"}

    def test_repository_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            AssessmentRepo(db_session).get_by_id_required("missing")

    def test_non_json_value_is_rejected(self, db_session, stored_assessment):
        with pytest.raises(ValidationError):
            ResponseRepo(db_session).upsert_response(stored_assessment, "gov-1", object())

    def test_repository_error_handling(self, db_session, stored_assessment):
        repo = ResponseRepo(db_session)

        with (
            patch.object(db_session, "add", side_effect=SQLAlchemyError("DB Error")),
            pytest.raises(DatabaseError),
        ):
            repo.upsert_response(stored_assessment, "gov-2", 3)


class TestApplicationAPI:
    """Test the application API layer over a real session."""

    def test_create_assessment(self, db_session, assessment_id):
        assessment = AssessmentRepo(db_session).get_assessment(assessment_id)

        assert assessment.name == "Sepsis early warning"
        assert assessment.sub_persona_id == "ds-senior"
        assert assessment.ai_model_type_ids == ["llm"]

    def test_create_assessment_invalid(self, db_session):
        with pytest.raises(ValidationError):
            create_assessment(db_session, name="", persona_id="data-science")

    def test_record_response_and_summary(self, db_session, assessment_id):
        record_response(db_session, assessment_id, "gov-1", True)
        record_response(db_session, assessment_id, "gov-2", 5)
        db_session.commit()

        summary = get_assessment_summary(db_session, assessment_id)

        assert summary.score.current_score == 15.0
        assert summary.score.max_possible_score == 33
        assert set(summary.responses) == {"gov-1", "gov-2"}
        assert summary.resolved.total_questions == 6

    def test_record_response_outside_context(self, db_session, assessment_id):
        with pytest.raises(ValidationError):
            record_response(db_session, assessment_id, "ops-1", "rota-a")
        with pytest.raises(NotFoundError):
            record_response(db_session, assessment_id, "ghost", 1)

    @pytest.mark.parametrize(
        ("question_id", "value"), [("gov-2", "nan"), ("gov-2", 7), ("gov-1", {"owner": "alice"})]
    )
    def test_record_response_rejects_unscorable_answers(
        self, db_session, assessment_id, question_id, value
    ):
        with pytest.raises(ValidationError) as exc_info:
            record_response(db_session, assessment_id, question_id, value)

        assert exc_info.value.field == "value"
        assert get_assessment_summary(db_session, assessment_id).responses == {}

    def test_transition_and_overdue(self, db_session, assessment_id, now):
        alice = Actor("alice")
        transition_section(db_session, assessment_id, "governance", "draft", alice, now=now)
        state = transition_section(
            db_session,
            assessment_id,
            "governance",
            "in_review",
            alice,
            comment="Ready for review",
            now=now,
            retries=2,
        )
        db_session.commit()

        assert state.current_state == CollaborationStatus.IN_REVIEW
        assert state.version == 2

        soon = list_overdue_reviews(db_session, now=now + timedelta(hours=1))
        later = list_overdue_reviews(
            db_session, now=now + timedelta(hours=30), assessment_id=assessment_id
        )
        assert soon == []
        assert [s.section_id for s in later] == ["governance"]

    def test_transition_unknown_target(self, db_session, assessment_id):
        with pytest.raises(ValidationError):
            transition_section(db_session, assessment_id, "governance", "archived", Actor("alice"))


class TestIntegration:
    """Integration checks for the ambient layers working together."""

    def test_configuration_integration(self):
        settings = get_settings()

        assert settings.app.environment in ["development", "testing", "production"]
        assert settings.database is not None
        assert settings.logging is not None
        assert settings.scoring is not None
        assert is_database_configured() is True

        env_info = settings.get_environment_info()
        assert "environment" in env_info
        assert "version" in env_info
        assert "features" in env_info


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
