"""
Pydantic schemas for input validation across the assessment engine.

These schemas validate everything that arrives from participants before it
reaches the resolver, the response store or the review workflow.
"""

from __future__ import annotations

import re
from html import unescape
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

# Catalog identifiers are slugs such as "data-science" or "clinical-decision-support"
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-.:]*$")


def _check_identifier(value: str, label: str) -> str:
    if not IDENTIFIER_PATTERN.match(value):
        raise ValueError(f"{label} '{value}' contains invalid characters")
    return value


def _clean_identifier_list(values: list[str], label: str) -> list[str]:
    cleaned: list[str] = []
    for item in values:
        text = (item or "").strip()
        if not text:
            continue
        _check_identifier(text, label)
        if text not in cleaned:
            cleaned.append(text)
    return cleaned


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    class Config:
        str_strip_whitespace = True
        validate_assignment = True
        use_enum_values = True

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, v):
        """Sanitize string inputs to prevent XSS and injection attacks."""
        if isinstance(v, str):
            cleaned = unescape(v.strip())
            cleaned = re.sub(
                r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
                "",
                cleaned,
                flags=re.IGNORECASE | re.DOTALL,
            )
            cleaned = re.sub(r"<[^>]+>", "", cleaned)
            cleaned = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", cleaned)
            return cleaned
        return v


class ResolutionContextInput(BaseValidationSchema):
    """Validation schema for a persona / therapy / model / deployment selection."""

    persona_id: str | None = Field(None, max_length=100)
    sub_persona_id: str | None = Field(None, max_length=100)
    therapeutic_area_ids: list[str] = Field(default_factory=list, max_length=50)
    ai_model_type_ids: list[str] = Field(default_factory=list, max_length=50)
    deployment_scenario_ids: list[str] = Field(default_factory=list, max_length=50)
    company_id: str | None = Field(None, max_length=100)

    @field_validator("persona_id", "sub_persona_id", "company_id")
    @classmethod
    def validate_optional_identifier(cls, v):
        if v is None or not v.strip():
            return None
        return _check_identifier(v.strip(), "Identifier")

    @field_validator("therapeutic_area_ids", "ai_model_type_ids", "deployment_scenario_ids")
    @classmethod
    def validate_identifier_lists(cls, v):
        return _clean_identifier_list(v, "Identifier")


class AssessmentCreationInput(ResolutionContextInput):
    """Validation schema for creating an assessment."""

    name: str = Field(..., min_length=1, max_length=255, description="Assessment name")

    @field_validator("name")
    @classmethod
    def validate_assessment_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Assessment name cannot be empty")
        if re.search(r'[<>"\\]', v):
            raise ValueError("Assessment name contains invalid characters")
        return v.strip()

    @model_validator(mode="after")
    def require_persona(self):
        """Assessments are always owned by a persona."""
        if not self.persona_id:
            raise ValueError("persona_id is required to create an assessment")
        return self


CompletionState = Literal["not_started", "in_progress", "complete"]


class ResponseInput(BaseValidationSchema):
    """Validation schema for a single question response."""

    assessment_id: str = Field(..., min_length=1, max_length=64)
    question_id: str = Field(..., min_length=1, max_length=100)
    value: Any = None
    evidence_documents: list[str] = Field(default_factory=list, max_length=100)
    completion_status: CompletionState = Field(default="complete")

    @field_validator("question_id")
    @classmethod
    def validate_question_id(cls, v):
        return _check_identifier(v, "Question ID")

    @field_validator("evidence_documents", mode="after")
    @classmethod
    def sanitise_evidence(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item and item.strip()]

    @model_validator(mode="after")
    def complete_requires_value(self):
        """A complete response must carry a value or evidence."""
        if (
            self.completion_status == "complete"
            and self.value in (None, "")
            and not self.evidence_documents
        ):
            raise ValueError("A complete response needs a value or evidence documents")
        return self


CollaborationState = Literal["draft", "in_review", "approved", "rejected", "completed"]


class TransitionInput(BaseValidationSchema):
    """Validation schema for a section workflow transition request."""

    target_state: CollaborationState
    actor_id: str = Field(..., min_length=1, max_length=100)
    can_review: bool = Field(default=False)
    is_admin: bool = Field(default=False)
    comment: str | None = Field(None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def sanitise_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Example:
        >>> result = validate_input(AssessmentCreationInput, {"name": "Q3", "persona_id": "admin"})
        >>> if not result.success:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):  # Pydantic validation errors
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]) or "general",
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
