from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..domain.models import utc_now


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Reference catalog
# ---------------------------------------------------------------------------


class PersonaORM(Base):
    __tablename__ = "personas"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, nullable=False
    )

    sub_personas: Mapped[list[SubPersonaORM]] = relationship(
        back_populates="persona", cascade="all, delete"
    )


class SubPersonaORM(Base):
    __tablename__ = "sub_personas"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    persona_id: Mapped[str] = mapped_column(
        ForeignKey("personas.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    expertise_level: Mapped[str | None] = mapped_column(String(64), nullable=True)

    persona: Mapped[PersonaORM] = relationship(back_populates="sub_personas")


class TherapeuticAreaORM(Base):
    __tablename__ = "therapeutic_areas"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    complexity_weight: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class AIModelTypeORM(Base):
    __tablename__ = "ai_model_types"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    complexity_weight: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class DeploymentScenarioORM(Base):
    __tablename__ = "deployment_scenarios"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    complexity_weight: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class SectionORM(Base):
    __tablename__ = "sections"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    section_number: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    base_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_critical_blocker: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    section_type: Mapped[str] = mapped_column(String(64), default="standard", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    questions: Mapped[list[QuestionORM]] = relationship(
        back_populates="section", cascade="all, delete"
    )


class QuestionORM(Base):
    __tablename__ = "questions"
    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    section_id: Mapped[str] = mapped_column(
        ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(32), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_blocker: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    evidence_required: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list
    responsible_roles: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_question_points"),
        CheckConstraint(
            "question_type IN ('boolean', 'multiple_choice', 'text', 'file_upload', 'scale_1_5')",
            name="ck_question_type",
        ),
    )

    section: Mapped[SectionORM] = relationship(back_populates="questions")
    conditions: Mapped[list[ApplicabilityConditionORM]] = relationship(
        back_populates="question", cascade="all, delete"
    )


class ApplicabilityConditionORM(Base):
    __tablename__ = "question_conditions"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dimension: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)  # NULL: any

    __table_args__ = (
        UniqueConstraint("question_id", "dimension", "target_id", name="uq_question_condition"),
        CheckConstraint(
            "dimension IN ('persona', 'sub_persona', 'therapeutic_area', "
            "'ai_model_type', 'deployment_scenario')",
            name="ck_condition_dimension",
        ),
        CheckConstraint(
            "target_id IS NOT NULL OR dimension = 'sub_persona'", name="ck_condition_target"
        ),
    )

    question: Mapped[QuestionORM] = relationship(back_populates="conditions")


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

assessment_therapeutic_areas = Table(
    "assessment_therapeutic_areas",
    Base.metadata,
    Column("assessment_id", ForeignKey("assessments.id", ondelete="CASCADE"), primary_key=True),
    Column("therapeutic_area_id", ForeignKey("therapeutic_areas.id"), primary_key=True),
)

assessment_ai_model_types = Table(
    "assessment_ai_model_types",
    Base.metadata,
    Column("assessment_id", ForeignKey("assessments.id", ondelete="CASCADE"), primary_key=True),
    Column("ai_model_type_id", ForeignKey("ai_model_types.id"), primary_key=True),
)

assessment_deployment_scenarios = Table(
    "assessment_deployment_scenarios",
    Base.metadata,
    Column("assessment_id", ForeignKey("assessments.id", ondelete="CASCADE"), primary_key=True),
    Column("deployment_scenario_id", ForeignKey("deployment_scenarios.id"), primary_key=True),
)


class AssessmentORM(Base):
    __tablename__ = "assessments"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    persona_id: Mapped[str | None] = mapped_column(
        ForeignKey("personas.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    sub_persona_id: Mapped[str | None] = mapped_column(
        ForeignKey("sub_personas.id", ondelete="SET NULL"), nullable=True
    )
    company_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, onupdate=utc_now, nullable=False
    )

    therapeutic_areas: Mapped[list[TherapeuticAreaORM]] = relationship(
        secondary=assessment_therapeutic_areas
    )
    ai_model_types: Mapped[list[AIModelTypeORM]] = relationship(
        secondary=assessment_ai_model_types
    )
    deployment_scenarios: Mapped[list[DeploymentScenarioORM]] = relationship(
        secondary=assessment_deployment_scenarios
    )
    responses: Mapped[list[ResponseORM]] = relationship(
        back_populates="assessment", cascade="all, delete"
    )
    collaboration_states: Mapped[list[SectionCollaborationStateORM]] = relationship(
        back_populates="assessment", cascade="all, delete"
    )


class ResponseORM(Base):
    __tablename__ = "responses"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON encoded
    evidence_documents: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list
    completion_status: Mapped[str] = mapped_column(
        String(32), default="not_started", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("assessment_id", "question_id", name="uq_assessment_question"),
        CheckConstraint(
            "completion_status IN ('not_started', 'in_progress', 'complete')",
            name="ck_response_status",
        ),
    )

    assessment: Mapped[AssessmentORM] = relationship(back_populates="responses")


class SectionCollaborationStateORM(Base):
    __tablename__ = "section_collaboration_states"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    section_id: Mapped[str] = mapped_column(
        ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    current_state: Mapped[str] = mapped_column(String(32), nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("assessment_id", "section_id", name="uq_assessment_section_state"),
        CheckConstraint(
            "current_state IN ('draft', 'in_review', 'approved', 'rejected', 'completed')",
            name="ck_collaboration_state",
        ),
    )

    assessment: Mapped[AssessmentORM] = relationship(back_populates="collaboration_states")
