"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _weighted_reference_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("complexity_weight", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def upgrade() -> None:
    op.create_table(
        "personas",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "sub_personas",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("persona_id", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("expertise_level", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["persona_id"], ["personas.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sub_personas_persona_id", "sub_personas", ["persona_id"], unique=False)

    for name in ("therapeutic_areas", "ai_model_types", "deployment_scenarios"):
        _weighted_reference_table(name)

    op.create_table(
        "sections",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("section_number", sa.Integer(), nullable=False),
        sa.Column("base_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_critical_blocker", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("section_type", sa.String(length=64), nullable=False, server_default="standard"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sections_section_number", "sections", ["section_number"], unique=False)

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=100), nullable=False),
        sa.Column("section_id", sa.String(length=100), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("question_type", sa.String(length=32), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_blocker", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("category", sa.String(length=255), nullable=True),
        sa.Column("evidence_required", sa.Text(), nullable=True),
        sa.Column("responsible_roles", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("points >= 0", name="ck_question_points"),
        sa.CheckConstraint(
            "question_type IN ('boolean', 'multiple_choice', 'text', 'file_upload', 'scale_1_5')",
            name="ck_question_type",
        ),
    )
    op.create_index("ix_questions_section_id", "questions", ["section_id"], unique=False)

    op.create_table(
        "question_conditions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("question_id", sa.String(length=100), nullable=False),
        sa.Column("dimension", sa.String(length=32), nullable=False),
        sa.Column("target_id", sa.String(length=100), nullable=True),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("question_id", "dimension", "target_id", name="uq_question_condition"),
        sa.CheckConstraint(
            "dimension IN ('persona', 'sub_persona', 'therapeutic_area', "
            "'ai_model_type', 'deployment_scenario')",
            name="ck_condition_dimension",
        ),
        sa.CheckConstraint(
            "target_id IS NOT NULL OR dimension = 'sub_persona'", name="ck_condition_target"
        ),
    )
    op.create_index(
        "ix_question_conditions_question_id", "question_conditions", ["question_id"], unique=False
    )

    op.create_table(
        "assessments",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("persona_id", sa.String(length=100), nullable=True),
        sa.Column("sub_persona_id", sa.String(length=100), nullable=True),
        sa.Column("company_id", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["persona_id"], ["personas.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["sub_persona_id"], ["sub_personas.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assessments_persona_id", "assessments", ["persona_id"], unique=False)
    op.create_index("ix_assessments_company_id", "assessments", ["company_id"], unique=False)

    for table, column, target in (
        ("assessment_therapeutic_areas", "therapeutic_area_id", "therapeutic_areas"),
        ("assessment_ai_model_types", "ai_model_type_id", "ai_model_types"),
        ("assessment_deployment_scenarios", "deployment_scenario_id", "deployment_scenarios"),
    ):
        op.create_table(
            table,
            sa.Column("assessment_id", sa.String(length=64), nullable=False),
            sa.Column(column, sa.String(length=100), nullable=False),
            sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint([column], [f"{target}.id"]),
            sa.PrimaryKeyConstraint("assessment_id", column),
        )

    op.create_table(
        "responses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("assessment_id", sa.String(length=64), nullable=False),
        sa.Column("question_id", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("evidence_documents", sa.Text(), nullable=True),
        sa.Column("completion_status", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("assessment_id", "question_id", name="uq_assessment_question"),
        sa.CheckConstraint(
            "completion_status IN ('not_started', 'in_progress', 'complete')",
            name="ck_response_status",
        ),
    )
    op.create_index("ix_responses_assessment_id", "responses", ["assessment_id"], unique=False)
    op.create_index("ix_responses_question_id", "responses", ["question_id"], unique=False)

    op.create_table(
        "section_collaboration_states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("assessment_id", sa.String(length=64), nullable=False),
        sa.Column("section_id", sa.String(length=100), nullable=False),
        sa.Column("current_state", sa.String(length=32), nullable=False),
        sa.Column("assigned_to", sa.String(length=100), nullable=True),
        sa.Column("reviewed_by", sa.String(length=100), nullable=True),
        sa.Column("approved_by", sa.String(length=100), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["assessment_id"], ["assessments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["section_id"], ["sections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("assessment_id", "section_id", name="uq_assessment_section_state"),
        sa.CheckConstraint(
            "current_state IN ('draft', 'in_review', 'approved', 'rejected', 'completed')",
            name="ck_collaboration_state",
        ),
    )
    op.create_index(
        "ix_section_collaboration_states_assessment_id",
        "section_collaboration_states",
        ["assessment_id"],
        unique=False,
    )
    op.create_index(
        "ix_section_collaboration_states_section_id",
        "section_collaboration_states",
        ["section_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("section_collaboration_states")
    op.drop_table("responses")
    op.drop_table("assessment_deployment_scenarios")
    op.drop_table("assessment_ai_model_types")
    op.drop_table("assessment_therapeutic_areas")
    op.drop_table("assessments")
    op.drop_table("question_conditions")
    op.drop_table("questions")
    op.drop_table("sections")
    op.drop_table("deployment_scenarios")
    op.drop_table("ai_model_types")
    op.drop_table("therapeutic_areas")
    op.drop_table("sub_personas")
    op.drop_table("personas")
