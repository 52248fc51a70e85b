"""create research pipeline tables

Revision ID: 0a1c2e3f4b5d
Revises:
Create Date: 2026-09-14 10:12:44.381022

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0a1c2e3f4b5d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JOB_STATUSES = (
    "queued",
    "running",
    "completed",
    "completed_with_errors",
    "failed",
    "cancelled",
)


def upgrade() -> None:
    """Create jobs, section runs, source catalog, prompt overrides and trace events."""
    op.create_table(
        "research_jobs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("company_name", sa.String(), nullable=False),
        sa.Column("geography", sa.String(), nullable=False),
        sa.Column("focus_areas", sa.JSON(), nullable=False),
        sa.Column("report_type", sa.String(length=32), nullable=True),
        sa.Column("requested_by", sa.String(), nullable=True),
        sa.Column("status", sa.Enum(*JOB_STATUSES, name="jobstatus"), nullable=False),
        sa.Column("overall_confidence", sa.String(length=16), nullable=True),
        sa.Column("overall_confidence_score", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
    )

    op.create_table(
        "section_runs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("research_jobs.id"), nullable=False),
        sa.Column("section_id", sa.String(length=64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("confidence", sa.String(length=16), nullable=True),
        sa.Column("confidence_reason", sa.Text(), nullable=True),
        sa.Column("sources_used", sa.JSON(), nullable=False),
        sa.Column("content", sa.JSON(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("prompt_source", sa.String(length=16), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("job_id", "section_id", name="uq_section_runs_job_section"),
    )
    op.create_index("ix_section_runs_job_id", "section_runs", ["job_id"])

    op.create_table(
        "source_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("research_jobs.id"), nullable=False),
        sa.Column("source_id", sa.String(length=16), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("citation", sa.Text(), nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("date", sa.String(length=32), nullable=True),
        sa.Column("section_id", sa.String(length=64), nullable=False),
        sa.UniqueConstraint("job_id", "source_id", name="uq_source_entries_job_source"),
    )
    op.create_index("ix_source_entries_job_id", "source_entries", ["job_id"])

    op.create_table(
        "prompt_overrides",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("section_id", sa.String(length=64), nullable=False),
        sa.Column("report_type", sa.String(length=32), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("published_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_prompt_overrides_lookup",
        "prompt_overrides",
        ["section_id", "report_type", "status"],
    )

    op.create_table(
        "research_trace_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("research_jobs.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False),
        sa.Column("step", sa.String(), nullable=True),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("detail", sa.String(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
    )
    op.create_index("ix_research_trace_events_job_id", "research_trace_events", ["job_id"])


def downgrade() -> None:
    """Drop all research pipeline tables."""
    op.drop_index("ix_research_trace_events_job_id", table_name="research_trace_events")
    op.drop_table("research_trace_events")
    op.drop_index("ix_prompt_overrides_lookup", table_name="prompt_overrides")
    op.drop_table("prompt_overrides")
    op.drop_index("ix_source_entries_job_id", table_name="source_entries")
    op.drop_table("source_entries")
    op.drop_index("ix_section_runs_job_id", table_name="section_runs")
    op.drop_table("section_runs")
    op.drop_table("research_jobs")
    sa.Enum(name="jobstatus").drop(op.get_bind(), checkfirst=True)
