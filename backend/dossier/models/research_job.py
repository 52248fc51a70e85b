from sqlalchemy import Column, String, JSON, Enum, DateTime, Float, Numeric, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum
from ..core.db import Base

class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"
    CANCELLED = "cancelled"

TERMINAL_JOB_STATUSES = frozenset({
    JobStatus.COMPLETED,
    JobStatus.COMPLETED_WITH_ERRORS,
    JobStatus.FAILED,
    JobStatus.CANCELLED,
})

class ResearchJob(Base):
    __tablename__ = "research_jobs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    company_name = Column(String, nullable=False)
    geography = Column(String, nullable=False)
    focus_areas = Column(JSON, nullable=False, default=list)
    report_type = Column(String(32), nullable=True)   # GENERIC | INDUSTRIALS | FS | PE
    requested_by = Column(String, nullable=True)
    status = Column(
        Enum(JobStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.QUEUED,
    )
    overall_confidence = Column(String(16), nullable=True)
    overall_confidence_score = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(String, nullable=True)
    # per-call token usage and cost summary; see services/llm_costs.py
    llm_usage = Column(JSON, nullable=True)
    total_cost_usd = Column(Numeric(14, 6), nullable=True)

    sections = relationship(
        "SectionRun",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="SectionRun.position",
    )
    sources = relationship(
        "SourceEntry",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="SourceEntry.position",
    )
