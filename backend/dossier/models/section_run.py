from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.db import Base


class SectionStatus:
    """Status values for SectionRun."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SectionRun(Base):
    """
    One attempt slot for one report section of a research job.

    Lifecycle:
    1. pending   - created with the job, or reset by a manual re-run
    2. running   - dispatched once every hard dependency completed
    3. completed - model output parsed and passed schema validation
    4. failed    - collaborator, parse or validation error (see last_error)
    """
    __tablename__ = "section_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Uuid(as_uuid=True), ForeignKey("research_jobs.id"), index=True, nullable=False)
    section_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)   # catalogue order, foundation = 0

    status = Column(String(32), default=SectionStatus.PENDING, nullable=False)
    confidence = Column(String(16), nullable=True)          # HIGH | MEDIUM | LOW
    confidence_reason = Column(Text, nullable=True)
    sources_used = Column(JSON, nullable=False, default=list)  # ["S1", "S4", ...]
    content = Column(JSON, nullable=True)                   # validated payload
    last_error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    prompt_source = Column(String(16), nullable=True)       # "code" | "database"

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    job = relationship("ResearchJob", back_populates="sections")

    __table_args__ = (
        UniqueConstraint("job_id", "section_id", name="uq_section_runs_job_section"),
    )
