"""
SourceEntry model: one row of a job's source catalog.

Ids ("S1", "S2", ...) are assigned in order per job and never reused for a
different citation, so (job_id, source_id) is unique.
"""
from sqlalchemy import Column, Integer, String, Text, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from ..core.db import Base


class SourceEntry(Base):
    __tablename__ = "source_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(Uuid(as_uuid=True), ForeignKey("research_jobs.id"), index=True, nullable=False)
    source_id = Column(String(16), nullable=False)     # "S<n>"
    position = Column(Integer, nullable=False)         # n
    citation = Column(Text, nullable=False)
    url = Column(String, nullable=True)
    type = Column(String(32), nullable=False)
    date = Column(String(32), nullable=True)
    section_id = Column(String(64), nullable=False)    # section that introduced it

    job = relationship("ResearchJob", back_populates="sources")

    __table_args__ = (
        UniqueConstraint("job_id", "source_id", name="uq_source_entries_job_source"),
    )
