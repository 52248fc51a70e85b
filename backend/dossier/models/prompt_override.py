from sqlalchemy import Column, Integer, String, Text, DateTime, Index, Uuid
from datetime import datetime
import uuid

from ..core.db import Base


class PromptStatus:
    """Status values for PromptOverride. Only published rows affect resolution."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class PromptOverride(Base):
    __tablename__ = "prompt_overrides"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    section_id = Column(String(64), nullable=False)
    report_type = Column(String(32), nullable=True)   # NULL = base prompt for the section
    content = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=PromptStatus.DRAFT)
    version = Column(Integer, nullable=False, default=1)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    published_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_prompt_overrides_lookup", "section_id", "report_type", "status"),
    )
