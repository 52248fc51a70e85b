from __future__ import annotations

from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal
from ..models.research_job import ResearchJob
from ..models.research_trace_event import ResearchTraceEvent
from ..models.section_run import SectionRun
from ..models.source_entry import SourceEntry

logger = logging.getLogger(__name__)


def delete_expired_jobs(db: Session, retention_days: int, now: datetime | None = None) -> int:
    """
    Delete research jobs created more than `retention_days` ago, with their
    sections, source catalog and trace events. Prompt overrides are kept.
    """
    cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
    job_ids = [
        row.id for row in db.query(ResearchJob.id).filter(ResearchJob.created_at < cutoff).all()
    ]
    if not job_ids:
        return 0

    for model in (ResearchTraceEvent, SectionRun, SourceEntry):
        db.query(model).filter(model.job_id.in_(job_ids)).delete(synchronize_session=False)
    deleted = (
        db.query(ResearchJob)
        .filter(ResearchJob.id.in_(job_ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


@celery_app.task(name="dossier.services.retention.cleanup_expired")
def cleanup_expired() -> int:
    """Periodic retention sweep driven by RESEARCH_RETENTION_DAYS."""
    db: Session = SessionLocal()
    try:
        deleted_jobs = delete_expired_jobs(db, get_settings().RESEARCH_RETENTION_DAYS)
        if deleted_jobs:
            logger.info(
                "Deleted expired research jobs",
                extra={"step": "retention", "deleted_jobs": deleted_jobs},
            )
        else:
            logger.info(
                "No expired research jobs found for cleanup",
                extra={"step": "retention"},
            )
        return deleted_jobs
    except Exception:
        db.rollback()
        logger.exception(
            "Error during cleanup_expired",
            extra={"step": "retention"},
        )
        raise
    finally:
        db.close()
