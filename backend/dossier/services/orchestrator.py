from __future__ import annotations

from uuid import UUID
import asyncio
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import SessionLocal
from ..models.research_job import ResearchJob, JobStatus, TERMINAL_JOB_STATUSES
from .llm import generate
from .pipeline import ResearchPipeline
from .prompt_resolver import PromptResolver, published_override_lookup
from .repository import SqlJobRepository
from .tracing import trace_job_step

logger = logging.getLogger(__name__)


def build_pipeline(db: Session) -> ResearchPipeline:
    """Pipeline wired to the database, the published prompt overrides and the LLM."""
    settings = get_settings()
    return ResearchPipeline(
        SqlJobRepository(),
        generate,
        PromptResolver(published_override_lookup(db)),
        section_timeout=settings.SECTION_TIMEOUT_SECONDS,
        default_geography=settings.DEFAULT_GEOGRAPHY,
        tracer=trace_job_step,
    )


@celery_app.task(name="dossier.services.orchestrator.run_research_job", bind=True, queue="research")
def run_research_job(self, job_id: str):
    db: Session = SessionLocal()
    try:
        pipeline = build_pipeline(db)
        # Tasks are acked late; a redelivered job may carry sections from a dead worker
        pipeline.recover(UUID(job_id))
        view = asyncio.run(pipeline.run(UUID(job_id)))

        logger.info(
            "Research job run finished",
            extra={"job_id": job_id, "step": view.status},
        )
        return view.status
    except Exception as e:
        db.rollback()
        job = db.query(ResearchJob).filter(ResearchJob.id == UUID(job_id)).first()
        if job and job.status not in TERMINAL_JOB_STATUSES:
            job.status = JobStatus.FAILED
            job.error_message = str(e)[:500]
            job.completed_at = datetime.utcnow()
            db.commit()
        logger.exception(
            "Research job failed",
            extra={"job_id": job_id, "step": "failed"},
        )
        raise
    finally:
        db.close()


def enqueue_research_job(job_id: UUID) -> None:
    celery_app.send_task(
        "dossier.services.orchestrator.run_research_job",
        args=[str(job_id)],
        queue="research",
    )
