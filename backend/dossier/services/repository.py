# backend/dossier/services/repository.py
"""SQLAlchemy-backed job repository used by the Celery worker and the API."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Sequence
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ..core.db import SessionLocal
from ..models.research_job import ResearchJob
from ..models.research_trace_event import ResearchTraceEvent
from ..models.section_run import SectionRun, SectionStatus
from ..models.source_entry import SourceEntry
from .pipeline import JobState, SectionState
from .sections import SECTIONS
from .source_catalog import CatalogEntry, SourceCatalog

logger = logging.getLogger(__name__)

_JOB_FIELDS = frozenset({
    "status",
    "overall_confidence",
    "overall_confidence_score",
    "completed_at",
    "error_message",
    "llm_usage",
    "total_cost_usd",
})


def job_state_from_row(job: ResearchJob) -> JobState:
    sections = {
        run.section_id: SectionState(
            section_id=run.section_id,
            status=run.status,
            confidence=run.confidence,
            confidence_reason=run.confidence_reason,
            sources_used=list(run.sources_used or []),
            content=run.content,
            last_error=run.last_error,
            attempts=run.attempts or 0,
            prompt_source=run.prompt_source,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )
        for run in job.sections
    }
    catalog = SourceCatalog(
        CatalogEntry(
            id=src.source_id,
            citation=src.citation,
            url=src.url,
            type=src.type,
            date=src.date,
            section=src.section_id,
        )
        for src in job.sources
    )
    return JobState(
        id=job.id,
        company_name=job.company_name,
        geography=job.geography,
        focus_areas=list(job.focus_areas or []),
        report_type=job.report_type,
        requested_by=job.requested_by,
        status=job.status,
        created_at=job.created_at,
        completed_at=job.completed_at,
        error_message=job.error_message,
        overall_confidence=job.overall_confidence,
        overall_confidence_score=job.overall_confidence_score,
        llm_usage=job.llm_usage,
        total_cost_usd=float(job.total_cost_usd) if job.total_cost_usd is not None else None,
        sections=sections,
        catalog=catalog,
    )


class SqlJobRepository:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _get_job(db: Session, job_id: UUID) -> ResearchJob:
        job = db.get(ResearchJob, job_id)
        if job is None:
            raise LookupError(f"Research job {job_id} not found")
        return job

    @staticmethod
    def _runs(db: Session, job_id: UUID, section_ids: Sequence[str]) -> List[SectionRun]:
        return (
            db.query(SectionRun)
            .filter(SectionRun.job_id == job_id)
            .filter(SectionRun.section_id.in_(list(section_ids)))
            .all()
        )

    @staticmethod
    def _run(db: Session, job_id: UUID, section_id: str) -> SectionRun:
        run = (
            db.query(SectionRun)
            .filter(SectionRun.job_id == job_id, SectionRun.section_id == section_id)
            .one_or_none()
        )
        if run is None:
            raise LookupError(f"Section {section_id} not found for job {job_id}")
        return run

    def create(self, job: JobState) -> None:
        with self._session() as db:
            row = ResearchJob(
                id=job.id,
                company_name=job.company_name,
                geography=job.geography,
                focus_areas=list(job.focus_areas),
                report_type=job.report_type,
                requested_by=job.requested_by,
                status=job.status,
                created_at=job.created_at,
            )
            db.add(row)
            for section in job.ordered_sections():
                db.add(
                    SectionRun(
                        job_id=job.id,
                        section_id=section.section_id,
                        position=SECTIONS[section.section_id].number,
                        status=section.status,
                        sources_used=[],
                        attempts=0,
                    )
                )

    def load(self, job_id: UUID) -> JobState:
        with self._session() as db:
            return job_state_from_row(self._get_job(db, job_id))

    def mark_running(self, job_id: UUID, section_ids: Sequence[str], started_at: datetime) -> None:
        with self._session() as db:
            for run in self._runs(db, job_id, section_ids):
                run.status = SectionStatus.RUNNING
                run.attempts = (run.attempts or 0) + 1
                run.started_at = started_at
                run.completed_at = None
                run.last_error = None

    def complete_section(
        self,
        job_id: UUID,
        section_id: str,
        *,
        content: Dict[str, Any],
        confidence: str | None,
        confidence_reason: str | None,
        sources_used: List[str],
        new_entries: List[CatalogEntry],
        prompt_source: str | None,
        completed_at: datetime,
    ) -> None:
        """Section payload and its new catalog entries commit together or not at all."""
        with self._session() as db:
            run = self._run(db, job_id, section_id)
            run.status = SectionStatus.COMPLETED
            run.content = content
            run.confidence = confidence
            run.confidence_reason = confidence_reason
            run.sources_used = list(sources_used)
            run.prompt_source = prompt_source
            run.completed_at = completed_at
            run.last_error = None
            for entry in new_entries:
                db.add(
                    SourceEntry(
                        job_id=job_id,
                        source_id=entry.id,
                        position=int(entry.id[1:]),
                        citation=entry.citation,
                        url=entry.url,
                        type=entry.type or "news",
                        date=entry.date,
                        section_id=entry.section or section_id,
                    )
                )

    def fail_section(
        self,
        job_id: UUID,
        section_id: str,
        error: str,
        *,
        prompt_source: str | None,
        completed_at: datetime,
    ) -> None:
        with self._session() as db:
            run = self._run(db, job_id, section_id)
            run.status = SectionStatus.FAILED
            run.last_error = error
            run.prompt_source = prompt_source
            run.completed_at = completed_at

    def reset_sections(self, job_id: UUID, section_ids: Sequence[str]) -> None:
        with self._session() as db:
            for run in self._runs(db, job_id, section_ids):
                run.status = SectionStatus.PENDING
                run.content = None
                run.confidence = None
                run.confidence_reason = None
                run.sources_used = []
                run.last_error = None
                run.started_at = None
                run.completed_at = None

    def update_job(self, job_id: UUID, **fields: Any) -> None:
        unknown = set(fields) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job field(s): {', '.join(sorted(unknown))}")
        with self._session() as db:
            job = self._get_job(db, job_id)
            for name, value in fields.items():
                setattr(job, name, value)

    def list_jobs(self, limit: int = 20, offset: int = 0) -> List[JobState]:
        with self._session() as db:
            rows = (
                db.query(ResearchJob)
                .order_by(ResearchJob.created_at.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [job_state_from_row(row) for row in rows]

    def delete(self, job_id: UUID) -> None:
        with self._session() as db:
            job = self._get_job(db, job_id)
            db.query(ResearchTraceEvent).filter(ResearchTraceEvent.job_id == job_id).delete(
                synchronize_session=False
            )
            db.delete(job)
        logger.info("Deleted research job", extra={"job_id": str(job_id), "step": "delete"})
