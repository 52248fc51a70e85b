# backend/dossier/services/tracing.py
from __future__ import annotations

from typing import Any, Callable, List
from uuid import UUID
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.db import SessionLocal
from ..models.research_trace_event import ResearchTraceEvent

logger = logging.getLogger(__name__)


def trace_job_step(
    job_id: UUID,
    *,
    phase: str,
    step: str | None = None,
    label: str,
    detail: str | None = None,
    meta: dict[str, Any] | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """
    Best-effort trace writer for the job timeline.
    Failure must never break the research job.
    """
    db = session_factory()
    try:
        evt = ResearchTraceEvent(
            job_id=job_id,
            phase=phase,
            step=step,
            label=label,
            detail=detail,
            meta=meta or {},
            created_at=datetime.utcnow(),
        )
        db.add(evt)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to write research trace event", extra={"job_id": str(job_id)})
    finally:
        db.close()


def list_trace_events(db: Session, job_id: UUID) -> List[ResearchTraceEvent]:
    return (
        db.query(ResearchTraceEvent)
        .filter(ResearchTraceEvent.job_id == job_id)
        .order_by(ResearchTraceEvent.created_at.asc(), ResearchTraceEvent.id.asc())
        .all()
    )
