from urllib.parse import quote
from uuid import UUID
import logging
import re
import unicodedata

from fastapi import APIRouter, Depends, HTTPException, Response, Security
from fastapi.security.api_key import APIKeyHeader
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.db import SessionLocal, get_db
from ..models.research_job import JobStatus
from ..schemas.research import (
    JobStatusOut,
    JobSummaryOut,
    RerunRequest,
    ResearchJobCreated,
    ResearchJobDetailOut,
    ResearchRequest,
    ResearchTraceEventOut,
    SectionDetailOut,
    SourceOut,
)
from ..services.errors import InvalidJobStateError
from ..services.formatters.docx import render_docx
from ..services.formatters.markdown import format_report
from ..services.formatters.pdf import render_pdf
from ..services.llm import generate
from ..services.orchestrator import enqueue_research_job
from ..services.pipeline import ResearchPipeline, build_status_view
from ..services.prompt_resolver import PromptResolver, published_override_lookup
from ..services.repository import SqlJobRepository
from ..services.tracing import list_trace_events, trace_job_step

router = APIRouter(tags=["research"])

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "pdf": ("application/pdf", "pdf"),
    "docx": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "docx",
    ),
    "markdown": ("text/markdown; charset=utf-8", "md"),
}


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_repository() -> SqlJobRepository:
    return SqlJobRepository(SessionLocal)


def get_pipeline(
    db: Session = Depends(get_db),
    repository: SqlJobRepository = Depends(get_repository),
) -> ResearchPipeline:
    return ResearchPipeline(
        repository,
        generate,
        PromptResolver(published_override_lookup(db)),
        section_timeout=settings.SECTION_TIMEOUT_SECONDS,
        default_geography=settings.DEFAULT_GEOGRAPHY,
        tracer=trace_job_step,
    )


def content_disposition(company_name: str, extension: str) -> str:
    """
    Attachment header for an exported brief.

    Headers are latin-1 on the wire, so `filename` carries an ASCII slug and
    `filename*` (RFC 5987) the full UTF-8 company name.
    """
    ascii_name = unicodedata.normalize("NFKD", company_name).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-") or "report"
    utf8_name = f"{'-'.join(company_name.split())}-brief.{extension}"
    return (
        f'attachment; filename="{slug}-brief.{extension}"; '
        f"filename*=UTF-8''{quote(utf8_name, safe='')}"
    )


def _status_or_404(pipeline: ResearchPipeline, job_id: UUID) -> JobStatusOut:
    try:
        view = pipeline.status(job_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusOut.model_validate(view)


@router.post("/research", response_model=ResearchJobCreated, status_code=202)
def create_research_job(
    payload: ResearchRequest,
    pipeline: ResearchPipeline = Depends(get_pipeline),
    _: None = Depends(verify_api_key),
):
    try:
        job_id = pipeline.start_job(
            payload.company_name,
            geography=payload.geography,
            report_type=payload.report_type,
            focus_areas=payload.focus_areas,
            requested_by=payload.requested_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    enqueue_research_job(job_id)
    logger.info(
        "Research job enqueued",
        extra={"job_id": str(job_id), "step": "job_enqueued"},
    )
    return ResearchJobCreated(job_id=job_id, status=JobStatus.QUEUED.value)


@router.get("/research", response_model=list[JobSummaryOut])
def list_research_jobs(
    limit: int = 20,
    offset: int = 0,
    repository: SqlJobRepository = Depends(get_repository),
    _: None = Depends(verify_api_key),
):
    # Hard cap to avoid unbounded scans
    safe_limit = max(1, min(limit, 100))
    jobs = repository.list_jobs(limit=safe_limit, offset=max(0, offset))
    summaries = []
    for job in jobs:
        view = build_status_view(job)
        summaries.append(
            JobSummaryOut(
                job_id=job.id,
                company_name=job.company_name,
                geography=job.geography,
                report_type=job.report_type,
                status=view.status,
                progress=view.progress,
                overall_confidence=job.overall_confidence,
                total_cost_usd=job.total_cost_usd,
                created_at=job.created_at,
                completed_at=job.completed_at,
            )
        )
    return summaries


@router.get("/research/jobs/{job_id}", response_model=JobStatusOut)
def get_research_job_status(
    job_id: UUID,
    pipeline: ResearchPipeline = Depends(get_pipeline),
    _: None = Depends(verify_api_key),
):
    return _status_or_404(pipeline, job_id)


@router.get("/research/{job_id}", response_model=ResearchJobDetailOut)
def get_research_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    repository: SqlJobRepository = Depends(get_repository),
    _: None = Depends(verify_api_key),
):
    try:
        job = repository.load(job_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")

    view = build_status_view(job)
    details = []
    for section_view in view.sections:
        state = job.sections[section_view.section_id]
        detail = SectionDetailOut.model_validate(section_view)
        detail.confidence_reason = state.confidence_reason
        detail.content = state.content
        details.append(detail)

    return ResearchJobDetailOut(
        job=JobStatusOut.model_validate(view),
        focus_areas=job.focus_areas,
        requested_by=job.requested_by,
        llm_usage=job.llm_usage,
        sections=details,
        sources=[SourceOut.model_validate(entry) for entry in job.catalog],
        trace=[ResearchTraceEventOut.model_validate(e) for e in list_trace_events(db, job_id)],
    )


@router.post("/research/{job_id}/cancel", response_model=JobStatusOut)
def cancel_research_job(
    job_id: UUID,
    pipeline: ResearchPipeline = Depends(get_pipeline),
    _: None = Depends(verify_api_key),
):
    try:
        pipeline.cancel(job_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _status_or_404(pipeline, job_id)


@router.post("/research/{job_id}/rerun", response_model=JobStatusOut)
def rerun_research_sections(
    job_id: UUID,
    payload: RerunRequest,
    pipeline: ResearchPipeline = Depends(get_pipeline),
    _: None = Depends(verify_api_key),
):
    try:
        pipeline.rerun(job_id, payload.sections)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")
    except InvalidJobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    enqueue_research_job(job_id)
    return _status_or_404(pipeline, job_id)


@router.get("/research/{job_id}/export/{fmt}")
def export_research_report(
    job_id: UUID,
    fmt: str,
    repository: SqlJobRepository = Depends(get_repository),
    _: None = Depends(verify_api_key),
):
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported format {fmt!r}; expected one of {', '.join(EXPORT_FORMATS)}",
        )
    try:
        job = repository.load(job_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")

    media_type, extension = EXPORT_FORMATS[fmt]
    try:
        if fmt == "pdf":
            body = render_pdf(job)
        elif fmt == "docx":
            body = render_docx(job)
        else:
            body = format_report(job).encode("utf-8")
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": content_disposition(job.company_name, extension)},
    )


@router.delete("/research/{job_id}", status_code=204)
def delete_research_job(
    job_id: UUID,
    repository: SqlJobRepository = Depends(get_repository),
    _: None = Depends(verify_api_key),
):
    try:
        job = repository.load(job_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Job not found")

    if job.status in (JobStatus.QUEUED, JobStatus.RUNNING):
        raise HTTPException(status_code=409, detail="Cancel the job before deleting it")

    repository.delete(job_id)
    return Response(status_code=204)
