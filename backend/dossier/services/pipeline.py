# backend/dossier/services/pipeline.py
"""
Section pipeline: runs the eleven report sections of a research job in
dependency order, in concurrent waves, with per-section failure isolation.

advance() dispatches every eligible section as one wave and waits for the
wave to finish; run() repeats until the job reaches a terminal status. All
state lives in the repository, so a job can be resumed by any worker.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence
from uuid import UUID

from ..models.research_job import JobStatus, TERMINAL_JOB_STATUSES
from ..models.section_run import SectionStatus
from .confidence import aggregate_confidence, collect_blocked_sections, compute_progress
from .errors import (
    CollaboratorError,
    InvalidJobStateError,
    PipelineError,
    SectionValidationError,
)
from .llm_costs import LLMCostTracker
from .prompt_resolver import PromptResolver
from .prompts import NOT_PROVIDED, SectionInputs
from .sections import FOUNDATION, SECTION_ORDER, SECTIONS, normalize_report_type
from .source_catalog import (
    CatalogEntry,
    SourceCatalog,
    dedupe_ids,
    remap_citations,
    section_sources,
)
from .validation import parse_model_output, validate

logger = logging.getLogger(__name__)

BLOCKED = "blocked"     # reported status only; blocked sections stay pending

# generate(prompt, *, tracker=None, section=None) -> raw model text
Generate = Callable[..., str]
Tracer = Callable[..., None]


@dataclass
class SectionState:
    section_id: str
    status: str = SectionStatus.PENDING
    confidence: str | None = None
    confidence_reason: str | None = None
    sources_used: List[str] = field(default_factory=list)
    content: Dict[str, Any] | None = None
    last_error: str | None = None
    attempts: int = 0
    prompt_source: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass
class JobState:
    id: UUID
    company_name: str
    geography: str
    focus_areas: List[str] = field(default_factory=list)
    report_type: str | None = None
    requested_by: str | None = None
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: datetime | None = None
    error_message: str | None = None
    overall_confidence: str | None = None
    overall_confidence_score: float | None = None
    llm_usage: Dict[str, Any] | None = None
    total_cost_usd: float | None = None
    sections: Dict[str, SectionState] = field(default_factory=dict)
    catalog: SourceCatalog = field(default_factory=SourceCatalog)

    def statuses(self) -> Dict[str, str]:
        return {sid: s.status for sid, s in self.sections.items()}

    def ordered_sections(self) -> List[SectionState]:
        return [self.sections[sid] for sid in SECTION_ORDER if sid in self.sections]


class JobRepository(Protocol):
    def create(self, job: JobState) -> None: ...

    def load(self, job_id: UUID) -> JobState: ...

    def mark_running(self, job_id: UUID, section_ids: Sequence[str], started_at: datetime) -> None: ...

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
    ) -> None: ...

    def fail_section(
        self,
        job_id: UUID,
        section_id: str,
        error: str,
        *,
        prompt_source: str | None,
        completed_at: datetime,
    ) -> None: ...

    def reset_sections(self, job_id: UUID, section_ids: Sequence[str]) -> None: ...

    def update_job(self, job_id: UUID, **fields: Any) -> None: ...

    def list_jobs(self, limit: int = 20, offset: int = 0) -> List[JobState]: ...


# ---------------------------------------------------------------------------
# Graph helpers
# ---------------------------------------------------------------------------

def eligible_sections(statuses: Dict[str, str]) -> List[str]:
    """
    Pending sections whose hard dependencies completed and whose optional
    dependencies are settled (completed, failed or blocked).
    """
    blocked = collect_blocked_sections(statuses)

    def settled(dep: str) -> bool:
        return statuses.get(dep) in (SectionStatus.COMPLETED, SectionStatus.FAILED) or dep in blocked

    ready: List[str] = []
    for section_id in SECTION_ORDER:
        if statuses.get(section_id) != SectionStatus.PENDING or section_id in blocked:
            continue
        section = SECTIONS[section_id]
        if all(statuses.get(dep) == SectionStatus.COMPLETED for dep in section.requires) and all(
            settled(dep) for dep in section.optional
        ):
            ready.append(section_id)
    return ready


def compute_rerun_sections(statuses: Dict[str, str], requested: Iterable[str]) -> List[str]:
    """Requested sections plus any failed hard dependencies, transitively."""
    selected = set(requested)
    stack = list(selected)
    while stack:
        section_id = stack.pop()
        for dep in SECTIONS[section_id].requires:
            if dep not in selected and statuses.get(dep) == SectionStatus.FAILED:
                selected.add(dep)
                stack.append(dep)
    return [sid for sid in SECTION_ORDER if sid in selected]


def final_job_status(statuses: Dict[str, str]) -> JobStatus:
    if statuses.get(FOUNDATION) == SectionStatus.FAILED:
        return JobStatus.FAILED
    completed = [s for s in statuses.values() if s == SectionStatus.COMPLETED]
    if not completed:
        return JobStatus.FAILED
    if len(completed) == len(statuses):
        return JobStatus.COMPLETED
    return JobStatus.COMPLETED_WITH_ERRORS


# ---------------------------------------------------------------------------
# Status view
# ---------------------------------------------------------------------------

@dataclass
class SectionStatusView:
    section_id: str
    number: int
    name: str
    status: str
    confidence: str | None
    attempts: int
    last_error: str | None
    prompt_source: str | None
    sources_used: List[str]
    started_at: datetime | None
    completed_at: datetime | None


@dataclass
class JobStatusView:
    job_id: UUID
    company_name: str
    geography: str
    report_type: str | None
    status: str
    progress: float
    current_stage: str | None
    running_sections: List[str]
    blocked_sections: List[str]
    overall_confidence: str | None
    overall_confidence_score: float | None
    total_cost_usd: float | None
    llm_tokens: Dict[str, int] | None
    error_message: str | None
    created_at: datetime | None
    completed_at: datetime | None
    sections: List[SectionStatusView]


def build_status_view(job: JobState) -> JobStatusView:
    statuses = job.statuses()
    blocked = collect_blocked_sections(statuses)
    ordered = job.ordered_sections()
    running = [s.section_id for s in ordered if s.status == SectionStatus.RUNNING]

    views = [
        SectionStatusView(
            section_id=s.section_id,
            number=SECTIONS[s.section_id].number,
            name=SECTIONS[s.section_id].name,
            status=BLOCKED if s.section_id in blocked else s.status,
            confidence=s.confidence,
            attempts=s.attempts,
            last_error=s.last_error,
            prompt_source=s.prompt_source,
            sources_used=list(s.sources_used),
            started_at=s.started_at,
            completed_at=s.completed_at,
        )
        for s in ordered
    ]
    return JobStatusView(
        job_id=job.id,
        company_name=job.company_name,
        geography=job.geography,
        report_type=job.report_type,
        status=job.status.value,
        progress=compute_progress(ordered),
        current_stage=running[0] if running else None,
        running_sections=running,
        blocked_sections=[sid for sid in SECTION_ORDER if sid in blocked],
        overall_confidence=job.overall_confidence,
        overall_confidence_score=job.overall_confidence_score,
        total_cost_usd=job.total_cost_usd,
        llm_tokens=(job.llm_usage or {}).get("totals"),
        error_message=job.error_message,
        created_at=job.created_at,
        completed_at=job.completed_at,
        sections=views,
    )


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ResearchPipeline:
    def __init__(
        self,
        repository: JobRepository,
        generate: Generate,
        resolver: PromptResolver,
        *,
        section_timeout: float = 600.0,
        default_geography: str = "Global",
        tracer: Tracer | None = None,
    ) -> None:
        self._repo = repository
        self._generate = generate
        self._resolver = resolver
        self._section_timeout = section_timeout
        self._default_geography = default_geography
        self._tracer = tracer

    # -- job lifecycle -------------------------------------------------------

    def start_job(
        self,
        company_name: str,
        geography: str | None = None,
        report_type: str | None = None,
        focus_areas: Optional[Iterable[str]] = None,
        requested_by: str | None = None,
    ) -> UUID:
        name = " ".join((company_name or "").split())
        if not name:
            raise ValueError("company_name must not be empty")

        job = JobState(
            id=uuid.uuid4(),
            company_name=name,
            geography=(geography or "").strip() or self._default_geography,
            focus_areas=[f.strip() for f in (focus_areas or []) if f and f.strip()],
            report_type=normalize_report_type(report_type),
            requested_by=requested_by,
            status=JobStatus.QUEUED,
            created_at=datetime.utcnow(),
            sections={sid: SectionState(section_id=sid) for sid in SECTION_ORDER},
        )
        self._repo.create(job)

        logger.info(
            "Created research job",
            extra={"job_id": str(job.id), "report_type": job.report_type, "step": "create"},
        )
        self._trace(job.id, phase="INIT", step="job:created", label=f"Research queued for {name}")
        return job.id

    async def run(self, job_id: UUID) -> JobStatusView:
        while await self.advance(job_id):
            pass
        return self.status(job_id)

    def recover(self, job_id: UUID) -> List[str]:
        """
        Return sections left `running` by a worker that died back to pending.

        Only call when no other worker is processing the job.
        """
        job = self._repo.load(job_id)
        if job.status in TERMINAL_JOB_STATUSES:
            return []
        stale = [s.section_id for s in job.ordered_sections() if s.status == SectionStatus.RUNNING]
        if stale:
            self._repo.reset_sections(job_id, stale)
            logger.warning(
                "Recovered stale running sections",
                extra={"job_id": str(job_id), "step": "recover", "section": ",".join(stale)},
            )
        return stale

    async def advance(self, job_id: UUID) -> bool:
        """
        Dispatch one wave of eligible sections and wait for it.

        Returns True if anything was dispatched. Finalizes the job when nothing
        is eligible and nothing is in flight.
        """
        job = self._repo.load(job_id)
        if job.status in TERMINAL_JOB_STATUSES:
            return False

        statuses = job.statuses()
        if statuses.get(FOUNDATION) == SectionStatus.FAILED:
            self._finalize(job)
            return False

        wave = eligible_sections(statuses)
        if not wave:
            if SectionStatus.RUNNING not in statuses.values():
                self._finalize(job)
            return False

        now = datetime.utcnow()
        if job.status != JobStatus.RUNNING:
            self._repo.update_job(job_id, status=JobStatus.RUNNING)
        self._repo.mark_running(job_id, wave, now)

        logger.info(
            "Dispatching section wave",
            extra={"job_id": str(job_id), "step": "wave", "section": ",".join(wave)},
        )
        self._trace(
            job_id,
            phase="SECTIONS",
            step="wave:start",
            label=f"Running {len(wave)} section(s)",
            meta={"sections": wave},
        )

        lock = asyncio.Lock()
        tracker = LLMCostTracker(str(job_id), calls=(job.llm_usage or {}).get("calls") or [])
        await asyncio.gather(*(self._run_section(job, sid, lock, tracker) for sid in wave))
        if tracker.has_new_records:
            usage = tracker.summarize()
            await asyncio.to_thread(
                self._repo.update_job,
                job_id,
                llm_usage=usage,
                total_cost_usd=usage["total_cost_usd"],
            )

        job = self._repo.load(job_id)
        if (
            job.status not in TERMINAL_JOB_STATUSES
            and job.statuses().get(FOUNDATION) == SectionStatus.FAILED
        ):
            self._finalize(job)
        return True

    def cancel(self, job_id: UUID) -> None:
        job = self._repo.load(job_id)
        if job.status in TERMINAL_JOB_STATUSES:
            raise InvalidJobStateError(f"Job {job_id} is already {job.status.value}")
        self._repo.update_job(
            job_id,
            status=JobStatus.CANCELLED,
            completed_at=datetime.utcnow(),
        )
        logger.info("Cancelled research job", extra={"job_id": str(job_id), "step": "cancel"})
        self._trace(job_id, phase="DONE", step="job:cancelled", label="Research cancelled")

    def rerun(self, job_id: UUID, section_ids: Iterable[str]) -> List[str]:
        requested = list(dict.fromkeys(section_ids or []))
        if not requested:
            raise ValueError("No sections requested for re-run")
        unknown = [sid for sid in requested if sid not in SECTIONS]
        if unknown:
            raise ValueError(f"Unknown section(s): {', '.join(unknown)}")

        job = self._repo.load(job_id)
        if job.status == JobStatus.CANCELLED:
            raise InvalidJobStateError(f"Job {job_id} was cancelled")
        # a queued or running job already has a worker assigned
        if job.status in (JobStatus.QUEUED, JobStatus.RUNNING):
            raise InvalidJobStateError(f"Job {job_id} is still {job.status.value}")

        statuses = job.statuses()
        in_flight = [sid for sid in SECTION_ORDER if statuses.get(sid) == SectionStatus.RUNNING]
        if in_flight:
            raise InvalidJobStateError(f"Section(s) still running: {', '.join(in_flight)}")
        to_reset = compute_rerun_sections(statuses, requested)

        self._repo.reset_sections(job_id, to_reset)
        self._repo.update_job(
            job_id,
            status=JobStatus.RUNNING,
            completed_at=None,
            error_message=None,
            overall_confidence=None,
            overall_confidence_score=None,
        )
        logger.info(
            "Re-running sections",
            extra={"job_id": str(job_id), "step": "rerun", "section": ",".join(to_reset)},
        )
        self._trace(
            job_id,
            phase="SECTIONS",
            step="job:rerun",
            label=f"Re-running {len(to_reset)} section(s)",
            meta={"sections": to_reset},
        )
        return to_reset

    def status(self, job_id: UUID) -> JobStatusView:
        return build_status_view(self._repo.load(job_id))

    # -- internals -----------------------------------------------------------

    def _build_inputs(self, job: JobState, section_id: str) -> SectionInputs:
        inputs: SectionInputs = {
            "company_name": job.company_name,
            "geography": job.geography,
            "focus_areas": list(job.focus_areas),
            "report_type": job.report_type,
        }
        wanted = (FOUNDATION,) + SECTIONS[section_id].inputs
        for dep in wanted:
            state = job.sections.get(dep)
            if dep == section_id:
                continue
            if state is not None and state.status == SectionStatus.COMPLETED and state.content is not None:
                inputs[dep] = copy.deepcopy(state.content)  # type: ignore[literal-required]
            else:
                inputs[dep] = NOT_PROVIDED  # type: ignore[literal-required]
        return inputs

    async def _call_model(self, prompt: str, section_id: str, tracker: LLMCostTracker) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._generate, prompt, tracker=tracker, section=section_id),
                timeout=self._section_timeout,
            )
        except asyncio.TimeoutError:
            raise CollaboratorError(
                f"Section timed out after {self._section_timeout:g}s"
            ) from None

    async def _run_section(
        self,
        job: JobState,
        section_id: str,
        lock: asyncio.Lock,
        tracker: LLMCostTracker,
    ) -> None:
        log_extra = {"job_id": str(job.id), "section": section_id}
        prompt_source: str | None = None
        data: Dict[str, Any] | None = None
        error: str | None = None

        self._trace(job.id, phase="SECTIONS", step=f"section:{section_id}:start",
                    label=f"{SECTIONS[section_id].name} started")
        try:
            resolved = self._resolver.resolve(
                section_id, job.report_type, self._build_inputs(job, section_id)
            )
            prompt_source = resolved.source
            text = await self._call_model(resolved.content, section_id, tracker)
            result = validate(section_id, parse_model_output(text))
            if not result.valid:
                raise SectionValidationError(section_id, result.errors)
            data = result.data
        except PipelineError as e:
            error = str(e)
            logger.warning("Section failed: %s", e, extra=log_extra)
        except Exception as e:
            error = f"Unexpected error: {e}"
            logger.exception("Section failed unexpectedly", extra=log_extra)

        async with lock:
            current = await asyncio.to_thread(self._repo.load, job.id)
            if current.status == JobStatus.CANCELLED:
                await asyncio.to_thread(self._repo.reset_sections, job.id, [section_id])
                logger.info("Discarded section result after cancellation", extra=log_extra)
                return

            now = datetime.utcnow()
            if data is not None:
                try:
                    await asyncio.to_thread(
                        self._persist_completion, job, section_id, data, prompt_source, now
                    )
                except Exception as e:
                    error = f"Failed to persist section: {e}"
                    logger.exception("Persisting section failed", extra=log_extra)
                else:
                    logger.info("Section completed", extra=log_extra)
                    self._trace(job.id, phase="SECTIONS", step=f"section:{section_id}:done",
                                label=f"{SECTIONS[section_id].name} completed")
                    return

            await asyncio.to_thread(
                self._repo.fail_section,
                job.id,
                section_id,
                error or "Unknown error",
                prompt_source=prompt_source,
                completed_at=now,
            )
            self._trace(job.id, phase="SECTIONS", step=f"section:{section_id}:failed",
                        label=f"{SECTIONS[section_id].name} failed", detail=error)

    def _persist_completion(
        self,
        job: JobState,
        section_id: str,
        data: Dict[str, Any],
        prompt_source: str | None,
        completed_at: datetime,
    ) -> None:
        working = job.catalog.copy()
        added, remap = working.merge(section_sources(data), section_id)
        content = remap_citations(data, remap)

        if section_id == "appendix":
            cited = [ref.get("id") for ref in content.get("source_references") or []]
        else:
            cited = content.get("sources_used") or []
        confidence = content.get("confidence") or {}

        self._repo.complete_section(
            job.id,
            section_id,
            content=content,
            confidence=confidence.get("level"),
            confidence_reason=confidence.get("reason"),
            sources_used=dedupe_ids(str(c) for c in cited if c),
            new_entries=added,
            prompt_source=prompt_source,
            completed_at=completed_at,
        )
        job.catalog = working

    def _finalize(self, job: JobState) -> None:
        statuses = job.statuses()
        final = final_job_status(statuses)

        score = label = None
        if final in (JobStatus.COMPLETED, JobStatus.COMPLETED_WITH_ERRORS):
            score, label = aggregate_confidence(job.ordered_sections())

        error_message = None
        if final == JobStatus.FAILED:
            foundation = job.sections.get(FOUNDATION)
            if foundation is not None and foundation.status == SectionStatus.FAILED:
                error_message = f"Foundation failed: {foundation.last_error}"
            else:
                error_message = "No sections completed"

        self._repo.update_job(
            job.id,
            status=final,
            overall_confidence=label,
            overall_confidence_score=score,
            completed_at=datetime.utcnow(),
            error_message=error_message,
        )
        logger.info(
            "Research job finished with status %s",
            final.value,
            extra={"job_id": str(job.id), "step": "finalize"},
        )
        self._trace(
            job.id,
            phase="DONE",
            step="job:finished",
            label=f"Research {final.value}",
            meta={"overall_confidence": label, "score": score},
        )

    def _trace(self, job_id: UUID, **kwargs: Any) -> None:
        if self._tracer is not None:
            self._tracer(job_id, **kwargs)
