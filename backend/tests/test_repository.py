"""
Tests for repository.py

The SQLAlchemy repository, exercised directly and by a full pipeline run.
"""
import asyncio
import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from dossier.models.research_job import JobStatus, ResearchJob
from dossier.models.research_trace_event import ResearchTraceEvent
from dossier.models.section_run import SectionRun
from dossier.models.source_entry import SourceEntry
from dossier.services.pipeline import ResearchPipeline
from dossier.services.prompt_resolver import PromptResolver
from dossier.services.repository import SqlJobRepository
from dossier.services.sections import SECTION_ORDER
from dossier.services.source_catalog import CatalogEntry
from dossier.services.tracing import list_trace_events, trace_job_step

from tests.fixtures.pipeline_fixtures import (
    COMPANY,
    GEOGRAPHY,
    STUB_CALL_COST,
    STUB_USAGE,
    StubGenerator,
)


def _pipeline(repository, stub=None):
    return ResearchPipeline(
        repository,
        stub or StubGenerator(),
        PromptResolver(),
        section_timeout=5.0,
        tracer=trace_job_step,
    )


class TestSqlJobRepository:
    def test_create_and_load(self, db):
        repo = SqlJobRepository()
        pipeline = _pipeline(repo)
        job_id = pipeline.start_job(COMPANY, geography=GEOGRAPHY, focus_areas=["pricing"])

        job = repo.load(job_id)
        assert job.company_name == COMPANY
        assert job.focus_areas == ["pricing"]
        assert job.status == JobStatus.QUEUED
        assert list(job.sections) == list(SECTION_ORDER)
        assert db.query(SectionRun).filter(SectionRun.job_id == job_id).count() == len(SECTION_ORDER)

    def test_load_unknown_job(self, db):
        with pytest.raises(LookupError):
            SqlJobRepository().load(uuid.uuid4())

    def test_complete_section_writes_sources(self, db):
        repo = SqlJobRepository()
        job_id = _pipeline(repo).start_job(COMPANY)
        now = datetime.utcnow()
        repo.mark_running(job_id, ["foundation"], now)
        repo.complete_section(
            job_id,
            "foundation",
            content={"company_basics": {"legal_name": "Acme"}},
            confidence="HIGH",
            confidence_reason="Primary sources",
            sources_used=[],
            new_entries=[
                CatalogEntry(id="S1", citation="10-K", url="https://sec.gov/a", type="filing",
                             date="2025-01-01", section="foundation"),
                CatalogEntry(id="S2", citation="Blog post", section="foundation"),
            ],
            prompt_source="code",
            completed_at=now,
        )

        job = repo.load(job_id)
        foundation = job.sections["foundation"]
        assert foundation.status == "completed"
        assert foundation.attempts == 1
        assert foundation.content == {"company_basics": {"legal_name": "Acme"}}
        assert job.catalog.ids() == ["S1", "S2"]
        assert job.catalog.get("S2").type == "news"
        assert [row.position for row in db.query(SourceEntry).order_by(SourceEntry.position)] == [1, 2]

    def test_fail_and_reset(self, db):
        repo = SqlJobRepository()
        job_id = _pipeline(repo).start_job(COMPANY)
        now = datetime.utcnow()
        repo.mark_running(job_id, ["foundation"], now)
        repo.fail_section(job_id, "foundation", "boom", prompt_source="code", completed_at=now)
        assert repo.load(job_id).sections["foundation"].last_error == "boom"

        repo.reset_sections(job_id, ["foundation"])
        foundation = repo.load(job_id).sections["foundation"]
        assert foundation.status == "pending"
        assert foundation.last_error is None
        assert foundation.attempts == 1

    def test_update_job_rejects_unknown_fields(self, db):
        repo = SqlJobRepository()
        job_id = _pipeline(repo).start_job(COMPANY)
        with pytest.raises(ValueError, match="company_name"):
            repo.update_job(job_id, company_name="Other")

    def test_list_jobs_paginates(self, db):
        repo = SqlJobRepository()
        pipeline = _pipeline(repo)
        first = pipeline.start_job("First Co")
        second = pipeline.start_job("Second Co")
        repo_jobs = repo.list_jobs()
        ids = [j.id for j in repo_jobs]
        assert set(ids) == {first, second}
        assert repo.list_jobs(limit=1, offset=1)[0].id in {first, second}

    def test_delete_removes_children(self, db):
        repo = SqlJobRepository()
        job_id = _pipeline(repo).start_job(COMPANY)
        repo.delete(job_id)

        assert db.get(ResearchJob, job_id) is None
        assert db.query(SectionRun).count() == 0
        assert db.query(ResearchTraceEvent).count() == 0
        with pytest.raises(LookupError):
            repo.delete(job_id)


class TestPipelineOverDatabase:
    """A full run persisted through SQLAlchemy."""

    def test_full_run(self, db):
        repo = SqlJobRepository()
        pipeline = _pipeline(repo, StubGenerator({"recent_news": "not json"}))
        job_id = pipeline.start_job(COMPANY, geography=GEOGRAPHY, report_type="INDUSTRIALS")
        view = asyncio.run(pipeline.run(job_id))

        assert view.status == JobStatus.COMPLETED_WITH_ERRORS.value
        job = repo.load(job_id)
        assert job.sections["recent_news"].status == "failed"
        assert job.sections["appendix"].status == "completed"
        assert job.catalog.ids() == ["S1", "S2", "S3"]
        assert job.overall_confidence is not None
        assert isinstance(job.total_cost_usd, float)
        assert job.total_cost_usd == pytest.approx(len(SECTION_ORDER) * STUB_CALL_COST)
        assert job.llm_usage["totals"]["input"] == len(SECTION_ORDER) * STUB_USAGE[0]

        steps = [e.step for e in list_trace_events(db, job_id)]
        assert steps[0] == "job:created"
        assert "section:recent_news:failed" in steps
        assert steps[-1] == "job:finished"

    def test_trace_failures_are_swallowed(self):
        session = MagicMock()
        session.commit.side_effect = RuntimeError("database is locked")

        trace_job_step(uuid.uuid4(), phase="INIT", label="event", session_factory=lambda: session)

        session.rollback.assert_called_once()
        session.close.assert_called_once()
