"""
Tests for the REST API (research jobs and prompt administration).
"""
import asyncio
from urllib.parse import quote
import uuid

import pytest

from dossier.api import routes_research
from dossier.services.pipeline import ResearchPipeline
from dossier.services.prompt_resolver import PromptResolver
from dossier.services.repository import SqlJobRepository
from dossier.services.sections import SECTION_ORDER

from tests.fixtures.pipeline_fixtures import COMPANY, GEOGRAPHY, StubGenerator

API = "/api"


def _create(client, **payload):
    body = {"company_name": COMPANY, "geography": GEOGRAPHY}
    body.update(payload)
    return client.post(f"{API}/research", json=body)


def _run_job(job_id, stub=None):
    pipeline = ResearchPipeline(SqlJobRepository(), stub or StubGenerator(), PromptResolver())
    return asyncio.run(pipeline.run(uuid.UUID(job_id)))


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestCreateResearchJob:
    def test_create_enqueues_job(self, client):
        resp = _create(client, report_type="fs", focus_areas=["pricing"])
        assert resp.status_code == 202
        data = resp.json()
        assert data["status"] == "queued"
        assert client.sent_tasks == [
            {
                "name": "dossier.services.orchestrator.run_research_job",
                "args": [data["job_id"]],
                "options": {"queue": "research"},
            }
        ]

    def test_camel_case_fields_are_accepted(self, client):
        resp = client.post(f"{API}/research", json={"companyName": COMPANY, "reportType": "PE"})
        assert resp.status_code == 202
        status = client.get(f"{API}/research/jobs/{resp.json()['job_id']}").json()
        assert status["report_type"] == "PE"
        assert status["geography"] == "Global"

    @pytest.mark.parametrize("payload", [
        {"company_name": "   "},
        {"company_name": "x" * 201},
        {"company_name": COMPANY, "focus_areas": [f"area {i}" for i in range(11)]},
    ])
    def test_invalid_payload(self, client, payload):
        assert client.post(f"{API}/research", json=payload).status_code == 422

    def test_unknown_report_type(self, client):
        resp = _create(client, report_type="RETAIL")
        assert resp.status_code == 400
        assert client.sent_tasks == []


class TestJobStatus:
    def test_initial_status(self, client):
        job_id = _create(client).json()["job_id"]
        data = client.get(f"{API}/research/jobs/{job_id}").json()
        assert data["status"] == "queued"
        assert data["progress"] == 0.0
        assert [s["section_id"] for s in data["sections"]] == list(SECTION_ORDER)

    def test_unknown_job(self, client):
        assert client.get(f"{API}/research/jobs/{uuid.uuid4()}").status_code == 404

    def test_list_jobs(self, client):
        _create(client)
        _create(client, company_name="Other Co")
        data = client.get(f"{API}/research", params={"limit": 500}).json()
        assert {j["company_name"] for j in data} == {COMPANY, "Other Co"}

    def test_detail_after_run(self, client):
        job_id = _create(client).json()["job_id"]
        _run_job(job_id, StubGenerator({"recent_news": "not json"}))

        data = client.get(f"{API}/research/{job_id}").json()
        assert data["job"]["status"] == "completed_with_errors"
        assert [s["id"] for s in data["sources"]] == ["S1", "S2", "S3"]
        news = next(s for s in data["sections"] if s["section_id"] == "recent_news")
        assert news["status"] == "failed"
        assert news["content"] is None
        trends = next(s for s in data["sections"] if s["section_id"] == "trends")
        assert trends["content"]["aggregate_summary"]
        assert trends["confidence_reason"]
        assert data["trace"][0]["step"] == "job:created"
        assert data["job"]["total_cost_usd"] > 0
        assert data["job"]["llm_tokens"]["input"] > 0
        assert len(data["llm_usage"]["calls"]) == len(SECTION_ORDER)


class TestCancelAndRerun:
    def test_cancel(self, client):
        job_id = _create(client).json()["job_id"]
        resp = client.post(f"{API}/research/{job_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"
        assert client.post(f"{API}/research/{job_id}/cancel").status_code == 409

    def test_rerun_failed_section(self, client):
        job_id = _create(client).json()["job_id"]
        _run_job(job_id, StubGenerator({"recent_news": "not json"}))

        resp = client.post(f"{API}/research/{job_id}/rerun", json={"sections": ["recent_news"]})
        assert resp.status_code == 200
        assert resp.json()["status"] == "running"
        news = next(s for s in resp.json()["sections"] if s["section_id"] == "recent_news")
        assert news["status"] == "pending"
        assert len(client.sent_tasks) == 2

    def test_rerun_unknown_section(self, client):
        job_id = _create(client).json()["job_id"]
        resp = client.post(f"{API}/research/{job_id}/rerun", json={"sections": ["nope"]})
        assert resp.status_code == 400

    def test_rerun_requires_sections(self, client):
        job_id = _create(client).json()["job_id"]
        assert client.post(f"{API}/research/{job_id}/rerun", json={"sections": []}).status_code == 422

    def test_rerun_queued_job_is_refused(self, client):
        job_id = _create(client).json()["job_id"]
        resp = client.post(f"{API}/research/{job_id}/rerun", json={"sections": ["foundation"]})
        assert resp.status_code == 409
        assert "still queued" in resp.json()["detail"]
        assert len(client.sent_tasks) == 1

    def test_second_rerun_before_worker_picks_up_is_refused(self, client):
        job_id = _create(client).json()["job_id"]
        _run_job(job_id, StubGenerator({"recent_news": "not json"}))

        body = {"sections": ["recent_news"]}
        assert client.post(f"{API}/research/{job_id}/rerun", json=body).status_code == 200
        assert client.post(f"{API}/research/{job_id}/rerun", json=body).status_code == 409
        assert len(client.sent_tasks) == 2

    def test_rerun_cancelled_job(self, client):
        job_id = _create(client).json()["job_id"]
        client.post(f"{API}/research/{job_id}/cancel")
        resp = client.post(f"{API}/research/{job_id}/rerun", json={"sections": ["trends"]})
        assert resp.status_code == 409


class TestExport:
    @pytest.mark.parametrize("fmt,media_type,prefix", [
        ("markdown", "text/markdown", b"# "),
        ("pdf", "application/pdf", b"%PDF"),
        ("docx", "application/vnd.openxmlformats-officedocument.wordprocessingml.document", b"PK"),
    ])
    def test_export_formats(self, client, fmt, media_type, prefix):
        job_id = _create(client).json()["job_id"]
        _run_job(job_id)

        resp = client.get(f"{API}/research/{job_id}/export/{fmt}")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith(media_type)
        assert "attachment" in resp.headers["content-disposition"]
        assert resp.content.startswith(prefix)

    @pytest.mark.parametrize("fmt", ["markdown", "pdf", "docx"])
    def test_export_non_latin_company_name(self, client, fmt):
        company = "株式会社トヨタ"
        job_id = _create(client, company_name=company).json()["job_id"]
        _run_job(job_id)

        resp = client.get(f"{API}/research/{job_id}/export/{fmt}")
        assert resp.status_code == 200
        disposition = resp.headers["content-disposition"]
        assert 'filename="report-brief.' in disposition
        assert f"filename*=UTF-8''{quote(company)}-brief." in disposition

    @pytest.mark.parametrize("company,ascii_part", [
        ("Acme Industrial Holdings", 'filename="acme-industrial-holdings-brief.pdf"'),
        ('Acme "Best" Co.', 'filename="acme-best-co-brief.pdf"'),
        ("Société Générale", 'filename="societe-generale-brief.pdf"'),
        ("株式会社", 'filename="report-brief.pdf"'),
    ])
    def test_content_disposition(self, company, ascii_part):
        header = routes_research.content_disposition(company, "pdf")
        assert header.startswith(f"attachment; {ascii_part}; filename*=UTF-8''")
        header.encode("latin-1")
        assert '"' not in header.split("filename*=")[1]

    def test_unknown_format(self, client):
        job_id = _create(client).json()["job_id"]
        assert client.get(f"{API}/research/{job_id}/export/html").status_code == 400

    def test_export_without_completed_sections(self, client):
        job_id = _create(client).json()["job_id"]
        assert client.get(f"{API}/research/{job_id}/export/markdown").status_code == 409


class TestDelete:
    def test_delete_finished_job(self, client):
        job_id = _create(client).json()["job_id"]
        _run_job(job_id)
        assert client.delete(f"{API}/research/{job_id}").status_code == 204
        assert client.get(f"{API}/research/jobs/{job_id}").status_code == 404

    def test_delete_queued_job_is_refused(self, client):
        job_id = _create(client).json()["job_id"]
        assert client.delete(f"{API}/research/{job_id}").status_code == 409


class TestAuth:
    def test_api_key_required_when_configured(self, client, monkeypatch):
        monkeypatch.setattr(routes_research.settings, "API_AUTH_KEY", "secret")
        assert client.get(f"{API}/research").status_code == 401
        assert client.get(f"{API}/research", headers={"X-API-Key": "wrong"}).status_code == 401
        assert client.get(f"{API}/research", headers={"X-API-Key": "secret"}).status_code == 200


class TestPromptRoutes:
    def test_list_prompts(self, client):
        data = client.get(f"{API}/prompts").json()
        keys = {(p["section_id"], p["report_type"]) for p in data}
        assert ("foundation", None) in keys
        assert ("appendix", "PE") in keys

    def test_draft_publish_preview(self, client):
        resp = client.post(
            f"{API}/prompts",
            json={"section_id": "trends", "report_type": "fs", "content": "Custom {{company_name}}"},
        )
        assert resp.status_code == 201
        draft = resp.json()
        assert draft["status"] == "draft"
        assert draft["version"] == 1

        preview = client.get(f"{API}/prompts/trends/preview", params={"report_type": "FS"}).json()
        assert preview["published"] is None
        assert "REPORT TYPE ADDENDUM: FINANCIAL SERVICES" in preview["code_content"]

        published = client.post(f"{API}/prompts/{draft['id']}/publish").json()
        assert published["status"] == "published"
        preview = client.get(f"{API}/prompts/trends/preview", params={"report_type": "FS"}).json()
        assert preview["published"]["id"] == draft["id"]

        archived = client.post(f"{API}/prompts/{draft['id']}/unpublish").json()
        assert archived["status"] == "archived"

    def test_draft_for_unknown_section(self, client):
        resp = client.post(f"{API}/prompts", json={"section_id": "nope", "content": "x"})
        assert resp.status_code == 400

    def test_empty_draft_content(self, client):
        resp = client.post(f"{API}/prompts", json={"section_id": "trends", "content": "  "})
        assert resp.status_code == 422

    def test_publish_unknown_override(self, client):
        assert client.post(f"{API}/prompts/{uuid.uuid4()}/publish").status_code == 404

    def test_preview_unknown_section(self, client):
        assert client.get(f"{API}/prompts/nope/preview").status_code == 400
