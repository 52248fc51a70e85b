"""
Shared test fixtures for the section pipeline.

Contains schema-valid payloads for every section, an in-memory job
repository, and a scripted stand-in for the LLM call.
"""
import copy
import json
import re
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import UUID

from dossier.models.section_run import SectionStatus
from dossier.services.pipeline import JobState, ResearchPipeline
from dossier.services.prompt_resolver import PromptResolver
from dossier.services.sections import SECTIONS
from dossier.services.source_catalog import CatalogEntry, SourceCatalog


COMPANY = "Acme Industrial Holdings"
GEOGRAPHY = "Germany"


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

FOUNDATION_SOURCES = [
    {
        "id": "S1",
        "citation": "Acme Industrial Holdings, Form 10-K FY2024",
        "url": "https://www.sec.gov/acme/10k-2024",
        "type": "filing",
        "date": "2025-02-14",
    },
    {
        "id": "S2",
        "citation": "Acme Q4 2024 earnings call transcript",
        "url": "https://investors.acme.example/q4-2024-call",
        "type": "transcript",
        "date": "2025-02-06",
    },
    {
        "id": "S3",
        "citation": "Handelsblatt, Acme expands Leipzig plant",
        "url": "https://www.handelsblatt.example/acme-leipzig",
        "type": "news",
        "date": "2025-03-20",
    },
]


def _confidence(level: str = "HIGH") -> Dict[str, str]:
    return {"level": level, "reason": "Figures agree across the annual report and call."}


def _cited(level: str = "HIGH", sources: Sequence[str] = ("S1", "S2")) -> Dict[str, Any]:
    return {"confidence": _confidence(level), "sources_used": list(sources)}


def foundation_payload() -> Dict[str, Any]:
    return {
        "confidence": _confidence(),
        "company_basics": {
            "legal_name": "Acme Industrial Holdings Inc.",
            "ticker": "ACME",
            "ownership": "Public",
            "headquarters": "Cleveland, Ohio",
            "global_revenue_usd": "$12.4B",
            "global_employees": 38000,
            "fiscal_year_end": "December 31",
        },
        "geography_specifics": {
            "regional_revenue_usd": 2100000000,
            "regional_revenue_pct": 17,
            "regional_employees": 5200,
            "facilities": [
                {"name": "Leipzig Plant", "location": "Leipzig, Germany", "type": "Manufacturing"},
            ],
            "key_facts": ["Leipzig is the largest plant outside North America"],
        },
        "source_catalog": copy.deepcopy(FOUNDATION_SOURCES),
        "segment_structure": [
            {"name": "Motion Systems", "revenue_pct": 60, "description": "Actuators and drives"},
            {"name": "Filtration", "revenue_pct": 40, "description": "Industrial filters"},
        ],
        "fx_rates": {"EUR/USD": {"rate": 1.08, "source": "A"}},
        "industry_averages": {"source": "B", "dataset": "Capital goods peer set"},
    }


def exec_summary_payload() -> Dict[str, Any]:
    categories = ["Geography", "Financial", "Strategic", "Competitive", "Risk"]
    return {
        **_cited(),
        "bullet_points": [
            {
                "bullet": f"Acme's {category.lower()} position in Germany is improving steadily.",
                "category": category,
                "supporting_sections": ["financial_snapshot"],
                "sources": ["S1"],
            }
            for category in categories
        ],
    }


def financial_snapshot_payload() -> Dict[str, Any]:
    metrics = ["Revenue growth", "EBITDA margin", "Net margin", "ROIC", "Capex / revenue"]
    return {
        **_cited(),
        "summary": "Margins sit above the peer average while growth trails it.",
        "kpi_table": {
            "metrics": [
                {"metric": name, "company": 10.0 + i, "industry_avg": 9.0 + i, "source": "S1"}
                for i, name in enumerate(metrics)
            ]
        },
        "fx_source": "A",
        "industry_source": "B",
    }


def company_overview_payload() -> Dict[str, Any]:
    return {
        **_cited(),
        "business_description": {
            "overview": "Acme designs motion control and filtration equipment.",
            "segments": [
                {
                    "name": "Motion Systems",
                    "description": "Actuators and drives",
                    "geography_relevance": "Serves German automotive OEMs",
                }
            ],
            "geography_positioning": "Germany is the largest European market.",
        },
        "geographic_footprint": {
            "summary": "One plant and one sales office in Germany.",
            "facilities": [
                {"name": "Leipzig Plant", "location": "Leipzig", "type": "Manufacturing"},
            ],
            "regional_stats": "5,200 employees in Germany",
        },
        "strategic_priorities": {
            "summary": "Automation, pricing and footprint consolidation.",
            "priorities": [
                {
                    "priority": f"Priority {i}",
                    "description": "Described in the annual report.",
                    "geography_relevance": "Applies to the Leipzig plant",
                    "source": "S1",
                }
                for i in range(1, 4)
            ],
            "geography_specific_initiatives": "Leipzig automation program",
        },
        "key_leadership": {
            "executives": [
                {"name": "Jane Roe", "title": "Chief Executive Officer", "background": "Former COO"},
            ]
        },
    }


def segment_analysis_payload() -> Dict[str, Any]:
    return {
        **_cited(),
        "overview": "Motion Systems carries the margin story.",
        "segments": [
            {
                "name": "Motion Systems",
                "financial_snapshot": {
                    "table": [
                        {
                            "metric": f"Metric {i}",
                            "segment": 12.5,
                            "company_avg": 11.0,
                            "industry_avg": 10.0,
                            "source": "S1",
                        }
                        for i in range(5)
                    ],
                    "fx_source": "A",
                    "geography_notes": "German share is disclosed annually.",
                },
                "performance_analysis": {
                    "paragraphs": ["Orders grew.", "Pricing held.", "Mix improved."],
                    "analyst_quotes": [
                        {
                            "quote": "Motion Systems is the crown jewel.",
                            "analyst": "A. Analyst",
                            "firm": "Example Securities",
                            "source": "S2",
                        }
                    ],
                    "key_drivers": ["Automation demand", "Pricing", "Aftermarket"],
                },
                "competitive_landscape": {
                    "competitors": [
                        {"name": name, "geography": "Germany"}
                        for name in ("Bosch Rexroth", "Festo", "SMC")
                    ],
                    "positioning": "Number three by share.",
                    "recent_dynamics": "Price competition from Asian entrants.",
                },
            }
        ],
    }


def _trend(i: int) -> Dict[str, Any]:
    return {
        "trend": f"Trend {i}",
        "description": "Observed across the sector.",
        "direction": "Positive",
        "impact_score": 6,
        "geography_relevance": "Strong in Germany",
        "source": "S3",
    }


def trends_payload() -> Dict[str, Any]:
    return {
        **_cited(sources=("S1", "S3")),
        "aggregate_summary": "Automation tailwinds outweigh energy cost headwinds.",
        "macro_trends": {"summary": "Macro", "trends": [_trend(i) for i in range(4)]},
        "micro_trends": {"summary": "Micro", "trends": [_trend(i) for i in range(3)]},
        "company_trends": {"summary": "Company", "trends": [_trend(i) for i in range(3)]},
    }


def peer_benchmarking_payload() -> Dict[str, Any]:
    return {
        **_cited(),
        "peer_comparison_table": {
            "company_name": "Acme",
            "peers": [
                {"name": name, "geography_presence": "Germany"}
                for name in ("Parker", "Festo", "SMC")
            ],
            "metrics": [
                {
                    "metric": f"Metric {i}",
                    "company": 10,
                    "peer1": 11,
                    "peer2": 9,
                    "peer3": 12,
                    "industry_avg": 10.5,
                    "source": "S1",
                }
                for i in range(5)
            ],
        },
        "benchmark_summary": {
            "overall_assessment": "Mid-pack on growth, top quartile on margin.",
            "key_strengths": [
                {"strength": s, "description": "Clear lead", "geography_context": "Germany"}
                for s in ("Margin", "Aftermarket")
            ],
            "key_gaps": [
                {"gap": g, "description": "Trails peers", "geography_context": "Germany", "magnitude": "Moderate"}
                for g in ("Growth", "Digital")
            ],
            "competitive_positioning": "Premium niche player.",
        },
    }


def sku_opportunities_payload() -> Dict[str, Any]:
    return {
        **_cited(level="MEDIUM"),
        "opportunities": [
            {
                "issue_area": "Supply chain",
                "public_problem": "Management cited supplier delays on the Q4 call.",
                "source": "S2",
                "aligned_sku": "Supply chain diagnostics",
                "priority": "High",
                "severity": 7,
                "severity_rationale": "Repeated on two consecutive calls.",
                "geography_relevance": "Leipzig sources locally",
                "potential_value_levers": ["Inventory reduction", "On-time delivery"],
            }
        ],
    }


def recent_news_payload() -> Dict[str, Any]:
    return {
        **_cited(sources=("S3",)),
        "news_items": [
            {
                "date": f"2025-03-{day:02d}",
                "headline": f"Acme headline {day}",
                "source": "S3",
                "source_name": "Handelsblatt",
                "implication": "Signals continued investment.",
                "geography_relevance": "Leipzig",
                "category": "Investment",
            }
            for day in (10, 15, 20)
        ],
    }


def conversation_starters_payload() -> Dict[str, Any]:
    return {
        **_cited(),
        "conversation_starters": [
            {
                "title": f"Leipzig automation payback, question {i}",
                "question": "How is the Leipzig automation program tracking against plan?",
                "supporting_data": "Capex up 12% year on year.",
                "business_value": "Frames a productivity discussion.",
                "supporting_sections": ["financial_snapshot"],
                "sources": ["S1"],
                "geography_relevance": "Leipzig",
            }
            for i in range(1, 4)
        ],
    }


def appendix_payload() -> Dict[str, Any]:
    references = []
    for source in FOUNDATION_SOURCES:
        ref = copy.deepcopy(source)
        ref["sections_used_in"] = ["foundation"]
        references.append(ref)
    return {
        "confidence": _confidence(),
        "source_references": references,
        "fx_rates_and_industry": {
            "fx_rates": [
                {
                    "currency_pair": "EUR/USD",
                    "rate": 1.08,
                    "source": "A",
                    "source_description": "Disclosed in the 10-K",
                }
            ],
            "industry_averages": {
                "source": "B",
                "dataset": "Capital goods peer set",
                "description": "Average of five listed peers",
            },
        },
    }


PAYLOAD_BUILDERS: Dict[str, Callable[[], Dict[str, Any]]] = {
    "foundation": foundation_payload,
    "exec_summary": exec_summary_payload,
    "financial_snapshot": financial_snapshot_payload,
    "company_overview": company_overview_payload,
    "segment_analysis": segment_analysis_payload,
    "trends": trends_payload,
    "peer_benchmarking": peer_benchmarking_payload,
    "sku_opportunities": sku_opportunities_payload,
    "recent_news": recent_news_payload,
    "conversation_starters": conversation_starters_payload,
    "appendix": appendix_payload,
}


def valid_payload(section_id: str) -> Dict[str, Any]:
    return PAYLOAD_BUILDERS[section_id]()


# ---------------------------------------------------------------------------
# Scripted LLM
# ---------------------------------------------------------------------------

_SECTION_BY_NAME = {section.name: section.id for section in SECTIONS.values()}
_HEADER_RE = re.compile(r"Generate \*\*(.+?)\*\*")


def section_from_prompt(prompt: str) -> str:
    match = _HEADER_RE.search(prompt)
    if not match or match.group(1) not in _SECTION_BY_NAME:
        raise AssertionError(f"Cannot tell which section this prompt is for: {prompt[:120]!r}")
    return _SECTION_BY_NAME[match.group(1)]


# (input, output) tokens reported per call; priced at the gpt-5.1 rate
STUB_MODEL = "openai/gpt-5.1"
STUB_USAGE = (1000, 500)
STUB_CALL_COST = 1000 / 1_000_000 * 1.25 + 500 / 1_000_000 * 10.0


class StubGenerator:
    """
    Stand-in for the blocking LLM call.

    Each section answers with its valid payload unless `responses` maps it to
    something else: a string (returned as is), a dict (JSON-encoded), an
    exception instance (raised), or a callable taking the prompt. Every call
    reports STUB_USAGE tokens to the cost tracker it is given.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Any]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.responses: Dict[str, Any] = dict(responses or {})
        self.delays: Dict[str, float] = dict(delays or {})
        self.calls: List[str] = []
        self.prompts: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __call__(self, prompt: str, tracker=None, section: Optional[str] = None) -> str:
        section_id = section_from_prompt(prompt)
        with self._lock:
            self.calls.append(section_id)
            self.prompts[section_id] = prompt
        if tracker is not None:
            tracker.add_record(
                "stub",
                STUB_MODEL,
                section=section or section_id,
                input_tokens=STUB_USAGE[0],
                output_tokens=STUB_USAGE[1],
            )

        if section_id in self.delays:
            time.sleep(self.delays[section_id])

        if section_id not in self.responses:
            return json.dumps(valid_payload(section_id))

        response = self.responses[section_id]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(prompt)
        if isinstance(response, dict):
            return json.dumps(response)
        return response


class RecordingTracer:
    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def __call__(self, job_id: UUID, **kwargs: Any) -> None:
        self.events.append({"job_id": job_id, **kwargs})

    @property
    def waves(self) -> List[List[str]]:
        return [e["meta"]["sections"] for e in self.events if e.get("step") == "wave:start"]

    def steps(self) -> List[str]:
        return [e.get("step") for e in self.events]


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

class InMemoryJobRepository:
    """Dict-backed JobRepository; every load returns an independent copy."""

    def __init__(self):
        self.jobs: Dict[UUID, JobState] = {}
        self._lock = threading.RLock()

    def _job(self, job_id: UUID) -> JobState:
        try:
            return self.jobs[job_id]
        except KeyError:
            raise LookupError(f"Research job {job_id} not found") from None

    def create(self, job: JobState) -> None:
        with self._lock:
            self.jobs[job.id] = copy.deepcopy(job)

    def load(self, job_id: UUID) -> JobState:
        with self._lock:
            return copy.deepcopy(self._job(job_id))

    def mark_running(self, job_id: UUID, section_ids: Sequence[str], started_at: datetime) -> None:
        with self._lock:
            job = self._job(job_id)
            for section_id in section_ids:
                state = job.sections[section_id]
                state.status = SectionStatus.RUNNING
                state.attempts += 1
                state.started_at = started_at
                state.completed_at = None
                state.last_error = None

    def complete_section(
        self,
        job_id: UUID,
        section_id: str,
        *,
        content: Dict[str, Any],
        confidence: Optional[str],
        confidence_reason: Optional[str],
        sources_used: List[str],
        new_entries: List[CatalogEntry],
        prompt_source: Optional[str],
        completed_at: datetime,
    ) -> None:
        with self._lock:
            job = self._job(job_id)
            state = job.sections[section_id]
            state.status = SectionStatus.COMPLETED
            state.content = copy.deepcopy(content)
            state.confidence = confidence
            state.confidence_reason = confidence_reason
            state.sources_used = list(sources_used)
            state.prompt_source = prompt_source
            state.completed_at = completed_at
            state.last_error = None
            job.catalog = SourceCatalog(job.catalog.entries + list(new_entries))

    def fail_section(
        self,
        job_id: UUID,
        section_id: str,
        error: str,
        *,
        prompt_source: Optional[str],
        completed_at: datetime,
    ) -> None:
        with self._lock:
            state = self._job(job_id).sections[section_id]
            state.status = SectionStatus.FAILED
            state.last_error = error
            state.prompt_source = prompt_source
            state.completed_at = completed_at

    def reset_sections(self, job_id: UUID, section_ids: Sequence[str]) -> None:
        with self._lock:
            job = self._job(job_id)
            for section_id in section_ids:
                state = job.sections[section_id]
                state.status = SectionStatus.PENDING
                state.content = None
                state.confidence = None
                state.confidence_reason = None
                state.sources_used = []
                state.last_error = None
                state.started_at = None
                state.completed_at = None

    def update_job(self, job_id: UUID, **fields: Any) -> None:
        with self._lock:
            job = self._job(job_id)
            for name, value in fields.items():
                setattr(job, name, value)

    def list_jobs(self, limit: int = 20, offset: int = 0) -> List[JobState]:
        with self._lock:
            jobs = sorted(self.jobs.values(), key=lambda j: j.created_at, reverse=True)
            return [copy.deepcopy(j) for j in jobs[offset:offset + limit]]

    # test helper
    def set_status(self, job_id: UUID, section_id: str, status: str) -> None:
        with self._lock:
            self._job(job_id).sections[section_id].status = status


def make_pipeline(
    generate=None,
    *,
    repository=None,
    resolver=None,
    tracer=None,
    section_timeout: float = 5.0,
):
    """Pipeline over an in-memory repository; returns (pipeline, repository, generate, tracer)."""
    repository = repository or InMemoryJobRepository()
    generate = generate or StubGenerator()
    tracer = tracer or RecordingTracer()
    pipeline = ResearchPipeline(
        repository,
        generate,
        resolver or PromptResolver(),
        section_timeout=section_timeout,
        tracer=tracer,
    )
    return pipeline, repository, generate, tracer
