# backend/dossier/schemas/sections.py
"""
Structural contracts for the JSON each report section must return.

Unknown keys are accepted and preserved so prompts can evolve ahead of the
models. Citation-bearing fields hold exactly one "S<n>" id.
"""
from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Literal, Type, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

CITATION_PATTERN = r"^S\d+$"

Citation = Annotated[str, StringConstraints(strip_whitespace=True, pattern=CITATION_PATTERN)]

ConfidenceLevel = Literal["HIGH", "MEDIUM", "LOW"]
TrendDirection = Literal["Positive", "Negative", "Neutral"]
Priority = Literal["High", "Medium", "Low"]
Magnitude = Literal["Significant", "Moderate", "Minor"]
FxSource = Literal["A", "B", "C"]          # A disclosed, B historical average, C spot
IndustrySource = Literal["A", "B", "C"]    # A dataset, B peer average, C estimated
NewsCategory = Literal[
    "Investment",
    "M&A",
    "Operations",
    "Product",
    "Partnership",
    "Regulatory",
    "People",
    "Sustainability",
]
BulletCategory = Literal[
    "Geography",
    "Financial",
    "Strategic",
    "Competitive",
    "Risk",
    "Momentum",
]
SourceType = Literal[
    "filing",
    "transcript",
    "analyst_report",
    "news",
    "user_provided",
    "government",
    "investor_presentation",
    "industry_report",
]

_NUMERIC_NOISE = re.compile(r"[^0-9.+-]")


def _coerce_number(value: Any) -> Any:
    """Turn '$1,200' / '45%' style strings into numbers; leave anything else alone."""
    if not isinstance(value, str):
        return value
    cleaned = _NUMERIC_NOISE.sub("", value).strip()
    if not cleaned:
        return value
    try:
        return float(cleaned)
    except ValueError:
        return value


PositiveInt = Annotated[int, BeforeValidator(_coerce_number), Field(gt=0)]
NonNegativeInt = Annotated[int, BeforeValidator(_coerce_number), Field(ge=0)]
Percent = Annotated[float, BeforeValidator(_coerce_number), Field(ge=0, le=100)]
PositiveNumber = Annotated[float, BeforeValidator(_coerce_number), Field(gt=0)]
Score = Annotated[int, Field(ge=1, le=10)]
MetricValue = Union[float, str]


class SectionModel(BaseModel):
    model_config = ConfigDict(extra="allow")


def _reject_duplicate_ids(entries: List["SourceReference"] | None):
    if not entries:
        return entries
    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            raise ValueError(f"duplicate source id {entry.id}")
        seen.add(entry.id)
    return entries


# ---------------------------------------------------------------------------
# Shared building blocks
# ---------------------------------------------------------------------------

class Confidence(SectionModel):
    level: ConfidenceLevel
    reason: str


class SourceReference(SectionModel):
    id: Citation
    citation: str = Field(min_length=1)
    url: str | None = None
    type: SourceType
    date: str


class AnalystQuote(SectionModel):
    quote: str
    analyst: str = Field(min_length=1)
    firm: str = Field(min_length=1)
    source: Citation

    @field_validator("quote")
    @classmethod
    def max_fifteen_words(cls, v: str) -> str:
        if len(v.split()) > 15:
            raise ValueError("analyst quote must be 15 words or fewer")
        return v


class SectionOutput(SectionModel):
    confidence: Confidence
    # Sources a section introduces beyond the foundation catalog
    new_sources: List[SourceReference] | None = None

    @field_validator("new_sources")
    @classmethod
    def unique_new_sources(cls, v):
        return _reject_duplicate_ids(v)


class CitedSectionOutput(SectionOutput):
    sources_used: List[Citation]


# ---------------------------------------------------------------------------
# Foundation
# ---------------------------------------------------------------------------

class CompanyBasics(SectionModel):
    legal_name: str
    ticker: str | None = None
    ownership: Literal["Public", "Private", "Subsidiary"]
    headquarters: str
    global_revenue_usd: MetricValue
    global_employees: PositiveInt
    fiscal_year_end: str


class FacilityInfo(SectionModel):
    name: str
    location: str
    type: str


class GeographySpecifics(SectionModel):
    regional_revenue_usd: MetricValue
    regional_revenue_pct: Percent
    regional_employees: NonNegativeInt
    facilities: List[FacilityInfo]
    key_facts: List[str]


class SegmentStructure(SectionModel):
    name: str
    revenue_pct: Percent
    description: str


class FxRate(SectionModel):
    rate: PositiveNumber
    source: FxSource


class IndustryAverages(SectionModel):
    source: IndustrySource
    dataset: str


class FoundationOutput(SectionModel):
    confidence: Confidence | None = None
    company_basics: CompanyBasics
    geography_specifics: GeographySpecifics
    source_catalog: List[SourceReference] = Field(min_length=1)
    segment_structure: List[SegmentStructure]
    fx_rates: Dict[str, FxRate] = Field(default_factory=dict)
    industry_averages: IndustryAverages

    @field_validator("source_catalog")
    @classmethod
    def unique_catalog(cls, v):
        return _reject_duplicate_ids(v)


# ---------------------------------------------------------------------------
# Section 1: Executive summary
# ---------------------------------------------------------------------------

class ExecutiveBullet(SectionModel):
    bullet: str = Field(min_length=10)
    category: BulletCategory
    supporting_sections: List[str] = Field(min_length=1)
    sources: List[Citation] = Field(min_length=1)


class ExecSummaryOutput(CitedSectionOutput):
    bullet_points: List[ExecutiveBullet] = Field(min_length=5, max_length=7)


# ---------------------------------------------------------------------------
# Section 2: Financial snapshot
# ---------------------------------------------------------------------------

class FinancialMetric(SectionModel):
    metric: str
    company: MetricValue
    industry_avg: MetricValue
    source: Citation
    unit: str | None = None
    value_type: Literal["currency", "percent", "ratio", "number"] | None = None


class DerivedMetric(SectionModel):
    metric: str
    formula: str
    calculation: str
    source: Citation


class KpiTable(SectionModel):
    metrics: List[FinancialMetric] = Field(min_length=5)


class FinancialSnapshotOutput(CitedSectionOutput):
    summary: str
    kpi_table: KpiTable
    fx_source: FxSource
    industry_source: IndustrySource
    derived_metrics: List[DerivedMetric] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Section 3: Company overview
# ---------------------------------------------------------------------------

class BusinessSegment(SectionModel):
    name: str
    description: str
    revenue_pct: float | None = None
    geography_relevance: str


class BusinessDescription(SectionModel):
    overview: str
    segments: List[BusinessSegment] = Field(min_length=1)
    geography_positioning: str


class Facility(SectionModel):
    name: str
    location: str
    type: Literal["Manufacturing", "R&D", "Distribution", "Office", "Headquarters"]
    employees: int | None = None
    capabilities: str | None = None


class GeographicFootprint(SectionModel):
    summary: str
    facilities: List[Facility]
    regional_stats: Union[str, Dict[str, Any]]


class StrategicPriority(SectionModel):
    priority: str
    description: str
    geography_relevance: str
    geography_relevance_rating: Priority | None = None
    source: Citation


class StrategicPriorities(SectionModel):
    summary: str
    priorities: List[StrategicPriority] = Field(min_length=3, max_length=5)
    geography_specific_initiatives: Union[str, List[str]]


class ExecutiveLeader(SectionModel):
    name: str
    title: str
    background: str
    tenure: str | None = None
    geography_relevance: str | None = None
    geography_relevance_rating: Priority | None = None


class KeyLeadership(SectionModel):
    executives: List[ExecutiveLeader]
    regional_leaders: List[ExecutiveLeader] = Field(default_factory=list)


class CompanyOverviewOutput(CitedSectionOutput):
    business_description: BusinessDescription
    geographic_footprint: GeographicFootprint
    strategic_priorities: StrategicPriorities
    key_leadership: KeyLeadership


# ---------------------------------------------------------------------------
# Section 4: Segment analysis
# ---------------------------------------------------------------------------

class SegmentMetric(SectionModel):
    metric: str
    segment: MetricValue
    company_avg: MetricValue
    industry_avg: MetricValue
    source: Citation


class SegmentFinancials(SectionModel):
    table: List[SegmentMetric] = Field(min_length=5)
    fx_source: str
    geography_notes: str


class PerformanceAnalysis(SectionModel):
    paragraphs: List[str] = Field(min_length=3, max_length=5)
    analyst_quotes: List[AnalystQuote] = Field(default_factory=list, max_length=1)
    key_drivers: List[str] = Field(min_length=3, max_length=5)


class Competitor(SectionModel):
    name: str
    market_share: str | None = None
    geography: str


class CompetitiveLandscape(SectionModel):
    competitors: List[Competitor] = Field(min_length=3, max_length=5)
    positioning: str
    recent_dynamics: str


class SegmentDetail(SectionModel):
    name: str
    financial_snapshot: SegmentFinancials
    performance_analysis: PerformanceAnalysis
    competitive_landscape: CompetitiveLandscape


class SegmentAnalysisOutput(CitedSectionOutput):
    overview: str
    segments: List[SegmentDetail] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Section 5: Trends
# ---------------------------------------------------------------------------

class Trend(SectionModel):
    trend: str
    description: str
    direction: TrendDirection
    impact_score: Score
    geography_relevance: str
    source: Citation


class MicroTrend(Trend):
    segment_relevance: str | None = None


class CompanyTrend(Trend):
    management_commentary: str | None = None
    analyst_quote: AnalystQuote | None = None


class MacroTrends(SectionModel):
    summary: str
    trends: List[Trend] = Field(min_length=4, max_length=6)


class MicroTrends(SectionModel):
    summary: str
    trends: List[MicroTrend] = Field(min_length=3, max_length=5)


class CompanyTrends(SectionModel):
    summary: str
    trends: List[CompanyTrend] = Field(min_length=3, max_length=5)


class TrendsOutput(CitedSectionOutput):
    aggregate_summary: str
    macro_trends: MacroTrends
    micro_trends: MicroTrends
    company_trends: CompanyTrends


# ---------------------------------------------------------------------------
# Section 6: Peer benchmarking
# ---------------------------------------------------------------------------

class PeerInfo(SectionModel):
    name: str
    ticker: str | None = None
    geography_presence: str | None
    geography_revenue_pct: Annotated[float, Field(ge=0, le=100)] | None = None


class PeerMetric(SectionModel):
    metric: str
    company: MetricValue
    peer1: MetricValue
    peer2: MetricValue
    peer3: MetricValue
    peer4: MetricValue | None = None
    industry_avg: MetricValue
    source: Citation


class PeerComparisonTable(SectionModel):
    company_name: str
    peers: List[PeerInfo] = Field(min_length=3, max_length=5)
    metrics: List[PeerMetric] = Field(min_length=5)


class KeyStrength(SectionModel):
    strength: str
    description: str
    geography_context: str


class KeyGap(SectionModel):
    gap: str
    description: str
    geography_context: str
    magnitude: Magnitude


class BenchmarkSummary(SectionModel):
    overall_assessment: str
    key_strengths: List[KeyStrength] = Field(min_length=2, max_length=4)
    key_gaps: List[KeyGap] = Field(min_length=2, max_length=4)
    competitive_positioning: str


class PeerBenchmarkingOutput(CitedSectionOutput):
    peer_comparison_table: PeerComparisonTable
    benchmark_summary: BenchmarkSummary


# ---------------------------------------------------------------------------
# Section 7: SKU opportunity mapping
# ---------------------------------------------------------------------------

class Opportunity(SectionModel):
    issue_area: str
    public_problem: str
    source: Citation
    aligned_sku: str
    priority: Priority
    severity: Score
    severity_rationale: str
    geography_relevance: str
    potential_value_levers: List[str] = Field(min_length=2, max_length=4)


class SkuOpportunitiesOutput(CitedSectionOutput):
    opportunities: List[Opportunity] = Field(max_length=5)


# ---------------------------------------------------------------------------
# Section 8: Recent news
# ---------------------------------------------------------------------------

class NewsItem(SectionModel):
    date: str
    headline: str
    original_language: str | None = None
    source: Citation
    source_name: str
    implication: str
    geography_relevance: str
    category: NewsCategory


class RecentNewsOutput(CitedSectionOutput):
    news_items: List[NewsItem] = Field(min_length=3, max_length=5)


# ---------------------------------------------------------------------------
# Section 9: Conversation starters
# ---------------------------------------------------------------------------

class ConversationStarter(SectionModel):
    title: str = Field(min_length=10, max_length=100)
    question: str
    supporting_data: str
    business_value: str
    ssa_capability: str | None = None
    supporting_sections: List[str] = Field(min_length=1)
    sources: List[Citation] = Field(min_length=1)
    geography_relevance: str


class ConversationStartersOutput(CitedSectionOutput):
    conversation_starters: List[ConversationStarter] = Field(min_length=3, max_length=5)


# ---------------------------------------------------------------------------
# Section 10: Appendix
# ---------------------------------------------------------------------------

class SourceReferenceDetailed(SourceReference):
    sections_used_in: List[str] = Field(min_length=1)


class FxRateDetailed(SectionModel):
    currency_pair: str
    rate: PositiveNumber
    source: FxSource
    source_description: str


class IndustryAveragesDetailed(IndustryAverages):
    description: str


class FxAndIndustry(SectionModel):
    fx_rates: List[FxRateDetailed]
    industry_averages: IndustryAveragesDetailed


class DerivedMetricDetailed(DerivedMetric):
    section: str


class AppendixOutput(SectionOutput):
    source_references: List[SourceReferenceDetailed] = Field(min_length=1)
    fx_rates_and_industry: FxAndIndustry
    derived_metrics: List[DerivedMetricDetailed] = Field(default_factory=list)
    renumbering_notes: str | None = None

    @field_validator("source_references")
    @classmethod
    def unique_references(cls, v):
        return _reject_duplicate_ids(v)


SECTION_MODELS: Dict[str, Type[SectionModel]] = {
    "foundation": FoundationOutput,
    "exec_summary": ExecSummaryOutput,
    "financial_snapshot": FinancialSnapshotOutput,
    "company_overview": CompanyOverviewOutput,
    "segment_analysis": SegmentAnalysisOutput,
    "trends": TrendsOutput,
    "peer_benchmarking": PeerBenchmarkingOutput,
    "sku_opportunities": SkuOpportunitiesOutput,
    "recent_news": RecentNewsOutput,
    "conversation_starters": ConversationStartersOutput,
    "appendix": AppendixOutput,
}
