"""
Static section catalogue and dependency graph for a research report.

The graph is process-wide data; it is never configured per job.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

FOUNDATION = "foundation"

REPORT_TYPES: Tuple[str, ...] = ("GENERIC", "INDUSTRIALS", "FS", "PE")


@dataclass(frozen=True)
class SectionDef:
    id: str
    number: int
    name: str
    description: str
    category: str                      # foundation | core | analysis | synthesis
    requires: Tuple[str, ...] = ()
    optional: Tuple[str, ...] = ()

    @property
    def inputs(self) -> Tuple[str, ...]:
        return self.requires + self.optional


_CATALOGUE = (
    SectionDef(
        id=FOUNDATION,
        number=0,
        name="Foundation Research",
        description="Base facts, segment structure and the initial source catalog.",
        category="foundation",
    ),
    SectionDef(
        id="exec_summary",
        number=1,
        name="Executive Summary",
        description="High-level synthesis in 5-7 cited bullets.",
        category="synthesis",
        requires=(FOUNDATION, "financial_snapshot", "company_overview"),
        optional=(
            "segment_analysis",
            "trends",
            "peer_benchmarking",
            "sku_opportunities",
            "recent_news",
        ),
    ),
    SectionDef(
        id="financial_snapshot",
        number=2,
        name="Financial Snapshot",
        description="KPI table against industry averages.",
        category="core",
        requires=(FOUNDATION,),
    ),
    SectionDef(
        id="company_overview",
        number=3,
        name="Company Overview",
        description="Business description, footprint, priorities and leadership.",
        category="core",
        requires=(FOUNDATION,),
    ),
    SectionDef(
        id="segment_analysis",
        number=4,
        name="Segment Analysis",
        description="Per-segment performance and competitive landscape.",
        category="analysis",
        requires=(FOUNDATION,),
        optional=("company_overview",),
    ),
    SectionDef(
        id="trends",
        number=5,
        name="Market Trends",
        description="Macro, micro and company-specific trends.",
        category="analysis",
        requires=(FOUNDATION,),
        optional=("company_overview", "segment_analysis"),
    ),
    SectionDef(
        id="peer_benchmarking",
        number=6,
        name="Peer Benchmarking",
        description="Peer comparison table and positioning.",
        category="analysis",
        requires=(FOUNDATION,),
    ),
    SectionDef(
        id="sku_opportunities",
        number=7,
        name="SKU Opportunities",
        description="Operating tensions mapped to solution areas.",
        category="analysis",
        requires=(FOUNDATION,),
    ),
    SectionDef(
        id="recent_news",
        number=8,
        name="Recent News",
        description="Latest developments and their implications.",
        category="core",
        requires=(FOUNDATION,),
    ),
    SectionDef(
        id="conversation_starters",
        number=9,
        name="Conversation Starters",
        description="Hypothesis-driven questions for client meetings.",
        category="synthesis",
        requires=(FOUNDATION,),
        optional=(
            "financial_snapshot",
            "segment_analysis",
            "trends",
            "peer_benchmarking",
            "sku_opportunities",
        ),
    ),
    SectionDef(
        id="appendix",
        number=10,
        name="Appendix & Sources",
        description="Consolidated source references and methodology notes.",
        category="synthesis",
        requires=(FOUNDATION,),
        optional=(
            "exec_summary",
            "financial_snapshot",
            "company_overview",
            "segment_analysis",
            "trends",
            "peer_benchmarking",
            "sku_opportunities",
            "recent_news",
            "conversation_starters",
        ),
    ),
)

SECTIONS: Dict[str, SectionDef] = {section.id: section for section in _CATALOGUE}

# Catalogue order (foundation first, then sections 1..10)
SECTION_ORDER: Tuple[str, ...] = tuple(section.id for section in _CATALOGUE)


def get_section(section_id: str) -> SectionDef:
    try:
        return SECTIONS[section_id]
    except KeyError:
        raise ValueError(f"Unknown section: {section_id}") from None


def normalize_report_type(report_type: str | None) -> str | None:
    """Upper-case and check a report type tag; blank means no tag."""
    if report_type is None:
        return None
    value = report_type.strip().upper()
    if not value:
        return None
    if value not in REPORT_TYPES:
        raise ValueError(
            f"Unknown report type {report_type!r}; expected one of {', '.join(REPORT_TYPES)}"
        )
    return value
