# backend/dossier/services/prompts/analysis.py
"""Analysis sections: segment analysis, trends, peer benchmarking, SKU mapping."""
from __future__ import annotations

import textwrap

from .common import (
    CITATION_RULES,
    CONFIDENCE_EXAMPLE,
    CONFIDENCE_RULES,
    SOURCE_EXAMPLE,
    SectionInputs,
    compose,
    context_block,
    header,
    output_block,
    upstream_blocks,
)


def _context(inputs: SectionInputs, optional: tuple[str, ...] = ()) -> str:
    blocks = [
        "## INPUT CONTEXT",
        context_block("Foundation Context", inputs.get("foundation"), required=True),
    ]
    blocks.extend(upstream_blocks(inputs, optional, required=False))
    return compose(*blocks)


_QUOTE_EXAMPLE = {"quote": "max 15 words", "analyst": "string", "firm": "string", "source": "S1"}


# ---------------------------------------------------------------------------
# Section 4: Segment analysis
# ---------------------------------------------------------------------------

_SEGMENT_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    For every segment in the foundation segment structure:
    - a financial table of at least 5 metrics comparing the segment, the
      company average and the industry average;
    - 3-5 analysis paragraphs, 3-5 key drivers and at most one analyst quote
      of 15 words or fewer;
    - 3-5 competitors with their geography, the segment's positioning and
      recent competitive dynamics.
    Use the company overview when it is provided; otherwise rely on the
    foundation alone.
    """
).strip()

_SEGMENT_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "overview": "string",
    "segments": [
        {
            "name": "string",
            "financial_snapshot": {
                "table": [
                    {
                        "metric": "string",
                        "segment": "number or string",
                        "company_avg": "number or string",
                        "industry_avg": "number or string",
                        "source": "S1",
                    }
                ],
                "fx_source": "A | B | C",
                "geography_notes": "string",
            },
            "performance_analysis": {
                "paragraphs": ["string"],
                "analyst_quotes": [_QUOTE_EXAMPLE],
                "key_drivers": ["string"],
            },
            "competitive_landscape": {
                "competitors": [{"name": "string", "market_share": "string", "geography": "string"}],
                "positioning": "string",
                "recent_dynamics": "string",
            },
        }
    ],
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_segment_analysis_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("segment_analysis", inputs),
        _context(inputs, ("company_overview",)),
        _SEGMENT_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_SEGMENT_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 5: Trends
# ---------------------------------------------------------------------------

_TRENDS_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Macro trends (4-6): economic, regulatory and technology forces in the
      target geography.
    - Micro trends (3-5): industry and segment level shifts; note which
      segment each one touches.
    - Company trends (3-5): what management and analysts say about the
      company's own trajectory.
    - Every trend has a direction (Positive, Negative, Neutral), an impact
      score from 1 to 10 and a single source id.
    - Close with an aggregate summary tying the three levels together.
    """
).strip()

_TREND_EXAMPLE = {
    "trend": "string",
    "description": "string",
    "direction": "Positive | Negative | Neutral",
    "impact_score": 7,
    "geography_relevance": "string",
    "source": "S1",
}

_TRENDS_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "aggregate_summary": "string",
    "macro_trends": {"summary": "string", "trends": [_TREND_EXAMPLE]},
    "micro_trends": {
        "summary": "string",
        "trends": [dict(_TREND_EXAMPLE, segment_relevance="string")],
    },
    "company_trends": {
        "summary": "string",
        "trends": [
            dict(_TREND_EXAMPLE, management_commentary="string", analyst_quote=_QUOTE_EXAMPLE)
        ],
    },
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_trends_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("trends", inputs),
        _context(inputs, ("company_overview", "segment_analysis")),
        _TRENDS_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_TRENDS_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 6: Peer benchmarking
# ---------------------------------------------------------------------------

_PEER_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Pick 3-5 listed peers with comparable scale and presence in the target
      geography; include their share of revenue from it when disclosed.
    - Compare at least 5 metrics across the company, each peer and the
      industry average, one source id per metric row.
    - Summarise 2-4 strengths and 2-4 gaps (gap magnitude Significant,
      Moderate or Minor) and the overall competitive positioning.
    """
).strip()

_PEER_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "peer_comparison_table": {
        "company_name": "string",
        "peers": [
            {"name": "string", "ticker": "string", "geography_presence": "string", "geography_revenue_pct": 0}
        ],
        "metrics": [
            {
                "metric": "string",
                "company": "number or string",
                "peer1": "number or string",
                "peer2": "number or string",
                "peer3": "number or string",
                "peer4": "number or string (optional)",
                "industry_avg": "number or string",
                "source": "S1",
            }
        ],
    },
    "benchmark_summary": {
        "overall_assessment": "string",
        "key_strengths": [{"strength": "string", "description": "string", "geography_context": "string"}],
        "key_gaps": [
            {
                "gap": "string",
                "description": "string",
                "geography_context": "string",
                "magnitude": "Significant | Moderate | Minor",
            }
        ],
        "competitive_positioning": "string",
    },
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_peer_benchmarking_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("peer_benchmarking", inputs),
        _context(inputs),
        _PEER_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_PEER_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 7: SKU opportunities
# ---------------------------------------------------------------------------

_SKU_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Identify up to 5 publicly evidenced operating problems (cost pressure,
      capacity constraints, quality issues, transformation gaps).
    - Map each problem to the solution area that addresses it, with priority
      (High/Medium/Low), severity 1-10 and a rationale for the score.
    - List 2-4 value levers per opportunity.
    - Return an empty list rather than inventing problems without evidence.
    """
).strip()

_SKU_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "opportunities": [
        {
            "issue_area": "string",
            "public_problem": "string",
            "source": "S1",
            "aligned_sku": "string",
            "priority": "High | Medium | Low",
            "severity": 6,
            "severity_rationale": "string",
            "geography_relevance": "string",
            "potential_value_levers": ["string"],
        }
    ],
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_sku_opportunities_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("sku_opportunities", inputs),
        _context(inputs),
        _SKU_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_SKU_OUTPUT),
    )
