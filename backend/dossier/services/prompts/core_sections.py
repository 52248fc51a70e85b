# backend/dossier/services/prompts/core_sections.py
"""Sections that work directly from the foundation: 2, 3 and 8."""
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
)


def _foundation(inputs: SectionInputs) -> str:
    return context_block("Foundation Context", inputs.get("foundation"), required=True)


# ---------------------------------------------------------------------------
# Section 2: Financial snapshot
# ---------------------------------------------------------------------------

_FINANCIAL_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Build a KPI table of at least 5 metrics (revenue, growth, margins,
      working capital, returns) comparing the company to the industry average.
    - Convert local-currency figures with the foundation FX rates and report
      which FX source tag (A/B/C) and industry source tag (A/B/C) you used.
    - Any derived metric shows its formula and the calculation with inputs.
    - Open with a 2-3 sentence summary that interprets the numbers.
    """
).strip()

_FINANCIAL_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "summary": "string",
    "kpi_table": {
        "metrics": [
            {
                "metric": "Revenue growth (YoY)",
                "company": "number or string",
                "industry_avg": "number or string",
                "source": "S1",
                "unit": "% | USD | x",
                "value_type": "currency | percent | ratio | number",
            }
        ]
    },
    "fx_source": "A | B | C",
    "industry_source": "A | B | C",
    "derived_metrics": [
        {"metric": "string", "formula": "string", "calculation": "string", "source": "S1"}
    ],
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_financial_snapshot_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("financial_snapshot", inputs),
        "## INPUT CONTEXT",
        _foundation(inputs),
        _FINANCIAL_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_FINANCIAL_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 3: Company overview
# ---------------------------------------------------------------------------

_OVERVIEW_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Business description: what the company does, its segments and how the
      target geography fits its positioning.
    - Geographic footprint: facilities in the geography with type
      (Manufacturing, R&D, Distribution, Office, Headquarters) and regional stats.
    - Strategic priorities: 3-5 cited priorities, each with its relevance to
      the geography (High/Medium/Low).
    - Key leadership: group executives plus regional leaders where known.
    """
).strip()

_OVERVIEW_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "business_description": {
        "overview": "string",
        "segments": [
            {"name": "string", "description": "string", "revenue_pct": 0, "geography_relevance": "string"}
        ],
        "geography_positioning": "string",
    },
    "geographic_footprint": {
        "summary": "string",
        "facilities": [
            {
                "name": "string",
                "location": "string",
                "type": "Manufacturing | R&D | Distribution | Office | Headquarters",
                "employees": 0,
                "capabilities": "string",
            }
        ],
        "regional_stats": "string",
    },
    "strategic_priorities": {
        "summary": "string",
        "priorities": [
            {
                "priority": "string",
                "description": "string",
                "geography_relevance": "string",
                "geography_relevance_rating": "High | Medium | Low",
                "source": "S1",
            }
        ],
        "geography_specific_initiatives": ["string"],
    },
    "key_leadership": {
        "executives": [{"name": "string", "title": "string", "background": "string", "tenure": "string"}],
        "regional_leaders": [],
    },
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_company_overview_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("company_overview", inputs),
        "## INPUT CONTEXT",
        _foundation(inputs),
        _OVERVIEW_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_OVERVIEW_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 8: Recent news
# ---------------------------------------------------------------------------

_NEWS_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Select the 3-5 most material developments of the last 12 months,
      newest first, with a bias towards the target geography.
    - Translate non-English headlines and record the original language.
    - State the business implication of each item in one sentence.
    - Category is one of Investment, M&A, Operations, Product, Partnership,
      Regulatory, People, Sustainability.
    """
).strip()

_NEWS_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "news_items": [
        {
            "date": "YYYY-MM-DD",
            "headline": "string",
            "original_language": "string or null",
            "source": "S1",
            "source_name": "string",
            "implication": "string",
            "geography_relevance": "string",
            "category": "Investment | M&A | Operations | Product | Partnership | Regulatory | People | Sustainability",
        }
    ],
    "sources_used": ["S1"],
    "new_sources": [SOURCE_EXAMPLE],
}


def build_recent_news_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("recent_news", inputs),
        "## INPUT CONTEXT",
        _foundation(inputs),
        _NEWS_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_NEWS_OUTPUT),
    )
