# backend/dossier/services/prompts/synthesis.py
"""Synthesis sections that read other sections' output: 1, 9 and 10."""
from __future__ import annotations

import textwrap

from ..sections import SECTIONS
from .common import (
    CITATION_RULES,
    CONFIDENCE_EXAMPLE,
    CONFIDENCE_RULES,
    SectionInputs,
    available_sections,
    compose,
    context_block,
    header,
    output_block,
    upstream_blocks,
)


def _synthesis_context(inputs: SectionInputs, section_id: str) -> str:
    section = SECTIONS[section_id]
    hard = tuple(s for s in section.requires if s != "foundation")
    blocks = [
        "## INPUT CONTEXT",
        f"Available sections: {available_sections(inputs, section.inputs)}",
        context_block("Foundation Context", inputs.get("foundation"), required=True),
    ]
    blocks.extend(upstream_blocks(inputs, hard, required=True))
    blocks.extend(upstream_blocks(inputs, section.optional, required=False))
    return compose(*blocks)


# ---------------------------------------------------------------------------
# Section 1: Executive summary
# ---------------------------------------------------------------------------

_EXEC_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    This section synthesises; do not introduce new research.
    - Write 5-7 bullets, each a single insight of one or two sentences.
    - Tag each bullet with a category: Geography, Financial, Strategic,
      Competitive, Risk or Momentum.
    - `supporting_sections` names the section ids the bullet draws on and
      `sources` carries the ids cited there.
    - Skip sections marked "Not provided".
    """
).strip()

_EXEC_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "bullet_points": [
        {
            "bullet": "string",
            "category": "Geography | Financial | Strategic | Competitive | Risk | Momentum",
            "supporting_sections": ["financial_snapshot"],
            "sources": ["S1"],
        }
    ],
    "sources_used": ["S1"],
}


def build_exec_summary_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("exec_summary", inputs),
        _synthesis_context(inputs, "exec_summary"),
        _EXEC_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_EXEC_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 9: Conversation starters
# ---------------------------------------------------------------------------

_STARTER_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Write 3-5 hypothesis-driven questions a consultant could open a client
      meeting with.
    - Each has a short title (10-100 characters), the question, the data
      point behind it, the business value of the discussion and, when one
      fits, the solution capability it leads to.
    - Ground every starter in at least one section and one source id.
    """
).strip()

_STARTER_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "conversation_starters": [
        {
            "title": "string",
            "question": "string",
            "supporting_data": "string",
            "business_value": "string",
            "ssa_capability": "string",
            "supporting_sections": ["trends"],
            "sources": ["S1"],
            "geography_relevance": "string",
        }
    ],
    "sources_used": ["S1"],
}


def build_conversation_starters_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("conversation_starters", inputs),
        _synthesis_context(inputs, "conversation_starters"),
        _STARTER_INSTRUCTIONS,
        CITATION_RULES,
        CONFIDENCE_RULES,
        output_block(_STARTER_OUTPUT),
    )


# ---------------------------------------------------------------------------
# Section 10: Appendix
# ---------------------------------------------------------------------------

_APPENDIX_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    - Consolidate every source cited across the report into
      `source_references`, keeping the ids already assigned, and list the
      section ids that use each one.
    - Restate the FX rates with their source tag and a short description,
      and the industry averages dataset.
    - Collect every derived metric with the section it appears in.
    - Do not renumber sources; note any inconsistency in `renumbering_notes`.
    """
).strip()

_APPENDIX_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "source_references": [
        {
            "id": "S1",
            "citation": "string",
            "url": "string",
            "type": "filing",
            "date": "YYYY-MM-DD",
            "sections_used_in": ["financial_snapshot"],
        }
    ],
    "fx_rates_and_industry": {
        "fx_rates": [
            {"currency_pair": "EUR/USD", "rate": 1.08, "source": "A | B | C", "source_description": "string"}
        ],
        "industry_averages": {"source": "A | B | C", "dataset": "string", "description": "string"},
    },
    "derived_metrics": [
        {"metric": "string", "formula": "string", "calculation": "string", "source": "S1", "section": "string"}
    ],
    "renumbering_notes": "string or null",
}


def build_appendix_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("appendix", inputs),
        _synthesis_context(inputs, "appendix"),
        _APPENDIX_INSTRUCTIONS,
        CONFIDENCE_RULES,
        output_block(_APPENDIX_OUTPUT),
    )
