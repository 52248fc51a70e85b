# backend/dossier/services/prompts/foundation.py
from __future__ import annotations

import textwrap

from .common import (
    CONFIDENCE_EXAMPLE,
    CONFIDENCE_RULES,
    SOURCE_EXAMPLE,
    SectionInputs,
    compose,
    header,
    output_block,
)

_INSTRUCTIONS = textwrap.dedent(
    """
    ## INSTRUCTIONS

    This is the foundation every later section builds on. Establish the facts
    once so downstream sections do not research them again.

    1. Company basics: legal name, ticker (if listed), ownership, headquarters,
       global revenue (USD), global headcount, fiscal year end.
    2. Geography specifics: revenue, revenue share and headcount in the target
       geography, facilities located there, and 3-6 key facts.
    3. Segment structure: reporting segments with revenue share.
    4. FX rates used to convert local figures to USD, each tagged
       A (disclosed), B (historical average) or C (spot).
    5. Industry averages dataset, tagged A (published dataset), B (peer
       average) or C (estimated).
    6. Source catalog: number sources S1, S2, ... in the order you first use
       them. Later sections cite these ids.
    """
).strip()

_OUTPUT = {
    "confidence": CONFIDENCE_EXAMPLE,
    "company_basics": {
        "legal_name": "string",
        "ticker": "string or null",
        "ownership": "Public | Private | Subsidiary",
        "headquarters": "City, Country",
        "global_revenue_usd": "number or string",
        "global_employees": 0,
        "fiscal_year_end": "string",
    },
    "geography_specifics": {
        "regional_revenue_usd": "number or string",
        "regional_revenue_pct": 0,
        "regional_employees": 0,
        "facilities": [{"name": "string", "location": "string", "type": "string"}],
        "key_facts": ["string"],
    },
    "source_catalog": [SOURCE_EXAMPLE],
    "segment_structure": [{"name": "string", "revenue_pct": 0, "description": "string"}],
    "fx_rates": {"EUR/USD": {"rate": 1.08, "source": "A | B | C"}},
    "industry_averages": {"source": "A | B | C", "dataset": "string"},
}


def build_foundation_prompt(inputs: SectionInputs) -> str:
    return compose(
        header("foundation", inputs),
        _INSTRUCTIONS,
        CONFIDENCE_RULES,
        output_block(_OUTPUT),
    )
