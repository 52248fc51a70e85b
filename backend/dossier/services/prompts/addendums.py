# backend/dossier/services/prompts/addendums.py
"""
Report-type addendums appended to code-default section prompts.

The table is fixed at import time; a missing (section, report type) pair
simply means the base prompt is used as is.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

ADDENDUM_SEPARATOR = "\n\n---\n\n"

_TITLES = {
    "INDUSTRIALS": "INDUSTRIALS",
    "FS": "FINANCIAL SERVICES",
    "PE": "PRIVATE EQUITY",
    "GENERIC": "GENERIC",
}


def _block(report_type: str, *lines: str) -> str:
    body = "\n".join(f"- {line}" for line in lines)
    return f"## REPORT TYPE ADDENDUM: {_TITLES[report_type]}\n{body}"


_TABLE = {
    "foundation": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Prioritize industrial sector context, manufacturing footprint, supply chain dynamics, and automation themes.",
            "Emphasize industrial OEM and B2B customer exposure, end-market cyclicality, and capex intensity.",
            "Capture plant-level or facilities data where available and tie to regional production indicators.",
        ),
        "FS": _block(
            "FS",
            "Prioritize business line mix (banking, insurance, wealth, payments), regulatory context, and capital constraints.",
            "Emphasize operating efficiency, digital transformation, and leadership priorities from earnings materials.",
            "Capture business unit metrics and market positioning by segment where disclosed.",
        ),
        "PE": _block(
            "PE",
            "Prioritize firm strategy, portfolio composition, recent acquisitions, and platform vs add-on patterns.",
            "Emphasize value-creation themes, operating model signals, and leadership/operating partner moves.",
            "Capture deal announcements and portfolio news as primary sources.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Focus only on the most relevant context for the meeting or stated topic of interest.",
            "Prefer high-signal sources and avoid exhaustive data collection when it does not change the narrative.",
            "Keep foundation insights concise and directly tied to near-term priorities.",
        ),
    },
    "exec_summary": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Keep output as close to current Industrials brief tone and structure as possible.",
            "Emphasize manufacturing footprint, operational efficiency, and supply chain or capacity themes.",
            "Highlight industrial end-market demand signals and competitive positioning.",
        ),
        "FS": _block(
            "FS",
            "Emphasize business model and revenue drivers, performance pressure, and regulatory context.",
            "Frame insights as hypotheses for leadership discussion; keep tone analytical and non-prescriptive.",
            "Highlight transformation priorities and leadership attention signals.",
        ),
        "PE": _block(
            "PE",
            "Synthesize portfolio direction, value-creation themes, and operating signals.",
            "Emphasize patterns across the portfolio and near-term momentum.",
            "Keep questions hypothesis-driven and grounded in deal/portfolio evidence.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Produce the minimum number of high-signal bullets; prioritize immediacy and relevance to the context.",
            "Avoid exhaustive coverage; focus on key risks, priorities, and recent changes.",
            "Keep language concise and decision-oriented.",
        ),
    },
    "financial_snapshot": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Preserve current metric depth and industrial benchmark comparisons.",
            "Emphasize working capital efficiency, utilization, and margin drivers tied to operations.",
        ),
        "FS": _block(
            "FS",
            "Emphasize revenue mix, margins/efficiency ratios, and capital or regulatory metrics.",
            "Interpret drivers behind performance rather than listing metrics.",
            "Use segment or business-line metrics where available.",
        ),
        "PE": _block(
            "PE",
            "Focus on portfolio-level signals (fund size, acquisition cadence, scale) when public.",
            "Keep metrics limited and interpretive; avoid forcing detailed line-item KPIs.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Include only material metrics tied to the topic of interest.",
            "Prefer concise tables and short interpretation over exhaustive coverage.",
        ),
    },
    "company_overview": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Emphasize industrial product lines, manufacturing footprint, and end-market exposure.",
            "Keep segment detail and geography positioning aligned with current Industrials outputs.",
        ),
        "FS": _block(
            "FS",
            "Frame as institution overview and business model (business lines, revenue drivers).",
            "Emphasize regulatory context, geographic footprint, and operating priorities.",
        ),
        "PE": _block(
            "PE",
            "Frame as firm overview and portfolio composition (platform vs add-on, sector focus).",
            "Highlight investment strategy and operating model signals.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Keep overview concise and context-specific; prioritize key products/services and segments.",
            "Limit segments to the most relevant and high-signal items.",
        ),
    },
    "segment_analysis": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Maintain segment-level operational performance focus and competitor framing.",
            "Emphasize capacity, efficiency, and industrial end-market dynamics.",
        ),
        "FS": _block(
            "FS",
            "Use segments aligned to business lines (banking, insurance, wealth, payments).",
            "Focus on performance drivers, operating pressure, and regulatory exposure per segment.",
        ),
        "PE": _block(
            "PE",
            "Use portfolio clusters or sector buckets instead of traditional product segments.",
            "Emphasize operating complexity and value-creation themes within clusters.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Limit to key segments only; focus on the most material drivers and context.",
        ),
    },
    "trends": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Emphasize industrial production indicators, automation, supply chain, and capex cycles.",
            "Tie trends to operational impact and capacity utilization.",
        ),
        "FS": _block(
            "FS",
            "Emphasize regulatory, market, and competitive forces affecting the institution.",
            "Tie trends to operating pressure, capital, and transformation priorities.",
        ),
        "PE": _block(
            "PE",
            "Emphasize deal environment, sector tailwinds/headwinds, and value-creation themes.",
            "Tie trends to portfolio exposure and strategy.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Favor the highest-impact trends and explain why they matter now.",
        ),
    },
    "peer_benchmarking": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Keep peer set focused on industrial comparables and operational metrics.",
            "Emphasize capacity, margin structure, and regional share.",
        ),
        "FS": _block(
            "FS",
            "Compare against relevant financial peers and operating ratios.",
            "Highlight business-line mix or regulatory positioning differences.",
        ),
        "PE": _block(
            "PE",
            "Compare to peer firms or similar portfolio strategies where meaningful.",
            "Avoid forcing detailed financial comparisons if not available.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Keep peer set small and focus on 2-3 differentiators.",
        ),
    },
    "sku_opportunities": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Preserve current operational issue framing and SKU alignment style.",
            "Emphasize efficiency, throughput, and supply chain constraints.",
        ),
        "FS": _block(
            "FS",
            "Map operating tensions to solution problem areas (1-3 SKUs per theme).",
            "Keep alignment analytical and non-prescriptive.",
        ),
        "PE": _block(
            "PE",
            "Translate value-creation themes into solution-relevant problem areas.",
            "Focus on operating model improvements and transformation themes.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Limit to 1-3 themes; prioritize relevance to the stated context.",
        ),
    },
    "recent_news": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Emphasize operational investments, capacity changes, and supply chain moves.",
            "Focus on regional facility and manufacturing-related developments.",
        ),
        "FS": _block(
            "FS",
            "Emphasize earnings commentary, regulatory updates, and leadership changes.",
            "Highlight market positioning and transformation announcements.",
        ),
        "PE": _block(
            "PE",
            "Emphasize deal announcements, portfolio news, and firm press releases.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Keep concise; include only news tied to the meeting context.",
        ),
    },
    "conversation_starters": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Keep tone practical and operational; align with current Industrials output style.",
            "Focus on execution risks, capacity, and end-market signals.",
        ),
        "FS": _block(
            "FS",
            "Use call-ready questions tied to performance signals, leadership focus, or regulatory context.",
        ),
        "PE": _block(
            "PE",
            "Use hypothesis-driven questions about portfolio patterns and operating themes.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Keep questions short, focused, and tied to immediate context.",
        ),
    },
    "appendix": {
        "INDUSTRIALS": _block(
            "INDUSTRIALS",
            "Include sources tied to operations, manufacturing footprint, and industrial benchmarks.",
        ),
        "FS": _block(
            "FS",
            "Include filings, earnings materials, regulatory docs, and credible news.",
        ),
        "PE": _block(
            "PE",
            "Include deal announcements, firm press, portfolio news, and Pitchbook-style sources.",
        ),
        "GENERIC": _block(
            "GENERIC",
            "Include only sources referenced in sections.",
        ),
    },
}

REPORT_TYPE_ADDENDUMS: Mapping[str, Mapping[str, str]] = MappingProxyType(
    {section: MappingProxyType(blocks) for section, blocks in _TABLE.items()}
)


def get_addendum(section_id: str, report_type: str | None) -> str | None:
    if not report_type:
        return None
    return REPORT_TYPE_ADDENDUMS.get(section_id, {}).get(report_type.upper())


def append_addendum(base: str, section_id: str, report_type: str | None) -> str:
    addendum = get_addendum(section_id, report_type)
    if addendum is None:
        return base
    return f"{base}{ADDENDUM_SEPARATOR}{addendum}"
