# backend/dossier/services/formatters/blocks.py
"""
Section payload -> neutral document blocks.

Markdown, PDF and DOCX renderers all walk the same block list, so the
per-section layout lives here once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..pipeline import JobState
from ..sections import SECTIONS
from .common import completed_sections, fmt_value, report_title, source_line


@dataclass
class Heading:
    text: str
    level: int = 2


@dataclass
class Para:
    text: str
    italic: bool = False


@dataclass
class Bullets:
    items: List[Tuple[Optional[str], str]]    # (bold label or None, text)


@dataclass
class TableBlock:
    headers: List[str]
    rows: List[List[str]] = field(default_factory=list)


@dataclass
class Quote:
    text: str


Block = Union[Heading, Para, Bullets, TableBlock, Quote]


def cite(ids: Any) -> str:
    if not ids:
        return ""
    if isinstance(ids, str):
        ids = [ids]
    return " " + "".join(f"[{i}]" for i in ids)


def _table(headers: List[str], rows: Iterable[Iterable[Any]]) -> TableBlock:
    return TableBlock(headers=headers, rows=[[fmt_value(c) for c in row] for row in rows])


def _paras(*texts: Any) -> List[Block]:
    return [Para(str(t)) for t in texts if t]


def _bullets(items: Iterable[Tuple[Optional[str], str]]) -> List[Block]:
    collected = [(label, text) for label, text in items if text or label]
    return [Bullets(collected)] if collected else []


# ---------------------------------------------------------------------------
# Per-section layouts
# ---------------------------------------------------------------------------

def _foundation(d: Mapping[str, Any]) -> List[Block]:
    basics = d.get("company_basics") or {}
    geo = d.get("geography_specifics") or {}
    facts = [
        ("Legal name:", basics.get("legal_name", "")),
        ("Ticker:", basics.get("ticker") or "n/a"),
        ("Ownership:", basics.get("ownership", "")),
        ("Headquarters:", basics.get("headquarters", "")),
        ("Global revenue (USD):", fmt_value(basics.get("global_revenue_usd"))),
        ("Global employees:", fmt_value(basics.get("global_employees"))),
        (
            "Regional revenue:",
            f"{fmt_value(geo.get('regional_revenue_usd'))} ({fmt_value(geo.get('regional_revenue_pct'))}%)",
        ),
        ("Regional employees:", fmt_value(geo.get("regional_employees"))),
    ]
    blocks: List[Block] = _bullets(facts)
    blocks += _bullets((None, fact) for fact in geo.get("key_facts") or [])
    segments = d.get("segment_structure") or []
    if segments:
        blocks.append(
            _table(
                ["Segment", "Revenue %", "Description"],
                ([s.get("name"), s.get("revenue_pct"), s.get("description")] for s in segments),
            )
        )
    return blocks


def _exec_summary(d: Mapping[str, Any]) -> List[Block]:
    return _bullets(
        (f"{b.get('category', '')}:", f"{b.get('bullet', '')}{cite(b.get('sources'))}")
        for b in d.get("bullet_points") or []
    )


def _financial_snapshot(d: Mapping[str, Any]) -> List[Block]:
    metrics = (d.get("kpi_table") or {}).get("metrics") or []
    blocks: List[Block] = _paras(d.get("summary"))
    blocks.append(
        _table(
            ["Metric", "Company", "Industry avg", "Source"],
            ([m.get("metric"), m.get("company"), m.get("industry_avg"), f"[{m.get('source')}]"] for m in metrics),
        )
    )
    derived = d.get("derived_metrics") or []
    if derived:
        blocks.append(Heading("Derived metrics", 3))
        blocks += _bullets(
            (f"{m.get('metric')}:", f"{m.get('formula')} = {m.get('calculation')}{cite(m.get('source'))}")
            for m in derived
        )
    blocks.append(
        Para(f"FX source: {d.get('fx_source', '')} | Industry source: {d.get('industry_source', '')}", italic=True)
    )
    return blocks


def _company_overview(d: Mapping[str, Any]) -> List[Block]:
    desc = d.get("business_description") or {}
    footprint = d.get("geographic_footprint") or {}
    priorities = d.get("strategic_priorities") or {}
    leadership = d.get("key_leadership") or {}
    regional_stats = footprint.get("regional_stats")
    if isinstance(regional_stats, dict):
        regional_stats = "; ".join(f"{k}: {fmt_value(v)}" for k, v in regional_stats.items())

    blocks: List[Block] = [Heading("Business description", 3)]
    blocks += _paras(desc.get("overview"))
    blocks += _bullets((f"{s.get('name')}:", s.get("description", "")) for s in desc.get("segments") or [])
    blocks += _paras(desc.get("geography_positioning"))

    blocks.append(Heading("Geographic footprint", 3))
    blocks += _paras(footprint.get("summary"), regional_stats)
    blocks += _bullets(
        (f"{f.get('name')}:", f"{f.get('type')}, {f.get('location')}") for f in footprint.get("facilities") or []
    )

    blocks.append(Heading("Strategic priorities", 3))
    blocks += _paras(priorities.get("summary"))
    blocks += _bullets(
        (f"{p.get('priority')}:", f"{p.get('description')}{cite(p.get('source'))}")
        for p in priorities.get("priorities") or []
    )

    people = (leadership.get("executives") or []) + (leadership.get("regional_leaders") or [])
    if people:
        blocks.append(Heading("Key leadership", 3))
        blocks += _bullets((f"{e.get('name')}:", e.get("title", "")) for e in people)
    return blocks


def _segment_analysis(d: Mapping[str, Any]) -> List[Block]:
    blocks: List[Block] = _paras(d.get("overview"))
    for seg in d.get("segments") or []:
        snapshot = seg.get("financial_snapshot") or {}
        perf = seg.get("performance_analysis") or {}
        landscape = seg.get("competitive_landscape") or {}
        blocks.append(Heading(seg.get("name", ""), 3))
        blocks.append(
            _table(
                ["Metric", "Segment", "Company avg", "Industry avg", "Source"],
                (
                    [m.get("metric"), m.get("segment"), m.get("company_avg"), m.get("industry_avg"), f"[{m.get('source')}]"]
                    for m in snapshot.get("table") or []
                ),
            )
        )
        blocks += _paras(*(perf.get("paragraphs") or []))
        for q in perf.get("analyst_quotes") or []:
            blocks.append(Quote(f"\"{q.get('quote')}\" - {q.get('analyst')}, {q.get('firm')}{cite(q.get('source'))}"))
        blocks += _bullets(("Driver:", driver) for driver in perf.get("key_drivers") or [])
        competitors = ", ".join(c.get("name", "") for c in landscape.get("competitors") or [])
        blocks += _bullets([("Competitors:", competitors)])
        blocks += _paras(landscape.get("positioning"), landscape.get("recent_dynamics"))
    return blocks


def _trends(d: Mapping[str, Any]) -> List[Block]:
    blocks: List[Block] = _paras(d.get("aggregate_summary"))
    for key, title in (
        ("macro_trends", "Macro trends"),
        ("micro_trends", "Micro trends"),
        ("company_trends", "Company trends"),
    ):
        group = d.get(key) or {}
        blocks.append(Heading(title, 3))
        blocks += _paras(group.get("summary"))
        blocks += _bullets(
            (
                f"{t.get('trend')} ({t.get('direction')}, impact {t.get('impact_score')}/10):",
                f"{t.get('description')}{cite(t.get('source'))}",
            )
            for t in group.get("trends") or []
        )
    return blocks


def _peer_benchmarking(d: Mapping[str, Any]) -> List[Block]:
    table = d.get("peer_comparison_table") or {}
    summary = d.get("benchmark_summary") or {}
    peers = [p.get("name", "") for p in table.get("peers") or []]
    headers = ["Metric", table.get("company_name") or "Company"] + peers + ["Industry avg", "Source"]
    rows = [
        [m.get("metric"), m.get("company")]
        + [m.get(f"peer{i + 1}") for i in range(len(peers))]
        + [m.get("industry_avg"), f"[{m.get('source')}]"]
        for m in table.get("metrics") or []
    ]
    blocks: List[Block] = [_table(headers, rows)]
    blocks += _paras(summary.get("overall_assessment"))
    if summary.get("key_strengths"):
        blocks.append(Heading("Strengths", 3))
        blocks += _bullets((f"{s.get('strength')}:", s.get("description", "")) for s in summary["key_strengths"])
    if summary.get("key_gaps"):
        blocks.append(Heading("Gaps", 3))
        blocks += _bullets(
            (f"{g.get('gap')} ({g.get('magnitude')}):", g.get("description", "")) for g in summary["key_gaps"]
        )
    blocks += _paras(summary.get("competitive_positioning"))
    return blocks


def _sku_opportunities(d: Mapping[str, Any]) -> List[Block]:
    opportunities = d.get("opportunities") or []
    if not opportunities:
        return [Para("No publicly evidenced opportunities identified.", italic=True)]
    return [
        _table(
            ["Issue area", "Problem", "Aligned SKU", "Priority", "Severity", "Source"],
            (
                [o.get("issue_area"), o.get("public_problem"), o.get("aligned_sku"),
                 o.get("priority"), o.get("severity"), f"[{o.get('source')}]"]
                for o in opportunities
            ),
        )
    ]


def _recent_news(d: Mapping[str, Any]) -> List[Block]:
    return _bullets(
        (
            f"{n.get('date')}:",
            f"{n.get('headline')} ({n.get('category')}){cite(n.get('source'))}. {n.get('implication', '')}",
        )
        for n in d.get("news_items") or []
    )


def _conversation_starters(d: Mapping[str, Any]) -> List[Block]:
    blocks: List[Block] = []
    for i, s in enumerate(d.get("conversation_starters") or [], start=1):
        blocks.append(Heading(f"{i}. {s.get('title')}", 3))
        blocks.append(Para(f"{s.get('question')}{cite(s.get('sources'))}"))
        blocks.append(Para(f"Why it matters: {s.get('business_value', '')}", italic=True))
    return blocks


def _appendix(d: Mapping[str, Any]) -> List[Block]:
    blocks: List[Block] = _bullets(
        (f"[{r.get('id')}]", r.get("citation", "") + (f" {r['url']}" if r.get("url") else ""))
        for r in d.get("source_references") or []
    )
    fx = (d.get("fx_rates_and_industry") or {}).get("fx_rates") or []
    if fx:
        blocks.append(
            _table(
                ["Pair", "Rate", "Source", "Description"],
                ([f.get("currency_pair"), f.get("rate"), f.get("source"), f.get("source_description")] for f in fx),
            )
        )
    blocks += _paras(d.get("renumbering_notes"))
    return blocks


_LAYOUTS: Dict[str, Callable[[Mapping[str, Any]], List[Block]]] = {
    "foundation": _foundation,
    "exec_summary": _exec_summary,
    "financial_snapshot": _financial_snapshot,
    "company_overview": _company_overview,
    "segment_analysis": _segment_analysis,
    "trends": _trends,
    "peer_benchmarking": _peer_benchmarking,
    "sku_opportunities": _sku_opportunities,
    "recent_news": _recent_news,
    "conversation_starters": _conversation_starters,
    "appendix": _appendix,
}


def section_blocks(section_id: str, data: Mapping[str, Any]) -> List[Block]:
    section = SECTIONS.get(section_id)
    if section is None:
        raise ValueError(f"Unknown section: {section_id}")
    title = f"{section.number}. {section.name}" if section.number else section.name
    blocks: List[Block] = [Heading(title, 2)]
    conf = data.get("confidence") or {}
    if conf.get("level"):
        reason = f" - {conf['reason']}" if conf.get("reason") else ""
        blocks.append(Para(f"Confidence: {conf['level']}{reason}", italic=True))
    blocks += _LAYOUTS[section_id](data)
    return blocks


def report_blocks(job: JobState) -> List[Block]:
    """Whole report: title, completed sections in catalogue order, source list."""
    sections = completed_sections(job)
    blocks: List[Block] = [Heading(report_title(job), 1), Para(f"Geography: {job.geography}")]
    if job.overall_confidence:
        blocks.append(Para(f"Overall confidence: {job.overall_confidence}"))
    for state in sections:
        blocks += section_blocks(state.section_id, state.content or {})
    if len(job.catalog):
        blocks.append(Heading("Sources", 2))
        blocks += _bullets((None, source_line(entry)) for entry in job.catalog)
    return blocks
