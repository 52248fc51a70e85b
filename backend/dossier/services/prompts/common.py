# backend/dossier/services/prompts/common.py
from __future__ import annotations

import json
import textwrap
from typing import Any, Dict, Iterable, List, TypedDict

from ..sections import SECTIONS


class _NotProvided:
    """Marker for an optional upstream section that failed or never ran."""

    def __repr__(self) -> str:
        return "NOT_PROVIDED"

    def __bool__(self) -> bool:
        return False


NOT_PROVIDED = _NotProvided()


class Placeholder(str):
    """A literal `{{name}}` token; builders emit it unchanged."""

    def __new__(cls, name: str):
        return super().__new__(cls, "{{" + name + "}}")


class SectionInputs(TypedDict, total=False):
    company_name: str
    geography: str
    focus_areas: List[str]
    report_type: str | None
    foundation: Any
    exec_summary: Any
    financial_snapshot: Any
    company_overview: Any
    segment_analysis: Any
    trends: Any
    peer_benchmarking: Any
    sku_opportunities: Any
    recent_news: Any
    conversation_starters: Any


def to_json(value: Any) -> str:
    if value is NOT_PROVIDED or value is None:
        return "Not provided"
    if isinstance(value, Placeholder):
        return str(value)
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def format_focus(focus_areas: Any) -> str:
    if isinstance(focus_areas, str):
        return focus_areas
    items = [str(f).strip() for f in (focus_areas or []) if str(f).strip()]
    return ", ".join(items) if items else "None specified"


def is_provided(value: Any) -> bool:
    return value is not NOT_PROVIDED and value is not None


def context_block(title: str, value: Any, *, required: bool = False) -> str:
    label = "Required" if required else "Optional"
    return f"### {label}: {title}\n\n```json\n{to_json(value)}\n```"


def upstream_blocks(inputs: SectionInputs, section_ids: Iterable[str], *, required: bool) -> List[str]:
    return [
        context_block(
            f"Section {SECTIONS[sid].number} ({SECTIONS[sid].name})",
            inputs.get(sid, NOT_PROVIDED),
            required=required,
        )
        for sid in section_ids
    ]


def available_sections(inputs: SectionInputs, section_ids: Iterable[str]) -> str:
    names = ["Foundation"]
    names.extend(
        f"Section {SECTIONS[sid].number} ({SECTIONS[sid].name})"
        for sid in section_ids
        if is_provided(inputs.get(sid, NOT_PROVIDED))
    )
    return ", ".join(names)


def header(section_id: str, inputs: SectionInputs) -> str:
    section = SECTIONS[section_id]
    company = inputs.get("company_name", "")
    geography = inputs.get("geography", "")
    title = f"Section {section.number}: {section.name}" if section.number else section.name
    return textwrap.dedent(
        f"""
        # {title}

        Generate **{section.name}** for **{company}** with a focus on **{geography}**.
        {section.description}

        Focus areas: {format_focus(inputs.get("focus_areas"))}
        """
    ).strip()


CITATION_RULES = textwrap.dedent(
    """
    ## CITATION RULES

    - Every factual claim cites a source id from the catalog, e.g. "S3".
    - A citation field holds exactly one id as a string, never a list.
    - Reuse the foundation catalog ids. A source that is not in the catalog goes
      in `new_sources` with a proposed id continuing the sequence.
    - `sources_used` lists every id cited in the section.
    """
).strip()

CONFIDENCE_RULES = textwrap.dedent(
    """
    ## CONFIDENCE

    Rate `confidence.level` as HIGH (multiple primary sources agree), MEDIUM
    (some gaps or single-source figures) or LOW (mostly estimated), with a one
    sentence `confidence.reason`.
    """
).strip()


def output_block(example: Dict[str, Any]) -> str:
    return (
        "## OUTPUT FORMAT\n\n"
        "Return ONLY a JSON object with this structure, no commentary:\n\n"
        f"```json\n{json.dumps(example, indent=2, ensure_ascii=False)}\n```"
    )


def compose(*parts: str) -> str:
    return "\n\n".join(part.strip() for part in parts if part and part.strip())


CONFIDENCE_EXAMPLE = {"level": "HIGH | MEDIUM | LOW", "reason": "string"}
SOURCE_EXAMPLE = {
    "id": "S1",
    "citation": "Publisher, title, date",
    "url": "https://...",
    "type": "filing | transcript | analyst_report | news | user_provided | government | investor_presentation | industry_report",
    "date": "YYYY-MM-DD",
}
