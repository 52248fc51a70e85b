from __future__ import annotations

import re
from typing import Any, Callable, Dict, Mapping

from ..sections import SECTION_ORDER, get_section
from .addendums import append_addendum
from .analysis import (
    build_peer_benchmarking_prompt,
    build_segment_analysis_prompt,
    build_sku_opportunities_prompt,
    build_trends_prompt,
)
from .common import NOT_PROVIDED, Placeholder, SectionInputs, format_focus, to_json
from .core_sections import (
    build_company_overview_prompt,
    build_financial_snapshot_prompt,
    build_recent_news_prompt,
)
from .foundation import build_foundation_prompt
from .synthesis import (
    build_appendix_prompt,
    build_conversation_starters_prompt,
    build_exec_summary_prompt,
)

PromptBuilder = Callable[[SectionInputs], str]

PROMPT_BUILDERS: Dict[str, PromptBuilder] = {
    "foundation": build_foundation_prompt,
    "exec_summary": build_exec_summary_prompt,
    "financial_snapshot": build_financial_snapshot_prompt,
    "company_overview": build_company_overview_prompt,
    "segment_analysis": build_segment_analysis_prompt,
    "trends": build_trends_prompt,
    "peer_benchmarking": build_peer_benchmarking_prompt,
    "sku_opportunities": build_sku_opportunities_prompt,
    "recent_news": build_recent_news_prompt,
    "conversation_starters": build_conversation_starters_prompt,
    "appendix": build_appendix_prompt,
}

_JOB_FIELDS = ("company_name", "geography", "focus_areas", "report_type")
TEMPLATE_FIELDS = _JOB_FIELDS + SECTION_ORDER

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def _render_value(name: str, value: Any) -> str:
    if name == "focus_areas":
        return format_focus(value)
    if name in _JOB_FIELDS:
        return "" if value is None else str(value)
    return to_json(value)


def render_template(template: str, inputs: Mapping[str, Any]) -> str:
    """
    Interpolate `{{name}}` placeholders in an override template.

    Job fields render as text, section inputs as JSON ("Not provided" when
    absent). Names outside the known set are left untouched.
    """

    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name not in TEMPLATE_FIELDS:
            return match.group(0)
        return _render_value(name, inputs.get(name, NOT_PROVIDED))

    return _PLACEHOLDER_RE.sub(_sub, template)


def template_preview(section_id: str, report_type: str | None = None) -> str:
    """The code-default prompt with `{{name}}` tokens in place of job data."""
    get_section(section_id)
    builder = PROMPT_BUILDERS.get(section_id)
    if builder is None:
        raise ValueError(f"No prompt builder registered for {section_id}")
    inputs: SectionInputs = {name: Placeholder(name) for name in TEMPLATE_FIELDS}  # type: ignore[misc]
    return append_addendum(builder(inputs), section_id, report_type)


__all__ = [
    "NOT_PROVIDED",
    "PROMPT_BUILDERS",
    "SectionInputs",
    "TEMPLATE_FIELDS",
    "render_template",
    "template_preview",
]
