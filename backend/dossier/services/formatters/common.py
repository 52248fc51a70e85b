from __future__ import annotations

from typing import Any, List

from ...models.section_run import SectionStatus
from ..pipeline import JobState, SectionState
from ..source_catalog import CatalogEntry


def completed_sections(job: JobState) -> List[SectionState]:
    """Completed sections in catalogue order; a job with none cannot be exported."""
    sections = [
        s for s in job.ordered_sections()
        if s.status == SectionStatus.COMPLETED and s.content is not None
    ]
    if not sections:
        raise ValueError(f"Job {job.id} has no completed sections to export")
    return sections


def report_title(job: JobState) -> str:
    suffix = f" ({job.report_type})" if job.report_type else ""
    return f"{job.company_name} - Account Research Brief{suffix}"


def fmt_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if value.is_integer():
            return f"{int(value):,}"
        return f"{value:,.2f}"
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:,}"
    return str(value)


def source_line(entry: CatalogEntry) -> str:
    parts = [f"[{entry.id}] {entry.citation}"]
    if entry.date:
        parts.append(f"({entry.date})")
    if entry.url:
        parts.append(entry.url)
    return " ".join(parts)
