"""SQLAlchemy ORM models."""

from .research_job import ResearchJob, JobStatus, TERMINAL_JOB_STATUSES
from .section_run import SectionRun, SectionStatus
from .source_entry import SourceEntry
from .prompt_override import PromptOverride, PromptStatus
from .research_trace_event import ResearchTraceEvent

__all__ = [
    "ResearchJob",
    "JobStatus",
    "TERMINAL_JOB_STATUSES",
    "SectionRun",
    "SectionStatus",
    "SourceEntry",
    "PromptOverride",
    "PromptStatus",
    "ResearchTraceEvent",
]
