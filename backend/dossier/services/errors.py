"""
Error kinds raised inside the section pipeline.

Everything except PromptConfigurationError is captured into the failing
section's state; none of them cross a section boundary.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for section pipeline errors."""


class PromptConfigurationError(PipelineError):
    """No code builder and no published override exist for a section."""


class CollaboratorError(PipelineError):
    """The generation call timed out or failed in transport."""


class MalformedOutputError(PipelineError):
    """The model response is not a parseable JSON object."""


class InvalidJobStateError(PipelineError, ValueError):
    """The job's current status does not allow the requested operation."""


class SectionValidationError(PipelineError):
    """The model returned JSON that violates the section contract."""

    def __init__(self, section_id: str, errors: list[str]):
        self.section_id = section_id
        self.errors = list(errors)
        preview = "; ".join(self.errors[:10])
        more = f" (+{len(self.errors) - 10} more)" if len(self.errors) > 10 else ""
        super().__init__(f"Validation failed for {section_id}: {preview}{more}")
