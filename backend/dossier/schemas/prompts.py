# backend/dossier/schemas/prompts.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

MAX_PROMPT_LEN = 100_000


class PromptCreate(BaseModel):
    section_id: str
    report_type: str | None = None
    content: str
    created_by: str | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be empty")
        if len(v) > MAX_PROMPT_LEN:
            raise ValueError(f"content must be at most {MAX_PROMPT_LEN} characters")
        return v


class PromptOverrideOut(BaseModel):
    id: UUID
    section_id: str
    report_type: str | None = None
    content: str
    status: str
    version: int
    created_by: str | None = None
    created_at: datetime
    published_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PromptListingOut(BaseModel):
    section_id: str
    report_type: str | None = None
    name: str
    description: str
    category: str
    code_content: str
    override: PromptOverrideOut | None = None

    model_config = ConfigDict(from_attributes=True)


class PromptPreviewOut(BaseModel):
    section_id: str
    report_type: str | None = None
    code_content: str
    published: PromptOverrideOut | None = None
