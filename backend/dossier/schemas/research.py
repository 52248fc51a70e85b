# backend/dossier/schemas/research.py
from datetime import datetime
from typing import Any, Dict, List
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MAX_COMPANY_NAME_LEN = 200
MAX_GEOGRAPHY_LEN = 120
MAX_FOCUS_AREAS = 10
MAX_FOCUS_AREA_LEN = 200


class ResearchRequest(BaseModel):
    """New research job. camelCase keys from the dashboard are accepted too."""

    model_config = ConfigDict(populate_by_name=True)

    company_name: str = Field(validation_alias=AliasChoices("company_name", "companyName"))
    geography: str | None = None
    focus_areas: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("focus_areas", "focusAreas"),
    )
    report_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("report_type", "reportType"),
    )
    requested_by: str | None = Field(
        default=None,
        validation_alias=AliasChoices("requested_by", "requestedBy"),
    )

    @field_validator("geography", "report_type", "requested_by", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("company_name")
    @classmethod
    def validate_company_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("company_name must not be empty")
        if len(v) > MAX_COMPANY_NAME_LEN:
            raise ValueError(
                f"company_name must be at most {MAX_COMPANY_NAME_LEN} characters"
            )
        return v

    @field_validator("geography")
    @classmethod
    def validate_geography(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_GEOGRAPHY_LEN:
            raise ValueError(f"geography must be at most {MAX_GEOGRAPHY_LEN} characters")
        return v

    @field_validator("focus_areas")
    @classmethod
    def validate_focus_areas(cls, v: List[str]) -> List[str]:
        cleaned = [f.strip() for f in v if f and f.strip()]
        if len(cleaned) > MAX_FOCUS_AREAS:
            raise ValueError(f"At most {MAX_FOCUS_AREAS} focus areas are allowed")
        if any(len(f) > MAX_FOCUS_AREA_LEN for f in cleaned):
            raise ValueError(f"Each focus area must be at most {MAX_FOCUS_AREA_LEN} characters")
        return cleaned


class ResearchJobCreated(BaseModel):
    job_id: UUID
    status: str


class RerunRequest(BaseModel):
    sections: List[str] = Field(min_length=1)


class SectionStatusOut(BaseModel):
    section_id: str
    number: int
    name: str
    status: str
    confidence: str | None = None
    attempts: int = 0
    last_error: str | None = None
    prompt_source: str | None = None
    sources_used: List[str] = Field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class JobStatusOut(BaseModel):
    job_id: UUID
    company_name: str
    geography: str
    report_type: str | None = None
    status: str
    progress: float
    current_stage: str | None = None
    running_sections: List[str] = Field(default_factory=list)
    blocked_sections: List[str] = Field(default_factory=list)
    overall_confidence: str | None = None
    overall_confidence_score: float | None = None
    total_cost_usd: float | None = None
    llm_tokens: Dict[str, int] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    sections: List[SectionStatusOut]

    model_config = ConfigDict(from_attributes=True)


class JobSummaryOut(BaseModel):
    job_id: UUID
    company_name: str
    geography: str
    report_type: str | None = None
    status: str
    progress: float
    overall_confidence: str | None = None
    total_cost_usd: float | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class SourceOut(BaseModel):
    id: str
    citation: str
    url: str | None = None
    type: str | None = None
    date: str | None = None
    section: str | None = None

    model_config = ConfigDict(from_attributes=True)


class SectionDetailOut(SectionStatusOut):
    confidence_reason: str | None = None
    content: Dict[str, Any] | None = None


class ResearchTraceEventOut(BaseModel):
    id: int
    created_at: datetime
    phase: str
    step: str | None = None
    label: str
    detail: str | None = None
    meta: Dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class ResearchJobDetailOut(BaseModel):
    job: JobStatusOut
    focus_areas: List[str] = Field(default_factory=list)
    requested_by: str | None = None
    llm_usage: Dict[str, Any] | None = None
    sections: List[SectionDetailOut]
    sources: List[SourceOut]
    trace: List[ResearchTraceEventOut]
