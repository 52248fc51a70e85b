from uuid import UUID
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.prompts import (
    PromptCreate,
    PromptListingOut,
    PromptOverrideOut,
    PromptPreviewOut,
)
from ..services import prompt_resolver
from ..services.prompts import template_preview
from ..services.sections import normalize_report_type
from .routes_research import verify_api_key

router = APIRouter(tags=["prompts"])
logger = logging.getLogger(__name__)


@router.get("/prompts", response_model=list[PromptListingOut])
def list_prompts(
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    """Code defaults for every section and report-type variant, with the latest override."""
    return [PromptListingOut.model_validate(p) for p in prompt_resolver.list_prompts(db)]


@router.post("/prompts", response_model=PromptOverrideOut, status_code=201)
def create_prompt_draft(
    payload: PromptCreate,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    try:
        override = prompt_resolver.create_draft(
            db,
            payload.section_id,
            payload.report_type,
            payload.content,
            created_by=payload.created_by,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return override


@router.post("/prompts/{override_id}/publish", response_model=PromptOverrideOut)
def publish_prompt(
    override_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    try:
        return prompt_resolver.publish(db, override_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Prompt override not found")


@router.post("/prompts/{override_id}/unpublish", response_model=PromptOverrideOut)
def unpublish_prompt(
    override_id: UUID,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    try:
        return prompt_resolver.unpublish(db, override_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Prompt override not found")


@router.get("/prompts/{section_id}/preview", response_model=PromptPreviewOut)
def preview_prompt(
    section_id: str,
    report_type: str | None = None,
    db: Session = Depends(get_db),
    _: None = Depends(verify_api_key),
):
    try:
        report_type = normalize_report_type(report_type)
        code_content = template_preview(section_id, report_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    published = prompt_resolver.published_override_lookup(db)(section_id, report_type)
    return PromptPreviewOut(
        section_id=section_id,
        report_type=report_type,
        code_content=code_content,
        published=PromptOverrideOut.model_validate(published) if published else None,
    )
