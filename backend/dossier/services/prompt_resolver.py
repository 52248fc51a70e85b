# backend/dossier/services/prompt_resolver.py
"""
Prompt resolution: a published database override wins over the code builder.

Resolution order for (section, report type):
1. the highest-version *published* override for exactly that key, rendered
   with the job's inputs;
2. the registered code builder, plus the report-type addendum when one exists.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.prompt_override import PromptOverride, PromptStatus
from .errors import PromptConfigurationError
from .prompts import PROMPT_BUILDERS, SectionInputs, render_template, template_preview
from .prompts.addendums import REPORT_TYPE_ADDENDUMS, append_addendum
from .sections import REPORT_TYPES, SECTION_ORDER, get_section, normalize_report_type

logger = logging.getLogger(__name__)

OverrideLookup = Callable[[str, Optional[str]], Optional[PromptOverride]]


@dataclass(frozen=True)
class ResolvedPrompt:
    content: str
    source: str                 # "code" | "database"
    version: int | None = None


class PromptResolver:
    def __init__(
        self,
        override_lookup: OverrideLookup | None = None,
        builders: Mapping[str, Callable[[SectionInputs], str]] | None = None,
    ) -> None:
        self._lookup = override_lookup
        self._builders = PROMPT_BUILDERS if builders is None else builders

    def resolve(
        self,
        section_id: str,
        report_type: str | None,
        inputs: SectionInputs,
    ) -> ResolvedPrompt:
        override = self._lookup(section_id, report_type) if self._lookup else None
        if override is not None:
            return ResolvedPrompt(
                content=render_template(override.content, inputs),
                source="database",
                version=override.version,
            )

        builder = self._builders.get(section_id)
        if builder is None:
            raise PromptConfigurationError(
                f"No prompt builder or published override for section {section_id}"
            )
        return ResolvedPrompt(
            content=append_addendum(builder(inputs), section_id, report_type),
            source="code",
        )


def _key_filter(query, section_id: str, report_type: str | None):
    query = query.filter(PromptOverride.section_id == section_id)
    if report_type is None:
        return query.filter(PromptOverride.report_type.is_(None))
    return query.filter(PromptOverride.report_type == report_type)


def published_override_lookup(db: Session) -> OverrideLookup:
    """Lookup callable bound to a session; returns the newest published row."""

    def _lookup(section_id: str, report_type: str | None) -> PromptOverride | None:
        query = _key_filter(db.query(PromptOverride), section_id, report_type)
        return (
            query.filter(PromptOverride.status == PromptStatus.PUBLISHED)
            .order_by(PromptOverride.version.desc())
            .first()
        )

    return _lookup


# ---------------------------------------------------------------------------
# Override administration
# ---------------------------------------------------------------------------

def create_draft(
    db: Session,
    section_id: str,
    report_type: str | None,
    content: str,
    created_by: str | None = None,
) -> PromptOverride:
    get_section(section_id)
    report_type = normalize_report_type(report_type)
    if not content or not content.strip():
        raise ValueError("Prompt content must not be empty")

    current = _key_filter(
        db.query(func.max(PromptOverride.version)), section_id, report_type
    ).scalar()
    override = PromptOverride(
        section_id=section_id,
        report_type=report_type,
        content=content,
        status=PromptStatus.DRAFT,
        version=(current or 0) + 1,
        created_by=created_by,
        created_at=datetime.utcnow(),
    )
    db.add(override)
    db.commit()
    db.refresh(override)

    logger.info(
        "Created prompt draft",
        extra={"section": section_id, "report_type": report_type, "step": "prompt_admin"},
    )
    return override


def _get_override(db: Session, override_id: UUID) -> PromptOverride:
    override = db.get(PromptOverride, override_id)
    if override is None:
        raise LookupError(f"Prompt override {override_id} not found")
    return override


def publish(db: Session, override_id: UUID) -> PromptOverride:
    """Publish one override and archive whatever was published for the same key."""
    override = _get_override(db, override_id)

    others = (
        _key_filter(db.query(PromptOverride), override.section_id, override.report_type)
        .filter(PromptOverride.status == PromptStatus.PUBLISHED)
        .filter(PromptOverride.id != override.id)
        .all()
    )
    for row in others:
        row.status = PromptStatus.ARCHIVED

    override.status = PromptStatus.PUBLISHED
    override.published_at = datetime.utcnow()
    db.commit()
    db.refresh(override)

    logger.info(
        "Published prompt override",
        extra={
            "section": override.section_id,
            "report_type": override.report_type,
            "step": "prompt_admin",
        },
    )
    return override


def unpublish(db: Session, override_id: UUID) -> PromptOverride:
    override = _get_override(db, override_id)
    override.status = PromptStatus.ARCHIVED
    db.commit()
    db.refresh(override)
    return override


@dataclass
class PromptListing:
    section_id: str
    report_type: str | None
    name: str
    description: str
    category: str
    code_content: str
    override: PromptOverride | None


def list_prompts(db: Session) -> List[PromptListing]:
    """Every section's base prompt plus each report-type variant that has an addendum."""
    latest: Dict[tuple, PromptOverride] = {}
    for row in db.query(PromptOverride).order_by(PromptOverride.version.asc()).all():
        latest[(row.section_id, row.report_type)] = row

    listings: List[PromptListing] = []
    for section_id in SECTION_ORDER:
        section = get_section(section_id)
        variants: List[str | None] = [None]
        variants.extend(
            rt for rt in REPORT_TYPES if rt in REPORT_TYPE_ADDENDUMS.get(section_id, {})
        )
        for report_type in variants:
            listings.append(
                PromptListing(
                    section_id=section_id,
                    report_type=report_type,
                    name=section.name,
                    description=section.description,
                    category=section.category,
                    code_content=template_preview(section_id, report_type),
                    override=latest.get((section_id, report_type)),
                )
            )
    return listings


def override_to_dict(override: PromptOverride | None) -> Dict[str, Any] | None:
    if override is None:
        return None
    return {
        "id": str(override.id),
        "section_id": override.section_id,
        "report_type": override.report_type,
        "content": override.content,
        "status": override.status,
        "version": override.version,
        "created_by": override.created_by,
        "created_at": override.created_at,
        "published_at": override.published_at,
    }
