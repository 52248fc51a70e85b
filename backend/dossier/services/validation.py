# backend/dossier/services/validation.py
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pydantic import ValidationError

from ..schemas.sections import SECTION_MODELS
from .errors import MalformedOutputError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_VALUE_PREVIEW_CHARS = 80


@dataclass
class ValidationResult:
    valid: bool
    data: Dict[str, Any] | None = None
    errors: List[str] = field(default_factory=list)


def parse_model_output(text: str) -> Dict[str, Any]:
    """
    Extract the JSON object from a model response.

    Markdown code fences and prose around the object are tolerated; anything
    that does not decode to a JSON object raises MalformedOutputError.
    """
    if not text or not text.strip():
        raise MalformedOutputError("Model returned an empty response")

    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", cleaned)
        if not match:
            raise MalformedOutputError("No JSON object found in model response") from None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError as e:
            raise MalformedOutputError(f"Model response is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise MalformedOutputError(
            f"Model response must be a JSON object, got {type(data).__name__}"
        )
    return data


def _format_error(err: Dict[str, Any]) -> str:
    path = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
    value = err.get("input")
    preview = json.dumps(value, default=str) if value is not None else "null"
    if len(preview) > _VALUE_PREVIEW_CHARS:
        preview = preview[: _VALUE_PREVIEW_CHARS - 3] + "..."
    return f"{path}: {err.get('msg', 'invalid')} (got {preview})"


def validate(section_id: str, raw: Any) -> ValidationResult:
    """
    Check a model payload (dict or JSON text) against the section's contract.

    Returns the normalized payload (unknown keys kept) on success, or every
    violation as "path: message (got value)" strings on failure.
    """
    model = SECTION_MODELS.get(section_id)
    if model is None:
        raise ValueError(f"Unknown section: {section_id}")

    if isinstance(raw, str):
        try:
            raw = parse_model_output(raw)
        except MalformedOutputError as e:
            return ValidationResult(valid=False, errors=[f"<root>: {e}"])

    if not isinstance(raw, dict):
        return ValidationResult(
            valid=False,
            errors=[f"<root>: expected a JSON object (got {type(raw).__name__})"],
        )

    try:
        parsed = model.model_validate(raw)
    except ValidationError as e:
        errors = [_format_error(err) for err in e.errors()]
        logger.info(
            "Section output failed validation",
            extra={"section": section_id, "error": f"{len(errors)} violation(s)"},
        )
        return ValidationResult(valid=False, errors=errors)

    return ValidationResult(valid=True, data=parsed.model_dump(exclude_unset=True))
