# backend/dossier/services/confidence.py
from __future__ import annotations

from typing import Iterable, Mapping, Protocol, Set, Tuple

from ..models.section_run import SectionStatus
from .sections import SECTIONS

CONFIDENCE_SCORES = {
    "HIGH": 0.9,
    "MEDIUM": 0.6,
    "LOW": 0.4,
}

HIGH_THRESHOLD = 0.75
MEDIUM_THRESHOLD = 0.5

TERMINAL_SECTION_STATUSES = frozenset({SectionStatus.COMPLETED, SectionStatus.FAILED})


class _HasConfidence(Protocol):
    status: str
    confidence: str | None


def confidence_label(score: float) -> str:
    if score >= HIGH_THRESHOLD:
        return "HIGH"
    if score >= MEDIUM_THRESHOLD:
        return "MEDIUM"
    return "LOW"


def aggregate_confidence(
    sections: Iterable[_HasConfidence],
) -> Tuple[float | None, str | None]:
    """
    Mean score over completed sections that report a confidence level.

    Failed and unfinished sections do not contribute. Returns (None, None)
    when nothing qualifies.
    """
    scores = [
        CONFIDENCE_SCORES[s.confidence]
        for s in sections
        if s.status == SectionStatus.COMPLETED and s.confidence in CONFIDENCE_SCORES
    ]
    if not scores:
        return None, None
    score = round(sum(scores) / len(scores), 4)
    return score, confidence_label(score)


def compute_progress(sections: Iterable[_HasConfidence]) -> float:
    """Fraction of sections that reached completed or failed."""
    states = list(sections)
    if not states:
        return 0.0
    done = sum(1 for s in states if s.status in TERMINAL_SECTION_STATUSES)
    return round(done / len(states), 4)


def collect_blocked_sections(statuses: Mapping[str, str]) -> Set[str]:
    """
    Pending sections that can never run because a hard dependency failed,
    directly or through another blocked section.
    """
    blocked: Set[str] = set()
    changed = True
    while changed:
        changed = False
        for section_id, status in statuses.items():
            if status != SectionStatus.PENDING or section_id in blocked:
                continue
            section = SECTIONS.get(section_id)
            if section is None:
                continue
            for dep in section.requires:
                if statuses.get(dep) == SectionStatus.FAILED or dep in blocked:
                    blocked.add(section_id)
                    changed = True
                    break
    return blocked
