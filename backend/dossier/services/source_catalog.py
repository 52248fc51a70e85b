# backend/dossier/services/source_catalog.py
"""
Job-wide source catalog with stable S<n> identifiers.

Ids are assigned in arrival order and never renumbered or reused. A source
that is already known (same normalised URL, or same citation text when there
is no URL) keeps its first id.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from urllib.parse import urlsplit

_WS_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class CatalogEntry:
    id: str
    citation: str
    url: str | None = None
    type: str | None = None
    date: str | None = None
    section: str | None = None      # section that first contributed the source

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_url(url: str | None) -> str | None:
    if not url or not url.strip():
        return None
    parts = urlsplit(url.strip().lower())
    host = parts.netloc or ""
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    if not host:
        # scheme-less "example.com/report"
        return path or None
    query = f"?{parts.query}" if parts.query else ""
    return f"{host}{path}{query}"


def normalize_citation(citation: str | None) -> str:
    text = _PUNCT_RE.sub(" ", (citation or "").lower())
    return _WS_RE.sub(" ", text).strip()


def citation_key(url: str | None, citation: str | None) -> str:
    norm = normalize_url(url)
    if norm:
        return f"url:{norm}"
    return f"cite:{normalize_citation(citation)}"


class SourceCatalog:
    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._entries: List[CatalogEntry] = []
        self._by_key: Dict[str, str] = {}
        self._ids: set[str] = set()
        for entry in entries:
            self._add(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._ids

    def __iter__(self):
        return iter(self._entries)

    @property
    def entries(self) -> List[CatalogEntry]:
        return list(self._entries)

    def ids(self) -> List[str]:
        return [e.id for e in self._entries]

    def get(self, source_id: str) -> CatalogEntry | None:
        for entry in self._entries:
            if entry.id == source_id:
                return entry
        return None

    def copy(self) -> "SourceCatalog":
        return SourceCatalog(self._entries)

    def _add(self, entry: CatalogEntry) -> None:
        self._entries.append(entry)
        self._ids.add(entry.id)
        self._by_key.setdefault(citation_key(entry.url, entry.citation), entry.id)

    def _next_id(self) -> str:
        n = len(self._entries) + 1
        while f"S{n}" in self._ids:
            n += 1
        return f"S{n}"

    def merge(
        self,
        entries: Iterable[Mapping[str, Any]],
        section_id: str,
    ) -> Tuple[List[CatalogEntry], Dict[str, str]]:
        """
        Fold a section's proposed sources into the catalog.

        Returns the entries that were appended and a mapping of proposed id to
        assigned id for every proposal whose id changed. Known sources reuse
        their existing id; new ones take the next free S<n>.
        """
        added: List[CatalogEntry] = []
        remap: Dict[str, str] = {}

        for raw in entries:
            proposed = str(raw.get("id") or "").strip()
            citation = str(raw.get("citation") or "").strip()
            url = raw.get("url") or None
            if not citation and not url:
                continue

            key = citation_key(url, citation)
            existing = self._by_key.get(key)
            if existing is not None:
                assigned = existing
            else:
                assigned = self._next_id()
                entry = CatalogEntry(
                    id=assigned,
                    citation=citation or url,
                    url=url,
                    type=raw.get("type"),
                    date=raw.get("date"),
                    section=section_id,
                )
                self._add(entry)
                added.append(entry)

            if proposed and proposed != assigned:
                remap[proposed] = assigned

        return added, remap


def remap_citations(content: Any, remap: Mapping[str, str]) -> Any:
    """Return a copy of `content` with every string equal to a remapped id replaced."""
    if not remap:
        return content
    if isinstance(content, str):
        return remap.get(content, content)
    if isinstance(content, list):
        return [remap_citations(item, remap) for item in content]
    if isinstance(content, dict):
        return {key: remap_citations(value, remap) for key, value in content.items()}
    return content


def section_sources(content: Mapping[str, Any] | None) -> List[Dict[str, Any]]:
    """Source proposals carried by a validated section payload."""
    if not content:
        return []
    proposals: List[Dict[str, Any]] = []
    for key in ("source_catalog", "source_references", "new_sources"):
        value = content.get(key)
        if isinstance(value, list):
            proposals.extend(item for item in value if isinstance(item, dict))
    return proposals


def dedupe_ids(ids: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    out: List[str] = []
    for source_id in ids:
        if source_id not in seen:
            seen.add(source_id)
            out.append(source_id)
    return out
