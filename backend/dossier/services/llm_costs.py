from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..core.config import get_settings


@dataclass(frozen=True)
class ModelRate:
    input_per_mtok: float
    output_per_mtok: float
    cached_input_per_mtok: Optional[float] = None


def _build_default_pricebook() -> Dict[str, ModelRate]:
    # USD per 1M tokens
    return {
        "gpt-5.1": ModelRate(input_per_mtok=1.250, output_per_mtok=10.000, cached_input_per_mtok=0.125),
        "gpt-5-mini": ModelRate(input_per_mtok=0.250, output_per_mtok=2.000, cached_input_per_mtok=0.025),
        "gpt-4.1": ModelRate(input_per_mtok=2.000, output_per_mtok=8.000, cached_input_per_mtok=0.500),
        "claude-sonnet-4.5": ModelRate(input_per_mtok=3.000, output_per_mtok=15.000, cached_input_per_mtok=0.300),
    }


def _load_pricebook() -> Dict[str, ModelRate]:
    """Default rates, overridden per model by LLM_PRICEBOOK_JSON."""
    pricebook = _build_default_pricebook()
    override_raw = get_settings().LLM_PRICEBOOK_JSON
    if not override_raw:
        return pricebook

    try:
        override = json.loads(override_raw)
    except json.JSONDecodeError:
        return pricebook
    if not isinstance(override, dict):
        return pricebook

    for key, value in override.items():
        if not isinstance(value, dict):
            continue
        try:
            cached = value.get("cached_input_per_mtok")
            pricebook[normalize_model_name(key)] = ModelRate(
                input_per_mtok=float(value["input_per_mtok"]),
                output_per_mtok=float(value["output_per_mtok"]),
                cached_input_per_mtok=float(cached) if cached is not None else None,
            )
        except (KeyError, ValueError, TypeError):
            continue
    return pricebook


def normalize_model_name(model: str | None) -> str:
    """`openai/gpt-5.1:online` -> `gpt-5.1`"""
    m = (model or "").strip().lower()
    if "/" in m:
        m = m.split("/")[-1]
    if ":" in m:
        m = m.split(":")[0]
    return m


_PRICEBOOK: Dict[str, ModelRate] = _load_pricebook()


def cost_for_tokens(
    model: str | None,
    input_tokens: int,
    output_tokens: int,
    cached_input_tokens: int = 0,
) -> float:
    rate = _PRICEBOOK.get(normalize_model_name(model))
    if not rate:
        return 0.0

    cached_input = max(0, int(cached_input_tokens))
    paid_input = max(0, int(input_tokens) - cached_input)
    output = max(0, int(output_tokens))

    total = (paid_input / 1_000_000) * rate.input_per_mtok
    total += (output / 1_000_000) * rate.output_per_mtok
    if cached_input:
        total += (cached_input / 1_000_000) * (rate.cached_input_per_mtok or rate.input_per_mtok)
    return total


class LLMCostTracker:
    """
    Token usage and cost of the section calls made for one research job.

    Seed it with the calls already stored on the job so that re-runs and
    resumed jobs keep accumulating into the same summary. Thread-safe; the
    pipeline records from worker threads.
    """

    def __init__(self, job_id: str, calls: Iterable[Dict[str, Any]] = ()):
        self.job_id = job_id
        self._lock = threading.Lock()
        self._calls: List[Dict[str, Any]] = [dict(c) for c in calls]
        self._added = 0

    @property
    def has_new_records(self) -> bool:
        return self._added > 0

    def add_record(
        self,
        provider: str,
        model: str | None,
        *,
        section: str | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        cached_input_tokens: int = 0,
        cost_usd: float | None = None,
    ) -> None:
        if cost_usd is None:
            cost_usd = cost_for_tokens(model, input_tokens, output_tokens, cached_input_tokens)
        record = {
            "provider": provider or "unknown",
            "model": model or "",
            "section": section,
            "input": int(input_tokens or 0),
            "output": int(output_tokens or 0),
            "cached_input": int(cached_input_tokens or 0),
            "cost_usd": float(cost_usd),
        }
        with self._lock:
            self._calls.append(record)
            self._added += 1

    def summarize(self) -> dict:
        with self._lock:
            calls = [dict(c) for c in self._calls]

        totals = {"input": 0, "output": 0, "cached_input": 0}
        by_section: Dict[str, Dict[str, Any]] = {}
        total_cost = 0.0
        for call in calls:
            for key in totals:
                totals[key] += int(call.get(key) or 0)
            cost = float(call.get("cost_usd") or 0.0)
            total_cost += cost
            entry = by_section.setdefault(
                call.get("section") or "unknown",
                {"calls": 0, "input": 0, "output": 0, "cost_usd": 0.0},
            )
            entry["calls"] += 1
            entry["input"] += int(call.get("input") or 0)
            entry["output"] += int(call.get("output") or 0)
            entry["cost_usd"] += cost

        return {
            "calls": calls,
            "sections": by_section,
            "totals": totals,
            "total_cost_usd": round(total_cost, 6),
        }
