from __future__ import annotations

from functools import lru_cache
from contextlib import contextmanager
from threading import BoundedSemaphore
import logging

from openai import OpenAI, OpenAIError

from ..core.config import get_settings
from .errors import CollaboratorError
from .llm_costs import LLMCostTracker

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior equity research analyst preparing a client-meeting brief. "
    "Answer with a single JSON object that follows the requested structure exactly."
)

_llm_semaphore: BoundedSemaphore | None = None


def _get_semaphore() -> BoundedSemaphore:
    """
    Lazy-initialised global semaphore for limiting concurrent LLM calls.
    """
    global _llm_semaphore
    if _llm_semaphore is None:
        settings = get_settings()
        _llm_semaphore = BoundedSemaphore(settings.LLM_MAX_CONCURRENCY)
    return _llm_semaphore


@contextmanager
def limit_llm_concurrency():
    """
    Bound concurrent calls to the LLM provider across every job in the process.

    Use inside the thread that actually performs the HTTP request.
    """
    sem = _get_semaphore()
    sem.acquire()
    try:
        yield
    finally:
        sem.release()


@lru_cache(maxsize=1)
def get_llm_client() -> OpenAI:
    """
    Shared OpenAI-compatible client.

    - If OPENROUTER_API_KEY is set, route requests via OpenRouter.
    - Otherwise use the OpenAI API with OPENAI_API_KEY.
    """
    settings = get_settings()

    if settings.OPENROUTER_API_KEY:
        return OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=settings.OPENROUTER_API_KEY.strip(),
            default_headers={
                "HTTP-Referer": settings.FRONTEND_ORIGIN or "http://localhost:3000",
                "X-Title": "Dossier Company Research",
            },
        )

    if settings.OPENAI_API_KEY:
        return OpenAI(api_key=settings.OPENAI_API_KEY.strip())

    raise RuntimeError(
        "No LLM API key configured. Set either OPENAI_API_KEY or OPENROUTER_API_KEY."
    )


def generate(
    prompt: str,
    *,
    tracker: LLMCostTracker | None = None,
    section: str | None = None,
) -> str:
    """
    Send one section prompt and return the raw model text.

    Blocking; the pipeline runs it in a worker thread. Token usage is added to
    `tracker` under `section` whenever the provider answered. Transport and
    provider failures are raised as CollaboratorError.
    """
    settings = get_settings()
    try:
        client = get_llm_client()
        with limit_llm_concurrency():
            extra_body = {}
            if "gpt-5.1" in settings.LLM_MODEL:
                extra_body["reasoning"] = {"effort": "medium"}

            resp = client.chat.completions.create(
                model=settings.LLM_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=settings.LLM_TEMPERATURE,
                max_tokens=settings.LLM_MAX_TOKENS,
                response_format={"type": "json_object"},
                extra_body=extra_body,
            )
    except (OpenAIError, RuntimeError) as e:
        logger.warning("LLM call failed: %s", e, extra={"step": "llm"})
        raise CollaboratorError(f"LLM call failed: {e}") from e

    usage = getattr(resp, "usage", None)
    prompt_tokens = getattr(usage, "prompt_tokens", None) or 0
    completion_tokens = getattr(usage, "completion_tokens", None) or 0
    details = getattr(usage, "prompt_tokens_details", None)
    cached_tokens = getattr(details, "cached_tokens", None) or 0
    logger.info(
        "LLM call finished",
        extra={
            "step": "llm",
            "section": section,
            "model": settings.LLM_MODEL,
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
        },
    )
    if tracker is not None:
        tracker.add_record(
            "openrouter" if settings.OPENROUTER_API_KEY else "openai",
            settings.LLM_MODEL,
            section=section,
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            cached_input_tokens=cached_tokens,
        )

    if not resp.choices:
        raise CollaboratorError("LLM returned no choices")

    choice = resp.choices[0]
    # "length" means the JSON object was cut off mid-way
    if choice.finish_reason == "length":
        raise CollaboratorError(
            f"LLM output truncated at {settings.LLM_MAX_TOKENS} tokens"
        )
    return (choice.message.content or "").strip()
