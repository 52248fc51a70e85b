"""
Tests for llm.py

The OpenAI client is replaced by a MagicMock; nothing goes over the network.
"""
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from dossier.core.config import Settings
from dossier.services import llm
from dossier.services.errors import CollaboratorError
from dossier.services.llm_costs import LLMCostTracker


def _response(content, finish_reason="stop"):
    choice = MagicMock()
    choice.finish_reason = finish_reason
    choice.message.content = content
    resp = MagicMock()
    resp.choices = [choice]
    resp.usage.prompt_tokens = 120
    resp.usage.completion_tokens = 40
    resp.usage.prompt_tokens_details = None
    return resp


@pytest.fixture
def client(monkeypatch):
    fake = MagicMock()
    monkeypatch.setattr(llm, "get_llm_client", lambda: fake)
    return fake


class TestGenerate:
    def test_returns_stripped_content(self, client):
        client.chat.completions.create.return_value = _response('  {"ok": true}\n')
        assert llm.generate("prompt") == '{"ok": true}'

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][-1] == {"role": "user", "content": "prompt"}

    def test_usage_goes_to_tracker(self, client):
        client.chat.completions.create.return_value = _response('{"ok": true}')
        tracker = LLMCostTracker("job-1")
        llm.generate("prompt", tracker=tracker, section="trends")

        call = tracker.summarize()["calls"][0]
        assert call["section"] == "trends"
        assert (call["input"], call["output"]) == (120, 40)

    def test_truncated_output_is_still_tracked(self, client):
        client.chat.completions.create.return_value = _response('{"partial": ', finish_reason="length")
        tracker = LLMCostTracker("job-1")
        with pytest.raises(CollaboratorError):
            llm.generate("prompt", tracker=tracker, section="appendix")
        assert tracker.has_new_records

    def test_provider_error(self, client):
        client.chat.completions.create.side_effect = OpenAIError("rate limited")
        with pytest.raises(CollaboratorError, match="rate limited"):
            llm.generate("prompt")

    def test_truncated_output(self, client):
        client.chat.completions.create.return_value = _response('{"partial": ', finish_reason="length")
        with pytest.raises(CollaboratorError, match="truncated"):
            llm.generate("prompt")

    def test_no_choices(self, client):
        resp = _response("")
        resp.choices = []
        client.chat.completions.create.return_value = resp
        with pytest.raises(CollaboratorError, match="no choices"):
            llm.generate("prompt")


class TestGetLlmClient:
    @pytest.fixture(autouse=True)
    def _clear_cache(self):
        llm.get_llm_client.cache_clear()
        yield
        llm.get_llm_client.cache_clear()

    def test_openrouter_preferred(self, monkeypatch):
        settings = Settings(OPENROUTER_API_KEY=" or-key ", OPENAI_API_KEY="oa-key")
        monkeypatch.setattr(llm, "get_settings", lambda: settings)
        client = llm.get_llm_client()
        assert "openrouter.ai" in str(client.base_url)
        assert client.api_key == "or-key"

    def test_missing_keys(self, monkeypatch):
        settings = Settings(OPENROUTER_API_KEY=None, OPENAI_API_KEY=None)
        monkeypatch.setattr(llm, "get_settings", lambda: settings)
        with pytest.raises(RuntimeError, match="No LLM API key"):
            llm.get_llm_client()
