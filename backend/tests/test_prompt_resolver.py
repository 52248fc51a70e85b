"""
Tests for prompt_resolver.py

Resolution order (published override, then code builder plus addendum) and
the override draft/publish lifecycle.
"""
import uuid
from types import SimpleNamespace

import pytest

from dossier.models.prompt_override import PromptOverride, PromptStatus
from dossier.services import prompt_resolver
from dossier.services.errors import PromptConfigurationError
from dossier.services.prompt_resolver import PromptResolver, published_override_lookup
from dossier.services.prompts import PROMPT_BUILDERS
from dossier.services.prompts.addendums import get_addendum

from tests.fixtures.pipeline_fixtures import COMPANY, GEOGRAPHY


INPUTS = {
    "company_name": COMPANY,
    "geography": GEOGRAPHY,
    "focus_areas": [],
    "report_type": "PE",
}


def _lookup_for(table):
    def _lookup(section_id, report_type):
        return table.get((section_id, report_type))
    return _lookup


class TestPromptResolver:
    """Tests for PromptResolver.resolve without a database."""

    def test_code_default_without_report_type(self):
        resolved = PromptResolver().resolve("trends", None, INPUTS)
        assert resolved.source == "code"
        assert resolved.version is None
        assert resolved.content == PROMPT_BUILDERS["trends"](INPUTS)

    def test_code_default_appends_addendum(self):
        resolved = PromptResolver().resolve("trends", "PE", INPUTS)
        assert resolved.content.endswith(get_addendum("trends", "PE"))
        assert resolved.content.startswith(PROMPT_BUILDERS["trends"](INPUTS))

    def test_published_override_wins(self):
        override = SimpleNamespace(content="Research {{company_name}} now.", version=4)
        resolver = PromptResolver(_lookup_for({("trends", "PE"): override}))
        resolved = resolver.resolve("trends", "PE", INPUTS)
        assert resolved.source == "database"
        assert resolved.version == 4
        assert resolved.content == f"Research {COMPANY} now."

    def test_override_does_not_get_addendum(self):
        override = SimpleNamespace(content="Custom prompt", version=1)
        resolver = PromptResolver(_lookup_for({("trends", "PE"): override}))
        assert resolver.resolve("trends", "PE", INPUTS).content == "Custom prompt"

    def test_override_for_other_report_type_is_ignored(self):
        override = SimpleNamespace(content="Base override", version=1)
        resolver = PromptResolver(_lookup_for({("trends", None): override}))
        assert resolver.resolve("trends", "PE", INPUTS).source == "code"

    def test_missing_builder_and_override_raises(self):
        resolver = PromptResolver(builders={})
        with pytest.raises(PromptConfigurationError, match="trends"):
            resolver.resolve("trends", None, INPUTS)

    def test_override_covers_missing_builder(self):
        override = SimpleNamespace(content="Only in the database", version=2)
        resolver = PromptResolver(_lookup_for({("trends", None): override}), builders={})
        assert resolver.resolve("trends", None, INPUTS).source == "database"


class TestOverrideAdministration:
    """Tests for the draft/publish lifecycle against the database."""

    def test_create_draft_versions_per_key(self, db):
        first = prompt_resolver.create_draft(db, "trends", "pe", "v1 content")
        second = prompt_resolver.create_draft(db, "trends", "PE", "v2 content")
        other = prompt_resolver.create_draft(db, "trends", None, "base content")
        assert (first.version, second.version, other.version) == (1, 2, 1)
        assert first.report_type == "PE"
        assert first.status == PromptStatus.DRAFT

    @pytest.mark.parametrize("section_id,report_type,content", [
        ("not_a_section", None, "content"),
        ("trends", "RETAIL", "content"),
        ("trends", None, "   "),
    ])
    def test_create_draft_rejects_bad_input(self, db, section_id, report_type, content):
        with pytest.raises(ValueError):
            prompt_resolver.create_draft(db, section_id, report_type, content)

    def test_drafts_do_not_affect_resolution(self, db):
        prompt_resolver.create_draft(db, "trends", None, "draft only")
        assert published_override_lookup(db)("trends", None) is None

    def test_publish_archives_previous(self, db):
        first = prompt_resolver.create_draft(db, "trends", None, "v1")
        second = prompt_resolver.create_draft(db, "trends", None, "v2")
        prompt_resolver.publish(db, first.id)
        prompt_resolver.publish(db, second.id)

        db.refresh(first)
        assert first.status == PromptStatus.ARCHIVED
        assert second.status == PromptStatus.PUBLISHED
        assert second.published_at is not None
        assert published_override_lookup(db)("trends", None).id == second.id

    def test_lookup_matches_exact_report_type(self, db):
        base = prompt_resolver.create_draft(db, "trends", None, "base")
        prompt_resolver.publish(db, base.id)
        lookup = published_override_lookup(db)
        assert lookup("trends", None).id == base.id
        assert lookup("trends", "FS") is None

    def test_unpublish_falls_back_to_code(self, db):
        draft = prompt_resolver.create_draft(db, "recent_news", None, "Custom {{company_name}}")
        prompt_resolver.publish(db, draft.id)
        resolver = PromptResolver(published_override_lookup(db))
        assert resolver.resolve("recent_news", None, INPUTS).source == "database"

        prompt_resolver.unpublish(db, draft.id)
        assert resolver.resolve("recent_news", None, INPUTS).source == "code"

    def test_publish_unknown_override(self, db):
        with pytest.raises(LookupError):
            prompt_resolver.publish(db, uuid.uuid4())

    def test_list_prompts_includes_variants_and_latest_override(self, db):
        draft = prompt_resolver.create_draft(db, "trends", "FS", "fs prompt")
        listings = prompt_resolver.list_prompts(db)

        keys = {(p.section_id, p.report_type) for p in listings}
        assert ("foundation", None) in keys
        assert ("trends", "FS") in keys

        trends_fs = next(p for p in listings if (p.section_id, p.report_type) == ("trends", "FS"))
        assert trends_fs.override.id == draft.id
        assert trends_fs.name == "Market Trends"
        assert "{{company_name}}" in trends_fs.code_content

    def test_override_to_dict(self, db):
        draft = prompt_resolver.create_draft(db, "trends", None, "x", created_by="analyst@example.com")
        data = prompt_resolver.override_to_dict(draft)
        assert data["id"] == str(draft.id)
        assert data["created_by"] == "analyst@example.com"
        assert prompt_resolver.override_to_dict(None) is None

    def test_rows_are_persisted(self, db):
        prompt_resolver.create_draft(db, "trends", None, "persisted")
        assert db.query(PromptOverride).count() == 1
