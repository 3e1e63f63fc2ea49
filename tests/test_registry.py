"""Tests for the prompt registry."""

from __future__ import annotations

import pytest

from prompt_keeper.core.errors import NotFoundError, UnauthorizedError, ValidationError
from prompt_keeper.core.registry import (
    PromptFilters,
    PromptRegistry,
    apply_sharing_rules,
    filter_prompts,
    paginate,
    sort_prompts,
)
from prompt_keeper.db.models import PROMPTS
from tests.conftest import add_prompt


@pytest.fixture
def registry(mock_db) -> PromptRegistry:
    return PromptRegistry(mock_db)


class TestSharingRules:
    def test_team_requires_team_id(self):
        with pytest.raises(ValidationError):
            apply_sharing_rules({"sharing": "team", "team_id": None})

    def test_non_team_clears_team_id(self):
        assert apply_sharing_rules({"sharing": "global", "team_id": "t1"})["team_id"] is None

    def test_without_sharing_untouched(self):
        assert apply_sharing_rules({"title": "x"}) == {"title": "x"}


class TestCreate:
    def test_private_prompt(self, registry, users):
        prompt = registry.create_prompt(users["alice"], "Outline", "Write an outline", tags=["SEO"])
        assert prompt["created_by"] == "alice"
        assert prompt["sharing"] == "private"
        assert prompt["team_id"] is None
        assert prompt["tags"] == ["seo"]
        assert prompt["usage_count"] == 0
        assert registry.get_prompt(prompt["id"]) == prompt

    def test_team_prompt_defaults_to_users_team(self, registry, users):
        prompt = registry.create_prompt(users["alice"], "T", "C", sharing="team")
        assert prompt["team_id"] == "t1"

    def test_team_prompt_for_other_team_denied(self, registry, users):
        with pytest.raises(UnauthorizedError):
            registry.create_prompt(users["alice"], "T", "C", sharing="team", team_id="t2")

    def test_team_prompt_without_team_rejected(self, registry, users):
        with pytest.raises(UnauthorizedError):
            registry.create_prompt(users["dave"], "T", "C", sharing="team")

    def test_global_prompt_requires_super_user(self, registry, users):
        with pytest.raises(UnauthorizedError):
            registry.create_prompt(users["alice"], "G", "C", sharing="global")
        prompt = registry.create_prompt(users["admin"], "G", "C", sharing="global", team_id="t1")
        assert prompt["team_id"] is None

    def test_invalid_tag(self, registry, users):
        with pytest.raises(ValidationError):
            registry.create_prompt(users["alice"], "T", "C", tags=["!"])


class TestUpdate:
    def test_update_fields(self, registry, users, mock_db):
        add_prompt(mock_db, "p1")
        updated = registry.update_prompt("p1", users["alice"], title="New title", tags=["AI"])
        assert updated["title"] == "New title"
        assert updated["tags"] == ["ai"]
        assert updated["modified_by"] == "alice"

    def test_switch_to_team_uses_users_team(self, registry, users, mock_db):
        add_prompt(mock_db, "p1")
        updated = registry.update_prompt("p1", users["alice"], sharing="team")
        assert updated["team_id"] == "t1"

    def test_regular_user_cannot_make_prompt_global(self, registry, users, mock_db):
        add_prompt(mock_db, "p1", created_by="dave")
        with pytest.raises(UnauthorizedError):
            registry.update_prompt("p1", users["dave"], sharing="global")
        assert mock_db.get(PROMPTS, "p1")["sharing"] == "private"

    def test_cannot_move_prompt_into_other_team(self, registry, users, mock_db):
        add_prompt(mock_db, "p1")
        with pytest.raises(UnauthorizedError):
            registry.update_prompt("p1", users["alice"], sharing="team", team_id="t2")

    def test_super_user_can_make_prompt_global(self, registry, users, mock_db):
        add_prompt(mock_db, "p1", created_by="admin")
        updated = registry.update_prompt("p1", users["admin"], sharing="global")
        assert updated["sharing"] == "global"
        assert updated["team_id"] is None

    def test_team_id_alone_does_not_attach_private_prompt(self, registry, users, mock_db):
        add_prompt(mock_db, "p1")
        updated = registry.update_prompt("p1", users["alice"], team_id="t2")
        assert updated["sharing"] == "private"
        assert updated["team_id"] is None

    def test_team_member_keeps_team_prompt_in_team(self, registry, users, mock_db):
        add_prompt(mock_db, "p1", created_by="bob", sharing="team", team_id="t1")
        updated = registry.update_prompt("p1", users["alice"], title="x", team_id="t1")
        assert updated["team_id"] == "t1"

    def test_update_denied(self, registry, users, mock_db):
        add_prompt(mock_db, "p1")
        with pytest.raises(UnauthorizedError):
            registry.update_prompt("p1", users["carol"], title="x")

    def test_update_missing(self, registry, users):
        with pytest.raises(NotFoundError):
            registry.update_prompt("nope", users["admin"], title="x")


class TestListing:
    @pytest.fixture(autouse=True)
    def seed(self, mock_db):
        add_prompt(mock_db, "mine", created_at="2024-03-01", usage_count=3, tags=["seo"])
        add_prompt(mock_db, "team1", created_by="bob", sharing="team", team_id="t1",
                   created_at="2024-02-01")
        add_prompt(mock_db, "team2", created_by="carol", sharing="team", team_id="t2",
                   created_at="2024-02-02")
        add_prompt(mock_db, "global", created_by="admin", sharing="global",
                   created_at="2024-01-01", title="Zeta")

    def test_scopes(self, registry, users):
        assert [p["id"] for p in registry.list_prompts(users["alice"], "private")] == ["mine"]
        assert [p["id"] for p in registry.list_prompts(users["alice"], "team")] == ["team1"]
        assert [p["id"] for p in registry.list_prompts(users["alice"], "global")] == ["global"]

    def test_other_team_scope_denied(self, registry, users):
        with pytest.raises(UnauthorizedError):
            registry.list_prompts(users["alice"], "team", "t2")
        assert [p["id"] for p in registry.list_prompts(users["admin"], "team", "t2")] == ["team2"]

    def test_team_scope_without_team(self, registry, users):
        assert registry.list_prompts(users["dave"], "team") == []

    def test_unknown_scope(self, registry, users):
        with pytest.raises(ValidationError):
            registry.list_prompts(users["alice"], "everything")

    def test_browse_filters(self, registry, users):
        page = registry.browse(users["alice"], filters=PromptFilters(search="seo", has_usage=True))
        assert [p["id"] for p in page.items] == ["mine"]
        assert page.total == 1

    def test_counts(self, registry):
        assert registry.prompt_counts() == {"global": 1, "t1": 1, "t2": 1}


class TestTableHelpers:
    PROMPTS = [
        {"id": "a", "title": "beta", "usage_count": 2, "created_at": "2024-01-02", "tags": ["x"]},
        {"id": "b", "title": "Alpha", "usage_count": 0, "created_at": "2024-01-03", "tags": []},
        {"id": "c", "title": "gamma", "usage_count": 5, "created_at": "2024-01-01", "tags": ["x"]},
    ]

    def test_sort(self):
        assert [p["id"] for p in sort_prompts(self.PROMPTS, "title", descending=False)] == [
            "b", "a", "c"
        ]
        assert [p["id"] for p in sort_prompts(self.PROMPTS, "usage_count")] == ["c", "a", "b"]

    def test_sort_unknown_field(self):
        with pytest.raises(ValidationError):
            sort_prompts(self.PROMPTS, "content")

    def test_filter_date_range_and_tags(self):
        filters = PromptFilters(tags=["x"], created_from="2024-01-02")
        assert [p["id"] for p in filter_prompts(self.PROMPTS, filters)] == ["a"]

    def test_paginate_clamps_page(self):
        page = paginate(self.PROMPTS, page=5, page_size=2)
        assert page.page == 2
        assert [p["id"] for p in page.items] == ["c"]
        assert paginate([], 1, 20).page == 1
