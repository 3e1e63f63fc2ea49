"""Tests for prompt, impact and feed API endpoints."""

from __future__ import annotations

from prompt_keeper.db.models import BACKUPS, PROMPTS, USAGE_LOG
from tests.conftest import add_prompt, as_user


class TestAuth:
    def test_missing_user_header(self, client):
        assert client.get("/api/v1/prompts").status_code == 401

    def test_unknown_user(self, client):
        assert client.get("/api/v1/prompts", headers=as_user("nobody")).status_code == 401


class TestServiceEndpoints:
    def test_root_and_health(self, client):
        assert client.get("/").json()["service"] == "prompt-keeper"
        assert client.get("/health").json()["status"] == "healthy"


class TestPromptCrud:
    def test_create_and_get(self, client):
        resp = client.post(
            "/api/v1/prompts",
            json={"title": "Outline", "content": "Write an outline", "tags": ["SEO"]},
            headers=as_user("alice"),
        )
        assert resp.status_code == 201
        prompt = resp.json()
        assert prompt["tags"] == ["seo"]

        resp = client.get(f"/api/v1/prompts/{prompt['id']}", headers=as_user("alice"))
        assert resp.status_code == 200
        assert resp.json()["title"] == "Outline"

    def test_create_global_forbidden(self, client):
        resp = client.post(
            "/api/v1/prompts",
            json={"title": "G", "content": "c", "sharing": "global"},
            headers=as_user("alice"),
        )
        assert resp.status_code == 403

    def test_invalid_tag(self, client):
        resp = client.post(
            "/api/v1/prompts",
            json={"title": "T", "content": "c", "tags": ["!!"]},
            headers=as_user("alice"),
        )
        assert resp.status_code == 422

    def test_get_missing(self, client):
        resp = client.get("/api/v1/prompts/nope", headers=as_user("alice"))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Prompt 'nope' not found"

    def test_get_private_of_other_user(self, client, mock_db):
        add_prompt(mock_db, "p1", created_by="carol")
        assert client.get("/api/v1/prompts/p1", headers=as_user("alice")).status_code == 403

    def test_update(self, client, mock_db):
        add_prompt(mock_db, "p1")
        resp = client.put(
            "/api/v1/prompts/p1", json={"title": "Renamed"}, headers=as_user("alice")
        )
        assert resp.status_code == 200
        assert resp.json()["title"] == "Renamed"

    def test_list_with_filters(self, client, mock_db):
        add_prompt(mock_db, "p1", title="Blog outline", created_at="2024-01-02")
        add_prompt(mock_db, "p2", title="Tweet", created_at="2024-01-01")
        resp = client.get(
            "/api/v1/prompts",
            params={"search": "blog", "sort_by": "title", "order": "asc"},
            headers=as_user("alice"),
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 1
        assert body["items"][0]["id"] == "p1"

    def test_counts(self, client, mock_db):
        add_prompt(mock_db, "g", created_by="admin", sharing="global")
        resp = client.get("/api/v1/prompts/counts", headers=as_user("alice"))
        assert resp.json() == {"global": 1, "t1": 0, "t2": 0}

    def test_feed(self, client, mock_db):
        add_prompt(mock_db, "team", created_by="bob", sharing="team", team_id="t1",
                   created_at="2024-01-01")
        add_prompt(mock_db, "g", created_by="admin", sharing="global", created_at="2024-01-02")
        resp = client.get("/api/v1/prompts/feed", headers=as_user("alice"))
        assert [p["id"] for p in resp.json()] == ["g", "team"]


class TestDelete:
    def test_requires_confirmation(self, client, mock_db):
        add_prompt(mock_db, "p1")
        resp = client.delete("/api/v1/prompts/p1", headers=as_user("alice"))
        assert resp.status_code == 400
        assert mock_db.get(PROMPTS, "p1") is not None

    def test_confirmed_delete_keeps_backup(self, client, mock_db):
        add_prompt(mock_db, "p1")
        resp = client.delete("/api/v1/prompts/p1?confirm=true", headers=as_user("alice"))
        assert resp.status_code == 204
        assert mock_db.get(PROMPTS, "p1") is None
        assert mock_db.get(BACKUPS, "p1")["deleted_by"] == "alice"

    def test_forbidden(self, client, mock_db):
        add_prompt(mock_db, "p1")
        resp = client.delete("/api/v1/prompts/p1?confirm=true", headers=as_user("carol"))
        assert resp.status_code == 403


class TestImpact:
    def test_single(self, client, mock_db, teams):
        add_prompt(mock_db, "p1", assigned_teams=["t1"])
        teams.assign("t1", "p1")
        mock_db.set(USAGE_LOG, "l1", {
            "prompt_id": "p1", "user_id": "bob", "team_id": "t1",
            "timestamp": "2024-01-01T00:00:00+00:00", "action": "used",
        })

        resp = client.get("/api/v1/prompts/p1/impact", headers=as_user("alice"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["total_impact_score"] == 20 + 10 + 1
        assert body["severity"] == "low"
        assert body["affected_teams"][0]["team_name"] == "Design"
        assert body["affected_users"][0]["user_email"] == "bob@example.com"
        assert body["usage_analytics"]["usage_by_team"] == {"t1": 1}

    def test_single_missing(self, client):
        assert client.get("/api/v1/prompts/nope/impact", headers=as_user("alice")).status_code == 404

    def test_bulk(self, client, mock_db):
        add_prompt(mock_db, "p1")
        resp = client.post(
            "/api/v1/prompts/impact", json={"prompt_ids": ["p1", "p2"]}, headers=as_user("alice")
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["missing"] == ["p2"]
        assert body["can_delete_all"] is False
        assert len(body["impacts"]) == 1
