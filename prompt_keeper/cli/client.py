"""API client for the Prompt Keeper REST API."""

from __future__ import annotations

from typing import Any

import httpx


class KeeperClient:
    """HTTP client wrapping the Prompt Keeper API endpoints."""

    def __init__(self, base_url: str = "http://localhost:8400", user_id: str | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {}
        if user_id:
            headers["X-User-ID"] = user_id
        self._client = httpx.Client(base_url=f"{self.base_url}/api/v1", headers=headers, timeout=30)

    def _handle(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail", resp.text)
            except Exception:
                detail = resp.text
            raise RuntimeError(f"API error ({resp.status_code}): {detail}")
        if resp.status_code == 204:
            return None
        return resp.json()

    # --- Prompts ---

    def list_prompts(self, **params: Any) -> dict:
        return self._handle(self._client.get("/prompts", params=params))

    def get_prompt(self, prompt_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}"))

    def delete_prompt(self, prompt_id: str) -> None:
        self._handle(self._client.delete(f"/prompts/{prompt_id}", params={"confirm": "true"}))

    # --- Impact ---

    def deletion_impact(self, prompt_id: str) -> dict:
        return self._handle(self._client.get(f"/prompts/{prompt_id}/impact"))

    def bulk_deletion_impact(self, prompt_ids: list[str]) -> dict:
        return self._handle(self._client.post("/prompts/impact", json={"prompt_ids": prompt_ids}))

    # --- Bulk ---

    def bulk(
        self, operation: str, prompt_ids: list[str], data: Any = None, confirm: bool = False
    ) -> dict:
        return self._handle(self._client.post(
            "/prompts/bulk",
            json={
                "operation": {"type": operation, "data": data},
                "prompt_ids": prompt_ids,
                "confirm": confirm,
            },
        ))

    # --- Backups ---

    def list_backups(self, limit: int = 50) -> list[dict]:
        return self._handle(self._client.get("/backups", params={"limit": limit}))

    def restore_prompt(self, prompt_id: str) -> dict:
        return self._handle(self._client.post(f"/backups/{prompt_id}/restore"))

    def restore_prompts(self, prompt_ids: list[str]) -> dict:
        return self._handle(self._client.post("/backups/restore", json={"prompt_ids": prompt_ids}))

    # --- Usage ---

    def usage_overview(self, **params: Any) -> dict:
        return self._handle(self._client.get("/usage/overview", params=params))

    def export_usage_overview(self, **params: Any) -> dict:
        return self._handle(self._client.get("/usage/overview/export", params=params))

    # --- Import / export ---

    def export_prompts(self, data: dict) -> dict:
        return self._handle(self._client.post("/transfer/export", json=data))

    def validate_import(self, data: dict) -> dict:
        return self._handle(self._client.post("/transfer/import/validate", json=data))

    def preview_import(self, data: dict, resolutions: dict[str, str] | None = None) -> dict:
        return self._handle(self._client.post(
            "/transfer/import/preview", json={"data": data, "resolutions": resolutions or {}}
        ))

    def import_prompts(
        self,
        data: dict,
        resolutions: dict[str, str] | None = None,
        target_team_id: str | None = None,
    ) -> dict:
        return self._handle(self._client.post(
            "/transfer/import",
            json={
                "data": data,
                "resolutions": resolutions or {},
                "target_team_id": target_team_id,
            },
        ))
