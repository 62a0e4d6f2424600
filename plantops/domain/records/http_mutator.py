"""HTTP record mutator that talks to the dashboard's spreadsheet web app."""

from __future__ import annotations

from typing import Any

import httpx

from plantops.core.errors import DomainError
from plantops.domain.users.entities import Plant
from .base import RecordMutator
from .types import DomainType


def sheet_for(domain_type: DomainType, plant_scope: str) -> str:
    """NPK2 records live in the base sheet, NPK1 records in `<base>_NPK1`."""
    if plant_scope == Plant.NPK1.value:
        return f"{domain_type.value}_NPK1"
    return domain_type.value


class HttpRecordMutator(RecordMutator):
    """Apply record mutations by calling the spreadsheet web app.

    The web app takes every write as a POST with a JSON body
    `{"action": ..., "sheet": ..., "data": ...}` sent as text/plain (it does
    not answer CORS preflights), and reads as `GET ?action=read&sheet=...`.
    Failures come back as `{"success": false, "error": ...}` with HTTP 200.
    """

    def __init__(
        self,
        domain_type: DomainType,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Create an HTTP record mutator.

        Args:
            domain_type: Data domain whose sheet this mutator writes.
            base_url: URL of the web app deployment (e.g. https://script.example/exec).
            client: Optional injected httpx client for testing / transport control.
            timeout: Per-request timeout in seconds.
        """
        super().__init__(domain_type)
        self._base_url = base_url.rstrip('/')
        self._client = client
        self._timeout = timeout

    async def fetch_record(self, record_id: str, *, plant_scope: str) -> dict[str, Any] | None:
        params = {"action": "read", "sheet": sheet_for(self.domain_type, plant_scope)}
        rows = await self._send("GET", params=params)
        for row in rows or []:
            if str(row.get("id")) == str(record_id):
                return row
        return None

    async def apply_edit(
        self,
        record_id: str,
        proposed_state: dict[str, Any],
        *,
        plant_scope: str,
    ) -> dict[str, Any]:
        data = {**proposed_state, "id": record_id}
        result = await self._send("POST", body={
            "action": "update",
            "sheet": sheet_for(self.domain_type, plant_scope),
            "data": data,
        })
        return {"ok": True, "record_id": record_id, "data": result}

    async def apply_delete(self, record_id: str, *, plant_scope: str) -> dict[str, Any]:
        try:
            result = await self._send("POST", body={
                "action": "delete",
                "sheet": sheet_for(self.domain_type, plant_scope),
                "data": {"id": record_id},
            })
        except DomainError:
            # A record that is already gone counts as deleted, so a retry
            # after a lost response still completes.
            if await self.fetch_record(record_id, plant_scope=plant_scope) is None:
                return {"ok": True, "record_id": record_id, "data": None}
            raise
        return {"ok": True, "record_id": record_id, "data": result}

    async def _send(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        if self._client is not None:
            return self._unwrap(await self._request(self._client, method, params, body))

        async with httpx.AsyncClient(follow_redirects=True) as client:
            return self._unwrap(await self._request(client, method, params, body))

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        params: dict[str, str] | None,
        body: dict[str, Any] | None,
    ) -> httpx.Response:
        if method == "GET":
            resp = await client.get(self._base_url, params=params, timeout=self._timeout)
        else:
            resp = await client.post(
                self._base_url,
                json=body,
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self._timeout,
            )
        resp.raise_for_status()
        return resp

    def _unwrap(self, resp: httpx.Response) -> Any:
        payload = resp.json()
        if isinstance(payload, dict):
            if payload.get("success") is False:
                raise DomainError(
                    payload.get("error") or "Record backend rejected the request",
                    domain_type=self.domain_type.value,
                )
            if "data" in payload:
                return payload["data"]
        return payload
