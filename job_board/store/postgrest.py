"""PostgREST record store (the hosted Supabase database).

Docs: https://postgrest.org/en/stable/references/api/tables_views.html

Every call is a single HTTP request against `/rest/v1`. Rate limiting (429) is
retried with exponential backoff; any other HTTP or transport failure is raised
as `StoreError` carrying the PostgREST error `code` and `message` so the
service layer can translate well-known conditions for operators.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import Settings, settings as default_settings
from ..errors import NO_ROWS_CODE
from .base import Filter, RecordStore, Row, StoreError


def _encode_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote_list_item(value: Any) -> str:
    raw = _encode_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{raw}"'


def encode_filter(f: Filter) -> Tuple[str, str]:
    """Map a `Filter` onto a PostgREST query parameter."""
    if f.op == "eq":
        return f.column, f"eq.{_encode_value(f.value)}"
    if f.op == "in":
        items = ",".join(_quote_list_item(v) for v in f.value)
        return f.column, f"in.({items})"
    if f.op == "is":
        return f.column, f"is.{_encode_value(f.value)}"
    raise ValueError(f"Unsupported filter op: {f.op}")


class PostgrestRecordStore(RecordStore):
    """Talk to the hosted row store over its REST interface."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout_s: float = 20.0,
        max_retries: int = 3,
        backoff_s: float = 1.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token or api_key
        self._timeout = timeout_s
        self._max_retries = max_retries
        self._backoff_s = backoff_s
        self._client = client

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, access_token: Optional[str] = None) -> "PostgrestRecordStore":
        config = config or default_settings
        if not config.has_store_config:
            raise StoreError("Job board backend is not configured yet.")
        return cls(
            base_url=config.supabase_base_url,
            api_key=config.SUPABASE_ANON_KEY.strip(),
            access_token=access_token,
            timeout_s=config.STORE_TIMEOUT_S,
            max_retries=config.STORE_MAX_RETRIES,
        )

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _raise_for_error(resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        code: Optional[str] = None
        message = f"Store request failed with status {resp.status_code}."
        try:
            body = resp.json()
        except (json.JSONDecodeError, ValueError):
            body = None
        if isinstance(body, dict):
            code = body.get("code") or None
            if isinstance(body.get("message"), str) and body["message"].strip():
                message = body["message"]
        raise StoreError(message, code=str(code) if code is not None else None)

    def _send(self, client: httpx.Client, method: str, path: str, **kwargs: Any) -> httpx.Response:
        retries = 0
        while True:
            resp = client.request(method, f"{self._base_url}{path}", **kwargs)
            if resp.status_code == 429 and retries < self._max_retries:
                time.sleep(self._backoff_s * (2**retries))
                retries += 1
                continue
            return resp

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            if self._client is not None:
                resp = self._send(self._client, method, path, **kwargs)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    resp = self._send(client, method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise StoreError(f"Store request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Store request failed: {exc}") from exc

        self._raise_for_error(resp)
        if not resp.content:
            return None
        try:
            return resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise StoreError(f"Invalid response from store: {exc}") from exc

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        params: List[Tuple[str, str]] = [("select", "*")]
        params.extend(encode_filter(f) for f in filters)
        if order_by:
            direction = "desc" if descending else "asc"
            params.append(("order", f"{order_by}.{direction}.nullslast"))
        if limit is not None:
            params.append(("limit", str(max(limit, 0))))

        data = self._request("GET", f"/rest/v1/{table}", params=params, headers=self._headers())
        return list(data or [])

    def insert(self, table: str, record: Row) -> Row:
        data = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=record,
            headers=self._headers(prefer="return=representation"),
        )
        rows = data or []
        if not rows:
            raise StoreError("Insert returned no row.", code=NO_ROWS_CODE)
        return rows[0]

    def update(self, table: str, filters: Sequence[Filter], patch: Row) -> Row:
        params = [encode_filter(f) for f in filters]
        data = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=patch,
            headers=self._headers(prefer="return=representation"),
        )
        rows = data or []
        if len(rows) != 1:
            raise StoreError(
                f"JSON object requested, multiple (or no) rows returned ({len(rows)} rows)",
                code=NO_ROWS_CODE,
            )
        return rows[0]

    def upsert(self, table: str, records: List[Row], on_conflict: str) -> List[Row]:
        data = self._request(
            "POST",
            f"/rest/v1/{table}",
            params=[("on_conflict", on_conflict)],
            json=records,
            headers=self._headers(prefer="resolution=merge-duplicates,return=representation"),
        )
        return list(data or [])

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", f"/rest/v1/rpc/{name}", json=params or {}, headers=self._headers())
