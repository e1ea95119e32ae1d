"""Thin PostgREST client over requests. One HTTP request per call."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests

from curriculum.core.config import SUPABASE_SCHEMA, SUPABASE_SERVICE_KEY, SUPABASE_TIMEOUT, SUPABASE_URL
from curriculum.domain.common.errors import StoreReadFailed, StoreWriteFailed

UNIQUE_VIOLATION = "23505"

Params = List[Tuple[str, str]]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def eq(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def ilike_exact(value: str) -> str:
    """Case-insensitive equality. PostgREST reads ``*`` as ``%``, so a literal
    ``*`` becomes the one-character wildcard and callers compare the rows."""
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_").replace("*", "_")
    return f"ilike.{escaped}"


def in_list(values: List[str]) -> str:
    quoted = ",".join('"{}"'.format(v.replace('"', '\\"')) for v in values)
    return f"in.({quoted})"


def _error_message(response: Optional[requests.Response]) -> Tuple[str, Optional[str]]:
    if response is None:
        return "no response", None
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason or "", None
    if isinstance(payload, dict):
        return str(payload.get("message") or payload), payload.get("code")
    return str(payload), None


class PostgrestClient:

    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        schema: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        base_url = (url or SUPABASE_URL).rstrip("/")
        if not base_url:
            raise ValueError("SUPABASE_URL must be configured for the supabase store.")
        key = service_key or SUPABASE_SERVICE_KEY
        profile = schema or SUPABASE_SCHEMA
        self.endpoint = f"{base_url}/rest/v1"
        self._session = session or requests.Session()
        self._timeout = timeout or SUPABASE_TIMEOUT
        # Headers for the service role, scoped to the curriculum schema
        self._headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Accept-Profile": profile,
            "Content-Profile": profile,
        }

    def request(
        self,
        method: str,
        table: str,
        params: Optional[Params] = None,
        body: Any = None,
        prefer: Optional[str] = None,
    ) -> requests.Response:
        error_cls = StoreReadFailed if method == "GET" else StoreWriteFailed
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            res = self._session.request(
                method,
                f"{self.endpoint}/{table}",
                params=params or [],
                json=body,
                headers=headers,
                timeout=self._timeout,
            )
            res.raise_for_status()
        except requests.HTTPError as e:
            message, code = _error_message(e.response)
            raise error_cls(
                f"{method} {table} failed: {message}",
                is_unique_violation=code == UNIQUE_VIOLATION,
            ) from e
        except requests.RequestException as e:
            raise error_cls(f"{method} {table} failed: {e}") from e
        return res

    def select(
        self,
        table: str,
        filters: Params,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[dict]:
        params: Params = [("select", columns), *filters]
        if order:
            params.append(("order", order))
        if limit:
            params.append(("limit", str(limit)))
        return self.request("GET", table, params=params).json() or []

    def select_one(self, table: str, filters: Params, columns: str = "*") -> Optional[dict]:
        rows = self.select(table, filters, limit=1, columns=columns)
        return rows[0] if rows else None

    def insert(self, table: str, row: Dict[str, Any]) -> None:
        self.request("POST", table, body=row, prefer="return=minimal")

    def update(self, table: str, filters: Params, values: Dict[str, Any]) -> None:
        body = dict(values)
        body["updated_at"] = now_iso()
        self.request("PATCH", table, params=filters, body=body, prefer="return=minimal")

    def delete(self, table: str, filters: Params) -> bool:
        res = self.request("DELETE", table, params=filters, prefer="return=representation")
        return bool(res.json())
