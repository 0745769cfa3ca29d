"""
rest.py - PostgREST row store client.

Talks to a PostgREST (or Supabase) /rest/v1 endpoint:
- GET    /{table}?select=*&updated_at=gt.<since>&order=id.asc
- GET    /{table}?select=id,deleted_at&deleted_at=gt.<since>&order=id.asc
  (both paged with limit/offset until Content-Range says all rows are read;
  changed rows are returned ascending by updated_at)
- POST   /{table}?on_conflict=id   (Prefer: resolution=merge-duplicates)
- DELETE /{table}?id=eq.<id>
"""

import logging
from typing import Any

import httpx

from shop_sync.config import DEFAULT_PAGE_SIZE, EPOCH, RemoteSettings
from shop_sync.errors import MissingTableError, RemoteError
from shop_sync.remote.base import RemoteStore
from shop_sync.utils.clock import parse_iso

logger = logging.getLogger(__name__)

# PostgREST codes for "relation not found"
_MISSING_TABLE_CODES = frozenset({"PGRST205", "42P01"})

_EPOCH_AT = parse_iso(EPOCH)


def _updated_at_key(row: dict[str, Any]):
    value = row.get("updated_at")
    return (parse_iso(value) if value else _EPOCH_AT, str(row.get("id")))


def _total_from_content_range(value: str | None) -> int | None:
    """Total row count from a Content-Range header such as "0-999/2500"."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1].strip()
    return int(total) if total.isdigit() else None


class PostgRESTRemote(RemoteStore):
    """
    HTTP REST row store.

    Args:
        base_url: Project URL or full /rest/v1 URL
        api_key: Key sent as apikey and bearer token
        schema: Database schema exposed by the REST layer
        timeout: Request timeout in seconds
        page_size: Rows requested per page when selecting
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        schema: str = "public",
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        base = base_url.rstrip("/")
        if not base.endswith("/rest/v1"):
            base = f"{base}/rest/v1"
        self._base_url = base
        self._schema = schema
        self._page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=base,
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings: RemoteSettings, **kwargs) -> "PostgRESTRemote":
        return cls(
            settings.url,
            settings.api_key,
            schema=settings.schema,
            timeout=settings.timeout,
            **kwargs,
        )

    @property
    def name(self) -> str:
        return "PostgREST"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select_changed(self, table: str, since: str) -> list[dict[str, Any]]:
        rows = await self._select_all(
            table,
            {"select": "*", "updated_at": f"gt.{since}", "order": "id.asc"},
        )
        return sorted(rows, key=_updated_at_key)

    async def select_deleted(self, table: str, since: str) -> list[dict[str, Any]]:
        return await self._select_all(
            table,
            {
                "select": "id,deleted_at",
                "deleted_at": f"gt.{since}",
                "order": "id.asc",
            },
        )

    async def _select_all(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """
        Page through a select until every matching row is read.

        The server may return fewer rows than asked for (max-rows), so
        paging follows the total from Content-Range, or an empty page
        when the server does not report one. Pages are ordered by id:
        rows only ever enter the filtered set while paging, so offsets
        can repeat a row but never skip one.
        """
        rows: list[dict[str, Any]] = []
        while True:
            response = await self._send(
                "GET",
                table,
                params={**params, "limit": str(self._page_size), "offset": str(len(rows))},
                headers={"Prefer": "count=exact"},
            )
            page = response.json() if response.content else []
            if not page:
                break
            rows.extend(page)
            total = _total_from_content_range(response.headers.get("Content-Range"))
            if total is not None and len(rows) >= total:
                break
        logger.debug("Selected %d rows from %s", len(rows), table)
        return rows

    async def upsert(
        self, table: str, rows: list[dict[str, Any]], on_conflict: str = "id"
    ) -> None:
        if not rows:
            return
        await self._send(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    async def delete(self, table: str, record_id: Any) -> None:
        await self._send(
            "DELETE",
            table,
            params={"id": f"eq.{record_id}"},
            headers={"Prefer": "return=minimal"},
        )

    async def _send(
        self,
        method: str,
        table: str,
        params: dict[str, str],
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        request_headers = dict(headers or {})
        # Reads select the schema with Accept-Profile, writes with Content-Profile
        profile_header = "Accept-Profile" if method == "GET" else "Content-Profile"
        request_headers[profile_header] = self._schema

        try:
            response = await self._client.request(
                method, f"/{table}", params=params, json=json, headers=request_headers
            )
        except httpx.HTTPError as e:
            raise RemoteError(f"{method} {table} failed: {e}", table=table) from e

        if response.is_error:
            raise self._error_from_response(table, response)
        return response

    @staticmethod
    def _error_from_response(table: str, response: httpx.Response) -> RemoteError:
        code = None
        message = response.text or response.reason_phrase
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or message

        lowered = message.lower() if isinstance(message, str) else ""
        missing = (
            response.status_code == 404
            or code in _MISSING_TABLE_CODES
            or "schema cache" in lowered
            or "does not exist" in lowered
        )
        error_cls = MissingTableError if missing else RemoteError
        logger.debug("Remote %s error %s on %s: %s", response.status_code, code, table, message)
        return error_cls(
            message, table=table, status_code=response.status_code, code=code
        )
