"""Thin async client for the hosted database's auto-generated REST API."""

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from startupsareeasy.rest.dedup import RequestDeduplicator
from startupsareeasy.rest.errors import NetworkError, ValidationError, error_from_response

logger = logging.getLogger(__name__)


def eq(value: Any) -> str:
    return f"eq.{value}"


def neq(value: Any) -> str:
    return f"neq.{value}"


def in_(values: Iterable[Any]) -> str:
    return f"in.({','.join(str(v) for v in values)})"


def parse_content_range(header: str | None) -> int:
    """Total from a ``Content-Range: 0-9/42`` header, 0 when absent or unknown."""
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class RestClient:
    """Builds URLs, attaches keys and tokens, and turns failures into typed errors.

    ``token`` is a user's access token; without one the anonymous key is sent as
    the bearer. Requests marked ``dedupe`` go through the deduplicator, which
    also applies the client-side rate limit.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        http: httpx.AsyncClient,
        deduplicator: RequestDeduplicator | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.http = http
        self.deduplicator = deduplicator

    def headers(self, token: str | None = None, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def url(self, path: str, params: Mapping[str, Any] | None = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if params:
            url = str(httpx.URL(url, params={k: str(v) for k, v in params.items()}))
        return url

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
        token: str | None = None,
        prefer: str | None = None,
        dedupe: bool = False,
        context: str = "",
    ) -> httpx.Response:
        url = self.url(path, params)
        headers = self.headers(token, prefer)
        content = json.dumps(body) if body is not None else None

        try:
            if dedupe and self.deduplicator is not None:
                response = await asyncio.shield(self.deduplicator.fetch(method, url, headers=headers, content=content))
            else:
                response = await self.http.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as exc:
            logger.error("%s %s failed: %s", method, path, exc)
            raise NetworkError(f"{context or path}: {exc}") from exc

        if response.is_error:
            logger.error("%s %s error: status=%d body=%s", method, path, response.status_code, response.text[:500])
            raise error_from_response(response.status_code, response.text, context)

        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        text = response.text
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid JSON response: {text[:200]}", response.status_code, text) from exc

    async def select(
        self,
        table: str,
        params: Mapping[str, Any],
        token: str | None = None,
        dedupe: bool = False,
    ) -> list[dict]:
        response = await self.request("GET", table, params=params, token=token, dedupe=dedupe, context=f"select {table}")
        return self._json(response) or []

    async def insert(self, table: str, row: Mapping[str, Any], token: str | None = None, returning: bool = True) -> Any:
        """Insert ``row``; returns the created representation, or ``None`` for an empty body."""
        response = await self.request(
            "POST",
            table,
            body=dict(row),
            token=token,
            prefer="return=representation" if returning else None,
            context=f"insert {table}",
        )
        return self._json(response)

    async def upsert(self, table: str, row: Mapping[str, Any], token: str | None = None) -> Any:
        response = await self.request(
            "POST",
            table,
            body=dict(row),
            token=token,
            prefer="resolution=merge-duplicates,return=representation",
            context=f"upsert {table}",
        )
        return self._json(response)

    async def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        values: Mapping[str, Any],
        token: str | None = None,
    ) -> None:
        await self.request(
            "PATCH", table, params=filters, body=dict(values), token=token, prefer="return=minimal", context=f"update {table}"
        )

    async def delete(self, table: str, filters: Mapping[str, Any], token: str | None = None) -> None:
        await self.request("DELETE", table, params=filters, token=token, context=f"delete {table}")

    async def count(self, table: str, filters: Mapping[str, Any], token: str | None = None) -> int:
        params = {**filters, "select": "id"}
        response = await self.request("GET", table, params=params, token=token, prefer="count=exact", context=f"count {table}")
        total = parse_content_range(response.headers.get("content-range"))
        if total or response.headers.get("content-range"):
            return total
        # Servers that ignore the count preference still return the rows
        return len(self._json(response) or [])

    async def rpc(self, function: str, payload: Mapping[str, Any], token: str | None = None, dedupe: bool = True) -> Any:
        response = await self.request(
            "POST", f"rpc/{function}", body=dict(payload), token=token, dedupe=dedupe, context=f"rpc {function}"
        )
        return self._json(response)
