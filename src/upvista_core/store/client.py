"""HTTP client for the PostgREST-compatible relational store.

This module provides the StoreClient class, the only component that performs
I/O against the store. It includes:

- Table operations (select, count, insert, patch, delete) and RPC calls
- A bounded connection pool shared by all concurrent callers
- Cancellation of pending requests through a CancellationToken
- Mapping of non-2xx responses onto the typed errors of ``core.errors``
- Per-endpoint request metrics

Nothing is retried here; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from upvista_core.core.errors import (
    AppError,
    ConflictError,
    DuplicateKeyError,
    NotFoundError,
    RequestCancelledError,
    StoreUnavailableError,
    ValidationFailedError,
)
from upvista_core.core.settings import settings
from upvista_core.store.cancellation import CancellationToken
from upvista_core.store.query import Filter, Order
from upvista_core.utils.timestamps import parse_row_timestamps

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_CODE = "23505"
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409
HTTP_INTERNAL_SERVER_ERROR = 500
_CLIENT_ERROR_STATUSES = frozenset({400, 422})


@dataclass
class StoreMetrics:
    """Metrics collection for store operations."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    endpoint_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, endpoint: str, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.endpoint_counts[endpoint] += 1

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        """Get average response time."""
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0


@dataclass(frozen=True)
class StoreConfig:
    """Immutable configuration for store access."""

    base_url: str
    service_key: str
    timeout_seconds: float
    pool_size: int


def load_store_config() -> StoreConfig:
    """Build configuration object from global settings."""

    return StoreConfig(
        base_url=settings.supabase_url,
        service_key=settings.supabase_service_role_key,
        timeout_seconds=float(settings.store_timeout_seconds),
        pool_size=settings.store_pool_size,
    )


def is_duplicate_error(body: Mapping[str, Any], text: str) -> bool:
    """Return True if an error body reports a unique-constraint violation.

    The structured SQLSTATE code is checked first; the message text is the
    fallback for stores that do not forward it.
    """
    if str(body.get("code") or "") == UNIQUE_VIOLATION_CODE:
        return True
    haystack = " ".join(
        str(body.get(key) or "") for key in ("message", "details", "hint")
    ).strip() or text
    haystack = haystack.lower()
    return "duplicate" in haystack or "unique" in haystack


class StoreClient:
    """Async wrapper around the store's REST and RPC endpoints."""

    def __init__(
        self,
        config: StoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_store_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self.metrics = StoreMetrics()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    limits=httpx.Limits(
                        max_connections=self.config.pool_size,
                        max_keepalive_connections=self.config.pool_size,
                    ),
                    headers={
                        "apikey": self.config.service_key,
                        "Authorization": f"Bearer {self.config.service_key}",
                        "Content-Type": "application/json",
                    },
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @dataclass
    class RequestParams:
        """Parameters for HTTP requests."""
        method: str
        path: str
        json_data: Any | None = None
        params: Sequence[tuple[str, str]] | None = None
        headers: dict[str, str] | None = None

    async def _send(self, params: RequestParams) -> httpx.Response:
        client = await self._ensure_client()
        return await client.request(
            params.method,
            params.path,
            json=params.json_data,
            params=list(params.params or []),
            headers=params.headers,
        )

    async def _send_cancellable(
        self, params: RequestParams, cancel: CancellationToken | None
    ) -> httpx.Response:
        if cancel is None:
            return await self._send(params)
        if cancel.cancelled:
            raise RequestCancelledError("Request cancelled")

        request_task = asyncio.ensure_future(self._send(params))
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()

        if request_task not in done:
            raise RequestCancelledError("Request cancelled")
        return request_task.result()

    async def _request(
        self, params: RequestParams, cancel: CancellationToken | None = None
    ) -> httpx.Response:
        start_time = time.time()
        endpoint = f"{params.method} {params.path}"
        success = False
        error_type: str | None = None

        try:
            response = await self._send_cancellable(params, cancel)
            if response.is_success:
                success = True
            else:
                error_type = f"http_{response.status_code}"
                self._raise_for_status(response)
        except RequestCancelledError:
            error_type = "cancelled"
            raise
        except AppError:
            raise
        except httpx.HTTPError as exc:
            error_type = "network_error"
            raise StoreUnavailableError(f"Store request failed: {exc}") from exc
        finally:
            self.metrics.record_request(endpoint, time.time() - start_time, success, error_type)

        logger.debug("store %s -> %s", endpoint, response.status_code)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, Mapping):
            body = {}
        message = str(body.get("message") or response.text or response.reason_phrase)
        status_code = response.status_code

        if is_duplicate_error(body, response.text):
            raise DuplicateKeyError(message)
        if status_code == HTTP_CONFLICT:
            raise ConflictError(message)
        if status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise StoreUnavailableError(f"Store responded with {status_code}: {message}")
        if status_code == HTTP_NOT_FOUND:
            raise NotFoundError(message)
        if status_code in _CLIENT_ERROR_STATUSES:
            raise ValidationFailedError(message)
        raise StoreUnavailableError(f"Store responded with {status_code}: {message}")

    @staticmethod
    def _rows(response: httpx.Response) -> list[dict[str, Any]]:
        if not response.content:
            return []
        payload = parse_row_timestamps(response.json())
        if isinstance(payload, list):
            return payload
        return [payload]

    async def select(
        self,
        table: str,
        filter: Filter | None = None,
        *,
        columns: str = "*",
        order: Order | None = None,
        limit: int | None = None,
        offset: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[dict[str, Any]]:
        """Return the rows of ``table`` matching ``filter``."""
        query: list[tuple[str, str]] = [("select", columns)]
        if filter is not None:
            query.extend(filter.to_params())
        if order is not None:
            query.append(("order", order.render()))
        if limit is not None:
            query.append(("limit", str(limit)))
        if offset:
            query.append(("offset", str(offset)))

        response = await self._request(
            self.RequestParams(method="GET", path=f"/rest/v1/{table}", params=query), cancel
        )
        return self._rows(response)

    async def count(
        self,
        table: str,
        filter: Filter | None = None,
        *,
        embed: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> int:
        """Return the number of rows of ``table`` matching ``filter``.

        ``embed`` is appended to the projection so filters on an ``!inner``
        embedded resource narrow the count the same way they narrow a page.
        """
        columns = "count" if embed is None else f"count,{embed}"
        rows = await self.select(table, filter, columns=columns, cancel=cancel)
        if not rows:
            return 0
        return int(rows[0].get("count") or 0)

    async def insert(
        self,
        table: str,
        rows: Mapping[str, Any] | Sequence[Mapping[str, Any]],
        *,
        returning: bool = True,
        cancel: CancellationToken | None = None,
    ) -> list[dict[str, Any]]:
        """Insert one row or a batch of rows into ``table``."""
        payload = dict(rows) if isinstance(rows, Mapping) else [dict(row) for row in rows]
        response = await self._request(
            self.RequestParams(
                method="POST",
                path=f"/rest/v1/{table}",
                json_data=payload,
                headers={"Prefer": "return=representation" if returning else "return=minimal"},
            ),
            cancel,
        )
        return self._rows(response) if returning else []

    async def patch(
        self,
        table: str,
        filter: Filter,
        updates: Mapping[str, Any],
        *,
        returning: bool = True,
        cancel: CancellationToken | None = None,
    ) -> list[dict[str, Any]]:
        """Apply ``updates`` to the rows of ``table`` matching ``filter``."""
        response = await self._request(
            self.RequestParams(
                method="PATCH",
                path=f"/rest/v1/{table}",
                json_data=dict(updates),
                params=filter.to_params(),
                headers={"Prefer": "return=representation" if returning else "return=minimal"},
            ),
            cancel,
        )
        return self._rows(response) if returning else []

    async def delete(
        self,
        table: str,
        filter: Filter,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Delete the rows of ``table`` matching ``filter``."""
        await self._request(
            self.RequestParams(
                method="DELETE",
                path=f"/rest/v1/{table}",
                params=filter.to_params(),
                headers={"Prefer": "return=minimal"},
            ),
            cancel,
        )

    async def rpc(
        self,
        name: str,
        args: Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Invoke the server-side function ``name``."""
        response = await self._request(
            self.RequestParams(
                method="POST", path=f"/rest/v1/rpc/{name}", json_data=dict(args or {})
            ),
            cancel,
        )
        if not response.content:
            return None
        return parse_row_timestamps(response.json())
