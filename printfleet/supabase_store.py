"""Read-only access to the hosted store (Supabase PostgREST) over httpx.

Provides a single place to build authenticated HTTP clients, page through
tables and validate rows into the typed schema. Every failure surfaces as
``FetchFailure`` so callers handle exactly one error type.

Environment: see ``printfleet.config``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import ReportSettings
from .models import ActiveRequest, Client, HistoricalRequest

logger = logging.getLogger(__name__)

ACTIVE_TABLE = "requerimiento"
HISTORY_TABLE = "requerimiento_historico"
CLIENTS_TABLE = "clientes"

ACTIVE_COLUMNS = (
    "id_requerimiento,serie_impresora,id_cliente,cod_sku,cantidad_solicitada,"
    "estado,fecha_solicitud,fecha_atencion,clientes(nombre_especifico)"
)
HISTORY_COLUMNS = (
    "id_historico,id_requerimiento,serie_impresora,id_cliente,cod_sku,"
    "cantidad_solicitada,estado,fecha_solicitud,fecha_atencion,timestamp_archivado"
)
CLIENTS_COLUMNS = "id_cliente,nombre_especifico"

# Offset paging needs a stable order between page requests
ACTIVE_ORDER = "id_requerimiento.asc"
HISTORY_ORDER = "id_historico.asc"
CLIENTS_ORDER = "id_cliente.asc"

M = TypeVar("M", bound=BaseModel)


class FetchFailure(RuntimeError):
    """A read from the store failed (network, permission, timeout, bad payload)."""

    def __init__(
        self, message: str, table: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.table = table
        self.status_code = status_code


class Profile(BaseModel):
    """Authenticated user's profile and single role."""

    id: str
    full_name: str | None = None
    email: str | None = None
    role: str | None = None


@dataclass(slots=True)
class StoreSnapshot:
    """Point-in-time read of the tables the dashboard needs."""

    active: list[ActiveRequest]
    historical: list[HistoricalRequest]
    clients: list[Client] = field(default_factory=list)
    skipped: dict[str, int] = field(default_factory=dict)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("msg") or body.get("error") or body)
    return str(body)[:200]


def _content_total(resp: httpx.Response) -> int | None:
    """Total row count from a ``Content-Range: 0-24/3573`` header, if known."""
    _, _, total = resp.headers.get("Content-Range", "").partition("/")
    return int(total) if total.isdigit() else None


def _validate(rows: list[Any], model: type[M], table: str) -> tuple[list[M], int]:
    """Validate rows into ``model``, dropping single rows that do not fit.

    Returns:
        The valid records and the number of rows skipped.

    Raises:
        FetchFailure: if a row is not a JSON object.
    """
    records: list[M] = []
    skipped = 0
    for row in rows:
        if not isinstance(row, dict):
            raise FetchFailure(f"Unexpected row shape in {table}: not an object", table=table)
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.warning(
                "store.row.skipped",
                extra={"table": table, "errors": e.error_count()},
            )
    return records, skipped


@dataclass(slots=True)
class SupabaseStore:
    """PostgREST reader bound to one API key and, optionally, a user token.

    When ``access_token`` is set, reads run as that user so row-level
    security applies; otherwise they run with the API key's role.
    """

    base_url: str
    api_key: str
    access_token: str | None = None
    page_size: int = 1000
    timeout: float = 10.0
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: ReportSettings,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "SupabaseStore":
        return cls(
            base_url=settings.supabase_url,
            api_key=settings.supabase_key,
            access_token=access_token,
            page_size=settings.page_size,
            timeout=settings.timeout,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
        }
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        table: str | None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await client.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            target = table or path
            raise FetchFailure(
                f"Could not reach the data store while reading {target}: {e}",
                table=table,
            ) from e

    async def select_all(
        self,
        client: httpx.AsyncClient,
        table: str,
        columns: str,
        filters: dict[str, str] | None = None,
        order: str | None = None,
    ) -> list[Any]:
        """Read every row of ``table``, paging with PostgREST Range headers.

        Pages advance by the number of rows actually returned, and the exact
        count from ``Content-Range`` decides when to stop, so a server
        ``max-rows`` cap below ``page_size`` does not truncate the read.

        Args:
            client: Open client from ``_client``.
            table: Table name.
            columns: PostgREST ``select`` expression.
            filters: Extra query params such as ``{"id": "eq.7"}``.
            order: PostgREST ``order`` expression; required for consistent
                paging of tables larger than one page.

        Returns:
            Raw JSON rows in server order.
        """

        params = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        rows: list[Any] = []
        start = 0
        while True:
            headers = {
                "Range-Unit": "items",
                "Range": f"{start}-{start + self.page_size - 1}",
                "Prefer": "count=exact",
            }
            resp = await self._get(client, f"/rest/v1/{table}", table, params, headers)
            if resp.status_code == 416 and start > 0:
                # Offset past the last row: previous page was exactly full
                break
            if resp.status_code not in (200, 206):
                raise FetchFailure(
                    f"Data store rejected read of {table} "
                    f"(HTTP {resp.status_code}): {_error_detail(resp)}",
                    table=table,
                    status_code=resp.status_code,
                )
            try:
                page = resp.json()
            except ValueError as e:
                raise FetchFailure(
                    f"Data store returned invalid JSON for {table}", table=table
                ) from e
            if not isinstance(page, list):
                raise FetchFailure(
                    f"Data store returned a non-list payload for {table}", table=table
                )
            rows.extend(page)
            if not page:
                break
            start += len(page)
            total = _content_total(resp)
            if total is not None:
                if start >= total:
                    break
            elif len(page) < self.page_size:
                break
        logger.info("store.fetch", extra={"table": table, "rows": len(rows)})
        return rows

    async def _read(
        self,
        client: httpx.AsyncClient,
        table: str,
        columns: str,
        order: str,
        model: type[M],
    ) -> tuple[list[M], int]:
        rows = await self.select_all(client, table, columns, order=order)
        return _validate(rows, model, table)

    async def fetch_active(self, client: httpx.AsyncClient) -> list[ActiveRequest]:
        records, _ = await self._read(
            client, ACTIVE_TABLE, ACTIVE_COLUMNS, ACTIVE_ORDER, ActiveRequest
        )
        return records

    async def fetch_historical(self, client: httpx.AsyncClient) -> list[HistoricalRequest]:
        records, _ = await self._read(
            client, HISTORY_TABLE, HISTORY_COLUMNS, HISTORY_ORDER, HistoricalRequest
        )
        return records

    async def fetch_clients(self, client: httpx.AsyncClient) -> list[Client]:
        records, _ = await self._read(
            client, CLIENTS_TABLE, CLIENTS_COLUMNS, CLIENTS_ORDER, Client
        )
        return records

    async def fetch_snapshot(self) -> StoreSnapshot:
        """Read active requests, archived requests and clients concurrently.

        Single rows that do not fit the schema are dropped and counted in
        ``StoreSnapshot.skipped``.

        Raises:
            FetchFailure: if any of the reads fails.
        """
        async with self._client() as client:
            (active, a_skip), (historical, h_skip), (clients, c_skip) = await asyncio.gather(
                self._read(client, ACTIVE_TABLE, ACTIVE_COLUMNS, ACTIVE_ORDER, ActiveRequest),
                self._read(
                    client, HISTORY_TABLE, HISTORY_COLUMNS, HISTORY_ORDER, HistoricalRequest
                ),
                self._read(client, CLIENTS_TABLE, CLIENTS_COLUMNS, CLIENTS_ORDER, Client),
            )
        skipped = {
            table: count
            for table, count in (
                (ACTIVE_TABLE, a_skip),
                (HISTORY_TABLE, h_skip),
                (CLIENTS_TABLE, c_skip),
            )
            if count
        }
        return StoreSnapshot(
            active=active, historical=historical, clients=clients, skipped=skipped
        )

    async def get_profile(self) -> Profile:
        """Resolve the token's user, profile and role.

        Raises:
            FetchFailure: if there is no token, the token is rejected, or a
                lookup fails. ``status_code`` carries the HTTP status.
        """
        if not self.access_token:
            raise FetchFailure("An access token is required", status_code=401)

        async with self._client() as client:
            resp = await self._get(client, "/auth/v1/user", None)
            if resp.status_code != 200:
                raise FetchFailure(
                    f"Access token rejected (HTTP {resp.status_code}): {_error_detail(resp)}",
                    status_code=resp.status_code,
                )
            try:
                user = resp.json()
            except ValueError as e:
                raise FetchFailure("Auth service returned invalid JSON") from e
            if not isinstance(user, dict):
                raise FetchFailure("Auth service returned an unexpected payload")
            user_id = str(user.get("id") or "")
            if not user_id:
                raise FetchFailure("Authenticated user has no id", status_code=401)

            profiles, roles = await asyncio.gather(
                self.select_all(
                    client, "profiles", "id,full_name,email", {"id": f"eq.{user_id}"}
                ),
                self.select_all(client, "roles", "rol_nombre", {"user_id": f"eq.{user_id}"}),
            )

        for table, found in (("profiles", profiles), ("roles", roles)):
            if found and not isinstance(found[0], dict):
                raise FetchFailure(f"Unexpected row shape in {table}: not an object", table=table)
        profile_row = profiles[0] if profiles else {}
        role = roles[0].get("rol_nombre") if roles else None
        return Profile(
            id=user_id,
            full_name=profile_row.get("full_name"),
            email=profile_row.get("email") or user.get("email"),
            role=role,
        )
