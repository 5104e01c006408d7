"""Typed record schema and report result models.

Rows read from the store are validated into these models at the store
boundary so that the aggregation functions only ever see known shapes.
Field aliases match the store's column names.

Workspace rules:
- Pydantic v2 models for validation
- Malformed dates, ids, quantities and text values degrade to None instead
  of rejecting the row
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .dates import parse_timestamp

logger = logging.getLogger(__name__)


class RequestStatus(str, Enum):
    """Status vocabulary of a replenishment request, as stored."""

    PENDING = "pendiente"
    OUT_OF_STOCK = "sin stock"
    APPROVED = "aprobado"
    IN_TRANSIT = "transito"
    FULFILLED = "atendido"
    CANCELLED = "cancelado"


KNOWN_STATUSES: frozenset[str] = frozenset(s.value for s in RequestStatus)


def _as_int(value: Any) -> int | None:
    """Whole-number store values as int; anything else as None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class _StoreRow(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class ActiveRequest(_StoreRow):
    """A live replenishment request (``requerimiento`` row)."""

    id: int | None = Field(default=None, alias="id_requerimiento")
    status: str = Field(default="", alias="estado")
    request_date: datetime | None = Field(default=None, alias="fecha_solicitud")
    fulfillment_date: datetime | None = Field(default=None, alias="fecha_atencion")
    client_id: int | None = Field(default=None, alias="id_cliente")
    client_name: str | None = Field(default=None, alias="cliente")
    sku: str | None = Field(default=None, alias="cod_sku")
    printer_serial: str | None = Field(default=None, alias="serie_impresora")
    quantity: int | None = Field(default=None, alias="cantidad_solicitada")

    @model_validator(mode="before")
    @classmethod
    def lift_embedded_client(cls, data: Any) -> Any:
        # PostgREST embeds the joined client as ``clientes: {nombre_especifico}``
        if isinstance(data, dict) and not data.get("cliente"):
            embedded = data.get("clientes")
            if isinstance(embedded, dict) and embedded.get("nombre_especifico"):
                data = {**data, "cliente": embedded["nombre_especifico"]}
        return data

    @field_validator("status", mode="before")
    @classmethod
    def status_as_str(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("request_date", "fulfillment_date", mode="before")
    @classmethod
    def lenient_date(cls, value: Any) -> datetime | None:
        parsed = parse_timestamp(value)
        if parsed is None and value not in (None, ""):
            logger.debug("record.malformed_date", extra={"value": repr(value)})
        return parsed

    @field_validator("id", "client_id", "quantity", mode="before")
    @classmethod
    def lenient_int(cls, value: Any) -> int | None:
        parsed = _as_int(value)
        if parsed is None and value not in (None, ""):
            logger.debug("record.malformed_field", extra={"value": repr(value)})
        return parsed

    @field_validator("client_name", "sku", "printer_serial", mode="before")
    @classmethod
    def lenient_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        logger.debug("record.malformed_field", extra={"value": repr(value)})
        return None


class HistoricalRequest(ActiveRequest):
    """An archived request (``requerimiento_historico`` row)."""

    history_id: int | None = Field(default=None, alias="id_historico")
    archived_at: datetime | None = Field(default=None, alias="timestamp_archivado")

    @field_validator("archived_at", mode="before")
    @classmethod
    def lenient_archived_at(cls, value: Any) -> datetime | None:
        return parse_timestamp(value)

    @field_validator("history_id", mode="before")
    @classmethod
    def lenient_history_id(cls, value: Any) -> int | None:
        return _as_int(value)


class Client(_StoreRow):
    """Client lookup row (``clientes``)."""

    id: int = Field(alias="id_cliente")
    name: str | None = Field(default=None, alias="nombre_especifico")


class MonthBucket(BaseModel):
    """One calendar month of the trend series."""

    label: str
    count: int = 0
    year: int
    month: int


class RankEntry(BaseModel):
    """A ranked key and its occurrence count."""

    key: str
    count: int


class KpiSet(BaseModel):
    """Headline dashboard counters."""

    pending: int = 0
    out_of_stock: int = 0
    fulfilled_this_month: int = 0
    in_transit: int = 0


class DashboardReport(BaseModel):
    """Result of one reporting pass."""

    kpis: KpiSet
    monthly: list[MonthBucket]
    top_clients: list[RankEntry] = Field(default_factory=list)
    top_skus: list[RankEntry] = Field(default_factory=list)
    generated_at: datetime
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
