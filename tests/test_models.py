from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from printfleet.models import ActiveRequest, Client, HistoricalRequest, RequestStatus


def test_active_request_reads_store_columns() -> None:
    row = {
        "id_requerimiento": 41,
        "estado": "sin stock",
        "fecha_solicitud": "2025-06-02T09:15:00",
        "fecha_atencion": None,
        "id_cliente": 7,
        "cod_sku": "TN-850",
        "serie_impresora": "U63816B5N123",
        "cantidad_solicitada": 2,
        "clientes": {"nombre_especifico": "Acme Lima"},
        "direccion": "ignored",
    }
    record = ActiveRequest.model_validate(row)
    assert record.id == 41
    assert record.status == RequestStatus.OUT_OF_STOCK.value
    assert record.request_date == datetime(2025, 6, 2, 9, 15)
    assert record.fulfillment_date is None
    assert record.client_name == "Acme Lima"
    assert record.sku == "TN-850"


def test_malformed_dates_degrade_to_none() -> None:
    record = ActiveRequest.model_validate(
        {"estado": "pendiente", "fecha_solicitud": "31/02/2025", "fecha_atencion": "n/a"}
    )
    assert record.request_date is None
    assert record.fulfillment_date is None
    assert record.status == "pendiente"


def test_status_outside_vocabulary_is_kept() -> None:
    record = ActiveRequest.model_validate({"estado": "Sin Stock"})
    assert record.status == "Sin Stock"
    assert ActiveRequest.model_validate({"estado": None}).status == ""


def test_numeric_sku_is_coerced_to_text() -> None:
    assert ActiveRequest.model_validate({"cod_sku": 1050}).sku == "1050"


def test_historical_request_archival_fields() -> None:
    record = HistoricalRequest.model_validate(
        {
            "id_historico": 3,
            "estado": "atendido",
            "fecha_atencion": "2025-06-05",
            "timestamp_archivado": "2025-06-06T12:00:00+00:00",
        }
    )
    assert record.history_id == 3
    assert record.archived_at is not None
    assert record.archived_at.tzinfo is not None


def test_client_requires_id() -> None:
    assert Client.model_validate({"id_cliente": 7, "nombre_especifico": "Acme"}).name == "Acme"
    with pytest.raises(ValidationError):
        Client.model_validate({"nombre_especifico": "Acme"})


def test_malformed_non_key_fields_degrade_to_none() -> None:
    record = ActiveRequest.model_validate(
        {
            "id_requerimiento": "abc",
            "estado": "pendiente",
            "id_cliente": "n/a",
            "cantidad_solicitada": 2.5,
            "serie_impresora": ["U638"],
        }
    )
    assert record.id is None
    assert record.client_id is None
    assert record.quantity is None
    assert record.printer_serial is None
    assert record.status == "pendiente"

    record = ActiveRequest.model_validate({"id_cliente": "7", "cantidad_solicitada": 3.0})
    assert record.client_id == 7
    assert record.quantity == 3


def test_year_zero_date_degrades_to_none() -> None:
    record = ActiveRequest.model_validate({"estado": "pendiente", "fecha_solicitud": "01/01/0000"})
    assert record.request_date is None
    assert record.status == "pendiente"


def test_history_id_degrades_to_none() -> None:
    assert HistoricalRequest.model_validate({"id_historico": "x"}).history_id is None
