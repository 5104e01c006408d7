from __future__ import annotations

from printfleet.joins import build_index, client_key, resolve_client_names, sku_key
from printfleet.models import ActiveRequest, Client


def test_build_index_first_row_wins_and_skips_none() -> None:
    rows = [{"k": 1, "v": "a"}, {"k": 1, "v": "b"}, {"k": None, "v": "c"}]
    index = build_index(rows, lambda r: r["k"])
    assert index == {1: {"k": 1, "v": "a"}}


def test_resolve_client_names_fills_missing_names_only() -> None:
    clients = [
        Client.model_validate({"id_cliente": 1, "nombre_especifico": "Acme"}),
        Client.model_validate({"id_cliente": 2, "nombre_especifico": None}),
    ]
    records = [
        ActiveRequest.model_validate({"id_cliente": 1}),
        ActiveRequest.model_validate({"id_cliente": 1, "cliente": "Acme Norte"}),
        ActiveRequest.model_validate({"id_cliente": 2}),
        ActiveRequest.model_validate({"id_cliente": 99}),
        ActiveRequest.model_validate({}),
    ]
    resolved = resolve_client_names(records, clients)
    assert [r.client_name for r in resolved] == ["Acme", "Acme Norte", None, None, None]
    # Inputs are not mutated
    assert records[0].client_name is None


def test_ranking_keys_fall_back_to_client_id() -> None:
    assert client_key(ActiveRequest.model_validate({"id_cliente": 5, "cliente": "Acme"})) == "Acme"
    assert client_key(ActiveRequest.model_validate({"id_cliente": 5})) == "5"
    assert client_key(ActiveRequest.model_validate({})) is None
    assert sku_key(ActiveRequest.model_validate({"cod_sku": "TN-850"})) == "TN-850"
