"""Foreign-key resolution against lookup tables.

Lookup rows are indexed once per table, then each reference is resolved with
a dict lookup instead of re-scanning the lookup list per row.
"""

from __future__ import annotations

from typing import Callable, Hashable, Iterable, TypeVar

from .models import ActiveRequest, Client

T = TypeVar("T")
R = TypeVar("R", bound=ActiveRequest)


def build_index(rows: Iterable[T], key: Callable[[T], Hashable]) -> dict[Hashable, T]:
    """Return a mapping from ``key(row)`` to row.

    Rows whose key is None are not indexed. On duplicate keys the first row
    wins, matching a first-match scan.
    """

    index: dict[Hashable, T] = {}
    for row in rows:
        k = key(row)
        if k is not None and k not in index:
            index[k] = row
    return index


def resolve_client_names(records: Iterable[R], clients: Iterable[Client]) -> list[R]:
    """Fill ``client_name`` from the clients table where the record lacks it.

    Records are copied, never mutated. Unresolvable references keep
    ``client_name`` as None.
    """

    index = build_index(clients, lambda c: c.id)
    resolved: list[R] = []
    for record in records:
        if record.client_name or record.client_id is None:
            resolved.append(record)
            continue
        client = index.get(record.client_id)
        if client is None or not client.name:
            resolved.append(record)
        else:
            resolved.append(record.model_copy(update={"client_name": client.name}))
    return resolved


def client_key(record: ActiveRequest) -> str | None:
    """Ranking key for a request's client: name, else id, else None."""
    if record.client_name:
        return record.client_name
    if record.client_id is not None:
        return str(record.client_id)
    return None


def sku_key(record: ActiveRequest) -> str | None:
    return record.sku
