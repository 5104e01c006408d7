"""Analytics utilities for aggregating replenishment requests.

Provides pure functions used by the dashboard:
- ``bucket_by_month``: rolling window of calendar-month counts
- ``rank_top``: top-N occurrence ranking of a categorical key
- ``classify_kpis``: headline counters over active and archived requests
- ``status_breakdown`` / ``unknown_statuses``: data-quality helpers

They take iterables of typed records and a reference time, and remain
framework-agnostic for easier testing.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, tzinfo
from typing import Any, Callable, Iterable, Literal

from .dates import month_bounds, month_key, month_window, parse_timestamp, to_zone
from .models import (
    KNOWN_STATUSES,
    ActiveRequest,
    HistoricalRequest,
    KpiSet,
    MonthBucket,
    RankEntry,
    RequestStatus,
)

DEFAULT_SENTINEL = "unknown"
CLIENT_SENTINEL = "Sin cliente"
SKU_SENTINEL = "SIN SKU"

MONTH_LABELS: dict[str, tuple[str, ...]] = {
    "es": ("Ene", "Feb", "Mar", "Abr", "May", "Jun", "Jul", "Ago", "Sep", "Oct", "Nov", "Dic"),
    "en": ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"),
}

Predicate = Callable[[Any], bool]
DateGetter = Callable[[Any], Any]
TieBreak = Literal["key", "first_seen"]


def month_label(month: int, locale: str = "es") -> str:
    """Return the short month label (e.g. ``"Ene"``) for a month number."""
    try:
        labels = MONTH_LABELS[locale]
    except KeyError:
        raise ValueError(f"Unsupported locale: {locale}") from None
    return labels[month - 1]


def _localize(value: Any, tz: tzinfo | None) -> datetime | None:
    moment = parse_timestamp(value)
    if moment is None:
        return None
    if tz is None:
        # Naive reference time is host-local; aware values are converted to it
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return moment.replace(tzinfo=None)
    return to_zone(moment, tz)


def _request_date(record: ActiveRequest) -> datetime | None:
    return record.request_date


def _fulfillment_date(record: ActiveRequest) -> datetime | None:
    return record.fulfillment_date


def bucket_by_month(
    records: Iterable[Any],
    now: datetime,
    *,
    months: int = 12,
    date_of: DateGetter = _request_date,
    locale: str = "es",
) -> list[MonthBucket]:
    """Count records per calendar month over a rolling window.

    Args:
        records: Iterable of records. ``date_of`` extracts the date-like
            value to bucket on; missing or unparsable values are skipped.
        now: Reference time. The window ends at (and includes) its month and
            record dates are read in its timezone.
        months: Window size; always the exact length of the result.
        date_of: Date accessor, defaults to the request date.
        locale: Month label locale.

    Returns:
        ``months`` buckets in ascending chronological order, zero-filled.
    """

    window = month_window(now, months)
    counts: dict[tuple[int, int], int] = dict.fromkeys(window, 0)
    for record in records:
        moment = _localize(date_of(record), now.tzinfo)
        if moment is None:
            continue
        key = month_key(moment)
        if key in counts:
            counts[key] += 1
    return [
        MonthBucket(
            label=month_label(month, locale),
            count=counts[(year, month)],
            year=year,
            month=month,
        )
        for year, month in window
    ]


def rank_top(
    records: Iterable[Any],
    key: Callable[[Any], Any],
    *,
    where: Predicate | None = None,
    limit: int = 5,
    sentinel: str = DEFAULT_SENTINEL,
    tie_break: TieBreak = "key",
) -> list[RankEntry]:
    """Return the most frequent keys among records matching ``where``.

    Args:
        records: Iterable of records.
        key: Extracts the categorical key. Keys are matched exactly
            (case and whitespace preserved); None or empty values are
            grouped under ``sentinel``.
        where: Optional predicate selecting eligible records.
        limit: Maximum number of entries returned.
        sentinel: Placeholder key for records without one.
        tie_break: ``"key"`` orders equal counts by key ascending;
            ``"first_seen"`` keeps the order keys were first encountered.

    Returns:
        At most ``limit`` entries ordered by descending count.
    """

    if limit < 0:
        raise ValueError("limit must be >= 0")

    counter: Counter[str] = Counter()
    for record in records:
        if where is not None and not where(record):
            continue
        raw = key(record)
        counter[sentinel if raw is None or raw == "" else str(raw)] += 1

    if tie_break == "key":
        ordered = sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))
    elif tie_break == "first_seen":
        # sorted() is stable and Counter keeps insertion order
        ordered = sorted(counter.items(), key=lambda kv: -kv[1])
    else:
        raise ValueError(f"Unknown tie_break: {tie_break}")
    return [RankEntry(key=k, count=c) for k, c in ordered[:limit]]


def status_is(status: RequestStatus | str) -> Predicate:
    """Return a predicate matching records whose status equals ``status`` exactly."""
    wanted = status.value if isinstance(status, RequestStatus) else status

    def _matches(record: Any) -> bool:
        return record.status == wanted

    return _matches


def within_month(now: datetime, date_of: DateGetter = _fulfillment_date) -> Predicate:
    """Return a predicate for dates in ``[start of now's month, start of next month)``."""
    start, end = month_bounds(now)

    def _matches(record: Any) -> bool:
        moment = _localize(date_of(record), now.tzinfo)
        return moment is not None and start <= moment < end

    return _matches


def fulfilled_in_month(now: datetime) -> Predicate:
    """Predicate for requests attended during ``now``'s month."""
    is_fulfilled = status_is(RequestStatus.FULFILLED)
    in_month = within_month(now)
    return lambda record: is_fulfilled(record) and in_month(record)


def classify_kpis(
    active: Iterable[ActiveRequest],
    historical: Iterable[HistoricalRequest],
    now: datetime,
) -> KpiSet:
    """Compute the headline counters.

    Status counters come from active requests; the monthly fulfilled count
    comes from archived requests attended within ``now``'s month.
    """

    by_status: Counter[str] = Counter(record.status for record in active)
    attended = fulfilled_in_month(now)
    return KpiSet(
        pending=by_status[RequestStatus.PENDING.value],
        out_of_stock=by_status[RequestStatus.OUT_OF_STOCK.value],
        in_transit=by_status[RequestStatus.IN_TRANSIT.value],
        fulfilled_this_month=sum(1 for record in historical if attended(record)),
    )


def status_breakdown(records: Iterable[Any]) -> dict[str, int]:
    """Return counts of requests grouped by status.

    Missing or empty statuses are grouped under "unknown". Values sum to the
    number of records.
    """

    counter: Counter[str] = Counter()
    for record in records:
        counter[record.status or DEFAULT_SENTINEL] += 1
    return dict(sorted(counter.items(), key=lambda kv: (-kv[1], kv[0])))


def unknown_statuses(records: Iterable[Any]) -> list[str]:
    """Return the sorted status values that are outside the known vocabulary."""
    return sorted({record.status or DEFAULT_SENTINEL for record in records} - KNOWN_STATUSES)
