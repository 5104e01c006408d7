"""Dashboard reporting facade.

Runs one reporting pass over a store snapshot: KPI counters, the monthly
request trend and the top client/SKU rankings. ``DashboardReporter`` also
owns the last successfully computed report:

- a failed pass raises ``ReportError`` and leaves the previous report in place
- a refresh issued while a pass is in flight joins that pass instead of
  starting another one
- a pass only commits its report if no newer pass has committed already
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Protocol

from .analytics import (
    CLIENT_SENTINEL,
    SKU_SENTINEL,
    bucket_by_month,
    classify_kpis,
    fulfilled_in_month,
    rank_top,
    status_breakdown,
    status_is,
    unknown_statuses,
)
from .config import ReportSettings
from .dates import get_zone
from .joins import client_key, resolve_client_names, sku_key
from .models import DashboardReport, RequestStatus
from .supabase_store import FetchFailure, StoreSnapshot, SupabaseStore

logger = logging.getLogger(__name__)


class ReportError(RuntimeError):
    """A reporting pass could not complete; the message is user-facing."""


class SnapshotSource(Protocol):
    async def fetch_snapshot(self) -> StoreSnapshot: ...


def _default_clock() -> datetime:
    return datetime.now(get_zone("America/Lima"))


@dataclass(slots=True)
class DashboardReporter:
    """Coordinates store reads and aggregation for the dashboard."""

    store: SnapshotSource
    window_months: int = 12
    top_n: int = 5
    locale: str = "es"
    clock: Callable[[], datetime] = _default_clock
    latest: DashboardReport | None = field(default=None, init=False)
    last_error: str | None = field(default=None, init=False)
    _inflight: asyncio.Task[DashboardReport] | None = field(
        default=None, init=False, repr=False
    )
    _inflight_now: datetime | None = field(default=None, init=False, repr=False)
    _started: int = field(default=0, init=False, repr=False)
    _committed: int = field(default=0, init=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: ReportSettings,
        access_token: str | None = None,
        store: SnapshotSource | None = None,
    ) -> "DashboardReporter":
        return cls(
            store=store or SupabaseStore.from_settings(settings, access_token=access_token),
            window_months=settings.window_months,
            top_n=settings.top_n,
            locale=settings.locale,
            clock=settings.now,
        )

    def build_report(self, snapshot: StoreSnapshot, now: datetime) -> DashboardReport:
        """Aggregate a snapshot into a report. Pure: no I/O, no state."""

        active = resolve_client_names(snapshot.active, snapshot.clients)
        historical = resolve_client_names(snapshot.historical, snapshot.clients)

        warnings: list[str] = []
        for status in unknown_statuses([*active, *historical]):
            logger.warning("report.unknown_status", extra={"status": status})
            warnings.append(f"Unknown status value: {status!r}")
        for table, count in sorted(snapshot.skipped.items()):
            warnings.append(f"Skipped {count} malformed row(s) in {table}")

        return DashboardReport(
            kpis=classify_kpis(active, historical, now),
            monthly=bucket_by_month(
                [*historical, *active],
                now,
                months=self.window_months,
                locale=self.locale,
            ),
            top_clients=rank_top(
                historical,
                client_key,
                where=fulfilled_in_month(now),
                limit=self.top_n,
                sentinel=CLIENT_SENTINEL,
            ),
            top_skus=rank_top(
                active,
                sku_key,
                where=status_is(RequestStatus.OUT_OF_STOCK),
                limit=self.top_n,
                sentinel=SKU_SENTINEL,
            ),
            generated_at=now,
            status_breakdown=status_breakdown(active),
            warnings=warnings,
        )

    async def compute(self, now: datetime | None = None) -> DashboardReport:
        """Run one pass without touching ``latest``.

        Raises:
            ReportError: if the store read fails. No aggregation runs.
        """

        now = now or self.clock()
        logger.info("report.pass.start", extra={"now": now.isoformat()})
        try:
            snapshot = await self.store.fetch_snapshot()
        except FetchFailure as e:
            logger.warning("report.pass.failed", extra={"table": e.table, "error": str(e)})
            raise ReportError(f"Could not load dashboard data: {e}") from e

        report = self.build_report(snapshot, now)
        logger.info(
            "report.pass.done",
            extra={
                "active": len(snapshot.active),
                "historical": len(snapshot.historical),
                "warnings": len(report.warnings),
            },
        )
        return report

    async def refresh(self, now: datetime | None = None) -> DashboardReport:
        """Recompute and store the report; join a pass already in flight.

        A caller that joins receives the running pass's report, which was
        computed for the reference time the pass started with, not ``now``.

        Raises:
            ReportError: if the pass fails; ``latest`` is left unchanged.
        """

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._run_pass(now))
            self._inflight_now = now
        else:
            logger.info(
                "report.refresh.joined",
                extra={
                    "requested_now": now.isoformat() if now else None,
                    "pass_now": self._inflight_now.isoformat() if self._inflight_now else None,
                },
            )
        return await asyncio.shield(self._inflight)

    async def _run_pass(self, now: datetime | None) -> DashboardReport:
        self._started += 1
        seq = self._started
        try:
            report = await self.compute(now)
        except ReportError as e:
            self.last_error = str(e)
            raise
        self._commit(seq, report)
        return report

    def _commit(self, seq: int, report: DashboardReport) -> bool:
        """Store ``report`` unless a newer pass already committed."""
        if seq <= self._committed:
            logger.info("report.pass.stale", extra={"seq": seq, "committed": self._committed})
            return False
        self.latest = report
        self._committed = seq
        self.last_error = None
        return True
