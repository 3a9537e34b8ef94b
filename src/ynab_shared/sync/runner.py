"""Drive sync passes for both owners.

Each owner gets one worker thread; workers are joined before a pass counts as
complete. Errors are contained per unit of work: a ``NotFoundError`` or
``GatewayError`` abandons one period of one owner, a ``ReconciliationError``
or a malformed API response abandons that owner's pass. A failed pass is
logged and polling goes on; it stops only between passes.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

from ..config import Settings
from ..db import Database
from ..exceptions import (
    GatewayError,
    NotFoundError,
    RateLimitExceededError,
    ReconciliationError,
)
from ..models import LedgerSnapshot
from .bootstrap import Owner, load_or_resolve_binding
from .gateway import RateLimitedGateway
from .periods import Period, budget_periods, month_period, year_periods
from .service import OwnerSyncService, PeriodResult, StatusReport

logger = logging.getLogger(__name__)


class SyncScope(BaseModel):
    """Which periods a pass covers."""

    kind: Literal["all", "month", "year"] = "all"
    month: date | None = None
    year: int | None = None
    allocations: bool = False

    def periods(self, snapshot: LedgerSnapshot, today: date | None = None) -> list[Period]:
        if self.kind == "month":
            if self.month is None:
                raise ValueError("A month scope needs a month")
            return [month_period(self.month, today)]
        if self.kind == "year":
            if self.year is None:
                raise ValueError("A year scope needs a year")
            return year_periods(self.year, today)
        return budget_periods(snapshot, today)


class PassReport(BaseModel):
    """Outcome of one owner's pass."""

    owner: str
    periods: list[PeriodResult] = Field(default_factory=list)
    failures: list[str] = Field(default_factory=list)
    aborted: str | None = None

    @property
    def ok(self) -> bool:
        return not self.failures and self.aborted is None


class SyncRunner:
    """Orchestrates bootstrap, passes, polling and shutdown."""

    def __init__(
        self,
        gateway: RateLimitedGateway,
        database: Database,
        settings: Settings,
        today: date | None = None,
    ):
        """Initialize the runner; call ``prepare`` before running passes."""
        self.gateway = gateway
        self.database = database
        self.settings = settings
        self.today = today
        self.service = OwnerSyncService(gateway, settings)
        self.owners: list[Owner] = []

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def prepare(self, force_refresh_categories: bool = False):
        """Restore the call counter and resolve both owners' category bindings."""
        self.gateway.load_state()
        self.owners = [
            load_or_resolve_binding(
                owner, self.gateway, self.database, force_refresh_categories
            )
            for owner in self.settings.owners
        ]

    def drain(self):
        """Persist the call counter and category bindings."""
        self.gateway.save_state()
        for owner in self.owners:
            self.database.save_category_binding(owner.name, owner.binding)

    # ========================================================================
    # Passes
    # ========================================================================

    def _fetch_snapshots(self) -> tuple[LedgerSnapshot, dict[str, LedgerSnapshot]]:
        """Fetch the shared budget and both owner budgets concurrently."""
        budget_ids = [self.settings.shared_budget_id] + [
            owner.settings.budget_id for owner in self.owners
        ]
        with ThreadPoolExecutor(max_workers=len(budget_ids)) as pool:
            snapshots = list(pool.map(self.gateway.get_budget, budget_ids))

        shared, *owner_snapshots = snapshots
        by_owner = {
            owner.name: snapshot
            for owner, snapshot in zip(self.owners, owner_snapshots, strict=True)
        }
        for name, snapshot in by_owner.items():
            logger.info(f"{name} - Latest server knowledge: {snapshot.knowledge}")
        return shared, by_owner

    def _counterpart(self, owner: Owner) -> Owner:
        others = [o for o in self.owners if o.name != owner.name]
        if len(others) != 1:
            raise ReconciliationError(
                f"{owner.name} - Expected exactly one counterpart, found {len(others)}"
            )
        return others[0]

    def _run_owner(
        self,
        owner: Owner,
        scope: SyncScope,
        shared: LedgerSnapshot,
        snapshots: dict[str, LedgerSnapshot],
    ) -> PassReport:
        """Sync every period of one owner, containing failures per period."""
        report = PassReport(owner=owner.name)
        counterpart = self._counterpart(owner)
        owner_snapshot = snapshots[owner.name]

        for period in scope.periods(owner_snapshot, self.today):
            try:
                result = self.service.sync_period(
                    owner,
                    counterpart,
                    period,
                    owner_snapshot,
                    shared,
                    snapshots[counterpart.name],
                )
                if scope.allocations:
                    result.allocation_id = self.service.sync_allocation(
                        owner, period, owner_snapshot, shared
                    )
                report.periods.append(result)
            except RateLimitExceededError as e:
                logger.error(f"{owner.name} - {e}")
                report.aborted = str(e)
                break
            except (NotFoundError, GatewayError) as e:
                logger.error(
                    f"{owner.name} - Some error occurred for the month "
                    f"{period.label}: {e}"
                )
                report.failures.append(f"{period.label}: {e}")

        logger.info(f"Syncing {owner.name} completed")
        return report

    def run_pass(self, scope: SyncScope | None = None) -> list[PassReport]:
        """
        Run one pass for every owner in parallel.

        A ``ReconciliationError`` or a malformed API response inside one
        owner's worker aborts only that owner's pass.

        Raises:
            GatewayError: If the budgets cannot be fetched
            ValidationError: If a fetched budget is malformed
            ReconciliationError: If the runner is not prepared
        """
        scope = scope or SyncScope()
        if not self.owners:
            raise ReconciliationError("Runner is not prepared: no owners resolved")

        shared, snapshots = self._fetch_snapshots()

        with ThreadPoolExecutor(max_workers=len(self.owners)) as pool:
            futures = {
                owner.name: pool.submit(self._run_owner, owner, scope, shared, snapshots)
                for owner in self.owners
            }

        reports = []
        for name, future in futures.items():
            try:
                reports.append(future.result())
            except (ReconciliationError, ValidationError) as e:
                logger.error(f"{name} - Pass aborted: {e}")
                reports.append(PassReport(owner=name, aborted=str(e)))

        return reports

    def watch(
        self,
        scope: SyncScope | None = None,
        stop_event: threading.Event | None = None,
        max_iterations: int | None = None,
    ) -> int:
        """
        Run passes until ``stop_event`` is set.

        The event is only checked between passes, so a pass in flight always
        completes. Returns the number of passes run.
        """
        if not self.owners:
            raise ReconciliationError("Runner is not prepared: no owners resolved")

        stop_event = stop_event or threading.Event()
        iteration = 0

        while not stop_event.is_set():
            iteration += 1
            logger.info(f"Checking {iteration} time")

            try:
                self.run_pass(scope)
            except (GatewayError, ReconciliationError, ValidationError) as e:
                logger.error(f"Pass {iteration} failed: {e}")

            if max_iterations is not None and iteration >= max_iterations:
                break

            logger.info(f"Waiting for {self.settings.poll_interval_seconds} seconds")
            if stop_event.wait(self.settings.poll_interval_seconds):
                break

        logger.info(f"Stopped polling after {iteration} pass(es)")
        return iteration

    def status(self) -> list[StatusReport]:
        """Report how far each owner's ledger is mirrored."""
        shared, snapshots = self._fetch_snapshots()
        return [
            self.service.check_status(owner, snapshots[owner.name], shared, self.today)
            for owner in self.owners
        ]
