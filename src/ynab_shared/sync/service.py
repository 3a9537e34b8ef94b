"""Service layer composing classification, planning and mirroring.

One call of ``sync_period`` is one unit of work: one period of one owner's
ledger reconciled against the shared budget.
"""

import logging
from datetime import date

from pydantic import BaseModel, Field

from ..config import Settings
from ..exceptions import NotFoundError
from ..models import ApplyResult, LedgerSnapshot
from . import engine
from .allocation import apply_allocation, budgeted_in_shared, plan_allocation
from .balancing import BalancingCoordinator, MirrorResult
from .bootstrap import Owner
from .classifier import classify
from .gateway import RateLimitedGateway
from .periods import Period, budget_periods, filter_period
from .stamp import needs_update

logger = logging.getLogger(__name__)


class PeriodResult(BaseModel):
    """What one period pass wrote."""

    owner: str
    period: str
    knowledge: int
    expenses: ApplyResult = Field(default_factory=ApplyResult)
    balancing: MirrorResult = Field(default_factory=MirrorResult)
    allocation_id: str | None = None


class AllocationStatus(BaseModel):
    month: date
    expected: int
    actual: int | None = None

    @property
    def matches(self) -> bool:
        return self.actual == self.expected


class StatusReport(BaseModel):
    """Read-only view of how far an owner's ledger is mirrored."""

    owner: str
    knowledge: int
    shared_expenses: int = 0
    mirrored: int = 0
    missing: int = 0
    stale: int = 0
    balancing: int = 0
    echoes: int = 0
    other: int = 0
    shared_account_transactions: int = 0
    allocations: list[AllocationStatus] = Field(default_factory=list)


class OwnerSyncService:
    """Reconciles owners' ledgers into the shared budget."""

    def __init__(self, gateway: RateLimitedGateway, settings: Settings):
        """Initialize the sync service."""
        self.gateway = gateway
        self.settings = settings
        self.coordinator = BalancingCoordinator(gateway, settings.shared_budget_id)

    def sync_period(
        self,
        owner: Owner,
        counterpart: Owner,
        period: Period | None,
        owner_snapshot: LedgerSnapshot,
        shared_snapshot: LedgerSnapshot,
        counterpart_snapshot: LedgerSnapshot,
    ) -> PeriodResult:
        """
        Reconcile one period of an owner's ledger.

        Shared expenses are planned and applied against the owner's account in
        the shared budget; mirrors of transactions that left the shared
        category are deleted with the plan; balancing transactions are
        mirrored to the counterpart, whose transfer entries are deleted once
        their origin leaves the balancing category.

        Args:
            owner: The owner being synced
            counterpart: The other owner
            period: Period to sync, or None for every transaction
            owner_snapshot: Owner ledger, fetched before any mutation
            shared_snapshot: Shared budget
            counterpart_snapshot: Counterpart ledger

        Returns:
            Ids written during the pass
        """
        knowledge = owner_snapshot.knowledge
        account_id = owner.settings.shared_account_id
        label = period.label if period else "all"

        transactions = (
            filter_period(owner_snapshot.transactions, period)
            if period
            else owner_snapshot.transactions
        )
        result = PeriodResult(owner=owner.name, period=label, knowledge=knowledge)
        if not transactions:
            logger.info(f"{owner.name} - No transactions for {label}")
            return result

        classification = classify(transactions, owner.binding)

        plan = engine.plan(
            classification.shared_expense,
            shared_snapshot.transactions,
            knowledge,
            account_id=account_id,
        )
        for removal in engine.plan_removals(
            classification.other, shared_snapshot.transactions, account_id=account_id
        ):
            if removal not in plan.to_delete:
                logger.info(
                    f"{owner.name} - Deleting mirror {removal}: its origin left "
                    f"the shared category"
                )
                plan.to_delete.append(removal)

        result.expenses = engine.apply_plan(
            self.gateway, plan, self.settings.shared_budget_id, account_id, knowledge
        )

        orphaned = self.coordinator.remove_orphans(
            owner,
            counterpart,
            classification.shared_expense + classification.other,
            counterpart_snapshot.transactions,
        )

        if classification.balancing:
            result.balancing = self.coordinator.mirror(
                owner,
                counterpart,
                classification.balancing,
                knowledge,
                shared_snapshot.transactions,
                counterpart_snapshot.transactions,
            )
        result.balancing.deleted.extend(orphaned)

        logger.info(f"Syncing {owner.name} for month {label} completed")
        return result

    def sync_allocation(
        self,
        owner: Owner,
        period: Period,
        owner_snapshot: LedgerSnapshot,
        shared_snapshot: LedgerSnapshot,
    ) -> str | None:
        """
        Mirror the owner's budgeted amount for a month into the shared budget.

        Raises:
            NotFoundError: If the month or categories are missing
        """
        total = budgeted_in_shared(owner_snapshot, period.start, owner.binding)
        logger.info(f"{owner.name} - Month {period.label} for {total} budgeted")

        action = plan_allocation(
            period.start,
            total,
            owner.settings.shared_account_id,
            shared_snapshot.transactions,
            owner_snapshot.knowledge,
            self.settings.allocation_payee_name,
        )
        if action is None:
            return None
        return apply_allocation(self.gateway, self.settings.shared_budget_id, action)

    def check_status(
        self,
        owner: Owner,
        owner_snapshot: LedgerSnapshot,
        shared_snapshot: LedgerSnapshot,
        today: date | None = None,
    ) -> StatusReport:
        """Compare an owner's ledger with the shared budget without writing."""
        account_id = owner.settings.shared_account_id
        classification = classify(owner_snapshot.transactions, owner.binding)
        index = engine.index_by_origin(shared_snapshot.transactions, account_id)

        report = StatusReport(
            owner=owner.name,
            knowledge=owner_snapshot.knowledge,
            balancing=len(classification.balancing),
            echoes=len(classification.echoes),
            other=len(classification.other),
            shared_account_transactions=sum(
                1
                for t in shared_snapshot.transactions
                if t.account_id == account_id and not t.deleted
            ),
        )

        for transaction in classification.shared_expense:
            if transaction.deleted:
                continue
            report.shared_expenses += 1
            mirror = index.get(transaction.id)
            if mirror is None:
                report.missing += 1
            else:
                report.mirrored += 1
                if needs_update(owner_snapshot.knowledge, mirror.memo):
                    report.stale += 1

        for period in budget_periods(owner_snapshot, today):
            try:
                expected = budgeted_in_shared(owner_snapshot, period.start, owner.binding)
            except NotFoundError as e:
                logger.warning(f"{owner.name} - {e}")
                continue
            existing = index.get(period.label)
            report.allocations.append(
                AllocationStatus(
                    month=period.start,
                    expected=expected,
                    actual=existing.amount if existing else None,
                )
            )

        return report
