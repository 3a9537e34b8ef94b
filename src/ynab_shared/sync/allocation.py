"""Mirror each owner's monthly budgeted amount into the shared budget.

What an owner budgets in the shared and balancing categories for a month is
money promised to the shared budget. It shows up there as one transaction per
month in the owner's shared account, stamped with the month as origin id.
"""

import logging
from datetime import date
from typing import Literal, NamedTuple

from ..exceptions import NotFoundError, ReconciliationError
from ..models import CategoryBinding, LedgerSnapshot, SaveTransaction, Transaction
from .engine import index_by_origin
from .gateway import RateLimitedGateway
from .stamp import encode, needs_update

logger = logging.getLogger(__name__)

ALLOCATION_FLAG = "purple"


class AllocationAction(NamedTuple):
    kind: Literal["create", "update"]
    payload: SaveTransaction
    target_id: str | None = None


def budgeted_in_shared(
    snapshot: LedgerSnapshot, month: date, binding: CategoryBinding
) -> int:
    """
    Milliunits budgeted in the shared and balancing categories for ``month``.

    Raises:
        NotFoundError: If the month or one of the categories is missing
    """
    budget_month = next(
        (m for m in snapshot.months if m.month.replace(day=1) == month.replace(day=1)),
        None,
    )
    if budget_month is None:
        raise NotFoundError(f"Could not find month {month.isoformat()} in budget")

    by_id = {c.id: c for c in budget_month.categories}
    shared = by_id.get(binding.shared_category_id)
    balancing = by_id.get(binding.balancing_category_id)

    if shared is None:
        raise NotFoundError(
            f"Could not find shared category {binding.shared_category_id} "
            f"in month {month.isoformat()}"
        )
    if balancing is None:
        raise NotFoundError(
            f"Could not find balancing category {binding.balancing_category_id} "
            f"in month {month.isoformat()}"
        )

    return shared.budgeted + balancing.budgeted


def plan_allocation(
    month: date,
    total: int,
    account_id: str,
    shared_transactions: list[Transaction],
    current_knowledge: int,
    payee_name: str,
) -> AllocationAction | None:
    """Decide whether the month's allocation must be created or updated."""
    origin_id = month.replace(day=1).isoformat()
    existing = index_by_origin(shared_transactions, account_id).get(origin_id)

    payload = SaveTransaction(
        account_id=account_id,
        date=month.replace(day=1),
        amount=total,
        payee_name=payee_name,
        memo=encode(origin_id, current_knowledge, ""),
        flag_color=ALLOCATION_FLAG,
    )

    if existing is None:
        return AllocationAction("create", payload)
    if needs_update(current_knowledge, existing.memo):
        return AllocationAction("update", payload, existing.id)
    return None


def apply_allocation(
    gateway: RateLimitedGateway, shared_budget_id: str, action: AllocationAction
) -> str:
    """Write an allocation action and return the transaction id."""
    if action.kind == "create":
        created = gateway.create_transaction(shared_budget_id, action.payload)
        logger.info(f"Allocation for {action.payload.date} created: {created.id}")
        return created.id

    if action.target_id is None:
        raise ReconciliationError(
            f"Allocation update for {action.payload.date} has no target transaction"
        )
    updated = gateway.update_transaction(
        shared_budget_id, action.target_id, action.payload
    )
    logger.info(f"Allocation for {action.payload.date} updated: {updated.id}")
    return updated.id
