"""Reconciliation engine: diff source transactions against a target ledger.

Planning is pure. ``apply_plan`` is the only place a plan turns into API calls,
always in the order create batch, update batch, sequential deletes.
"""

import logging
from typing import TYPE_CHECKING

from ..models import (
    ApplyResult,
    PlannedUpdate,
    ReconciliationPlan,
    SaveTransaction,
    Transaction,
)
from .stamp import encode, needs_update, stamped_origin_id

if TYPE_CHECKING:
    from .gateway import RateLimitedGateway

logger = logging.getLogger(__name__)


def index_by_origin(
    target_transactions: list[Transaction], account_id: str | None = None
) -> dict[str, Transaction]:
    """
    Map origin id to the target transaction mirroring it.

    Deleted targets are ignored. When ``account_id`` is given, only targets in
    that account are indexed. If two targets claim the same origin the first
    one wins.
    """
    index: dict[str, Transaction] = {}
    for target in target_transactions:
        if target.deleted:
            continue
        if account_id and target.account_id != account_id:
            continue

        origin_id = stamped_origin_id(target.memo)
        if origin_id is None:
            continue

        if origin_id in index:
            logger.warning(
                f"Duplicate mirrors for {origin_id}: keeping {index[origin_id].id}, "
                f"ignoring {target.id}"
            )
            continue
        index[origin_id] = target

    return index


def plan(
    source_transactions: list[Transaction],
    target_transactions: list[Transaction],
    current_knowledge: int,
    account_id: str | None = None,
) -> ReconciliationPlan:
    """
    Decide what to create, update and delete in the target ledger.

    Args:
        source_transactions: Shared-expense transactions of one owner
        target_transactions: Transactions of the target (shared) ledger
        current_knowledge: Source ledger knowledge, captured before any mutation
        account_id: Restrict matching to this target account

    Returns:
        The reconciliation plan
    """
    index = index_by_origin(target_transactions, account_id)
    result = ReconciliationPlan()

    for transaction in source_transactions:
        existing = index.get(transaction.id)

        if transaction.deleted:
            if existing is not None:
                result.to_delete.append(existing.id)
            continue

        if existing is None:
            result.to_create.append(transaction)
        elif needs_update(current_knowledge, existing.memo):
            result.to_update.append(
                PlannedUpdate(origin=transaction, existing_target=existing)
            )

    logger.info(
        f"Plan at knowledge {current_knowledge}: {len(result.to_create)} to create, "
        f"{len(result.to_update)} to update, {len(result.to_delete)} to delete"
    )

    return result


def plan_removals(
    other_transactions: list[Transaction],
    target_transactions: list[Transaction],
    account_id: str | None = None,
) -> list[str]:
    """
    Find mirrors of transactions that are no longer shared expenses.

    A transaction moved out of the shared category leaves its mirror behind in
    the shared ledger; those mirror ids are returned for deletion.
    """
    index = index_by_origin(target_transactions, account_id)
    return [
        index[transaction.id].id
        for transaction in other_transactions
        if transaction.id in index
    ]


def build_payload(
    origin: Transaction,
    account_id: str,
    knowledge: int,
    payee_name: str | None = None,
    target_id: str | None = None,
) -> SaveTransaction:
    """Build the stamped payload mirroring ``origin`` into ``account_id``."""
    return SaveTransaction(
        id=target_id,
        account_id=account_id,
        date=origin.date,
        amount=origin.amount,
        payee_name=payee_name,
        cleared=origin.cleared,
        approved=origin.approved,
        memo=encode(origin.id, knowledge, origin.memo),
        flag_color=origin.flag_color,
    )


def apply_plan(
    gateway: "RateLimitedGateway",
    reconciliation_plan: ReconciliationPlan,
    budget_id: str,
    account_id: str,
    knowledge: int,
) -> ApplyResult:
    """
    Execute a plan against the target budget.

    One batched create, one batched update, then one delete per id. Nothing is
    retried; if a step fails the earlier steps stay applied and the next pass
    re-derives the rest.
    """
    result = ApplyResult()
    if reconciliation_plan.is_empty:
        logger.debug(f"Nothing to apply to account {account_id}")
        return result

    if reconciliation_plan.to_create:
        payloads = [
            build_payload(
                t, account_id, knowledge, gateway.resolve_payee_name(t.payee_id)
            )
            for t in reconciliation_plan.to_create
        ]
        result.created = gateway.create_transactions(budget_id, payloads)
        logger.info(f"Transactions created: {len(result.created)}")

    if reconciliation_plan.to_update:
        payloads = [
            build_payload(
                u.origin,
                account_id,
                knowledge,
                gateway.resolve_payee_name(u.origin.payee_id),
                target_id=u.existing_target.id,
            )
            for u in reconciliation_plan.to_update
        ]
        result.updated = gateway.update_transactions(budget_id, payloads)
        logger.info(f"Transactions updated: {len(result.updated)}")

    for transaction_id in reconciliation_plan.to_delete:
        result.deleted.append(gateway.delete_transaction(budget_id, transaction_id))

    if result.deleted:
        logger.info(f"Transactions deleted: {len(result.deleted)}")

    return result
