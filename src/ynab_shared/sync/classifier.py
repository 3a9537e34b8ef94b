"""Partition an owner's transactions by shared-budget role."""

import logging
from typing import NamedTuple

from ..exceptions import ReconciliationError
from ..models import CategoryBinding, Transaction
from .stamp import is_stamped

logger = logging.getLogger(__name__)


class Classification(NamedTuple):
    """Disjoint partition of a transaction set.

    ``echoes`` are balancing entries written by the coordinator itself; they
    belong to none of the three working sets.
    """

    shared_expense: list[Transaction]
    balancing: list[Transaction]
    other: list[Transaction]
    echoes: list[Transaction]


def classify(
    transactions: list[Transaction], binding: CategoryBinding | None
) -> Classification:
    """
    Split transactions into shared expenses, balancing and other.

    Args:
        transactions: Transactions of one personal ledger
        binding: The owner's category binding

    Returns:
        Classification whose working sets are pairwise disjoint

    Raises:
        ReconciliationError: If the owner has no category binding
    """
    if binding is None:
        raise ReconciliationError("Cannot classify transactions without a category binding")

    result = Classification([], [], [], [])

    for transaction in transactions:
        if transaction.category_id == binding.shared_category_id:
            result.shared_expense.append(transaction)
        elif transaction.category_id == binding.balancing_category_id:
            if is_stamped(transaction.memo):
                result.echoes.append(transaction)
            else:
                result.balancing.append(transaction)
        else:
            result.other.append(transaction)

    logger.debug(
        f"Classified {len(transactions)} transactions: "
        f"{len(result.shared_expense)} shared, {len(result.balancing)} balancing, "
        f"{len(result.other)} other, {len(result.echoes)} echoes"
    )

    return result
