"""Tests for monthly allocation mirroring."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from ynab_shared.exceptions import NotFoundError, ReconciliationError
from ynab_shared.models import (
    BudgetMonth,
    CategoryBinding,
    LedgerSnapshot,
    Transaction,
    YnabCategory,
)
from ynab_shared.sync.allocation import (
    ALLOCATION_FLAG,
    AllocationAction,
    apply_allocation,
    budgeted_in_shared,
    plan_allocation,
)
from ynab_shared.sync.stamp import encode

BINDING = CategoryBinding(shared_category_id="shared", balancing_category_id="balancing")
FEBRUARY = date(2024, 2, 1)


@pytest.fixture
def snapshot():
    return LedgerSnapshot(
        budget_id="alice",
        knowledge=12,
        months=[
            BudgetMonth(
                month=FEBRUARY,
                categories=[
                    YnabCategory(id="shared", name="Shared", budgeted=300000),
                    YnabCategory(id="balancing", name="Balancing", budgeted=-50000),
                    YnabCategory(id="food", name="Food", budgeted=999),
                ],
            )
        ],
    )


def allocation_mirror(knowledge: int, account_id: str = "acc") -> Transaction:
    return Transaction(
        id="alloc-1",
        date=FEBRUARY,
        amount=100,
        memo=encode("2024-02-01", knowledge, ""),
        account_id=account_id,
    )


class TestBudgetedInShared:
    """Tests for budgeted_in_shared."""

    def test_sums_shared_and_balancing(self, snapshot):
        assert budgeted_in_shared(snapshot, date(2024, 2, 15), BINDING) == 250000

    def test_missing_month(self, snapshot):
        with pytest.raises(NotFoundError, match="2024-03-01"):
            budgeted_in_shared(snapshot, date(2024, 3, 1), BINDING)

    def test_missing_category(self, snapshot):
        binding = CategoryBinding(shared_category_id="nope", balancing_category_id="balancing")

        with pytest.raises(NotFoundError, match="nope"):
            budgeted_in_shared(snapshot, FEBRUARY, binding)


class TestPlanAllocation:
    """Tests for plan_allocation."""

    def test_creates_when_missing(self):
        action = plan_allocation(FEBRUARY, 250000, "acc", [], 12, "Monthly Allocated Budget")

        assert action.kind == "create"
        assert action.payload.amount == 250000
        assert action.payload.account_id == "acc"
        assert action.payload.payee_name == "Monthly Allocated Budget"
        assert action.payload.flag_color == ALLOCATION_FLAG
        assert action.payload.memo == "2024-02-01@12 | "

    def test_updates_when_stale(self):
        action = plan_allocation(FEBRUARY, 250000, "acc", [allocation_mirror(5)], 12, "P")

        assert action.kind == "update"
        assert action.target_id == "alloc-1"

    def test_nothing_when_fresh(self):
        assert plan_allocation(FEBRUARY, 250000, "acc", [allocation_mirror(12)], 12, "P") is None

    def test_other_owner_allocation_is_ignored(self):
        action = plan_allocation(
            FEBRUARY, 250000, "acc", [allocation_mirror(12, account_id="bob-acc")], 12, "P"
        )

        assert action.kind == "create"


class TestApplyAllocation:
    """Tests for apply_allocation."""

    def test_create(self):
        gateway = MagicMock()
        gateway.create_transaction.return_value = allocation_mirror(12)
        action = plan_allocation(FEBRUARY, 1, "acc", [], 12, "P")

        assert apply_allocation(gateway, "shared", action) == "alloc-1"
        gateway.create_transaction.assert_called_once_with("shared", action.payload)

    def test_update(self):
        gateway = MagicMock()
        gateway.update_transaction.return_value = allocation_mirror(12)
        action = AllocationAction(
            "update", plan_allocation(FEBRUARY, 1, "acc", [], 12, "P").payload, "alloc-1"
        )

        assert apply_allocation(gateway, "shared", action) == "alloc-1"
        gateway.update_transaction.assert_called_once_with(
            "shared", "alloc-1", action.payload
        )

    def test_update_without_target_is_rejected(self):
        gateway = MagicMock()
        action = AllocationAction(
            "update", plan_allocation(FEBRUARY, 1, "acc", [], 12, "P").payload
        )

        with pytest.raises(ReconciliationError):
            apply_allocation(gateway, "shared", action)

        gateway.update_transaction.assert_not_called()
