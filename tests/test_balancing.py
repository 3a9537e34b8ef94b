"""Tests for the balancing transfer coordinator."""

from datetime import date
from unittest.mock import MagicMock

import pytest

from ynab_shared.config import OwnerSettings
from ynab_shared.models import CategoryBinding, Transaction
from ynab_shared.sync.balancing import (
    BalancingCoordinator,
    build_mirror_payload,
    build_transfer_payload,
)
from ynab_shared.sync.bootstrap import Owner
from ynab_shared.sync.classifier import classify
from ynab_shared.sync.stamp import encode

SHARED_BUDGET = "shared-budget"


def make_owner(name: str) -> Owner:
    """Create an owner for testing."""
    return Owner(
        settings=OwnerSettings(
            name=name,
            budget_id=f"budget-{name}",
            shared_account_id=f"shared-acc-{name}",
            shared_account_payee_id=f"payee-{name}",
            balancing_account_id=f"balancing-acc-{name}",
        ),
        binding=CategoryBinding(
            shared_category_id=f"shared-cat-{name}",
            balancing_category_id=f"balancing-cat-{name}",
        ),
    )


def make_transaction(
    id: str,
    amount: int = -5000,
    memo: str | None = None,
    account_id: str | None = None,
    deleted: bool = False,
    category_id: str | None = None,
) -> Transaction:
    """Create a transaction for testing."""
    return Transaction(
        id=id,
        date=date(2024, 2, 3),
        amount=amount,
        memo=memo,
        cleared="cleared",
        approved=False,
        flag_color="blue",
        account_id=account_id,
        deleted=deleted,
        category_id=category_id,
    )


@pytest.fixture
def alice():
    return make_owner("alice")


@pytest.fixture
def bob():
    return make_owner("bob")


@pytest.fixture
def gateway():
    mock = MagicMock()
    mock.create_transaction.side_effect = lambda budget_id, payload: make_transaction(
        f"created-in-{budget_id}", amount=payload.amount, memo=payload.memo
    )
    mock.update_transaction.side_effect = (
        lambda budget_id, transaction_id, payload: make_transaction(
            transaction_id, amount=payload.amount, memo=payload.memo
        )
    )
    mock.delete_transaction.side_effect = lambda budget_id, transaction_id: transaction_id
    return mock


@pytest.fixture
def coordinator(gateway):
    return BalancingCoordinator(gateway, SHARED_BUDGET)


class TestPayloads:
    """Tests for the pure payload builders."""

    @pytest.mark.parametrize("amount", [-5000, 5000, 0, -1])
    def test_mirror_amount_is_inverse(self, alice, bob, amount):
        b = make_transaction("b1", amount=amount)

        assert build_mirror_payload(b, alice, bob, 3).amount == -amount
        assert build_transfer_payload(b, bob, 3).amount == -amount

    def test_mirror_payload_shape(self, alice, bob):
        b = make_transaction("b1", memo="rent share")

        payload = build_mirror_payload(b, alice, bob, 11)

        assert payload.account_id == "shared-acc-alice"
        assert payload.payee_id == "payee-bob"
        assert payload.date == b.date
        assert payload.cleared == "cleared"
        assert payload.approved is False
        assert payload.flag_color == "blue"
        assert payload.memo == "b1@11 | rent share"

    def test_transfer_payload_is_echo_in_counterpart(self, bob):
        b = make_transaction("b1")

        payload = build_transfer_payload(b, bob, 11)
        echo = make_transaction(
            "t", memo=payload.memo, category_id=payload.category_id
        )

        assert payload.account_id == "balancing-acc-bob"
        assert payload.category_id == "balancing-cat-bob"
        assert classify([echo], bob.binding).echoes == [echo]


class TestMirror:
    """Tests for BalancingCoordinator.mirror."""

    def test_new_balancing_creates_shared_mirror_then_transfer(
        self, coordinator, gateway, alice, bob
    ):
        b = make_transaction("b1", amount=-5000)

        result = coordinator.mirror(alice, bob, [b], 4, [], [])

        assert [c.args[0] for c in gateway.create_transaction.call_args_list] == [
            SHARED_BUDGET,
            "budget-bob",
        ]
        shared_payload = gateway.create_transaction.call_args_list[0].args[1]
        transfer_payload = gateway.create_transaction.call_args_list[1].args[1]
        assert shared_payload.amount == 5000
        assert transfer_payload.amount == 5000
        assert result.shared_created == [f"created-in-{SHARED_BUDGET}"]
        assert result.transfers_created == ["created-in-budget-bob"]
        gateway.update_transaction.assert_not_called()

    def test_fresh_mirrors_are_left_alone(self, coordinator, gateway, alice, bob):
        b = make_transaction("b1")
        shared_mirror = make_transaction(
            "m1", memo=encode("b1", 4, None), account_id="shared-acc-alice"
        )
        transfer = make_transaction(
            "x1", memo=encode("b1", 4, None), account_id="balancing-acc-bob"
        )

        result = coordinator.mirror(alice, bob, [b], 4, [shared_mirror], [transfer])

        gateway.create_transaction.assert_not_called()
        gateway.update_transaction.assert_not_called()
        assert result.shared_created == result.shared_updated == []

    def test_stale_mirrors_are_updated_in_both_ledgers(
        self, coordinator, gateway, alice, bob
    ):
        b = make_transaction("b1", amount=-7000)
        shared_mirror = make_transaction(
            "m1", memo=encode("b1", 2, None), account_id="shared-acc-alice"
        )
        transfer = make_transaction(
            "x1", memo=encode("b1", 2, None), account_id="balancing-acc-bob"
        )

        result = coordinator.mirror(alice, bob, [b], 9, [shared_mirror], [transfer])

        calls = gateway.update_transaction.call_args_list
        assert [(c.args[0], c.args[1]) for c in calls] == [
            (SHARED_BUDGET, "m1"),
            ("budget-bob", "x1"),
        ]
        assert all(c.args[2].amount == 7000 for c in calls)
        assert all(c.args[2].memo == "b1@9 | " for c in calls)
        assert result.shared_updated == ["m1"]
        assert result.transfers_updated == ["x1"]

    def test_missing_transfer_is_repaired(self, coordinator, gateway, alice, bob):
        """A crash after the shared create is fixed on the next pass."""
        b = make_transaction("b1")
        shared_mirror = make_transaction(
            "m1", memo=encode("b1", 4, None), account_id="shared-acc-alice"
        )

        result = coordinator.mirror(alice, bob, [b], 4, [shared_mirror], [])

        gateway.create_transaction.assert_called_once()
        assert gateway.create_transaction.call_args.args[0] == "budget-bob"
        assert result.transfers_created == ["created-in-budget-bob"]

    def test_mirror_in_other_account_is_not_a_match(
        self, coordinator, gateway, alice, bob
    ):
        b = make_transaction("b1")
        bobs_side = make_transaction(
            "m1", memo=encode("b1", 4, None), account_id="shared-acc-bob"
        )

        coordinator.mirror(alice, bob, [b], 4, [bobs_side], [])

        assert gateway.create_transaction.call_args_list[0].args[0] == SHARED_BUDGET

    def test_deleted_balancing_removes_mirrors(self, coordinator, gateway, alice, bob):
        b = make_transaction("b1", deleted=True)
        shared_mirror = make_transaction(
            "m1", memo=encode("b1", 4, None), account_id="shared-acc-alice"
        )
        transfer = make_transaction(
            "x1", memo=encode("b1", 4, None), account_id="balancing-acc-bob"
        )

        result = coordinator.mirror(alice, bob, [b], 5, [shared_mirror], [transfer])

        assert result.deleted == ["m1", "x1"]
        gateway.create_transaction.assert_not_called()
        gateway.update_transaction.assert_not_called()


class TestRemoveOrphans:
    """Tests for BalancingCoordinator.remove_orphans."""

    def test_transfer_of_recategorized_balancing_is_deleted(
        self, coordinator, gateway, alice, bob
    ):
        moved = make_transaction("b1", category_id="food")
        transfer = make_transaction(
            "x1", memo=encode("b1", 4, None), account_id="balancing-acc-bob"
        )
        unrelated = make_transaction(
            "x2", memo=encode("b2", 4, None), account_id="balancing-acc-bob"
        )

        deleted = coordinator.remove_orphans(alice, bob, [moved], [transfer, unrelated])

        assert deleted == ["x1"]
        gateway.delete_transaction.assert_called_once_with("budget-bob", "x1")

    def test_entries_in_other_accounts_are_left_alone(
        self, coordinator, gateway, alice, bob
    ):
        moved = make_transaction("b1", category_id="food")
        elsewhere = make_transaction(
            "x1", memo=encode("b1", 4, None), account_id="checking-bob"
        )

        assert coordinator.remove_orphans(alice, bob, [moved], [elsewhere]) == []
        gateway.delete_transaction.assert_not_called()
