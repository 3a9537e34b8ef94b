"""Mirror balancing transactions between the two personal ledgers.

A balancing transaction records money settled between the owners. It is
mirrored twice: as a transfer in the shared budget, from the source owner's
account to the counterpart's account payee, and as an entry in the
counterpart's own balancing account. Both mirrors carry ``-amount``.

The two writes are independent API calls. Each mirror is checked on its own
every pass, so a crash between them is repaired by the next pass.
"""

import logging

from pydantic import BaseModel, Field

from ..models import SaveTransaction, Transaction
from .bootstrap import Owner
from .engine import index_by_origin, plan_removals
from .gateway import RateLimitedGateway
from .stamp import encode, needs_update

logger = logging.getLogger(__name__)


class MirrorResult(BaseModel):
    """Ids written while mirroring one owner's balancing transactions."""

    shared_created: list[str] = Field(default_factory=list)
    shared_updated: list[str] = Field(default_factory=list)
    transfers_created: list[str] = Field(default_factory=list)
    transfers_updated: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


def build_mirror_payload(
    balancing: Transaction, source: Owner, counterpart: Owner, knowledge: int
) -> SaveTransaction:
    """Shared-budget transfer mirroring ``balancing``."""
    return SaveTransaction(
        account_id=source.settings.shared_account_id,
        date=balancing.date,
        amount=-balancing.amount,
        payee_id=counterpart.settings.shared_account_payee_id,
        cleared=balancing.cleared,
        approved=balancing.approved,
        memo=encode(balancing.id, knowledge, balancing.memo),
        flag_color=balancing.flag_color,
    )


def build_transfer_payload(
    balancing: Transaction, counterpart: Owner, knowledge: int
) -> SaveTransaction:
    """Entry in the counterpart's balancing account mirroring ``balancing``.

    The stamped memo makes the counterpart's classifier treat it as an echo.
    """
    return SaveTransaction(
        account_id=counterpart.settings.balancing_account_id,
        date=balancing.date,
        amount=-balancing.amount,
        category_id=counterpart.binding.balancing_category_id,
        cleared=balancing.cleared,
        approved=True,
        memo=encode(balancing.id, knowledge, balancing.memo),
        flag_color=balancing.flag_color,
    )


class BalancingCoordinator:
    """Keeps balancing mirrors in the shared and counterpart ledgers current."""

    def __init__(self, gateway: RateLimitedGateway, shared_budget_id: str):
        self.gateway = gateway
        self.shared_budget_id = shared_budget_id

    def mirror(
        self,
        source: Owner,
        counterpart: Owner,
        balancing_transactions: list[Transaction],
        current_knowledge: int,
        shared_transactions: list[Transaction],
        counterpart_transactions: list[Transaction],
    ) -> MirrorResult:
        """
        Mirror the source owner's balancing transactions.

        Args:
            source: Owner whose ledger holds the balancing transactions
            counterpart: The other owner
            balancing_transactions: Unstamped balancing transactions of source
            current_knowledge: Source ledger knowledge before any mutation
            shared_transactions: Transactions of the shared budget
            counterpart_transactions: Transactions of the counterpart's budget

        Returns:
            Ids written, by kind
        """
        shared_index = index_by_origin(
            shared_transactions, source.settings.shared_account_id
        )
        transfer_index = index_by_origin(
            counterpart_transactions, counterpart.settings.balancing_account_id
        )
        result = MirrorResult()

        for balancing in balancing_transactions:
            shared_mirror = shared_index.get(balancing.id)
            transfer = transfer_index.get(balancing.id)

            if balancing.deleted:
                self._remove(source, counterpart, shared_mirror, transfer, result)
                continue

            self._sync_shared_mirror(
                balancing, source, counterpart, shared_mirror, current_knowledge, result
            )
            self._sync_transfer(
                balancing, counterpart, transfer, current_knowledge, result
            )

        logger.info(
            f"{source.name} -> {counterpart.name} - Balancing mirrored: "
            f"{len(result.shared_created)} created, {len(result.shared_updated)} updated "
            f"in shared budget; {len(result.transfers_created)} created, "
            f"{len(result.transfers_updated)} updated in {counterpart.name}'s budget"
        )

        return result

    def _sync_shared_mirror(
        self,
        balancing: Transaction,
        source: Owner,
        counterpart: Owner,
        shared_mirror: Transaction | None,
        knowledge: int,
        result: MirrorResult,
    ):
        payload = build_mirror_payload(balancing, source, counterpart, knowledge)

        if shared_mirror is None:
            created = self.gateway.create_transaction(self.shared_budget_id, payload)
            logger.info(f"Transaction created in shared budget {created.id}")
            result.shared_created.append(created.id)
        elif needs_update(knowledge, shared_mirror.memo):
            updated = self.gateway.update_transaction(
                self.shared_budget_id, shared_mirror.id, payload
            )
            logger.info(f"Updated shared transaction {updated.id}")
            result.shared_updated.append(updated.id)

    def _sync_transfer(
        self,
        balancing: Transaction,
        counterpart: Owner,
        transfer: Transaction | None,
        knowledge: int,
        result: MirrorResult,
    ):
        budget_id = counterpart.settings.budget_id
        payload = build_transfer_payload(balancing, counterpart, knowledge)

        if transfer is None:
            created = self.gateway.create_transaction(budget_id, payload)
            logger.info(f"{counterpart.name} - Transfer transaction created {created.id}")
            result.transfers_created.append(created.id)
        elif needs_update(knowledge, transfer.memo):
            updated = self.gateway.update_transaction(budget_id, transfer.id, payload)
            logger.info(f"{counterpart.name} - Transfer transaction updated {updated.id}")
            result.transfers_updated.append(updated.id)

    def _remove(
        self,
        source: Owner,
        counterpart: Owner,
        shared_mirror: Transaction | None,
        transfer: Transaction | None,
        result: MirrorResult,
    ):
        if shared_mirror is not None:
            result.deleted.append(
                self.gateway.delete_transaction(self.shared_budget_id, shared_mirror.id)
            )
        if transfer is not None:
            result.deleted.append(
                self.gateway.delete_transaction(
                    counterpart.settings.budget_id, transfer.id
                )
            )
        if shared_mirror is not None or transfer is not None:
            logger.info(
                f"{source.name} - Removed mirrors of a deleted balancing transaction"
            )

    def remove_orphans(
        self,
        source: Owner,
        counterpart: Owner,
        non_balancing_transactions: list[Transaction],
        counterpart_transactions: list[Transaction],
    ) -> list[str]:
        """
        Delete transfer entries whose origin is no longer a balancing transaction.

        Their shared-budget mirrors sit in the source's shared account and are
        removed by the shared-expense plan; only the counterpart side is left.
        """
        budget_id = counterpart.settings.budget_id
        orphans = plan_removals(
            non_balancing_transactions,
            counterpart_transactions,
            counterpart.settings.balancing_account_id,
        )

        deleted = [self.gateway.delete_transaction(budget_id, tid) for tid in orphans]
        if deleted:
            logger.info(
                f"{source.name} -> {counterpart.name} - Removed {len(deleted)} transfer "
                f"entries whose origin left the balancing category"
            )
        return deleted
