"""YNAB API client."""

import logging
from datetime import date

import httpx

from ..models import (
    BudgetMonth,
    LedgerSnapshot,
    SaveTransaction,
    Transaction,
    YnabCategory,
    YnabPayee,
)

logger = logging.getLogger(__name__)


class YnabClient:
    """Client for the YNAB API v1.

    Thin and unmetered: every method maps to one HTTP request and lets
    ``httpx`` errors propagate. Metering happens in the gateway.
    """

    BASE_URL = "https://api.ynab.com/v1"

    def __init__(self, access_token: str, transport: httpx.BaseTransport | None = None):
        """Initialize the YNAB client."""
        self.access_token = access_token
        self.client = httpx.Client(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def get_budget(
        self, budget_id: str, last_knowledge_of_server: int | None = None
    ) -> LedgerSnapshot:
        """
        Get a full budget export.

        Args:
            budget_id: The YNAB budget ID
            last_knowledge_of_server: Only return entities changed since then

        Returns:
            Snapshot with transactions, payees, categories, months and the
            budget's server knowledge
        """
        params = {}
        if last_knowledge_of_server is not None:
            params["last_knowledge_of_server"] = last_knowledge_of_server

        response = self.client.get(f"/budgets/{budget_id}", params=params)
        response.raise_for_status()
        data = response.json()["data"]
        budget = data["budget"]

        months = [
            BudgetMonth(
                month=month_data["month"],
                categories=[
                    YnabCategory.model_validate(cat)
                    for cat in month_data.get("categories", [])
                ],
            )
            for month_data in budget.get("months") or []
        ]

        return LedgerSnapshot(
            budget_id=budget_id,
            knowledge=data.get("server_knowledge", -1),
            transactions=[
                Transaction.model_validate(t) for t in budget.get("transactions") or []
            ],
            payees=[YnabPayee.model_validate(p) for p in budget.get("payees") or []],
            categories=[
                YnabCategory.model_validate(c) for c in budget.get("categories") or []
            ],
            months=months,
        )

    def get_transactions(
        self,
        budget_id: str,
        since_date: date | None = None,
        type: str | None = None,
        last_knowledge_of_server: int | None = None,
    ) -> tuple[list[Transaction], int]:
        """
        Get transactions of a budget.

        Args:
            budget_id: The YNAB budget ID
            since_date: Only include transactions on or after this date
            type: "uncategorized" or "unapproved"
            last_knowledge_of_server: Only return transactions changed since then

        Returns:
            Tuple of (transactions, server_knowledge)
        """
        params: dict[str, str | int] = {}
        if since_date:
            params["since_date"] = since_date.isoformat()
        if type:
            params["type"] = type
        if last_knowledge_of_server is not None:
            params["last_knowledge_of_server"] = last_knowledge_of_server

        response = self.client.get(f"/budgets/{budget_id}/transactions", params=params)
        response.raise_for_status()
        data = response.json()["data"]

        transactions = [Transaction.model_validate(t) for t in data["transactions"]]
        return transactions, data.get("server_knowledge", -1)

    def get_categories(self, budget_id: str) -> list[YnabCategory]:
        """
        Get categories for a budget.

        Args:
            budget_id: The YNAB budget ID

        Returns:
            List of YNAB categories, hidden and deleted ones included
        """
        response = self.client.get(f"/budgets/{budget_id}/categories")
        response.raise_for_status()
        data = response.json()

        categories = []
        for group_data in data["data"]["category_groups"]:
            for cat_data in group_data["categories"]:
                categories.append(YnabCategory.model_validate(cat_data))

        return categories

    def create_transaction(self, budget_id: str, payload: SaveTransaction) -> Transaction:
        """Create a single transaction and return it."""
        logger.debug(f"Transaction payload: {payload.to_api()}")
        response = self.client.post(
            f"/budgets/{budget_id}/transactions",
            json={"transaction": payload.to_api()},
        )
        response.raise_for_status()
        return Transaction.model_validate(response.json()["data"]["transaction"])

    def create_transactions(
        self, budget_id: str, payloads: list[SaveTransaction]
    ) -> list[str]:
        """Create transactions in one request and return their ids."""
        response = self.client.post(
            f"/budgets/{budget_id}/transactions",
            json={"transactions": [p.to_api() for p in payloads]},
        )
        response.raise_for_status()
        data = response.json()["data"]

        duplicates = data.get("duplicate_import_ids") or []
        if duplicates:
            logger.warning(f"YNAB skipped duplicate import ids: {duplicates}")

        transaction_ids: list[str] = data.get("transaction_ids", [])
        return transaction_ids

    def update_transaction(
        self, budget_id: str, transaction_id: str, payload: SaveTransaction
    ) -> Transaction:
        """Update a single transaction and return it."""
        response = self.client.put(
            f"/budgets/{budget_id}/transactions/{transaction_id}",
            json={"transaction": payload.model_copy(update={"id": None}).to_api()},
        )
        response.raise_for_status()
        return Transaction.model_validate(response.json()["data"]["transaction"])

    def update_transactions(
        self, budget_id: str, payloads: list[SaveTransaction]
    ) -> list[str]:
        """Update transactions in one request; every payload must carry an id."""
        missing = [p for p in payloads if p.id is None]
        if missing:
            raise ValueError(
                f"Cannot bulk update: {len(missing)} payload(s) are missing an id"
            )

        response = self.client.patch(
            f"/budgets/{budget_id}/transactions",
            json={"transactions": [p.to_api() for p in payloads]},
        )
        response.raise_for_status()
        transaction_ids: list[str] = response.json()["data"].get("transaction_ids", [])
        return transaction_ids

    def delete_transaction(self, budget_id: str, transaction_id: str) -> str:
        """Delete a transaction and return its id."""
        response = self.client.delete(
            f"/budgets/{budget_id}/transactions/{transaction_id}"
        )
        response.raise_for_status()
        deleted_id: str = response.json()["data"]["transaction"]["id"]
        return deleted_id
