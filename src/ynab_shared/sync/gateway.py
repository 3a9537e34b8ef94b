"""Rate-limited, metered access to the YNAB API.

Every call goes through ``_call``, which enforces the hourly budget, bumps the
hour-scoped counter and records provenance under a single lock, so owner
passes running on different threads can share one gateway.
"""

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import TypeVar

import httpx

from ..clients.ynab import YnabClient
from ..db import Database
from ..exceptions import GatewayError, RateLimitExceededError
from ..models import (
    CallRecord,
    LedgerSnapshot,
    RateLimitRecord,
    SaveTransaction,
    Transaction,
    YnabCategory,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_PAYEE = "Unknown Payee"
DEFAULT_HOURLY_LIMIT = 200


def _hour_of(moment: datetime) -> str:
    return str(moment.hour)


class RateLimitedGateway:
    """Metered wrapper around ``YnabClient``."""

    def __init__(
        self,
        client: YnabClient,
        database: Database | None = None,
        hourly_limit: int = DEFAULT_HOURLY_LIMIT,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """Initialize the gateway with a fresh counter for the current hour."""
        self.client = client
        self.database = database
        self.hourly_limit = hourly_limit
        self.clock = clock

        self._lock = threading.Lock()
        self._rate_limit = RateLimitRecord(calls=0, current_hour=_hour_of(clock()))
        self._call_log: list[CallRecord] = []
        self._payees: dict[str, str] = {}

    # ========================================================================
    # State lifecycle
    # ========================================================================

    def load_state(self):
        """Restore the persisted counter if it belongs to the current hour."""
        if self.database is None:
            return

        saved = self.database.get_rate_limit()
        current_hour = _hour_of(self.clock())

        with self._lock:
            if saved and saved.current_hour == current_hour:
                logger.info(
                    f"Resuming with {saved.calls} API calls already made "
                    f"in hour {current_hour}"
                )
                self._rate_limit = saved
            else:
                if saved:
                    logger.info(
                        f"Saved counter for hour {saved.current_hour} is not valid "
                        f"for hour {current_hour}, starting from zero"
                    )
                self._rate_limit = RateLimitRecord(calls=0, current_hour=current_hour)

    def save_state(self):
        """Persist the counter."""
        if self.database is None:
            return

        with self._lock:
            record = self._rate_limit.model_copy()
        self.database.save_rate_limit(record)
        logger.info(f"Number of API calls so far in this hour: {record.calls}")

    def usage(self) -> tuple[int, list[CallRecord]]:
        """Calls made this hour and the provenance log of this process."""
        with self._lock:
            return self._rate_limit.calls, list(self._call_log)

    # ========================================================================
    # Metering
    # ========================================================================

    def _record_call(self, call_site: str):
        """Count one call, resetting on hour change; raise when over budget."""
        now = self.clock()
        current_hour = _hour_of(now)

        with self._lock:
            if current_hour != self._rate_limit.current_hour:
                logger.info(f"New hour: {current_hour} - Resetting number of calls")
                self._rate_limit = RateLimitRecord(calls=0, current_hour=current_hour)

            if self._rate_limit.calls >= self.hourly_limit:
                raise RateLimitExceededError(
                    call_site, self._rate_limit.calls, self.hourly_limit
                )

            self._rate_limit.calls += 1
            record = CallRecord(
                sequence_number=self._rate_limit.calls,
                timestamp=now,
                call_site=call_site,
            )
            self._call_log.append(record)

        logger.debug(f"Calling {call_site} - Number of calls: {record.sequence_number}")

    def _call(self, call_site: str, func: Callable[[], T]) -> T:
        self._record_call(call_site)
        try:
            return func()
        except httpx.HTTPStatusError as e:
            logger.error(f"YNAB API error in {call_site}: {e}")
            logger.error(f"Response body: {e.response.text}")
            raise GatewayError(call_site, f"{call_site} failed: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error in {call_site}: {e}")
            raise GatewayError(call_site, f"{call_site} failed: {e}") from e

    # ========================================================================
    # Read path
    # ========================================================================

    def get_budget(
        self, budget_id: str, last_knowledge_of_server: int | None = None
    ) -> LedgerSnapshot:
        """Fetch a budget; its payees feed the payee cache."""
        snapshot = self._call(
            f"getBudgetById({budget_id})",
            lambda: self.client.get_budget(budget_id, last_knowledge_of_server),
        )
        with self._lock:
            for payee in snapshot.payees:
                self._payees[payee.id] = payee.name
        return snapshot

    def list_transactions(
        self,
        budget_id: str,
        since_date: date | None = None,
        type: str | None = None,
        last_knowledge_of_server: int | None = None,
    ) -> tuple[list[Transaction], int]:
        return self._call(
            f"getTransactions({budget_id})",
            lambda: self.client.get_transactions(
                budget_id, since_date, type, last_knowledge_of_server
            ),
        )

    def get_categories(self, budget_id: str) -> list[YnabCategory]:
        return self._call(
            f"getCategories({budget_id})",
            lambda: self.client.get_categories(budget_id),
        )

    def resolve_payee_name(self, payee_id: str | None) -> str:
        """Name of a cached payee, or ``UNKNOWN_PAYEE``."""
        with self._lock:
            return self._payees.get(payee_id or "", UNKNOWN_PAYEE)

    # ========================================================================
    # Write path
    # ========================================================================

    def create_transaction(self, budget_id: str, payload: SaveTransaction) -> Transaction:
        return self._call(
            f"createTransaction({budget_id})",
            lambda: self.client.create_transaction(budget_id, payload),
        )

    def create_transactions(
        self, budget_id: str, payloads: list[SaveTransaction]
    ) -> list[str]:
        return self._call(
            f"createTransactions({budget_id})",
            lambda: self.client.create_transactions(budget_id, payloads),
        )

    def update_transaction(
        self, budget_id: str, transaction_id: str, payload: SaveTransaction
    ) -> Transaction:
        return self._call(
            f"updateTransaction({budget_id}, {transaction_id})",
            lambda: self.client.update_transaction(budget_id, transaction_id, payload),
        )

    def update_transactions(
        self, budget_id: str, payloads: list[SaveTransaction]
    ) -> list[str]:
        return self._call(
            f"updateTransactions({budget_id})",
            lambda: self.client.update_transactions(budget_id, payloads),
        )

    def delete_transaction(self, budget_id: str, transaction_id: str) -> str:
        return self._call(
            f"deleteTransaction({budget_id}, {transaction_id})",
            lambda: self.client.delete_transaction(budget_id, transaction_id),
        )
