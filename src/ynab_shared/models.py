"""Pydantic domain models for ynab-shared."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# YNAB Models
# ============================================================================


class Transaction(BaseModel):
    """Immutable snapshot of a YNAB transaction.

    Amounts are signed integer milliunits (negative=outflow). Only the fields
    the reconciliation reads are modelled; unknown fields are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", strict=False)

    id: str
    date: date
    amount: int = Field(strict=True)
    category_id: str | None = None
    memo: str | None = None
    cleared: str = "uncleared"
    approved: bool = False
    flag_color: str | None = None
    deleted: bool = False
    account_id: str | None = None
    payee_id: str | None = None
    payee_name: str | None = None
    transfer_account_id: str | None = None
    import_id: str | None = None


class YnabCategory(BaseModel):
    """A YNAB category, optionally with its monthly budgeted amount."""

    id: str
    name: str
    category_group_id: str | None = None
    budgeted: int = 0  # milliunits
    hidden: bool = False
    deleted: bool = False


class YnabPayee(BaseModel):
    """A YNAB payee."""

    id: str
    name: str
    transfer_account_id: str | None = None
    deleted: bool = False


class BudgetMonth(BaseModel):
    """A budget month with the per-category budgeted amounts."""

    month: date
    categories: list[YnabCategory] = Field(default_factory=list)


class LedgerSnapshot(BaseModel):
    """One fetch of a budget: transactions plus its knowledge counter."""

    budget_id: str
    knowledge: int
    transactions: list[Transaction] = Field(default_factory=list)
    payees: list[YnabPayee] = Field(default_factory=list)
    categories: list[YnabCategory] = Field(default_factory=list)
    months: list[BudgetMonth] = Field(default_factory=list)


class SaveTransaction(BaseModel):
    """Outgoing create/update payload.

    ``id`` is only set for bulk updates, where YNAB needs it per item.
    """

    id: str | None = None
    account_id: str | None = None
    date: date
    amount: int
    payee_id: str | None = None
    payee_name: str | None = None
    category_id: str | None = None
    memo: str | None = None
    cleared: str | None = None
    approved: bool | None = None
    flag_color: str | None = None

    def to_api(self) -> dict[str, Any]:
        """Serialize for the YNAB API (ISO dates, no null fields)."""
        return self.model_dump(mode="json", exclude_none=True)


# ============================================================================
# Reconciliation Models
# ============================================================================


class VersionStamp(BaseModel):
    """Origin id and ledger knowledge embedded in a mirrored memo."""

    model_config = ConfigDict(frozen=True)

    origin_id: str
    knowledge: int


class CategoryBinding(BaseModel):
    """Category ids of one owner, resolved once at bootstrap."""

    model_config = ConfigDict(frozen=True)

    shared_category_group_id: str | None = None
    shared_category_id: str
    balancing_category_id: str


class PlannedUpdate(BaseModel):
    """A source transaction whose mirror in the target ledger is stale."""

    model_config = ConfigDict(frozen=True)

    origin: Transaction
    existing_target: Transaction


class ReconciliationPlan(BaseModel):
    """Actions needed to bring a target ledger in line with its sources."""

    to_create: list[Transaction] = Field(default_factory=list)
    to_update: list[PlannedUpdate] = Field(default_factory=list)
    to_delete: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)


class ApplyResult(BaseModel):
    """Ids touched while applying a plan."""

    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)


# ============================================================================
# Gateway Models
# ============================================================================


class RateLimitRecord(BaseModel):
    """Persisted hourly call counter."""

    calls: int = 0
    current_hour: str


class CallRecord(BaseModel):
    """Provenance of one gateway call."""

    sequence_number: int
    timestamp: datetime
    call_site: str

    def __str__(self) -> str:
        return f"{self.sequence_number} | {self.timestamp.isoformat()} | {self.call_site}"
