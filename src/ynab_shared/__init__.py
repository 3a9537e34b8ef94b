"""ynab-shared - Reconcile two personal YNAB budgets with a shared budget."""

__version__ = "0.1.0"

from .config import OwnerSettings, Settings, load_settings
from .db import Database
from .models import (
    CategoryBinding,
    ReconciliationPlan,
    Transaction,
    VersionStamp,
)
from .sync.classifier import classify
from .sync.engine import apply_plan, plan
from .sync.gateway import RateLimitedGateway
from .sync.runner import SyncRunner, SyncScope

__all__ = [
    "Settings",
    "OwnerSettings",
    "load_settings",
    "Database",
    "CategoryBinding",
    "ReconciliationPlan",
    "Transaction",
    "VersionStamp",
    "classify",
    "plan",
    "apply_plan",
    "RateLimitedGateway",
    "SyncRunner",
    "SyncScope",
]
