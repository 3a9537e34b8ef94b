"""Reconciliation of personal budgets into the shared budget."""
