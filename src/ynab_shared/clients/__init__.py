"""YNAB API clients."""
