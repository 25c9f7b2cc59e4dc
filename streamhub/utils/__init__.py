"""Shared utilities: time reconciliation, HTTP fetching and logging helpers."""
