"""
Structured logging helpers for consistent refresh log lines.
"""
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone


def log_refresh_start(logger: logging.Logger, provider_id: str, *, forced: bool) -> None:
    """
    Log the start of a refresh cycle.

    Args:
        logger: Logger instance
        provider_id: Provider being refreshed
        forced: Whether the cache was bypassed
    """
    logger.info(
        f"Refresh started for {provider_id} at {datetime.now(timezone.utc).isoformat()}"
        f"{' (forced)' if forced else ''}"
    )


def log_refresh_end(logger: logging.Logger, provider_id: str, outcome: str) -> None:
    """Log the end of a refresh cycle with its outcome (fresh, cached, degraded, failed, discarded)."""
    logger.info(f"Refresh completed for {provider_id}: {outcome}")


def log_bundle_summary(logger: logging.Logger, provider_id: str, bundle: Mapping[object, Sequence]) -> None:
    """
    Log per-category event counts of a normalized bundle.

    Args:
        logger: Logger instance
        provider_id: Provider that produced the bundle
        bundle: Category -> events mapping
    """
    counts = {
        getattr(category, "value", category): len(events)
        for category, events in bundle.items()
        if events
    }
    total = sum(counts.values())
    logger.info(f"Bundle summary - {provider_id}: {total} events {counts}")
