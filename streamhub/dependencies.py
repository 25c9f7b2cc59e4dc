"""
Request-scoped access to the services created during application startup.
"""
from fastapi import HTTPException, Request

from streamhub.services.aggregator import StreamAggregator
from streamhub.services.watch_progress_service import WatchProgressService, watch_progress_service


def get_aggregator(request: Request) -> StreamAggregator:
    aggregator = getattr(request.app.state, "aggregator", None)
    if aggregator is None:
        raise HTTPException(status_code=503, detail="Service is still starting")
    return aggregator


def get_watch_progress() -> WatchProgressService:
    return watch_progress_service
