from typing import Annotated
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from streamhub.dependencies import get_aggregator, get_watch_progress
from streamhub.errors import ConfigurationError, FetchError
from streamhub.schemas import (
    EventResponse,
    MovieProgressRequest,
    PlaybackResponse,
    ProgressResponse,
    ProvidersResponse,
    RefreshResponse,
    SelectionRequest,
    SelectionResponse,
    SettingsPayload,
    StreamsResponse,
)
from streamhub.services.aggregator import RefreshResult, StreamAggregator
from streamhub.services.categories import AppCategory
from streamhub.services.fetch_types import FilterParams
from streamhub.services.scheduler_service import refresh_scheduler
from streamhub.services.watch_progress_service import WatchProgressService


logger = logging.getLogger(__name__)

main_router = APIRouter()
progress_router = APIRouter(prefix="/progress", tags=["progress"])

Aggregator = Annotated[StreamAggregator, Depends(get_aggregator)]
Progress = Annotated[WatchProgressService, Depends(get_watch_progress)]


def _refresh_response(result: RefreshResult) -> RefreshResponse:
    return RefreshResponse(**result.to_dict())


def _selection_response(aggregator: StreamAggregator) -> SelectionResponse:
    return SelectionResponse(
        provider=aggregator.selection.provider,
        category=aggregator.selection.category,
        user_selected_category=aggregator.selection.user_selected_category,
    )


@main_router.get("/")
async def root() -> dict:
    """Root endpoint with service information"""
    next_run = refresh_scheduler.get_next_run_time()

    return {
        "service": "StreamHub",
        "version": "0.1.0",
        "next_scheduled_refresh": next_run.isoformat() if next_run else None,
        "endpoints": {
            "streams": "/streams - Published schedule with live status",
            "refresh": "/refresh - Force a refresh of the active provider (POST)",
            "selection": "/selection - Active provider and category (GET/PUT)",
            "settings": "/settings - Filter parameters (GET/PUT)",
            "health": "/health - Health check",
        },
    }


@main_router.get("/health")
async def health_check() -> dict:
    """Health check endpoint"""
    next_run = refresh_scheduler.get_next_run_time()
    return {
        "status": "ok",
        "scheduler_running": refresh_scheduler.running,
        "next_refresh": next_run.isoformat() if next_run else None,
    }


@main_router.get("/providers", response_model=ProvidersResponse)
async def list_providers(aggregator: Aggregator) -> ProvidersResponse:
    return ProvidersResponse(providers=sorted(aggregator.providers), active=aggregator.selection.provider)


@main_router.get("/categories")
async def list_categories() -> list[str]:
    return [category.value for category in AppCategory]


@main_router.get("/streams", response_model=StreamsResponse)
async def get_streams(
    aggregator: Aggregator,
    category: Annotated[AppCategory | None, Query(description="Only return this category")] = None,
) -> StreamsResponse:
    """
    Get the published schedule

    Status is computed per request, so the same cached bundle reports
    different statuses as time passes.
    """
    now = aggregator.clock()
    categories = [category] if category else list(aggregator.bundle)
    last = aggregator.last_result

    return StreamsResponse(
        provider=aggregator.published_provider,
        selected_category=aggregator.selection.category,
        last_updated=aggregator.last_updated.isoformat() if aggregator.last_updated else None,
        degraded=bool(last and last.degraded),
        error=last.error if last else None,
        streams={
            item.value: [
                EventResponse.from_event(event, status)
                for event, status in aggregator.events_for(item, now)
            ]
            for item in categories
        },
    )


@main_router.post("/refresh", response_model=RefreshResponse)
async def trigger_refresh(aggregator: Aggregator) -> RefreshResponse:
    """Manually trigger a forced refresh of the active provider"""
    logger.info("Manual refresh triggered via API")
    try:
        result = await aggregator.refresh(force_refresh=True)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if result.bundle is None and not result.discarded:
        raise HTTPException(status_code=502, detail=result.error or "Failed to load streams")
    return _refresh_response(result)


@main_router.get("/selection", response_model=SelectionResponse)
async def get_selection(aggregator: Aggregator) -> SelectionResponse:
    return _selection_response(aggregator)


@main_router.put("/selection", response_model=SelectionResponse)
async def update_selection(request: SelectionRequest, aggregator: Aggregator) -> SelectionResponse:
    if request.category is not None:
        await aggregator.select_category(request.category)
    if request.provider is not None:
        try:
            await aggregator.select_provider(request.provider)
        except ConfigurationError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
    return _selection_response(aggregator)


@main_router.get("/settings", response_model=SettingsPayload)
async def get_settings(aggregator: Aggregator) -> SettingsPayload:
    filters = aggregator.selection.filters
    return SettingsPayload(allow_all_streams=filters.allow_all_streams, show_ended=filters.show_ended)


@main_router.put("/settings", response_model=SettingsPayload)
async def update_settings(request: SettingsPayload, aggregator: Aggregator) -> SettingsPayload:
    try:
        await aggregator.update_filters(
            FilterParams(allow_all_streams=request.allow_all_streams, show_ended=request.show_ended)
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return await get_settings(aggregator)


@main_router.post("/cache/clear", response_model=RefreshResponse)
async def clear_cache(aggregator: Aggregator) -> RefreshResponse:
    """Purge every cached entry and refetch the active provider"""
    logger.info("Cache clear triggered via API")
    try:
        result = await aggregator.clear_cache()
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return _refresh_response(result)


@main_router.get("/streams/{event_id:path}/playback", response_model=PlaybackResponse)
async def get_playback(
    event_id: str,
    aggregator: Aggregator,
    channel_id: str | None = None,
    source: str | None = None,
    source_id: str | None = None,
) -> PlaybackResponse:
    """
    Resolve the playable URL of a published event

    Args:
        channel_id: Channel to play (channel-based sources; default first channel)
        source, source_id: Preferred source for match-based sources
    """
    selection: dict = {}
    if channel_id:
        selection["channel_id"] = channel_id
    if source and source_id:
        selection["source_override"] = {"source": source, "id": source_id}

    try:
        url = await aggregator.resolve_playback(event_id, selection)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    if not url:
        raise HTTPException(status_code=404, detail="No playable stream available")
    return PlaybackResponse(event_id=event_id, url=url)


@progress_router.get("/continue-watching", response_model=list[ProgressResponse])
async def continue_watching(progress: Progress) -> list[ProgressResponse]:
    return [ProgressResponse(**item) for item in await progress.get_continue_watching()]


@progress_router.get("/movie/{tmdb_id}", response_model=ProgressResponse)
async def get_movie_progress(tmdb_id: int, progress: Progress) -> ProgressResponse:
    item = await progress.get_movie_progress(tmdb_id)
    if item is None:
        raise HTTPException(status_code=404, detail="No progress recorded")
    return ProgressResponse(**item)


@progress_router.put("/movie/{tmdb_id}", response_model=ProgressResponse)
async def save_movie_progress(tmdb_id: int, request: MovieProgressRequest, progress: Progress) -> ProgressResponse:
    item = await progress.save_movie_progress(tmdb_id, request.current_time, request.duration)
    return ProgressResponse(**item)


@progress_router.delete("/movie/{tmdb_id}", status_code=204)
async def clear_movie_progress(tmdb_id: int, progress: Progress) -> None:
    await progress.clear_movie_progress(tmdb_id)


@progress_router.get("/tv/{tmdb_id}/last", response_model=ProgressResponse)
async def get_last_watched_episode(tmdb_id: int, progress: Progress) -> ProgressResponse:
    item = await progress.get_last_watched_episode(tmdb_id)
    if item is None:
        raise HTTPException(status_code=404, detail="No progress recorded")
    return ProgressResponse(**item)


@progress_router.delete("/tv/{tmdb_id}", status_code=204)
async def clear_series_progress(tmdb_id: int, progress: Progress) -> None:
    await progress.clear_tv_progress(tmdb_id)


@progress_router.get("/tv/{tmdb_id}/{season}/{episode}", response_model=ProgressResponse)
async def get_tv_progress(tmdb_id: int, season: int, episode: int, progress: Progress) -> ProgressResponse:
    item = await progress.get_tv_progress(tmdb_id, season, episode)
    if item is None:
        raise HTTPException(status_code=404, detail="No progress recorded")
    return ProgressResponse(**item)


@progress_router.put("/tv/{tmdb_id}/{season}/{episode}", response_model=ProgressResponse)
async def save_tv_progress(
    tmdb_id: int,
    season: int,
    episode: int,
    request: MovieProgressRequest,
    progress: Progress,
) -> ProgressResponse:
    item = await progress.save_tv_progress(tmdb_id, season, episode, request.current_time, request.duration)
    return ProgressResponse(**item)


@progress_router.delete("/tv/{tmdb_id}/{season}/{episode}", status_code=204)
async def clear_episode_progress(tmdb_id: int, season: int, episode: int, progress: Progress) -> None:
    await progress.clear_tv_progress(tmdb_id, season, episode)
