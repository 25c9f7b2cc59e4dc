from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from streamhub.config import setup_logging
from streamhub.database import close_db, init_db
from streamhub.routers import main_router, progress_router
from streamhub.services.aggregator import StreamAggregator
from streamhub.services.cache_service import SqlCacheStore, TTLCacheGate
from streamhub.services.providers import build_providers
from streamhub.services.scheduler_service import refresh_scheduler
from streamhub.services.selection_service import SelectionStore, load_selection_state, persistence_hook
from streamhub.utils.http_client import HttpFetcher


setup_logging()
logger = logging.getLogger(__name__)


async def build_aggregator(http: HttpFetcher) -> StreamAggregator:
    """Wire providers, cache and the persisted selection into an aggregator"""
    store = SqlCacheStore()
    selection = SelectionStore(await load_selection_state(store))
    selection.on_change(persistence_hook(store))
    return StreamAggregator(
        providers=build_providers(http),
        cache=TTLCacheGate(store),
        selection=selection,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    logger.info("Starting StreamHub...")

    http = HttpFetcher()
    try:
        await init_db()

        aggregator = await build_aggregator(http)
        app.state.aggregator = aggregator

        refresh_scheduler.start(aggregator.refresh)
        logger.info("StreamHub started successfully")
    except Exception as e:
        logger.error(f"Failed to start StreamHub: {e}", exc_info=True)
        await http.aclose()
        raise

    yield

    logger.info("Shutting down StreamHub...")
    try:
        refresh_scheduler.shutdown()
    except Exception as e:
        logger.error(f"Error during scheduler shutdown: {e}", exc_info=True)

    await http.aclose()
    await close_db()
    logger.info("StreamHub stopped")


app = FastAPI(
    title="StreamHub",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(main_router)
app.include_router(progress_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors with details"""
    logger.error(f"Validation error for {request.method} {request.url.path}")
    logger.error(f"Validation details: {exc.errors()}")

    errors = [
        {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": str(error.get("input", ""))[:100],
        }
        for error in exc.errors()
    ]

    return JSONResponse(status_code=422, content={"detail": errors})
