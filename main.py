import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from yardmaster.core.config import settings
from yardmaster.core.cache import CacheError, MemoryTableCache, RedisTableCache
from yardmaster.api.v1.api import api_router
from yardmaster.services.clients.sheets import SheetStoreClient
from yardmaster.services.commit import CommitPipeline
from yardmaster.services.scheduler import Scheduler
from yardmaster.services.snapshot import SnapshotLoader

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def build_cache():
    """Redis cache when enabled and reachable, in-process cache otherwise."""
    if settings.ENABLE_REDIS:
        cache = RedisTableCache(**settings.redis_config)
        try:
            await cache.ping()
            logger.info("Redis connection established")
            return cache
        except CacheError as e:
            logger.error(f"Failed to initialize Redis: {str(e)}")
            await cache.close()
            logger.warning("Running with the in-process table cache")
    return MemoryTableCache()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    # Startup
    logger.info("Starting application...")
    policy = settings.policy()
    store = SheetStoreClient()
    cache = await build_cache()
    loader = SnapshotLoader(store, cache, ttls=settings.table_ttls, default_ttl=settings.CACHE_TTL)

    app.state.policy = policy
    app.state.cache = cache
    app.state.loader = loader
    app.state.scheduler = Scheduler(loader, policy)
    app.state.pipeline = CommitPipeline(store, cache)

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await cache.close()


# Create FastAPI app with lifespan events
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    debug=settings.DEBUG,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)

# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.PROJECT_VERSION,
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG
    }
