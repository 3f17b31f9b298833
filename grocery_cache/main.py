"""
Grocery Cache - FastAPI Application
On-demand warming for users, manual warm/cleanup triggers for operators
"""
import hmac
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import JSONResponse

from config.settings import settings
from grocery_cache import __version__
from grocery_cache.auth import TokenError
from grocery_cache.cache import CacheStore
from grocery_cache.db import SessionLocal, init_db
from grocery_cache.product_client import ProductSearchClient
from grocery_cache.schemas import (
    CacheStats,
    CleanupResponse,
    ManualWarmResponse,
    WarmLocationRequest,
    WarmLocationResponse,
)
from grocery_cache.sweeper import EvictionSweeper
from grocery_cache.utils.helpers import utcnow
from grocery_cache.warming import WarmingScheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("main")

APP_NAME = "Grocery Cache"


@asynccontextmanager
async def lifespan(_app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=APP_NAME,
    description="Warming and eviction for the Kroger product search cache",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Dependencies
# =============================================================================

def get_store() -> CacheStore:
    return CacheStore(SessionLocal)


def get_scheduler(store: CacheStore = Depends(get_store)) -> WarmingScheduler:
    return WarmingScheduler(store, ProductSearchClient(store))


def get_sweeper(store: CacheStore = Depends(get_store)) -> EvictionSweeper:
    return EvictionSweeper(store)


def get_current_user(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Caller identity as set by the authenticating gateway.

    Requests that reach us without it are unauthenticated.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Must be logged in to warm cache")
    return x_user_id.strip()


def require_cleanup_secret(x_cleanup_secret: Optional[str] = Header(None)) -> None:
    """Shared-secret guard for operator endpoints."""
    expected = settings.cleanup_secret
    if not expected or not x_cleanup_secret:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(x_cleanup_secret.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/cache/stats", response_model=CacheStats)
def cache_stats(store: CacheStore = Depends(get_store)):
    """Get cache statistics."""
    return store.counts()


@app.post(
    "/api/warm-location",
    response_model=WarmLocationResponse,
    response_model_exclude_none=True,
)
def warm_location_on_demand(
    request: WarmLocationRequest,
    user_id: str = Depends(get_current_user),
    scheduler: WarmingScheduler = Depends(get_scheduler),
):
    """
    Warm the cache for a store the user just selected.

    Runs synchronously; a recently warmed location is skipped with a reason.
    """
    location_id = (request.location_id or "").strip()
    if not location_id:
        raise HTTPException(status_code=400, detail="locationId is required")

    result = scheduler.run_on_demand_warm(location_id, user_id)
    if not result.success:
        return JSONResponse(status_code=500, content=result.to_dict())
    return result.to_dict()


@app.post("/admin/warm", response_model=ManualWarmResponse)
def manual_cache_warm(
    location_id: Optional[str] = Query(None, alias="locationId"),
    _: None = Depends(require_cleanup_secret),
    scheduler: WarmingScheduler = Depends(get_scheduler),
):
    """Warm one location now, ignoring the cooldown."""
    if not location_id or not location_id.strip():
        raise HTTPException(status_code=400, detail="locationId query parameter required")

    try:
        counts = scheduler.warm_location(location_id.strip())
    except TokenError:
        raise HTTPException(status_code=500, detail="Failed to get Kroger token")

    return {
        "success": True,
        "locationId": location_id.strip(),
        "cached": counts.cached,
        "errors": counts.errors,
        "terms": len(counts.terms),
    }


@app.post("/admin/cleanup", response_model=CleanupResponse)
def manual_cache_cleanup(
    _: None = Depends(require_cleanup_secret),
    sweeper: EvictionSweeper = Depends(get_sweeper),
):
    """Run both sweeps now and report what was deleted."""
    deleted = sweeper.sweep_all()
    return {
        "success": True,
        "deleted": deleted,
        "timestamp": utcnow().isoformat() + "Z",
    }
