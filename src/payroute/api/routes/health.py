"""Health check endpoints."""

from fastapi import APIRouter, Request

from payroute import __version__
from payroute.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "payroute"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration and quote cache info."""
    settings = get_settings()
    selector = request.app.state.selector
    cache = selector.lifi.cache if selector else None
    return {
        "status": "healthy",
        "service": "payroute",
        "version": __version__,
        "config": settings.get_safe_dict(),
        "quote_cache": {"hits": cache.hits, "misses": cache.misses} if cache else None,
    }
