"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroute import __version__
from payroute.config import get_settings
from payroute.errors import NoRouteFound, ProviderError, ValidationError
from payroute.routing.chain_reader import JsonRpcChainReader
from payroute.routing.factory import create_route_selector
from payroute.routing.resolution import StaticNameResolver
from payroute.routing.selector import RouteSelector

logger = logging.getLogger(__name__)


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    return handler


def create_app(selector: Optional[RouteSelector] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        selector: Pre-built selector (tests inject one with mocked providers).
            When omitted, the lifespan builds one from settings and closes its
            HTTP clients on shutdown.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        owned = app.state.selector is None
        if owned:
            app.state.selector = create_route_selector(settings, resolver=StaticNameResolver())
            logger.info(f"Route selector ready ({settings.environment})")
        yield
        # Shutdown
        if owned:
            await app.state.selector.lifi.client.aclose()
            reader = app.state.selector.hook.chain_reader
            if isinstance(reader, JsonRpcChainReader):
                await reader.aclose()

    app = FastAPI(
        title="PayRoute API",
        description="Payment route quoting and transaction construction",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.selector = selector

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _error_handler(400))
    app.add_exception_handler(NoRouteFound, _error_handler(404))
    app.add_exception_handler(ProviderError, _error_handler(502))

    # Register routes
    from payroute.api.routes import health
    from payroute.web.controllers import (
        approvals_router,
        pools_router,
        quotes_router,
        transactions_router,
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(quotes_router, prefix="/api/v1")
    app.include_router(transactions_router, prefix="/api/v1")
    app.include_router(approvals_router, prefix="/api/v1")
    app.include_router(pools_router, prefix="/api/v1")

    return app
