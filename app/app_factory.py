import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.core.config import get_settings
from app.deps import tick_store
from app.services.storage import StoreUnavailable

log = logging.getLogger("api")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    try:
        yield
    finally:
        await tick_store.close()


async def _store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
    log.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_base_app() -> FastAPI:
    """
    Build a FastAPI application with shared middleware, error handlers, and lifespan hooks.
    The query API includes its routers on top of this base instance.
    """
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")
    app.add_exception_handler(StoreUnavailable, _store_unavailable)
    return app
