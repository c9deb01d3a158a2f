import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.context import build_context
from app.core.config import Settings, settings as default_settings
from app.core.errors import PosError, RateLimitedError
from app.routers import health, products, register, reports, sales, sync, users
from app.services.catalog import ProductCatalog

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _pos_error_handler(request: Request, exc: PosError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    body = {"detail": exc.code, "message": exc.message}
    extra = {k: v for k, v in exc.extra.items() if v is not None}
    if extra:
        body["extra"] = extra
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(max(1, int(round(exc.retry_after))))}
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    _configure_logging(settings.log_level)

    ctx = build_context(settings)
    ProductCatalog.install(ctx)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        ctx.dispose()

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
    app.state.ctx = ctx
    app.add_exception_handler(PosError, _pos_error_handler)

    app.include_router(health.router)
    app.include_router(register.router)
    app.include_router(sales.router)
    app.include_router(products.router)
    app.include_router(users.router)
    app.include_router(reports.router)
    app.include_router(sync.router)

    logger.info("%s %s listo (db=%s tz=%s)", settings.app_name, settings.app_version,
                settings.database_url, settings.timezone)
    return app


app = create_app()
