"""Contexto explícito de la aplicación.

`create_app()` construye un `AppContext` y lo guarda en `app.state.ctx`;
los routers lo reciben por dependencia en lugar de leer globales.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import Header, Request

from app.core.config import Settings
from app.db import create_tables, make_engine, make_session_factory
from app.services.business_day import now_utc
from app.services.offline_queue import OfflineQueue
from app.utils.feed import ChangeFeed
from app.utils.rate_limit import SlidingWindowLimiter
from app.utils.ttl_cache import TTLCache


@dataclass
class AppContext:
    settings: Settings
    engine: Any
    session_factory: Any
    feed: ChangeFeed
    sale_limiter: SlidingWindowLimiter
    products_cache: TTLCache
    # operator_id -> nombre de vendedor; sirve para imprimir tickets sin base
    sellers_cache: TTLCache = field(default_factory=lambda: TTLCache(ttl=3600, max_entries=512))
    offline_queue: Optional[OfflineQueue] = None
    clock: Callable[[], datetime] = field(default=now_utc)

    def dispose(self) -> None:
        self.engine.dispose()


def build_context(settings: Settings) -> AppContext:
    engine = make_engine(settings.database_url)
    create_tables(engine)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=make_session_factory(engine),
        feed=ChangeFeed(),
        sale_limiter=SlidingWindowLimiter(settings.sale_rate_max, settings.sale_rate_window_seconds),
        products_cache=TTLCache(ttl=settings.products_cache_ttl),
        offline_queue=OfflineQueue(
            settings.offline_queue_path,
            max_ops=settings.offline_max_ops,
            soft_ops=settings.offline_soft_ops,
            soft_hours=settings.offline_soft_hours,
            max_hours=settings.offline_max_hours,
        ),
    )


# Dependencias FastAPI
def get_ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def get_db(request: Request):
    db = get_ctx(request).session_factory()
    try:
        yield db
    finally:
        db.close()


def get_operator_id(x_operator_id: str = Header(..., alias="X-Operator-Id", min_length=1, max_length=64)) -> str:
    # la autenticación la resuelve el servicio de login; aquí sólo llega el uid
    return x_operator_id.strip()
