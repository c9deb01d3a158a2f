from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..context import AppContext, get_ctx

router = APIRouter(tags=["health"])


@router.get("/health", operation_id="health_v1")
def health(ctx: AppContext = Depends(get_ctx)):
    db_ok = True
    try:
        with ctx.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db_ok = False
    return {
        "status": "ok" if db_ok else "degraded",
        "db": db_ok,
        "time": datetime.now(timezone.utc).isoformat(),
        "version": ctx.settings.app_version,
    }
